"""
Ledger host for the horse race program.

Executes signed Solana-format transactions against accounts stored in
the database. Each transaction runs as one atomic unit:

1. Verify every required signature against the serialized message
2. Lock every account the message declares (see account_locks)
3. Reject signatures that were already processed
4. Run each instruction through the program's Processor
5. Write back race account buffers and commit, or roll back everything
"""

import hashlib
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import Transaction
import logging

from horse_race.constants import SYSVAR_CLOCK_ID
from horse_race.errors import (
    CorruptRaceState,
    DecodingError,
    DuplicateTransaction,
    HorseRaceError,
    IncorrectProgramId,
    InvalidSignature,
    NotEnoughAccountKeys,
)
from horse_race.models import TransactionRecord, TransactionStatus
from horse_race.program.accounts import AccountInfo
from horse_race.program.clock import Clock, RandomnessSource
from horse_race.program.instruction import decode_instruction, instruction_name
from horse_race.program.processor import Processor
from horse_race.program.state import HorseRace
from horse_race.services.account_locks import (
    AccountLockManager,
    with_race_account_locks,
    with_token_account_locks,
)
from horse_race.services.pda_utils import get_program_id
from horse_race.services.race_feed import RaceFeedManager, race_events
from horse_race.services.token_ledger import DatabaseTokenProgram

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    signature: str
    instructions: List[str]
    races: Dict[str, HorseRace] = field(default_factory=dict)
    previous_races: Dict[str, Optional[HorseRace]] = field(default_factory=dict)
    timestamp: int = 0


class LedgerHost:
    """
    Runs the race program outside a real cluster.

    Args:
        program_id: ID the program is deployed under
        clock_source: Returns the current unix time (seconds)
        randomness: Winner selection source passed to the program
        lock_manager: Shared per-account lock registry
        feed: Live race feed notified after each commit
    """

    def __init__(
        self,
        program_id: Pubkey,
        clock_source: Callable[[], float] = time.time,
        randomness: Optional[RandomnessSource] = None,
        lock_manager: Optional[AccountLockManager] = None,
        feed: Optional[RaceFeedManager] = None
    ):
        self.program_id = program_id
        self.clock_source = clock_source
        self.randomness = randomness
        self.lock_manager = lock_manager or AccountLockManager()
        self.feed = feed or RaceFeedManager()
        self._slot = 0
        self._slot_lock = threading.Lock()

        logger.info(f"Initialized LedgerHost for program {self.program_id}")

    def latest_blockhash(self) -> Hash:
        """
        A fresh blockhash for transaction building.

        The host does not expire blockhashes; they only make otherwise
        identical transactions produce distinct signatures.
        """
        return Hash.from_bytes(hashlib.sha256(uuid.uuid4().bytes).digest())

    def current_clock(self) -> Clock:
        with self._slot_lock:
            slot = self._slot
        return Clock(unix_timestamp=int(self.clock_source()), slot=slot)

    def _advance_slot(self) -> int:
        # transactions on disjoint accounts commit concurrently
        with self._slot_lock:
            self._slot += 1
            return self._slot

    def execute_transaction(self, db: Session, transaction: Transaction) -> ExecutionResult:
        message = transaction.message
        keys = list(message.account_keys)
        key_strs = [str(key) for key in keys]

        signature = self._verify_signatures(transaction)
        names = self._instruction_names(transaction)

        with self.lock_manager.hold(key_strs):
            if db.query(TransactionRecord).filter(TransactionRecord.signature == signature).first():
                raise DuplicateTransaction(signature)

            try:
                result = self._execute(db, transaction, signature, names)
                db.add(TransactionRecord(
                    signature=signature,
                    fee_payer=key_strs[0],
                    instructions=",".join(names),
                    status=TransactionStatus.SUCCESS
                ))
                db.commit()
                self._advance_slot()
            except IntegrityError:
                db.rollback()
                raise DuplicateTransaction(signature)
            except HorseRaceError as e:
                db.rollback()
                logger.warning(f"Transaction {signature} rejected ({e.code}): {e}")
                self._record_failure(db, signature, key_strs[0], names, e)
                raise
            except Exception:
                db.rollback()
                raise

        logger.info(f"Transaction committed: {signature} ({', '.join(names)})")
        self._publish(result)
        return result

    def _publish(self, result: ExecutionResult) -> None:
        for address, race in result.races.items():
            if not self.feed.has_subscribers(address):
                continue
            events = race_events(address, result.previous_races.get(address), race, result.timestamp)
            self.feed.publish(address, events)

    def _execute(
        self,
        db: Session,
        transaction: Transaction,
        signature: str,
        names: List[str]
    ) -> ExecutionResult:
        message = transaction.message
        keys = list(message.account_keys)
        key_strs = [str(key) for key in keys]

        race_rows = {row.address: row for row in with_race_account_locks(key_strs, db).all()}
        with_token_account_locks(key_strs, db).all()

        clock = self.current_clock()
        infos: List[AccountInfo] = []
        for index, key in enumerate(keys):
            row = race_rows.get(key_strs[index])
            if row is not None:
                data = bytearray(row.data)
                owner = Pubkey.from_string(row.owner)
            elif key == SYSVAR_CLOCK_ID:
                data = bytearray(clock.to_account_data())
                owner = None
            else:
                data = bytearray()
                owner = None
            infos.append(AccountInfo(
                key=key,
                is_signer=_is_signer(message, index),
                is_writable=_is_writable(message, index, len(keys)),
                data=data,
                owner=owner,
            ))

        processor = Processor(self.program_id, DatabaseTokenProgram(db, self.program_id), self.randomness)

        for compiled in message.instructions:
            if compiled.program_id_index >= len(keys):
                raise NotEnoughAccountKeys(f"Program index {compiled.program_id_index} out of range")
            program_key = keys[compiled.program_id_index]
            if program_key != self.program_id:
                raise IncorrectProgramId(f"Host only executes program {self.program_id}, got {program_key}")

            accounts = []
            for account_index in bytes(compiled.accounts):
                if account_index >= len(keys):
                    raise NotEnoughAccountKeys(f"Account index {account_index} out of range")
                accounts.append(infos[account_index])

            processor.process_instruction(accounts, bytes(compiled.data))

        races = {}
        previous_races = {}
        for address, row in race_rows.items():
            new_data = bytes(infos[key_strs.index(address)].data)
            if new_data != bytes(row.data):
                previous_races[address] = _decode_or_none(row.data)
                row.data = new_data
                races[address] = HorseRace.deserialize(new_data)

        return ExecutionResult(
            signature=signature,
            instructions=names,
            races=races,
            previous_races=previous_races,
            timestamp=clock.unix_timestamp
        )

    def _verify_signatures(self, transaction: Transaction) -> str:
        message = transaction.message
        keys = list(message.account_keys)
        required = message.header.num_required_signatures
        signatures = list(transaction.signatures)

        if required == 0 or len(signatures) != required or len(keys) < required:
            raise InvalidSignature(f"Transaction needs {required} signatures, carries {len(signatures)}")

        message_bytes = bytes(message)
        for key, sig in zip(keys[:required], signatures):
            if not sig.verify(key, message_bytes):
                raise InvalidSignature(f"Signature for {key} does not verify")

        return str(signatures[0])

    def _instruction_names(self, transaction: Transaction) -> List[str]:
        names = []
        for compiled in transaction.message.instructions:
            try:
                names.append(instruction_name(decode_instruction(bytes(compiled.data))))
            except DecodingError:
                names.append("invalid")
        return names

    def _record_failure(
        self,
        db: Session,
        signature: str,
        fee_payer: str,
        names: List[str],
        error: HorseRaceError
    ) -> None:
        try:
            db.add(TransactionRecord(
                signature=signature,
                fee_payer=fee_payer,
                instructions=",".join(names),
                status=TransactionStatus.FAILED,
                error_code=error.code,
                error_message=str(error)
            ))
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Could not record failed transaction {signature}: {e}")


def _decode_or_none(data: bytes) -> Optional[HorseRace]:
    # a slot that was never initialized has no previous race
    try:
        return HorseRace.deserialize(data)
    except CorruptRaceState:
        return None


def _is_signer(message, index: int) -> bool:
    return index < message.header.num_required_signatures


def _is_writable(message, index: int, key_count: int) -> bool:
    header = message.header
    if index < header.num_required_signatures:
        return index < header.num_required_signatures - header.num_readonly_signed_accounts
    return index < key_count - header.num_readonly_unsigned_accounts


#global ledger host instance
_ledger_host: Optional[LedgerHost] = None


def get_ledger_host() -> LedgerHost:
    """
    get or create the global ledger host instance

    Returns:
        LedgerHost instance
    """
    global _ledger_host

    if _ledger_host is None:
        _ledger_host = LedgerHost(Pubkey.from_string(get_program_id()))

    return _ledger_host
