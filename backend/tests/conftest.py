import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import AbstractSet, Callable, Dict, List

import pytest
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from horse_race.database import Base
from horse_race import models  # noqa: F401  (registers tables)
from horse_race.errors import InsufficientFunds, MintMismatch, OwnerMismatch, TokenAccountNotFound
from horse_race.program.accounts import AccountInfo
from horse_race.program.authority import AddressAuthority
from horse_race.program.clock import Clock
from horse_race.program.lifecycle import RaceLifecycle
from horse_race.program.processor import Processor
from horse_race.program.state import RACE_ACCOUNT_SIZE
from horse_race.program.token import TokenAccount, TransferRequest
from horse_race.services.ledger import LedgerHost

START_TIME = 1_700_000_000


class InMemoryTokenProgram:
    """Token collaborator double that keeps holdings in a dict."""

    def __init__(self, program_id: Pubkey):
        self.program_id = program_id
        self.accounts: Dict[Pubkey, TokenAccount] = {}
        self.transfers: List[TransferRequest] = []
        self.fail_with = None

    def create(self, owner: Pubkey, mint: Pubkey, amount: int = 0) -> Pubkey:
        address = Keypair().pubkey()
        self.accounts[address] = TokenAccount(address=address, mint=mint, owner=owner, amount=amount)
        return address

    def balance(self, address: Pubkey) -> int:
        return self.accounts[address].amount

    def get_account(self, address: Pubkey) -> TokenAccount:
        if address not in self.accounts:
            raise TokenAccountNotFound(address)
        return self.accounts[address]

    def transfer(self, request: TransferRequest, signers: AbstractSet[Pubkey]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        source = self.get_account(request.source)
        destination = self.get_account(request.destination)
        if source.mint != destination.mint:
            raise MintMismatch("mint mismatch")
        if source.owner != request.authority:
            raise OwnerMismatch("owner mismatch")
        if request.proof is not None:
            if request.proof.program_id != self.program_id or not request.proof.authorizes(request.authority):
                raise OwnerMismatch("bad proof")
        elif request.authority not in signers:
            raise OwnerMismatch("authority did not sign")
        if source.amount < request.amount:
            raise InsufficientFunds(source.address, source.amount, request.amount)

        self.accounts[source.address] = TokenAccount(
            source.address, source.mint, source.owner, source.amount - request.amount
        )
        destination = self.accounts[destination.address]
        self.accounts[destination.address] = TokenAccount(
            destination.address, destination.mint, destination.owner, destination.amount + request.amount
        )
        self.transfers.append(request)


class FixedRandomness:
    def __init__(self, value: int):
        self.value = value

    def sample(self, clock: Clock) -> int:
        return self.value


class FakeClock:
    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def signer(key: Pubkey) -> AccountInfo:
    return AccountInfo(key=key, is_signer=True)


def writable(key: Pubkey) -> AccountInfo:
    return AccountInfo(key=key, is_writable=True)


def sign_transaction(host: LedgerHost, instructions, payer: Keypair, *signers: Keypair) -> Transaction:
    blockhash = host.latest_blockhash()
    message = Message.new_with_blockhash(instructions, payer.pubkey(), blockhash)
    return Transaction([payer, *signers], message, blockhash)


@pytest.fixture
def program_id() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def mint() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def authority(program_id) -> AddressAuthority:
    return AddressAuthority(program_id)


@pytest.fixture
def token_program(program_id) -> InMemoryTokenProgram:
    return InMemoryTokenProgram(program_id)


@pytest.fixture
def escrow(token_program, authority, mint) -> Pubkey:
    return token_program.create(authority.address, mint)


@pytest.fixture
def lifecycle(program_id, token_program) -> RaceLifecycle:
    return RaceLifecycle(program_id, token_program, FixedRandomness(0))


@pytest.fixture
def processor(program_id, token_program) -> Processor:
    return Processor(program_id, token_program, FixedRandomness(0))


@pytest.fixture
def race_account(program_id) -> AccountInfo:
    return AccountInfo(
        key=Keypair().pubkey(),
        is_writable=True,
        data=bytearray(RACE_ACCOUNT_SIZE),
        owner=program_id,
    )


@pytest.fixture
def make_player(token_program, mint) -> Callable[..., tuple]:
    """Factory: (wallet keypair, funded token account)."""

    def _make(amount: int = 50_000):
        keypair = Keypair()
        return keypair, token_program.create(keypair.pubkey(), mint, amount)

    return _make


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger_host(program_id, fake_clock) -> LedgerHost:
    return LedgerHost(program_id, clock_source=fake_clock, randomness=FixedRandomness(0))
