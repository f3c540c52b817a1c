"""
Instruction router: the program entrypoint.

Decodes one instruction, resolves its accounts in order, loads the race
state from the race account, dispatches to the lifecycle handler and
writes the state back. State is only written after the handler returns,
so a rejected instruction leaves the race account untouched.
"""

from typing import Optional, Sequence

from solders.pubkey import Pubkey
import logging

from horse_race.constants import SYSVAR_CLOCK_ID, TOKEN_PROGRAM_ID
from horse_race.errors import CorruptRaceState, IncorrectAccountOwner, IncorrectProgramId
from horse_race.program.accounts import AccountInfo, next_account_info
from horse_race.program.clock import Clock, RandomnessSource
from horse_race.program.instruction import (
    ClaimWinnings,
    HorseRaceInstruction,
    InitializeRace,
    JoinRace,
    StartRace,
    decode_instruction,
    instruction_name,
)
from horse_race.program.lifecycle import RaceLifecycle
from horse_race.program.state import RACE_ACCOUNT_SIZE, HorseRace
from horse_race.program.token import TokenEscrowCollaborator

logger = logging.getLogger(__name__)


class Processor:
    """
    Executes horse race instructions for one program ID.

    Args:
        program_id: ID of this program; race accounts must be owned by it
        token_program: Collaborator that moves tokens
        randomness: Winner selection source (defaults to the ledger clock)
    """

    def __init__(
        self,
        program_id: Pubkey,
        token_program: TokenEscrowCollaborator,
        randomness: Optional[RandomnessSource] = None
    ):
        self.program_id = program_id
        self.lifecycle = RaceLifecycle(program_id, token_program, randomness)

    def process_instruction(
        self,
        accounts: Sequence[AccountInfo],
        instruction_data: bytes
    ) -> HorseRaceInstruction:
        instruction = decode_instruction(instruction_data)
        logger.debug(f"[process_instruction] {instruction_name(instruction)} with {len(accounts)} accounts")

        accounts_iter = iter(accounts)

        if isinstance(instruction, InitializeRace):
            initializer = next_account_info(accounts_iter, "initializer")
            race_account = next_account_info(accounts_iter, "race account")
            self._check_race_account(race_account)

            race = self.lifecycle.initialize(initializer, instruction.token_mint, race_account)
            race.pack_into(race_account.data)

        elif isinstance(instruction, JoinRace):
            player = next_account_info(accounts_iter, "player")
            player_token_account = next_account_info(accounts_iter, "player token account")
            race_account = next_account_info(accounts_iter, "race account")
            escrow_token_account = next_account_info(accounts_iter, "escrow token account")
            token_program = next_account_info(accounts_iter, "token program")
            clock_sysvar = next_account_info(accounts_iter, "clock sysvar")
            self._check_token_program(token_program)
            clock = self._load_clock(clock_sysvar)
            self._check_race_account(race_account)

            race = HorseRace.deserialize(race_account.data)
            self.lifecycle.join(race, player, player_token_account, escrow_token_account, clock, race_account)
            race.pack_into(race_account.data)

        elif isinstance(instruction, StartRace):
            caller = next_account_info(accounts_iter, "caller")
            race_account = next_account_info(accounts_iter, "race account")
            clock_sysvar = next_account_info(accounts_iter, "clock sysvar")
            clock = self._load_clock(clock_sysvar)
            self._check_race_account(race_account)

            race = HorseRace.deserialize(race_account.data)
            self.lifecycle.start(race, caller, clock, race_account)
            race.pack_into(race_account.data)

        elif isinstance(instruction, ClaimWinnings):
            winner = next_account_info(accounts_iter, "winner")
            winner_token_account = next_account_info(accounts_iter, "winner token account")
            race_account = next_account_info(accounts_iter, "race account")
            escrow_token_account = next_account_info(accounts_iter, "escrow token account")
            token_program = next_account_info(accounts_iter, "token program")
            self._check_token_program(token_program)
            self._check_race_account(race_account)

            race = HorseRace.deserialize(race_account.data)
            self.lifecycle.claim(race, winner, winner_token_account, escrow_token_account, race_account)
            race.pack_into(race_account.data)

        else:
            raise TypeError(f"Unhandled instruction {instruction!r}")

        return instruction

    def _check_race_account(self, race_account: AccountInfo) -> None:
        # writability is checked by the lifecycle handler, after its state checks
        if race_account.owner != self.program_id:
            raise IncorrectAccountOwner(
                f"Race account {race_account.key} is owned by {race_account.owner}, not {self.program_id}"
            )
        if len(race_account.data) < RACE_ACCOUNT_SIZE:
            raise CorruptRaceState(
                f"Race account {race_account.key} holds {len(race_account.data)} bytes, needs {RACE_ACCOUNT_SIZE}"
            )

    def _check_token_program(self, account: AccountInfo) -> None:
        if account.key != TOKEN_PROGRAM_ID:
            raise IncorrectProgramId(f"Expected token program {TOKEN_PROGRAM_ID}, got {account.key}")

    def _load_clock(self, account: AccountInfo) -> Clock:
        if account.key != SYSVAR_CLOCK_ID:
            raise IncorrectProgramId(f"Expected clock sysvar {SYSVAR_CLOCK_ID}, got {account.key}")
        return Clock.from_account_data(account.data)
