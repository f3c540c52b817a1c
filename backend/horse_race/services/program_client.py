"""
Program client for building horse race program instructions.

Provides one builder per program operation. Account order and
writable/signer flags match what the program's router expects.
"""

from typing import Optional
from solders.pubkey import Pubkey
from solders.instruction import Instruction, AccountMeta
import logging

from horse_race.constants import SYSVAR_CLOCK_ID, TOKEN_PROGRAM_ID
from horse_race.program.instruction import (
    ClaimWinnings,
    InitializeRace,
    JoinRace,
    StartRace,
    encode_instruction,
)
from horse_race.services.pda_utils import get_program_id

logger = logging.getLogger(__name__)


class ProgramClient:
    """
    Client for building horse race program instructions.
    """

    def __init__(self, program_id: Optional[str] = None):
        """
        Initialize program client.

        Args:
            program_id: Program ID as string (defaults to SOLANA_PROGRAM_ID env var)
        """
        if program_id is None:
            program_id = get_program_id()

        self.program_id = Pubkey.from_string(program_id)

        logger.info(f"Initialized ProgramClient: {self.program_id}")

    def build_initialize_race_instruction(
        self,
        initializer: Pubkey,
        race_account: Pubkey,
        token_mint: Pubkey
    ) -> Instruction:
        """
        Build InitializeRace instruction.

        Args:
            initializer: Wallet initializing the race (signer)
            race_account: Pre-sized race state account
            token_mint: Token accepted as stake

        Returns:
            Instruction for InitializeRace
        """
        accounts = [
            AccountMeta(pubkey=initializer, is_signer=True, is_writable=False),
            AccountMeta(pubkey=race_account, is_signer=False, is_writable=True),
        ]

        return Instruction(
            program_id=self.program_id,
            data=encode_instruction(InitializeRace(token_mint=token_mint)),
            accounts=accounts
        )

    def build_join_race_instruction(
        self,
        player: Pubkey,
        player_token_account: Pubkey,
        race_account: Pubkey,
        escrow_token_account: Pubkey
    ) -> Instruction:
        """
        Build JoinRace instruction.

        Args:
            player: Player wallet (signer)
            player_token_account: Player's holding the stake is taken from
            race_account: Race state account
            escrow_token_account: Race escrow holding

        Returns:
            Instruction for JoinRace
        """
        accounts = [
            AccountMeta(pubkey=player, is_signer=True, is_writable=False),
            AccountMeta(pubkey=player_token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=race_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=escrow_token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SYSVAR_CLOCK_ID, is_signer=False, is_writable=False),
        ]

        return Instruction(
            program_id=self.program_id,
            data=encode_instruction(JoinRace()),
            accounts=accounts
        )

    def build_start_race_instruction(
        self,
        caller: Pubkey,
        race_account: Pubkey
    ) -> Instruction:
        """
        Build StartRace instruction.

        Args:
            caller: Any wallet (signer)
            race_account: Race state account

        Returns:
            Instruction for StartRace
        """
        accounts = [
            AccountMeta(pubkey=caller, is_signer=True, is_writable=False),
            AccountMeta(pubkey=race_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=SYSVAR_CLOCK_ID, is_signer=False, is_writable=False),
        ]

        return Instruction(
            program_id=self.program_id,
            data=encode_instruction(StartRace()),
            accounts=accounts
        )

    def build_claim_winnings_instruction(
        self,
        winner: Pubkey,
        winner_token_account: Pubkey,
        race_account: Pubkey,
        escrow_token_account: Pubkey
    ) -> Instruction:
        """
        Build ClaimWinnings instruction.

        Args:
            winner: Winner wallet (signer)
            winner_token_account: Holding the pot is paid into
            race_account: Race state account
            escrow_token_account: Race escrow holding

        Returns:
            Instruction for ClaimWinnings
        """
        accounts = [
            AccountMeta(pubkey=winner, is_signer=True, is_writable=False),
            AccountMeta(pubkey=winner_token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=race_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=escrow_token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        ]

        return Instruction(
            program_id=self.program_id,
            data=encode_instruction(ClaimWinnings()),
            accounts=accounts
        )

