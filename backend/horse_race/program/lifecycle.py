"""
Race lifecycle state machine.

    WaitingForPlayers --join (capacity/timeout)--> RaceInProgress
    WaitingForPlayers --start (>= 2 players)-----> RaceCompleted
    RaceInProgress    --start--------------------> RaceCompleted
    RaceCompleted     --claim (winner)-----------> WaitingForPlayers

Handlers validate every precondition before the first side effect. The
only side effect before a state mutation is the token transfer, and a
failed transfer raises before the state is touched.
"""

from typing import Optional

from solders.pubkey import Pubkey
import logging

from horse_race.constants import (
    AUTO_START_TIMEOUT_SECONDS,
    MAX_PLAYERS,
    MIN_PLAYERS_TO_START,
    REQUIRED_TOKEN_AMOUNT,
)
from horse_race.errors import (
    EscrowMintMismatch,
    InvalidEscrowAccount,
    InvalidPayoutAccount,
    InvalidRaceState,
    NotEnoughPlayers,
    NotRaceWinner,
    PlayerAlreadyJoined,
    RaceFull,
    WinnerNotSelected,
)
from horse_race.program.accounts import AccountInfo, require_signer, require_writable
from horse_race.program.authority import AddressAuthority
from horse_race.program.clock import Clock, ClockRandomness, RandomnessSource, select_winner_index
from horse_race.program.state import GameState, HorseRace, Player
from horse_race.program.token import TokenAccount, TokenEscrowCollaborator, TransferRequest

logger = logging.getLogger(__name__)


class RaceLifecycle:
    """
    Transition handlers for one deployed race program.

    Args:
        program_id: ID of the executing program (derives the escrow custody address)
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
        self.token_program = token_program
        self.randomness = randomness or ClockRandomness()
        self.authority = AddressAuthority(program_id)

    def initialize(
        self,
        initializer: AccountInfo,
        token_mint: Pubkey,
        race_account: Optional[AccountInfo] = None
    ) -> HorseRace:
        """Fresh race for ``token_mint``; overwrites whatever the slot held."""
        require_signer(initializer, "initializer")
        if race_account is not None:
            require_writable(race_account, "race account")

        logger.info(f"Race initialized with token mint: {token_mint}")
        return HorseRace.new(token_mint)

    def join(
        self,
        race: HorseRace,
        player: AccountInfo,
        player_token_account: AccountInfo,
        escrow_token_account: AccountInfo,
        clock: Clock,
        race_account: Optional[AccountInfo] = None
    ) -> None:
        require_signer(player, "player")

        if race.state != GameState.WAITING_FOR_PLAYERS:
            raise InvalidRaceState("join", race.state)
        if race.has_player(player.key):
            raise PlayerAlreadyJoined(player.key)
        if len(race.players) >= MAX_PLAYERS:
            raise RaceFull(f"Race already has {MAX_PLAYERS} players")

        # account checks come after the lifecycle checks
        require_writable(player_token_account, "player token account")
        self._check_escrow(race, escrow_token_account, race_account)

        self.token_program.transfer(
            TransferRequest(
                source=player_token_account.key,
                destination=escrow_token_account.key,
                authority=player.key,
                amount=REQUIRED_TOKEN_AMOUNT,
            ),
            signers=frozenset([player.key]),
        )

        now = clock.unix_timestamp
        race.players.append(Player(wallet=player.key, joined_at=now))

        if should_auto_start(race, now):
            race.state = GameState.RACE_IN_PROGRESS
            race.start_time = now
            logger.info(f"Race auto-started with {len(race.players)} players at {now}")

        logger.info(f"Player joined the race: {player.key}")

    def start(
        self,
        race: HorseRace,
        caller: AccountInfo,
        clock: Clock,
        race_account: Optional[AccountInfo] = None
    ) -> int:
        """Select the winner and complete the race. Returns the winner index."""
        require_signer(caller, "caller")

        if race.state not in (GameState.WAITING_FOR_PLAYERS, GameState.RACE_IN_PROGRESS):
            raise InvalidRaceState("start", race.state)
        if len(race.players) < MIN_PLAYERS_TO_START:
            raise NotEnoughPlayers(
                f"Race needs at least {MIN_PLAYERS_TO_START} players to start, has {len(race.players)}"
            )
        if race_account is not None:
            require_writable(race_account, "race account")

        # an auto-started race keeps the start time recorded by join
        if race.state == GameState.WAITING_FOR_PLAYERS:
            race.state = GameState.RACE_IN_PROGRESS
            race.start_time = clock.unix_timestamp

        winner_index = select_winner_index(self.randomness.sample(clock), len(race.players))
        race.winner_index = winner_index
        race.state = GameState.RACE_COMPLETED

        logger.info(f"Race completed! Winner: {race.players[winner_index].wallet}")
        return winner_index

    def claim(
        self,
        race: HorseRace,
        winner: AccountInfo,
        winner_token_account: AccountInfo,
        escrow_token_account: AccountInfo,
        race_account: Optional[AccountInfo] = None
    ) -> int:
        """Pay the whole escrow to the winner and reset. Returns the amount paid."""
        require_signer(winner, "winner")

        if race.state != GameState.RACE_COMPLETED:
            raise InvalidRaceState("claim winnings", race.state)
        if race.winner is None:
            raise WinnerNotSelected("Race has no winner")
        if race.winner.wallet != winner.key:
            raise NotRaceWinner(winner.key, race.winner.wallet)

        require_writable(winner_token_account, "winner token account")
        escrow = self._check_escrow(race, escrow_token_account, race_account)
        if winner_token_account.key == escrow_token_account.key:
            raise InvalidPayoutAccount(f"Winnings cannot be paid into the escrow {escrow.address}")
        winning_amount = escrow.amount

        self.token_program.transfer(
            TransferRequest(
                source=escrow_token_account.key,
                destination=winner_token_account.key,
                authority=self.authority.address,
                amount=winning_amount,
                proof=self.authority.proof(),
            ),
            signers=frozenset([winner.key]),
        )
        logger.info(f"Winnings claimed by: {winner.key} ({winning_amount} tokens)")

        race.reset()
        logger.info("New race initialized")
        return winning_amount

    def _check_escrow(
        self,
        race: HorseRace,
        escrow_token_account: AccountInfo,
        race_account: Optional[AccountInfo]
    ) -> TokenAccount:
        require_writable(escrow_token_account, "escrow token account")
        if race_account is not None:
            require_writable(race_account, "race account")

        escrow = self.token_program.get_account(escrow_token_account.key)
        if escrow.owner != self.authority.address:
            raise InvalidEscrowAccount(
                f"Escrow {escrow.address} is owned by {escrow.owner}, not the race authority {self.authority.address}"
            )
        if escrow.mint != race.token_mint:
            raise EscrowMintMismatch(f"Escrow holds mint {escrow.mint}, race accepts {race.token_mint}")
        return escrow


def should_auto_start(race: HorseRace, now: int) -> bool:
    if len(race.players) == MAX_PLAYERS:
        return True
    return (
        len(race.players) >= MIN_PLAYERS_TO_START
        and now - race.players[0].joined_at >= AUTO_START_TIMEOUT_SECONDS
    )
