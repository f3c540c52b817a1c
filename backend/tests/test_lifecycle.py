import pytest
from solders.keypair import Keypair

from horse_race.constants import MAX_PLAYERS, REQUIRED_TOKEN_AMOUNT
from horse_race.errors import (
    AccountNotWritable,
    EscrowMintMismatch,
    InsufficientFunds,
    InvalidEscrowAccount,
    InvalidPayoutAccount,
    InvalidRaceState,
    MissingRequiredSignature,
    NotEnoughPlayers,
    NotRaceWinner,
    PlayerAlreadyJoined,
    RaceFull,
    StateError,
)
from horse_race.program.accounts import AccountInfo
from horse_race.program.clock import Clock, select_winner_index
from horse_race.program.lifecycle import RaceLifecycle, should_auto_start
from horse_race.program.state import GameState, HorseRace, Player
from horse_race.program.token import TokenAccount

from conftest import START_TIME, FixedRandomness, signer, writable


@pytest.fixture
def race(mint) -> HorseRace:
    return HorseRace.new(mint)


@pytest.fixture
def join(lifecycle, race, escrow):
    """Join ``race`` with a (keypair, token account) pair at ``now``."""

    def _join(entrant, now=START_TIME):
        keypair, token_account = entrant
        lifecycle.join(race, signer(keypair.pubkey()), writable(token_account), writable(escrow), Clock(now))

    return _join


def test_initialize_requires_signature(lifecycle, mint):
    with pytest.raises(MissingRequiredSignature):
        lifecycle.initialize(AccountInfo(key=Keypair().pubkey()), mint)


def test_initialize_returns_fresh_race(lifecycle, mint):
    race = lifecycle.initialize(signer(Keypair().pubkey()), mint)

    assert race == HorseRace.new(mint)


def test_join_stakes_fixed_amount(join, race, make_player, token_program, escrow):
    entrant = make_player(25_000)
    join(entrant)

    assert race.players == [Player(wallet=entrant[0].pubkey(), joined_at=START_TIME)]
    assert race.state == GameState.WAITING_FOR_PLAYERS
    assert token_program.balance(entrant[1]) == 25_000 - REQUIRED_TOKEN_AMOUNT
    assert token_program.balance(escrow) == REQUIRED_TOKEN_AMOUNT


def test_join_requires_signature(lifecycle, race, make_player, token_program, escrow):
    keypair, token_account = make_player()

    with pytest.raises(MissingRequiredSignature):
        lifecycle.join(race, AccountInfo(key=keypair.pubkey()), writable(token_account), writable(escrow), Clock(START_TIME))

    assert race.players == []
    assert token_program.transfers == []


def test_join_requires_writable_holdings(lifecycle, race, make_player, escrow):
    keypair, token_account = make_player()

    with pytest.raises(AccountNotWritable):
        lifecycle.join(race, signer(keypair.pubkey()), AccountInfo(key=token_account), writable(escrow), Clock(START_TIME))


def test_join_twice_is_rejected(join, race, make_player, token_program, escrow):
    entrant = make_player()
    join(entrant)

    with pytest.raises(PlayerAlreadyJoined):
        join(entrant, START_TIME + 1)

    assert len(race.players) == 1
    assert token_program.balance(escrow) == REQUIRED_TOKEN_AMOUNT


def test_join_without_funds_changes_nothing(join, race, make_player, token_program, escrow):
    entrant = make_player(REQUIRED_TOKEN_AMOUNT - 1)

    with pytest.raises(InsufficientFunds):
        join(entrant)

    assert race.players == []
    assert token_program.balance(entrant[1]) == REQUIRED_TOKEN_AMOUNT - 1
    assert token_program.balance(escrow) == 0


def test_eighth_join_auto_starts(join, race, make_player):
    for i in range(MAX_PLAYERS - 1):
        join(make_player(), START_TIME + i)
        assert race.state == GameState.WAITING_FOR_PLAYERS

    join(make_player(), START_TIME + 7)

    assert race.state == GameState.RACE_IN_PROGRESS
    assert race.start_time == START_TIME + 7
    assert race.winner_index is None


def test_ninth_join_is_rejected(join, race, make_player, token_program, escrow):
    for _ in range(MAX_PLAYERS):
        join(make_player())
    late = make_player()

    with pytest.raises(InvalidRaceState):
        join(late)

    assert len(race.players) == MAX_PLAYERS
    assert token_program.balance(escrow) == MAX_PLAYERS * REQUIRED_TOKEN_AMOUNT


def test_full_waiting_race_rejects_join(lifecycle, mint, make_player, escrow):
    race = HorseRace(
        players=[Player(wallet=Keypair().pubkey(), joined_at=START_TIME) for _ in range(MAX_PLAYERS)],
        token_mint=mint,
    )
    keypair, token_account = make_player()

    with pytest.raises(RaceFull):
        lifecycle.join(race, signer(keypair.pubkey()), writable(token_account), writable(escrow), Clock(START_TIME))


def test_auto_start_after_timeout(join, race, make_player):
    join(make_player(), START_TIME)
    join(make_player(), START_TIME + 30)

    assert race.state == GameState.RACE_IN_PROGRESS
    assert race.start_time == START_TIME + 30


def test_no_auto_start_before_timeout(join, race, make_player):
    join(make_player(), START_TIME)
    join(make_player(), START_TIME + 29)

    assert race.state == GameState.WAITING_FOR_PLAYERS
    assert race.start_time == 0


def test_lone_player_never_auto_starts(mint):
    race = HorseRace(players=[Player(wallet=Keypair().pubkey(), joined_at=START_TIME)], token_mint=mint)

    assert not should_auto_start(race, START_TIME + 3600)


def test_start_needs_two_players(lifecycle, join, race, make_player):
    join(make_player())

    with pytest.raises(NotEnoughPlayers):
        lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME + 5))

    assert race.state == GameState.WAITING_FOR_PLAYERS


def test_start_requires_signature(lifecycle, join, race, make_player):
    join(make_player())
    join(make_player())

    with pytest.raises(MissingRequiredSignature):
        lifecycle.start(race, AccountInfo(key=Keypair().pubkey()), Clock(START_TIME + 5))


def test_start_selects_winner(program_id, token_program, join, race, make_player):
    for _ in range(3):
        join(make_player())
    lifecycle = RaceLifecycle(program_id, token_program, FixedRandomness(7))

    winner_index = lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME + 5))

    assert winner_index == 1
    assert race.winner_index == 1
    assert race.state == GameState.RACE_COMPLETED
    assert race.start_time == START_TIME + 5


def test_start_defaults_to_clock_randomness(program_id, token_program, join, race, make_player):
    join(make_player())
    join(make_player())
    lifecycle = RaceLifecycle(program_id, token_program)

    winner_index = lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME + 5))

    assert winner_index == (START_TIME + 5) % 2


def test_start_after_auto_start_keeps_start_time(lifecycle, join, race, make_player):
    join(make_player(), START_TIME)
    join(make_player(), START_TIME + 30)

    lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME + 45))

    assert race.state == GameState.RACE_COMPLETED
    assert race.start_time == START_TIME + 30
    assert race.winner_index == 0


def test_start_completed_race_is_rejected(lifecycle, join, race, make_player):
    join(make_player())
    join(make_player())
    lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME))

    with pytest.raises(InvalidRaceState):
        lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME + 1))


@pytest.mark.parametrize("value, count", [(0, 2), (7, 3), (-1, 3), (2 ** 64 + 5, 8), (1_700_000_123, 5)])
def test_winner_index_in_range(value, count):
    index = select_winner_index(value, count)

    assert 0 <= index < count
    assert index == (value % 2 ** 64) % count


@pytest.fixture
def completed(lifecycle, join, race, make_player):
    """Three entrants, first one wins."""
    entrants = [make_player() for _ in range(3)]
    for entrant in entrants:
        join(entrant)
    lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME + 5))
    return entrants


def test_claim_pays_whole_escrow_and_resets(lifecycle, race, completed, token_program, escrow, mint):
    keypair, token_account = completed[0]

    paid = lifecycle.claim(race, signer(keypair.pubkey()), writable(token_account), writable(escrow))

    assert paid == 3 * REQUIRED_TOKEN_AMOUNT
    assert token_program.balance(token_account) == 50_000 - REQUIRED_TOKEN_AMOUNT + paid
    assert token_program.balance(escrow) == 0
    assert race == HorseRace.new(mint)


def test_claim_includes_extra_escrow_balance(lifecycle, race, completed, token_program, escrow, authority, mint):
    # tokens sent to the escrow outside of join still go to the winner
    token_program.accounts[escrow] = TokenAccount(escrow, mint, authority.address, token_program.balance(escrow) + 5)
    keypair, token_account = completed[0]

    paid = lifecycle.claim(race, signer(keypair.pubkey()), writable(token_account), writable(escrow))

    assert paid == 3 * REQUIRED_TOKEN_AMOUNT + 5
    assert token_program.balance(escrow) == 0


def test_non_winner_cannot_claim(lifecycle, race, completed, token_program, escrow):
    keypair, token_account = completed[1]

    with pytest.raises(NotRaceWinner):
        lifecycle.claim(race, signer(keypair.pubkey()), writable(token_account), writable(escrow))

    assert token_program.balance(escrow) == 3 * REQUIRED_TOKEN_AMOUNT
    assert race.state == GameState.RACE_COMPLETED


def test_claim_requires_signature(lifecycle, race, completed, escrow):
    keypair, token_account = completed[0]

    with pytest.raises(MissingRequiredSignature):
        lifecycle.claim(race, AccountInfo(key=keypair.pubkey()), writable(token_account), writable(escrow))


def test_claim_before_completion_is_rejected(lifecycle, join, race, make_player, escrow):
    entrant = make_player()
    join(entrant)
    join(make_player())

    with pytest.raises(InvalidRaceState):
        lifecycle.claim(race, signer(entrant[0].pubkey()), writable(entrant[1]), writable(escrow))


def test_second_claim_is_rejected(lifecycle, race, completed, escrow):
    keypair, token_account = completed[0]
    lifecycle.claim(race, signer(keypair.pubkey()), writable(token_account), writable(escrow))

    with pytest.raises(InvalidRaceState):
        lifecycle.claim(race, signer(keypair.pubkey()), writable(token_account), writable(escrow))


def test_escrow_must_belong_to_custody_address(lifecycle, race, make_player, token_program, mint):
    keypair, token_account = make_player()
    stolen = token_program.create(Keypair().pubkey(), mint)

    with pytest.raises(InvalidEscrowAccount):
        lifecycle.join(race, signer(keypair.pubkey()), writable(token_account), writable(stolen), Clock(START_TIME))

    assert token_program.balance(token_account) == 50_000


def test_escrow_must_hold_race_mint(lifecycle, race, make_player, token_program, authority):
    keypair, token_account = make_player()
    other_escrow = token_program.create(authority.address, Keypair().pubkey())

    with pytest.raises(EscrowMintMismatch):
        lifecycle.join(race, signer(keypair.pubkey()), writable(token_account), writable(other_escrow), Clock(START_TIME))

    assert race.players == []


def test_races_are_reusable(lifecycle, join, race, completed, make_player, escrow, token_program):
    keypair, token_account = completed[0]
    lifecycle.claim(race, signer(keypair.pubkey()), writable(token_account), writable(escrow))

    join(completed[1], START_TIME + 100)

    assert [p.wallet for p in race.players] == [completed[1][0].pubkey()]
    assert token_program.balance(escrow) == REQUIRED_TOKEN_AMOUNT


def test_claim_into_escrow_is_rejected(lifecycle, race, completed, token_program, escrow):
    keypair, _ = completed[0]

    with pytest.raises(InvalidPayoutAccount):
        lifecycle.claim(race, signer(keypair.pubkey()), writable(escrow), writable(escrow))

    assert token_program.balance(escrow) == 3 * REQUIRED_TOKEN_AMOUNT
    assert race.state == GameState.RACE_COMPLETED
    assert all(t.source != escrow for t in token_program.transfers)


def test_join_on_running_race_reports_state_before_accounts(lifecycle, join, race, make_player, escrow):
    join(make_player(), START_TIME)
    join(make_player(), START_TIME + 30)
    keypair, token_account = make_player()
    read_only = AccountInfo(key=token_account)

    with pytest.raises(StateError) as excinfo:
        lifecycle.join(race, signer(keypair.pubkey()), read_only, AccountInfo(key=escrow), Clock(START_TIME + 31))

    assert isinstance(excinfo.value, InvalidRaceState)


def test_duplicate_join_reports_state_before_accounts(lifecycle, join, race, make_player, escrow):
    entrant = make_player()
    join(entrant)
    keypair, token_account = entrant

    with pytest.raises(PlayerAlreadyJoined):
        lifecycle.join(
            race, signer(keypair.pubkey()), AccountInfo(key=token_account), writable(escrow), Clock(START_TIME),
            race_account=AccountInfo(key=Keypair().pubkey()),
        )


def test_claim_on_running_race_reports_state_before_accounts(lifecycle, join, race, make_player, escrow):
    entrant = make_player()
    join(entrant)
    join(make_player())

    with pytest.raises(InvalidRaceState):
        lifecycle.claim(race, signer(entrant[0].pubkey()), AccountInfo(key=entrant[1]), AccountInfo(key=escrow))


def test_non_winner_with_read_only_holding_is_not_winner(lifecycle, race, completed, escrow):
    keypair, token_account = completed[1]

    with pytest.raises(NotRaceWinner):
        lifecycle.claim(race, signer(keypair.pubkey()), AccountInfo(key=token_account), writable(escrow))


def test_winner_with_read_only_holding_is_rejected(lifecycle, race, completed, token_program, escrow):
    keypair, token_account = completed[0]

    with pytest.raises(AccountNotWritable):
        lifecycle.claim(race, signer(keypair.pubkey()), AccountInfo(key=token_account), writable(escrow))

    assert token_program.balance(escrow) == 3 * REQUIRED_TOKEN_AMOUNT


def test_read_only_race_account_is_rejected_after_state_checks(lifecycle, join, race, make_player):
    join(make_player())
    join(make_player())
    read_only_race = AccountInfo(key=Keypair().pubkey())

    with pytest.raises(AccountNotWritable):
        lifecycle.start(race, signer(Keypair().pubkey()), Clock(START_TIME), race_account=read_only_race)

    assert race.state == GameState.WAITING_FOR_PLAYERS
