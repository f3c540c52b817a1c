"""
Race account state and its persisted layout.

The layout is borsh-compatible and little-endian:

    state          u8
    players        u32 count, then per player: wallet [u8; 32], joined_at i64
    start_time     i64
    winner_index   u8 tag (0 = none, 1 = some), then u64
    token_mint     [u8; 32]

The state is written at offset 0 of a pre-sized account buffer; anything
after the encoded state is padding and is ignored on read.
"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional

from solders.pubkey import Pubkey

from horse_race.constants import MAX_PLAYERS
from horse_race.errors import CorruptRaceState

PUBKEY_LEN = 32
PLAYER_LEN = PUBKEY_LEN + 8
RACE_ACCOUNT_SIZE = 1 + 4 + MAX_PLAYERS * PLAYER_LEN + 8 + (1 + 8) + PUBKEY_LEN


class GameState(enum.IntEnum):
    """Race lifecycle state; values are the persisted tags."""
    WAITING_FOR_PLAYERS = 0
    RACE_IN_PROGRESS = 1
    RACE_COMPLETED = 2

    @property
    def label(self) -> str:
        return {
            GameState.WAITING_FOR_PLAYERS: "WaitingForPlayers",
            GameState.RACE_IN_PROGRESS: "RaceInProgress",
            GameState.RACE_COMPLETED: "RaceCompleted",
        }[self]


@dataclass(frozen=True)
class Player:
    wallet: Pubkey
    joined_at: int


@dataclass
class HorseRace:
    """
    Persisted race entity.

    One instance lives in each race account. It is created by
    InitializeRace and reset in place by ClaimWinnings, never destroyed.
    """
    state: GameState = GameState.WAITING_FOR_PLAYERS
    players: List[Player] = field(default_factory=list)
    start_time: int = 0
    winner_index: Optional[int] = None
    token_mint: Pubkey = field(default_factory=Pubkey.default)

    @classmethod
    def new(cls, token_mint: Pubkey) -> "HorseRace":
        return cls(token_mint=token_mint)

    def has_player(self, wallet: Pubkey) -> bool:
        return any(p.wallet == wallet for p in self.players)

    @property
    def winner(self) -> Optional[Player]:
        if self.winner_index is None:
            return None
        return self.players[self.winner_index]

    def reset(self) -> None:
        """Return to WaitingForPlayers, keeping the token mint."""
        self.state = GameState.WAITING_FOR_PLAYERS
        self.players = []
        self.start_time = 0
        self.winner_index = None

    def serialize(self) -> bytes:
        data = bytearray()
        data += int(self.state).to_bytes(1, byteorder="little")
        data += len(self.players).to_bytes(4, byteorder="little")
        for player in self.players:
            data += bytes(player.wallet)
            data += player.joined_at.to_bytes(8, byteorder="little", signed=True)
        data += self.start_time.to_bytes(8, byteorder="little", signed=True)
        if self.winner_index is None:
            data += b"\x00"
        else:
            data += b"\x01" + self.winner_index.to_bytes(8, byteorder="little")
        data += bytes(self.token_mint)
        return bytes(data)

    def pack_into(self, buffer: bytearray) -> None:
        """Write the encoded state at the start of a pre-sized account buffer."""
        encoded = self.serialize()
        if len(encoded) > len(buffer):
            raise CorruptRaceState(
                f"Race account too small: need {len(encoded)} bytes, have {len(buffer)}"
            )
        buffer[:len(encoded)] = encoded

    @classmethod
    def deserialize(cls, data: bytes) -> "HorseRace":
        reader = _Reader(bytes(data))

        state_tag = reader.read_u8()
        try:
            state = GameState(state_tag)
        except ValueError:
            raise CorruptRaceState(f"Unknown race state tag {state_tag}")

        count = reader.read_u32()
        if count > MAX_PLAYERS:
            raise CorruptRaceState(f"Race holds {count} players, limit is {MAX_PLAYERS}")
        players = []
        for _ in range(count):
            wallet = Pubkey.from_bytes(reader.read(PUBKEY_LEN))
            joined_at = reader.read_i64()
            players.append(Player(wallet=wallet, joined_at=joined_at))
        if len({bytes(p.wallet) for p in players}) != len(players):
            raise CorruptRaceState("Race holds duplicate player wallets")

        start_time = reader.read_i64()

        option_tag = reader.read_u8()
        if option_tag == 0:
            winner_index = None
        elif option_tag == 1:
            winner_index = reader.read_u64()
        else:
            raise CorruptRaceState(f"Invalid option tag {option_tag} for winner_index")

        token_mint = Pubkey.from_bytes(reader.read(PUBKEY_LEN))

        if winner_index is not None:
            if state != GameState.RACE_COMPLETED:
                raise CorruptRaceState(f"Winner set while race is {state.label}")
            if winner_index >= len(players):
                raise CorruptRaceState(f"Winner index {winner_index} out of range")

        return cls(
            state=state,
            players=players,
            start_time=start_time,
            winner_index=winner_index,
            token_mint=token_mint,
        )


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise CorruptRaceState(
                f"Race account data ends at {len(self.data)} bytes, expected at least {end}"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u32(self) -> int:
        return int.from_bytes(self.read(4), byteorder="little")

    def read_u64(self) -> int:
        return int.from_bytes(self.read(8), byteorder="little")

    def read_i64(self) -> int:
        return int.from_bytes(self.read(8), byteorder="little", signed=True)
