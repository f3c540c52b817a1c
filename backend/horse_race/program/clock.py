"""
Ledger time source and the randomness used for winner selection.

WARNING: ClockRandomness returns the ledger timestamp of the StartRace
call. Anyone who controls when that call lands can predict or steer the
winner. It is kept as the shipped source; swap in another
RandomnessSource to change it.
"""

from dataclasses import dataclass
from typing import Protocol

from horse_race.errors import DecodingError

CLOCK_SYSVAR_LEN = 40
U64_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class Clock:
    """
    Clock sysvar contents.

    Layout: slot u64, epoch_start_timestamp i64, epoch u64,
    leader_schedule_epoch u64, unix_timestamp i64.
    """
    unix_timestamp: int
    slot: int = 0
    epoch_start_timestamp: int = 0
    epoch: int = 0
    leader_schedule_epoch: int = 0

    def to_account_data(self) -> bytes:
        return (
            self.slot.to_bytes(8, byteorder="little")
            + self.epoch_start_timestamp.to_bytes(8, byteorder="little", signed=True)
            + self.epoch.to_bytes(8, byteorder="little")
            + self.leader_schedule_epoch.to_bytes(8, byteorder="little")
            + self.unix_timestamp.to_bytes(8, byteorder="little", signed=True)
        )

    @classmethod
    def from_account_data(cls, data: bytes) -> "Clock":
        if len(data) < CLOCK_SYSVAR_LEN:
            raise DecodingError(f"Clock sysvar data must be {CLOCK_SYSVAR_LEN} bytes, got {len(data)}")
        return cls(
            slot=int.from_bytes(data[0:8], byteorder="little"),
            epoch_start_timestamp=int.from_bytes(data[8:16], byteorder="little", signed=True),
            epoch=int.from_bytes(data[16:24], byteorder="little"),
            leader_schedule_epoch=int.from_bytes(data[24:32], byteorder="little"),
            unix_timestamp=int.from_bytes(data[32:40], byteorder="little", signed=True),
        )


class RandomnessSource(Protocol):
    def sample(self, clock: Clock) -> int:
        ...


class ClockRandomness:
    """Weak, caller-observable randomness: the current ledger time."""

    def sample(self, clock: Clock) -> int:
        return clock.unix_timestamp


def select_winner_index(value: int, player_count: int) -> int:
    # value is reinterpreted as u64 before the modulo
    return (value & U64_MASK) % player_count
