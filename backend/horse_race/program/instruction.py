"""
Instruction codec for the horse race program.

Instruction data is a single u8 tag followed by the payload:

    0 InitializeRace   token_mint [u8; 32]
    1 JoinRace         (none)
    2 StartRace        (none)
    3 ClaimWinnings    (none)

Like borsh ``try_from_slice``, decoding requires the whole buffer to be
consumed.
"""

import enum
from dataclasses import dataclass
from typing import Union

from solders.pubkey import Pubkey

from horse_race.errors import InvalidInstructionData


class InstructionTag(enum.IntEnum):
    INITIALIZE_RACE = 0
    JOIN_RACE = 1
    START_RACE = 2
    CLAIM_WINNINGS = 3


@dataclass(frozen=True)
class InitializeRace:
    token_mint: Pubkey
    tag = InstructionTag.INITIALIZE_RACE


@dataclass(frozen=True)
class JoinRace:
    tag = InstructionTag.JOIN_RACE


@dataclass(frozen=True)
class StartRace:
    tag = InstructionTag.START_RACE


@dataclass(frozen=True)
class ClaimWinnings:
    tag = InstructionTag.CLAIM_WINNINGS


HorseRaceInstruction = Union[InitializeRace, JoinRace, StartRace, ClaimWinnings]

INSTRUCTION_NAMES = {
    InstructionTag.INITIALIZE_RACE: "initialize_race",
    InstructionTag.JOIN_RACE: "join_race",
    InstructionTag.START_RACE: "start_race",
    InstructionTag.CLAIM_WINNINGS: "claim_winnings",
}


def instruction_name(instruction: HorseRaceInstruction) -> str:
    return INSTRUCTION_NAMES[instruction.tag]


def encode_instruction(instruction: HorseRaceInstruction) -> bytes:
    data = bytes([instruction.tag])
    if isinstance(instruction, InitializeRace):
        data += bytes(instruction.token_mint)
    return data


def decode_instruction(data: bytes) -> HorseRaceInstruction:
    if not data:
        raise InvalidInstructionData("Instruction data is empty")

    try:
        tag = InstructionTag(data[0])
    except ValueError:
        raise InvalidInstructionData(f"Unknown instruction tag {data[0]}")
    payload = bytes(data[1:])

    if tag == InstructionTag.INITIALIZE_RACE:
        if len(payload) != 32:
            raise InvalidInstructionData(
                f"InitializeRace payload must be a 32-byte token mint, got {len(payload)} bytes"
            )
        return InitializeRace(token_mint=Pubkey.from_bytes(payload))

    if payload:
        raise InvalidInstructionData(f"{INSTRUCTION_NAMES[tag]} takes no payload, got {len(payload)} bytes")
    if tag == InstructionTag.JOIN_RACE:
        return JoinRace()
    if tag == InstructionTag.START_RACE:
        return StartRace()
    return ClaimWinnings()
