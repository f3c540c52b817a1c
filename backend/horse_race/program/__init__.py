"""Horse race ledger program: state, codec, lifecycle and instruction router."""
from .authority import AddressAuthority, ProofOfAuthority, derive_race_authority
from .clock import Clock, ClockRandomness, RandomnessSource
from .instruction import (
    ClaimWinnings,
    HorseRaceInstruction,
    InitializeRace,
    JoinRace,
    StartRace,
    decode_instruction,
    encode_instruction,
)
from .lifecycle import RaceLifecycle
from .processor import Processor
from .state import RACE_ACCOUNT_SIZE, GameState, HorseRace, Player
from .token import TokenAccount, TokenEscrowCollaborator, TransferRequest

__all__ = [
    "AddressAuthority",
    "ProofOfAuthority",
    "derive_race_authority",
    "Clock",
    "ClockRandomness",
    "RandomnessSource",
    "ClaimWinnings",
    "HorseRaceInstruction",
    "InitializeRace",
    "JoinRace",
    "StartRace",
    "decode_instruction",
    "encode_instruction",
    "RaceLifecycle",
    "Processor",
    "RACE_ACCOUNT_SIZE",
    "GameState",
    "HorseRace",
    "Player",
    "TokenAccount",
    "TokenEscrowCollaborator",
    "TransferRequest",
]
