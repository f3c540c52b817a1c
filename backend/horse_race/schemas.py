"""
Pydantic schemas for request/response validation.

These schemas define the structure of API requests and responses,
providing automatic validation and serialization.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, List
from datetime import datetime
from enum import Enum

from horse_race.program.state import HorseRace


class GameStateEnum(str, Enum):
    """Race lifecycle state."""
    WAITING_FOR_PLAYERS = "WaitingForPlayers"
    RACE_IN_PROGRESS = "RaceInProgress"
    RACE_COMPLETED = "RaceCompleted"


class InstructionType(str, Enum):
    """Program operations."""
    INITIALIZE_RACE = "initialize_race"
    JOIN_RACE = "join_race"
    START_RACE = "start_race"
    CLAIM_WINNINGS = "claim_winnings"


class PlayerResponse(BaseModel):
    """Single race participant."""
    wallet: str
    joined_at: int = Field(..., description="Unix timestamp of the join")


class RaceStateResponse(BaseModel):
    """Decoded race account."""
    race_account: str
    state: GameStateEnum
    players: List[PlayerResponse]
    start_time: int
    winner_index: Optional[int] = None
    winner_wallet: Optional[str] = None
    token_mint: str

    @classmethod
    def from_race(cls, race_account: str, race: HorseRace) -> "RaceStateResponse":
        return cls(
            race_account=race_account,
            state=GameStateEnum(race.state.label),
            players=[PlayerResponse(wallet=str(p.wallet), joined_at=p.joined_at) for p in race.players],
            start_time=race.start_time,
            winner_index=race.winner_index,
            winner_wallet=str(race.winner.wallet) if race.winner else None,
            token_mint=str(race.token_mint),
        )


class CreateRaceAccountRequest(BaseModel):
    """Request schema for provisioning a race account."""
    address: Optional[str] = Field(None, description="Account address (generated if omitted)")


class RaceAccountResponse(BaseModel):
    """Response schema for a provisioned race account."""
    address: str
    owner: str
    size: int
    created_at: datetime


class RaceAuthorityResponse(BaseModel):
    """Escrow custody address of the program."""
    program_id: str
    authority: str
    bump: int


class CreateTokenAccountRequest(BaseModel):
    """Request schema for creating a token holding."""
    owner: str = Field(..., description="Wallet that owns the holding")
    mint: str = Field(..., description="Token mint address")
    amount: int = Field(default=0, ge=0, description="Initial balance (faucet, raw units)")


class CreateEscrowAccountRequest(BaseModel):
    """Request schema for creating the race escrow holding."""
    mint: str = Field(..., description="Token mint address")


class TokenAccountResponse(BaseModel):
    """Response schema for a token holding."""
    address: str
    mint: str
    owner: str
    amount: int

    class Config:
        from_attributes = True


class BuildTransactionRequest(BaseModel):
    """Request schema for building a transaction."""
    instruction_type: InstructionType = Field(..., description="Operation to build")
    wallet_address: str = Field(..., description="Wallet address (signer and fee payer)")
    race_account: str = Field(..., description="Race state account")
    token_mint: Optional[str] = Field(None, description="Token mint (required for initialize_race)")
    token_account: Optional[str] = Field(
        None, description="Wallet's token holding (join_race, claim_winnings); defaults to its ATA"
    )
    escrow_token_account: Optional[str] = Field(
        None, description="Escrow holding (join_race, claim_winnings); defaults to the custody ATA"
    )


class BuildTransactionResponse(BaseModel):
    """Response schema for built transaction."""
    transaction_bytes: str = Field(..., description="Base64-encoded transaction bytes for signing")
    instruction_type: InstructionType
    race_account: str
    recent_blockhash: str


class SubmitTransactionRequest(BaseModel):
    """Request schema for submitting a signed transaction."""
    signed_transaction_bytes: str = Field(..., description="Base64-encoded signed transaction bytes")


class SubmitTransactionResponse(BaseModel):
    """Response schema for transaction submission."""
    transaction_signature: str
    instructions: List[str]
    races: List[RaceStateResponse] = Field(default_factory=list, description="Race accounts changed by the transaction")
    confirmed: bool = True


class ErrorResponse(BaseModel):
    """Body returned for every program or host failure."""
    error: str = Field(..., description="Stable error code")
    kind: str = Field(..., description="Error class")
    message: str


class RaceEvent(BaseModel):
    """Message pushed on the live race feed."""
    event: str = Field(..., description="playerJoined, countdown, raceStarted, raceCompleted, raceReset or gameState")
    race_account: str
    data: Dict[str, Any] = Field(default_factory=dict)
