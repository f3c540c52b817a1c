"""
Token account endpoints.

Creates and inspects token holdings on the host ledger, including the
race escrow owned by the custody address.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from solders.pubkey import Pubkey
import os
import logging

from horse_race.api.routes.races import parse_pubkey
from horse_race.database import get_db
from horse_race.schemas import CreateEscrowAccountRequest, CreateTokenAccountRequest, TokenAccountResponse
from horse_race.services.pda_utils import get_program_id
from horse_race.services.token_accounts import create_escrow_holding, create_token_holding, get_token_holding

router = APIRouter()
logger = logging.getLogger(__name__)


def faucet_enabled() -> bool:
    return os.getenv("ENABLE_FAUCET", "False").lower() == "true"


@router.post("/token-accounts", response_model=TokenAccountResponse, status_code=201)
async def create_token_account(
    request: CreateTokenAccountRequest,
    db: Session = Depends(get_db)
):
    """
    Create the associated token account for (owner, mint).

    A non-zero initial amount is only honored when ENABLE_FAUCET is set.
    """
    owner = parse_pubkey(request.owner, "owner")
    mint = parse_pubkey(request.mint, "mint")

    if request.amount and not faucet_enabled():
        raise HTTPException(status_code=403, detail="Faucet is disabled; initial amount must be 0")

    holding = create_token_holding(db, owner, mint, request.amount)
    return TokenAccountResponse.model_validate(holding)


@router.post("/token-accounts/escrow", response_model=TokenAccountResponse, status_code=201)
async def create_escrow_account(
    request: CreateEscrowAccountRequest,
    db: Session = Depends(get_db)
):
    """Create the escrow holding for a mint, owned by the race custody address."""
    mint = parse_pubkey(request.mint, "mint")
    program_id = Pubkey.from_string(get_program_id())

    holding = create_escrow_holding(db, program_id, mint)
    return TokenAccountResponse.model_validate(holding)


@router.get("/token-accounts/{address}", response_model=TokenAccountResponse)
async def get_token_account(address: str, db: Session = Depends(get_db)):
    """Get a token holding by address."""
    holding = get_token_holding(db, parse_pubkey(address, "address"))

    if not holding:
        raise HTTPException(status_code=404, detail="Token account not found")

    return TokenAccountResponse.model_validate(holding)
