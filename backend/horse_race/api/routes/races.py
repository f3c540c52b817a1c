"""
Race account endpoints.

Provisioning and read access for race state accounts. State changes go
through /transactions/submit, never through these routes.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from solders.pubkey import Pubkey
import logging

from horse_race.database import get_db
from horse_race.errors import SolanaRpcError
from horse_race.schemas import (
    CreateRaceAccountRequest,
    RaceAccountResponse,
    RaceAuthorityResponse,
    RaceStateResponse,
)
from horse_race.services.pda_utils import derive_race_authority_simple, get_program_id
from horse_race.services.race_accounts import (
    RaceAccountExists,
    create_race_account,
    get_race_account,
    load_race,
)
from horse_race.services.solana_client import get_solana_client

router = APIRouter()
logger = logging.getLogger(__name__)


def parse_pubkey(value: str, field: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid {field} format: {str(e)}")


@router.post("/races", response_model=RaceAccountResponse, status_code=201)
async def create_race(
    request: CreateRaceAccountRequest,
    db: Session = Depends(get_db)
):
    """
    Provision a zeroed race account owned by the program.

    The account must then be initialized with an initialize_race
    transaction.
    """
    program_id = Pubkey.from_string(get_program_id())
    address = parse_pubkey(request.address, "address") if request.address else None

    try:
        race_account = create_race_account(db, program_id, address)
    except RaceAccountExists as e:
        raise HTTPException(status_code=409, detail=str(e))

    return RaceAccountResponse(
        address=race_account.address,
        owner=race_account.owner,
        size=len(race_account.data),
        created_at=race_account.created_at
    )


@router.get("/races/authority", response_model=RaceAuthorityResponse)
async def get_race_authority():
    """Escrow custody address (PDA) of the deployed program."""
    program_id = get_program_id()
    authority, bump = derive_race_authority_simple(program_id)
    return RaceAuthorityResponse(program_id=program_id, authority=authority, bump=bump)


@router.get("/races/{race_account}", response_model=RaceStateResponse)
async def get_race(
    race_account: str,
    db: Session = Depends(get_db)
):
    """Decoded state of a race account held by this host."""
    account = get_race_account(db, race_account)
    if not account:
        raise HTTPException(status_code=404, detail=f"Race account {race_account} not found")

    return RaceStateResponse.from_race(account.address, load_race(account))


@router.get("/races/{race_account}/onchain", response_model=RaceStateResponse)
async def get_onchain_race(race_account: str):
    """
    Decoded state of a race account on the configured Solana cluster.

    Returns 502 when the cluster cannot be reached.
    """
    pubkey = parse_pubkey(race_account, "race_account")

    try:
        race = get_solana_client().get_race_state(pubkey)
    except SolanaRpcError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if race is None:
        raise HTTPException(status_code=404, detail=f"Race account {race_account} not found on-chain")

    return RaceStateResponse.from_race(race_account, race)
