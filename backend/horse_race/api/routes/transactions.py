"""
Transaction endpoints.

Builds unsigned race program transactions for wallets to sign, and
executes signed transactions on the ledger host.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from solders.pubkey import Pubkey
import logging

from horse_race.api.routes.races import parse_pubkey
from horse_race.database import get_db
from horse_race.schemas import (
    BuildTransactionRequest,
    BuildTransactionResponse,
    InstructionType,
    RaceStateResponse,
    SubmitTransactionRequest,
    SubmitTransactionResponse,
)
from horse_race.services.ledger import LedgerHost, get_ledger_host
from horse_race.services.program_client import ProgramClient
from horse_race.services.race_accounts import get_race_account, load_race
from horse_race.services.token_accounts import get_associated_token_address, get_escrow_token_address
from horse_race.services.transaction_builder import TransactionBuilder

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/transactions/build", response_model=BuildTransactionResponse)
async def build_transaction(
    request: BuildTransactionRequest,
    db: Session = Depends(get_db),
    ledger_host: LedgerHost = Depends(get_ledger_host)
):
    """
    Build an unsigned transaction for one program operation.

    Supported instruction types:
    - initialize_race: Write a fresh race into a provisioned account
    - join_race: Stake tokens and join
    - start_race: Select the winner
    - claim_winnings: Pay the pot to the winner and reset

    Token accounts default to the associated token accounts of the wallet
    and of the custody address for the race's mint.
    """
    program_client = ProgramClient(str(ledger_host.program_id))
    transaction_builder = TransactionBuilder(ledger_host)

    wallet = parse_pubkey(request.wallet_address, "wallet_address")
    race_pubkey = parse_pubkey(request.race_account, "race_account")

    if request.instruction_type == InstructionType.INITIALIZE_RACE:
        if not request.token_mint:
            raise HTTPException(status_code=400, detail="token_mint required for initialize_race")
        instruction = program_client.build_initialize_race_instruction(
            initializer=wallet,
            race_account=race_pubkey,
            token_mint=parse_pubkey(request.token_mint, "token_mint")
        )

    elif request.instruction_type == InstructionType.START_RACE:
        instruction = program_client.build_start_race_instruction(
            caller=wallet,
            race_account=race_pubkey
        )

    else:
        token_account, escrow_token_account = _resolve_token_accounts(db, ledger_host.program_id, request, wallet)
        if request.instruction_type == InstructionType.JOIN_RACE:
            instruction = program_client.build_join_race_instruction(
                player=wallet,
                player_token_account=token_account,
                race_account=race_pubkey,
                escrow_token_account=escrow_token_account
            )
        else:
            instruction = program_client.build_claim_winnings_instruction(
                winner=wallet,
                winner_token_account=token_account,
                race_account=race_pubkey,
                escrow_token_account=escrow_token_account
            )

    transaction = transaction_builder.build_transaction(
        instructions=[instruction],
        payer=wallet
    )

    logger.info(f"Built {request.instruction_type.value} transaction for {wallet} on race {race_pubkey}")

    return BuildTransactionResponse(
        transaction_bytes=transaction_builder.serialize_transaction(transaction),
        instruction_type=request.instruction_type,
        race_account=str(race_pubkey),
        recent_blockhash=str(transaction.message.recent_blockhash)
    )


@router.post("/transactions/submit", response_model=SubmitTransactionResponse)
async def submit_transaction(
    request: SubmitTransactionRequest,
    db: Session = Depends(get_db),
    ledger_host: LedgerHost = Depends(get_ledger_host)
):
    """
    Execute a signed transaction.

    The transaction commits as a whole or not at all. Program failures are
    returned with their error code (see the app's exception handlers).
    """
    transaction = TransactionBuilder(ledger_host).deserialize_transaction(request.signed_transaction_bytes)

    result = ledger_host.execute_transaction(db, transaction)

    return SubmitTransactionResponse(
        transaction_signature=result.signature,
        instructions=result.instructions,
        races=[RaceStateResponse.from_race(address, race) for address, race in result.races.items()]
    )


def _resolve_token_accounts(
    db: Session,
    program_id: Pubkey,
    request: BuildTransactionRequest,
    wallet: Pubkey
):
    if request.token_account and request.escrow_token_account:
        return (
            parse_pubkey(request.token_account, "token_account"),
            parse_pubkey(request.escrow_token_account, "escrow_token_account"),
        )

    race_account = get_race_account(db, request.race_account)
    if not race_account:
        raise HTTPException(status_code=404, detail=f"Race account {request.race_account} not found")
    mint = load_race(race_account).token_mint

    token_account = (
        parse_pubkey(request.token_account, "token_account")
        if request.token_account
        else get_associated_token_address(wallet, mint)
    )
    escrow_token_account = (
        parse_pubkey(request.escrow_token_account, "escrow_token_account")
        if request.escrow_token_account
        else get_escrow_token_address(program_id, mint)
    )
    return token_account, escrow_token_account
