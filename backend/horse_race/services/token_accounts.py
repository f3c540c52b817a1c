"""
Token account management for the ledger host.

Derives Associated Token Account (ATA) addresses and creates token
holdings, including the race escrow owned by the custody PDA.
"""

from typing import Optional
from sqlalchemy.orm import Session
from solders.pubkey import Pubkey
import logging

from horse_race.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from horse_race.models import TokenHolding
from horse_race.program.authority import AddressAuthority

logger = logging.getLogger(__name__)


def get_associated_token_address(
    wallet: Pubkey,
    mint: Pubkey
) -> Pubkey:
    """
    Derive the Associated Token Account (ATA) address for a wallet and token mint.

    Standard ATA derivation:
    PDA([wallet, token_program, mint], associated_token_program).
    The wallet may itself be a PDA (the escrow custody address is one).

    Args:
        wallet: Wallet public key
        mint: Token mint public key

    Returns:
        Associated Token Account public key
    """
    ata, _ = Pubkey.find_program_address(
        [bytes(wallet), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID
    )
    return ata


def get_escrow_token_address(program_id: Pubkey, mint: Pubkey) -> Pubkey:
    """Escrow holding for ``mint``: the custody PDA's associated token account."""
    authority = AddressAuthority(program_id)
    return get_associated_token_address(authority.address, mint)


def get_token_holding(db: Session, address: Pubkey) -> Optional[TokenHolding]:
    return db.query(TokenHolding).filter(TokenHolding.address == str(address)).first()


def create_token_holding(
    db: Session,
    owner: Pubkey,
    mint: Pubkey,
    amount: int = 0
) -> TokenHolding:
    """
    Create the associated token account for (owner, mint).

    Idempotent: an existing holding is returned unchanged and ``amount``
    is ignored.

    Args:
        db: Database session
        owner: Wallet (or PDA) that will own the holding
        mint: Token mint address
        amount: Initial balance in raw units

    Returns:
        TokenHolding record
    """
    ata = get_associated_token_address(owner, mint)

    existing = get_token_holding(db, ata)
    if existing:
        logger.info(f"Token account already exists: {ata}")
        return existing

    holding = TokenHolding(
        address=str(ata),
        mint=str(mint),
        owner=str(owner),
        amount=amount
    )
    db.add(holding)
    db.commit()
    db.refresh(holding)

    logger.info(f"Created token account {ata} for owner {owner}, mint {mint}, amount {amount}")
    return holding


def create_escrow_holding(db: Session, program_id: Pubkey, mint: Pubkey) -> TokenHolding:
    """Create (or return) the escrow holding owned by the race custody address."""
    authority = AddressAuthority(program_id)
    return create_token_holding(db, authority.address, mint)
