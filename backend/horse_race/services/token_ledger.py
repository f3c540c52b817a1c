"""
Database-backed token program.

Implements the race program's TokenEscrowCollaborator on top of the
token_accounts table. Balances change inside the caller's session, so
the host's commit or rollback decides whether a transfer sticks.
"""

from typing import AbstractSet
from sqlalchemy.orm import Session
from solders.pubkey import Pubkey
import logging

from horse_race.errors import InsufficientFunds, MintMismatch, OwnerMismatch, TokenAccountNotFound
from horse_race.models import TokenHolding
from horse_race.program.token import TokenAccount, TransferRequest

logger = logging.getLogger(__name__)


class DatabaseTokenProgram:
    """
    Token transfers against the host database.

    Args:
        db: Session of the executing transaction
        invoking_program_id: Program on whose behalf PDA proofs are accepted
    """

    def __init__(self, db: Session, invoking_program_id: Pubkey):
        self.db = db
        self.invoking_program_id = invoking_program_id

    def _holding(self, address: Pubkey) -> TokenHolding:
        holding = self.db.query(TokenHolding).filter(TokenHolding.address == str(address)).first()
        if holding is None:
            raise TokenAccountNotFound(address)
        return holding

    def get_account(self, address: Pubkey) -> TokenAccount:
        holding = self._holding(address)
        return TokenAccount(
            address=Pubkey.from_string(holding.address),
            mint=Pubkey.from_string(holding.mint),
            owner=Pubkey.from_string(holding.owner),
            amount=holding.amount,
        )

    def transfer(self, request: TransferRequest, signers: AbstractSet[Pubkey]) -> None:
        source = self._holding(request.source)
        destination = self._holding(request.destination)

        if source.mint != destination.mint:
            raise MintMismatch(f"Cannot transfer mint {source.mint} into a {destination.mint} account")
        if source.owner != str(request.authority):
            raise OwnerMismatch(f"Token account {source.address} is not owned by {request.authority}")

        if request.proof is not None:
            if request.proof.program_id != self.invoking_program_id:
                raise OwnerMismatch(f"Program {request.proof.program_id} cannot sign for {self.invoking_program_id}")
            if not request.proof.authorizes(request.authority):
                raise OwnerMismatch(f"Proof of authority does not derive {request.authority}")
        elif request.authority not in signers:
            raise OwnerMismatch(f"Transfer authority {request.authority} did not sign")

        if source.amount < request.amount:
            raise InsufficientFunds(request.source, source.amount, request.amount)

        if source.address != destination.address:
            source.amount -= request.amount
            destination.amount += request.amount
        self.db.flush()

        logger.info(f"Transferred {request.amount} of {source.mint}: {source.address} -> {destination.address}")
