"""
Token transfer collaborator interface.

The race program never moves tokens itself. It builds TransferRequests
and hands them to a TokenEscrowCollaborator (the SPL token program on a
real cluster, a database-backed ledger in the host).
"""

from dataclasses import dataclass
from typing import AbstractSet, Optional, Protocol

from solders.instruction import Instruction, AccountMeta
from solders.pubkey import Pubkey

from horse_race.constants import TOKEN_PROGRAM_ID
from horse_race.program.authority import ProofOfAuthority

# SPL token instruction tag for Transfer
SPL_TRANSFER_TAG = 3


@dataclass(frozen=True)
class TokenAccount:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int


@dataclass(frozen=True)
class TransferRequest:
    """
    Move ``amount`` tokens from ``source`` to ``destination``.

    ``authority`` must own ``source``. It is either a signer of the
    enclosing transaction or, when ``proof`` is present, a program derived
    address that the proof re-derives.
    """
    source: Pubkey
    destination: Pubkey
    authority: Pubkey
    amount: int
    proof: Optional[ProofOfAuthority] = None

    def to_instruction(self, token_program_id: Pubkey = TOKEN_PROGRAM_ID) -> Instruction:
        """Render as an SPL token Transfer instruction."""
        data = bytes([SPL_TRANSFER_TAG]) + self.amount.to_bytes(8, byteorder="little")
        accounts = [
            AccountMeta(pubkey=self.source, is_signer=False, is_writable=True),
            AccountMeta(pubkey=self.destination, is_signer=False, is_writable=True),
            # a PDA signs through invoke_signed, never through the transaction
            AccountMeta(pubkey=self.authority, is_signer=self.proof is None, is_writable=False),
        ]
        return Instruction(
            program_id=token_program_id,
            data=data,
            accounts=accounts
        )


class TokenEscrowCollaborator(Protocol):
    def get_account(self, address: Pubkey) -> TokenAccount:
        """Return the holding at ``address``; raise CollaboratorError if missing."""
        ...

    def transfer(self, request: TransferRequest, signers: AbstractSet[Pubkey]) -> None:
        """Apply the transfer or raise CollaboratorError with no effect."""
        ...
