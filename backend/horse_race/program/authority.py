"""
Escrow custody address derivation.

The escrow holding is owned by a program derived address (PDA): an
address with no private key, computed from a fixed seed and the program
ID. Only this program can authorize transfers out of it, by presenting a
ProofOfAuthority (the seeds and bump) to the token program.
"""

from dataclasses import dataclass
from typing import List, Tuple

from solders.pubkey import Pubkey
import logging

from horse_race.constants import RACE_AUTHORITY_SEED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofOfAuthority:
    """Seed-derivation credential for a program derived address."""
    program_id: Pubkey
    seeds: Tuple[bytes, ...]
    bump: int

    def signer_seeds(self) -> List[bytes]:
        return list(self.seeds) + [bytes([self.bump])]

    def address(self) -> Pubkey:
        """Re-derive the address this proof speaks for."""
        return Pubkey.create_program_address(self.signer_seeds(), self.program_id)

    def authorizes(self, address: Pubkey) -> bool:
        try:
            return self.address() == address
        except Exception as e:
            # create_program_address rejects seeds that land on the curve
            logger.debug(f"[ProofOfAuthority] seeds do not derive a valid PDA: {e}")
            return False


class AddressAuthority:
    """
    Custody address for one deployed race program.

    Pure and deterministic: the same (seed, program_id) always yields the
    same address and bump.
    """

    def __init__(self, program_id: Pubkey, seed: bytes = RACE_AUTHORITY_SEED):
        self.program_id = program_id
        self.seed = seed
        self.address, self.bump = derive_race_authority(program_id, seed)

    def proof(self) -> ProofOfAuthority:
        return ProofOfAuthority(program_id=self.program_id, seeds=(self.seed,), bump=self.bump)

    def __repr__(self) -> str:
        return f"AddressAuthority(address={self.address}, bump={self.bump})"


def derive_race_authority(
    program_id: Pubkey,
    seed: bytes = RACE_AUTHORITY_SEED
) -> Tuple[Pubkey, int]:
    """
    Derive the escrow custody PDA.

    Seeds used (matching the program):
    - b"horse_race" (static seed)

    Args:
        program_id: The race program ID
        seed: Static seed, defaults to the program's custody seed

    Returns:
        Tuple of (PDA Pubkey, bump seed)
    """
    pda, bump = Pubkey.find_program_address([seed], program_id)
    logger.debug(f"[derive_race_authority] seed={seed!r}, program_id={program_id} -> {pda}, bump: {bump}")
    return pda, bump
