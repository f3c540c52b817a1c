"""
PDA (Program Derived Address) utilities for the host and API.

String-in/string-out wrappers around the program's custody address
derivation, plus program ID configuration.
"""

from solders.pubkey import Pubkey
from typing import Tuple
import os
import logging

from horse_race.errors import ConfigurationError
from horse_race.program.authority import AddressAuthority

logger = logging.getLogger(__name__)


def derive_race_authority_simple(program_id_str: str) -> Tuple[str, int]:
    """
    Derive the escrow custody address for a program, as strings.

    Args:
        program_id_str: The race program ID as a string

    Returns:
        Tuple of (PDA address as string, bump seed)

    Raises:
        ValueError: If the program ID is not a valid public key
    """
    program_id = Pubkey.from_string(program_id_str)
    authority = AddressAuthority(program_id)

    logger.info(f"[derive_race_authority_simple] program_id={program_id_str} -> {authority.address}, bump: {authority.bump}")

    return str(authority.address), authority.bump


def get_program_id() -> str:
    """
    get the race program ID from environment variables

    Returns:
        program ID as a string

    Raises:
        ConfigurationError: If SOLANA_PROGRAM_ID is unset or not a valid public key
    """
    program_id = os.getenv("SOLANA_PROGRAM_ID")
    if not program_id:
        raise ConfigurationError("SOLANA_PROGRAM_ID environment variable is not set")
    try:
        Pubkey.from_string(program_id)
    except ValueError as e:
        raise ConfigurationError(f"SOLANA_PROGRAM_ID is not a valid public key: {e}")
    return program_id
