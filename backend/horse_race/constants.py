"""
Fixed parameters of the horse race program.

These values define the public rules of the race. Changing any of them
changes the on-ledger behavior and the persisted layout.
"""

from solders.pubkey import Pubkey

# Tokens (raw units) locked by every participant
REQUIRED_TOKEN_AMOUNT = 10_000

MAX_PLAYERS = 8
MIN_PLAYERS_TO_START = 2

# Seconds after the first join; a join past this with 2+ players starts the race
AUTO_START_TIMEOUT_SECONDS = 30

# Seed for the escrow custody address
RACE_AUTHORITY_SEED = b"horse_race"

# SPL Token Program ID
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
# Associated Token Program ID
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
# Clock sysvar (time source)
SYSVAR_CLOCK_ID = Pubkey.from_string("SysvarC1ock11111111111111111111111111111111")
