"""
Solana RPC client for reading a deployed race program.

Fetches race and escrow accounts from a real cluster and decodes them
with the program's own layout, so the API can show on-chain state next
to the host's.
"""

import os
from typing import Optional, Dict, Any
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solders.pubkey import Pubkey
import logging

from horse_race.errors import SolanaRpcError
from horse_race.program.state import HorseRace

logger = logging.getLogger(__name__)


class SolanaClient:
    """
    Client for interacting with Solana RPC endpoints.

    Handles connection to Solana network (devnet/mainnet) and provides
    methods for querying account data.
    """

    def __init__(self, rpc_url: Optional[str] = None, commitment: str = "confirmed"):
        """
        Initialize Solana RPC client.

        Args:
            rpc_url: Solana RPC endpoint URL (defaults to SOLANA_RPC_URL env var)
            commitment: Commitment level ("processed", "confirmed", "finalized")
        """
        self.rpc_url = rpc_url or os.getenv("SOLANA_RPC_URL", "https://api.devnet.solana.com")
        self.commitment = commitment
        self.client = Client(self.rpc_url)

        logger.info(f"Initialized Solana client: {self.rpc_url} (commitment: {commitment})")

    def get_account_info(self, pubkey: Pubkey) -> Optional[Dict[str, Any]]:
        """
        Get account information for a given public key.

        Args:
            pubkey: The account public key

        Returns:
            Account info dictionary or None if account doesn't exist

        Raises:
            SolanaRpcError: If the RPC request fails
        """
        try:
            response = self.client.get_account_info(pubkey, commitment=Commitment(self.commitment))

            if response.value is None:
                return None

            return {
                "lamports": response.value.lamports,
                "data": bytes(response.value.data),
                "owner": str(response.value.owner),
                "executable": response.value.executable,
                "rent_epoch": response.value.rent_epoch,
            }
        except Exception as e:
            logger.error(f"Error getting account info for {pubkey}: {e}")
            raise SolanaRpcError(f"RPC request to {self.rpc_url} failed: {e}") from e

    def get_race_state(self, race_account: Pubkey) -> Optional[HorseRace]:
        """
        Fetch and decode a race account.

        Args:
            race_account: Race state account address

        Returns:
            Decoded HorseRace, or None if the account doesn't exist

        Raises:
            SolanaRpcError: If the RPC request fails
            CorruptRaceState: If the account data is not a valid race
        """
        account_info = self.get_account_info(race_account)
        if account_info is None:
            logger.warning(f"Race account not found on-chain: {race_account}")
            return None

        return HorseRace.deserialize(account_info["data"])

    def get_token_balance(self, token_account: Pubkey) -> int:
        """
        Get the raw token balance of an SPL token account.

        Args:
            token_account: Token account address (e.g. the race escrow)

        Returns:
            Balance in raw units

        Raises:
            SolanaRpcError: If the RPC request fails
        """
        try:
            response = self.client.get_token_account_balance(token_account, commitment=Commitment(self.commitment))
            return int(response.value.amount)
        except Exception as e:
            logger.error(f"Error getting token balance for {token_account}: {e}")
            raise SolanaRpcError(f"RPC request to {self.rpc_url} failed: {e}") from e


#global Solana client instance
_solana_client: Optional[SolanaClient] = None


def get_solana_client() -> SolanaClient:
    """
    Get or create the global Solana client instance.

    Returns:
        SolanaClient instance
    """
    global _solana_client

    if _solana_client is None:
        rpc_url = os.getenv("SOLANA_RPC_URL", "https://api.devnet.solana.com")
        commitment = os.getenv("SOLANA_COMMITMENT", "confirmed")
        _solana_client = SolanaClient(rpc_url=rpc_url, commitment=commitment)

    return _solana_client
