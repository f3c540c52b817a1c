"""
Transaction builder for creating race program transactions.

This service builds unsigned Solana transactions from instructions and
handles base64 (de)serialization for the API.
"""

from typing import List, Optional
from solders.transaction import Transaction
from solders.instruction import Instruction
from solders.message import Message
from solders.hash import Hash
from solders.pubkey import Pubkey
import base64
import logging

from horse_race.errors import InvalidInstructionData
from horse_race.services.ledger import LedgerHost, get_ledger_host

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """
    Service for building race program transactions.

    Handles transaction construction, blockhash fetching, and
    transaction serialization for signing.
    """

    def __init__(self, ledger_host: Optional[LedgerHost] = None):
        """
        Initialize transaction builder.

        Args:
            ledger_host: Host that issues blockhashes (defaults to the global host)
        """
        self.ledger_host = ledger_host or get_ledger_host()

    def build_transaction(
        self,
        instructions: List[Instruction],
        payer: Pubkey,
        recent_blockhash: Optional[Hash] = None
    ) -> Transaction:
        """
        Build an unsigned transaction from instructions.

        Args:
            instructions: List of instructions to include
            payer: Fee payer (first signer)
            recent_blockhash: Recent blockhash (fetched if not provided)

        Returns:
            Transaction object ready for signing
        """
        if recent_blockhash is None:
            recent_blockhash = self.ledger_host.latest_blockhash()

        #create message
        message = Message.new_with_blockhash(
            instructions,
            payer,
            recent_blockhash
        )

        #create transaction
        return Transaction.new_unsigned(message)

    def serialize_transaction(self, transaction: Transaction) -> str:
        """
        Serialize a transaction to base64 for transport.

        Args:
            transaction: Transaction object

        Returns:
            Base64-encoded transaction bytes
        """
        return base64.b64encode(bytes(transaction)).decode("utf-8")

    def deserialize_transaction(self, transaction_b64: str) -> Transaction:
        """
        Deserialize base64 transaction bytes to a Transaction object.

        Raises:
            InvalidInstructionData: If the payload is not a valid transaction
        """
        try:
            return Transaction.from_bytes(base64.b64decode(transaction_b64, validate=True))
        except Exception as e:
            # binascii.Error or a solders bincode error
            raise InvalidInstructionData(f"Malformed transaction bytes: {e}")

