"""
SQLAlchemy database models.

The ledger host keeps every account the race program touches in these
tables. Addresses are stored as base58 strings.
"""

from sqlalchemy import Column, String, BigInteger, DateTime, LargeBinary, Text, Enum as SQLEnum
from sqlalchemy.sql import func
import enum
from horse_race.database import Base


class TransactionStatus(str, enum.Enum):
    """Outcome of an executed transaction."""
    SUCCESS = "success"
    FAILED = "failed"  # Rejected, nothing committed


class RaceAccount(Base):
    """
    Race accounts table: one row per race state slot.

    ``data`` is the pre-sized account buffer holding the encoded race
    state. ``owner`` is the program allowed to write it.
    """
    __tablename__ = "race_accounts"

    address = Column(String, primary_key=True, index=True)
    owner = Column(String, nullable=False)  # Program ID
    data = Column(LargeBinary, nullable=False)  # Zero-padded account buffer

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class TokenHolding(Base):
    """
    Token accounts table: SPL-style token holdings.

    The escrow for a race is the holding whose owner is the race custody
    address.
    """
    __tablename__ = "token_accounts"

    address = Column(String, primary_key=True, index=True)  # Associated token address
    mint = Column(String, nullable=False, index=True)
    owner = Column(String, nullable=False, index=True)  # Wallet or custody PDA
    amount = Column(BigInteger, nullable=False, default=0)  # Raw units

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class TransactionRecord(Base):
    """
    Transaction log: every submitted transaction, committed or rejected.

    The signature column doubles as replay protection.
    """
    __tablename__ = "transactions"

    signature = Column(String, primary_key=True, index=True)  # First transaction signature
    fee_payer = Column(String, nullable=False)
    instructions = Column(String, nullable=False)  # Comma-separated instruction names

    status = Column(SQLEnum(TransactionStatus), nullable=False, index=True)
    error_code = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
