"""
Account views handed to the program for one instruction.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional

from solders.pubkey import Pubkey

from horse_race.errors import AccountNotWritable, MissingRequiredSignature, NotEnoughAccountKeys


@dataclass
class AccountInfo:
    """
    One account as seen by the executing program.

    ``data`` is mutable and shared: the host reads it back after a
    successful instruction.
    """
    key: Pubkey
    is_signer: bool = False
    is_writable: bool = False
    data: bytearray = field(default_factory=bytearray)
    owner: Optional[Pubkey] = None


def next_account_info(accounts: Iterator[AccountInfo], role: str) -> AccountInfo:
    try:
        return next(accounts)
    except StopIteration:
        raise NotEnoughAccountKeys(f"Missing account: {role}")


def require_signer(account: AccountInfo, role: str) -> None:
    if not account.is_signer:
        raise MissingRequiredSignature(role, account.key)


def require_writable(account: AccountInfo, role: str) -> None:
    if not account.is_writable:
        raise AccountNotWritable(role, account.key)
