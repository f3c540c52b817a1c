"""
Per-account exclusive locking for the ledger host.

A transaction declares every account it touches up front. The host holds
an exclusive lock on each of them for the whole transaction:

- an in-process lock per address, always acquired in sorted address
  order so two transactions cannot deadlock on each other
- a row lock (SELECT ... FOR UPDATE) on the backing rows, which
  serializes across processes on PostgreSQL (SQLite ignores it)
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List

from sqlalchemy.orm import Session, Query

from horse_race.models import RaceAccount, TokenHolding


class AccountLockManager:
    """Registry of in-process locks keyed by account address."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, address: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(address)
            if lock is None:
                lock = self._locks[address] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, addresses: Iterable[str]) -> Iterator[None]:
        ordered: List[str] = sorted(set(addresses))
        acquired: List[threading.Lock] = []
        try:
            for address in ordered:
                lock = self._lock_for(address)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def with_race_account_locks(addresses: List[str], db: Session) -> Query:
    """
    Lock race account rows for the rest of the DB transaction.

    Returns:
        Query object (call .all())
    """
    return db.query(RaceAccount).filter(
        RaceAccount.address.in_(addresses)
    ).order_by(RaceAccount.address).with_for_update(nowait=False)


def with_token_account_locks(addresses: List[str], db: Session) -> Query:
    """
    Lock token holding rows for the rest of the DB transaction.

    Returns:
        Query object (call .all())
    """
    return db.query(TokenHolding).filter(
        TokenHolding.address.in_(addresses)
    ).order_by(TokenHolding.address).with_for_update(nowait=False)
