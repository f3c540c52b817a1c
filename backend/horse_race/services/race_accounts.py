"""
Race account allocation.

The program never allocates storage. Race accounts are provisioned here:
zero-filled, sized for a full roster and owned by the program.
"""

from typing import Optional
from sqlalchemy.orm import Session
from solders.keypair import Keypair
from solders.pubkey import Pubkey
import logging

from horse_race.models import RaceAccount
from horse_race.program.state import RACE_ACCOUNT_SIZE, HorseRace

logger = logging.getLogger(__name__)


class RaceAccountExists(Exception):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Race account {address} already exists")


def get_race_account(db: Session, address: str) -> Optional[RaceAccount]:
    return db.query(RaceAccount).filter(RaceAccount.address == address).first()


def load_race(race_account: RaceAccount) -> HorseRace:
    return HorseRace.deserialize(race_account.data)


def create_race_account(
    db: Session,
    program_id: Pubkey,
    address: Optional[Pubkey] = None
) -> RaceAccount:
    """
    Allocate a race account owned by ``program_id``.

    Args:
        db: Database session
        program_id: Program that will own the account
        address: Account address (a fresh one is generated if None)

    Returns:
        RaceAccount record

    Raises:
        RaceAccountExists: If the address is already allocated
    """
    if address is None:
        address = Keypair().pubkey()

    if get_race_account(db, str(address)):
        raise RaceAccountExists(str(address))

    race_account = RaceAccount(
        address=str(address),
        owner=str(program_id),
        data=bytes(RACE_ACCOUNT_SIZE)
    )
    db.add(race_account)
    db.commit()
    db.refresh(race_account)

    logger.info(f"Allocated race account {address} ({RACE_ACCOUNT_SIZE} bytes) for program {program_id}")
    return race_account
