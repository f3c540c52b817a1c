"""
Live race feed endpoint.

Pushes the events of one race account to a WebSocket client: a gameState
snapshot on connect, then every committed change (see services.race_feed).
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
import asyncio
import logging

from horse_race.database import get_db
from horse_race.services.ledger import LedgerHost, get_ledger_host
from horse_race.services.race_accounts import get_race_account, load_race
from horse_race.services.race_feed import game_state_event

logger = logging.getLogger(__name__)

router = APIRouter()

# Close code for an unknown race account
RACE_NOT_FOUND = 4404


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event)


@router.websocket("/ws/races/{race_account}")
async def race_feed(
    websocket: WebSocket,
    race_account: str,
    db: Session = Depends(get_db),
    ledger_host: LedgerHost = Depends(get_ledger_host)
):
    """
    Stream a race's events.

    The subscription is registered before the snapshot is read, so no
    change committed in between is missed. Clients only listen; messages
    they send are ignored.
    """
    feed = ledger_host.feed
    queue = feed.subscribe(race_account)
    sender = None

    try:
        account = get_race_account(db, race_account)
        if not account:
            await websocket.close(code=RACE_NOT_FOUND, reason=f"Race account {race_account} not found")
            return

        await websocket.accept()
        await websocket.send_json(game_state_event(account.address, load_race(account)))

        sender = asyncio.create_task(_forward(websocket, queue))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Feed client for race {race_account} disconnected")
    finally:
        if sender is not None:
            sender.cancel()
        feed.unsubscribe(race_account, queue)
