"""
Live race feed.

Clients subscribe per race account and receive the events derived from
each committed change of that race:

- playerJoined: a wallet entered the race
- countdown: seconds left before the race may auto-start
- raceStarted / raceCompleted: the race left WaitingForPlayers / has a winner
- raceReset: the race went back to an empty WaitingForPlayers
- gameState: the full decoded race, always sent last

Events are published from the thread that committed the transaction and
delivered on each subscriber's own event loop.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from horse_race.constants import AUTO_START_TIMEOUT_SECONDS
from horse_race.program.state import GameState, HorseRace
from horse_race.schemas import PlayerResponse, RaceEvent, RaceStateResponse

logger = logging.getLogger(__name__)

Subscriber = Tuple[asyncio.AbstractEventLoop, asyncio.Queue]


def race_event(event: str, race_account: str, /, **data: Any) -> Dict[str, Any]:
    return RaceEvent(event=event, race_account=race_account, data=data).model_dump(mode="json")


def game_state_event(race_account: str, race: HorseRace) -> Dict[str, Any]:
    state = RaceStateResponse.from_race(race_account, race).model_dump(mode="json")
    return race_event("gameState", race_account, **state)


def race_events(
    race_account: str,
    before: Optional[HorseRace],
    after: HorseRace,
    now: int
) -> List[Dict[str, Any]]:
    """
    Events describing the change from one committed race state to the next.

    Several operations committed in one transaction are reported as their
    net change.

    Args:
        race_account: Race account address
        before: State before the transaction (None for a fresh slot)
        after: State after the transaction
        now: Ledger time the transaction ran at

    Returns:
        List of event dicts, ending with a gameState event
    """
    events = []
    waiting = GameState.WAITING_FOR_PLAYERS
    before_state = before.state if before else waiting
    before_players = before.players if before else []

    if after.state == waiting and not after.players and (before_players or before_state != waiting):
        events.append(race_event("raceReset", race_account))
    else:
        known = {player.wallet for player in before_players}
        for player in after.players:
            if player.wallet not in known:
                joined = PlayerResponse(wallet=str(player.wallet), joined_at=player.joined_at)
                events.append(race_event("playerJoined", race_account, player=joined.model_dump()))

        if before_state == waiting and after.state != waiting:
            events.append(race_event("raceStarted", race_account, start_time=after.start_time))

        if after.state == GameState.RACE_COMPLETED and before_state != GameState.RACE_COMPLETED:
            events.append(race_event(
                "raceCompleted",
                race_account,
                winner=str(after.winner.wallet),
                winner_index=after.winner_index
            ))

    if after.state == waiting and after.players:
        elapsed = now - after.players[0].joined_at
        remaining = max(0, AUTO_START_TIMEOUT_SECONDS - elapsed)
        events.append(race_event("countdown", race_account, remaining_seconds=remaining))

    events.append(game_state_event(race_account, after))
    return events


class RaceFeedManager:
    """
    Per race subscriber registry.

    Safe to publish to from any thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, List[Subscriber]] = {}

    def subscribe(self, race_account: str) -> asyncio.Queue:
        """
        Register a subscriber on the running event loop.

        Returns:
            Queue the race's events are put on
        """
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._rooms.setdefault(race_account, []).append((loop, queue))
        logger.info(f"Feed subscriber added for race {race_account}")
        return queue

    def unsubscribe(self, race_account: str, queue: asyncio.Queue) -> None:
        with self._lock:
            remaining = [sub for sub in self._rooms.get(race_account, []) if sub[1] is not queue]
            if remaining:
                self._rooms[race_account] = remaining
            else:
                self._rooms.pop(race_account, None)
        logger.info(f"Feed subscriber removed for race {race_account}")

    def has_subscribers(self, race_account: str) -> bool:
        with self._lock:
            return bool(self._rooms.get(race_account))

    def publish(self, race_account: str, events: List[Dict[str, Any]]) -> None:
        with self._lock:
            subscribers = list(self._rooms.get(race_account, []))

        for loop, queue in subscribers:
            if loop.is_closed():
                continue
            for event in events:
                loop.call_soon_threadsafe(queue.put_nowait, event)

        logger.debug(f"Published {len(events)} events to {len(subscribers)} subscribers of race {race_account}")
