"""Event service: the one place where signups change.

Every mutation of an event runs as load -> validate -> persist under that
event's lock, then publishes the full recomputed snapshot once the write has
committed. Locks are per event id, so different events never wait on each
other.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from headcount.db import Database, EventRepository
from headcount.domain import (
    Event,
    EventNotFound,
    EventSnapshot,
    EventSummary,
    IdGenerationExhausted,
    NameNotFound,
    Signup,
    generate_public_id,
    ledger,
)
from headcount.events import Change, ChangeNotifier
from headcount.live import LiveViewSession

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


class EventService:
    """Create, read, sign up for and delete events."""

    def __init__(
        self,
        db: Database,
        notifier: ChangeNotifier,
        id_factory: Callable[[], str] = generate_public_id,
        max_id_attempts: int = MAX_ID_ATTEMPTS,
    ):
        self.repo = EventRepository(db)
        self.notifier = notifier
        self.id_factory = id_factory
        self.max_id_attempts = max_id_attempts
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _mutating(self, event_id: str) -> AsyncIterator[None]:
        """Hold the mutation lock for one event id."""
        lock = self._locks.setdefault(event_id, asyncio.Lock())
        self._lock_users[event_id] = self._lock_users.get(event_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[event_id] -= 1
            if self._lock_users[event_id] == 0:
                del self._lock_users[event_id]
                del self._locks[event_id]

    @property
    def active_locks(self) -> int:
        return len(self._locks)

    async def _load(self, event_id: str) -> EventSnapshot:
        snapshot = await self.repo.get_snapshot(event_id)
        if snapshot is None:
            raise EventNotFound(event_id)
        return snapshot

    async def create_event(self, title: str, date: datetime, capacity: int) -> Event:
        """Create an event with an empty signup list.

        Raises:
            IdGenerationExhausted: every generated id was already taken
        """
        for attempt in range(1, self.max_id_attempts + 1):
            event = Event(id=self.id_factory(), title=title, date=date, capacity=capacity)
            if await self.repo.put(event):
                logger.info(f"Created event {event.id} ({event.title!r}, capacity {event.capacity})")
                return event
            logger.warning(f"Event id {event.id} already taken (attempt {attempt}/{self.max_id_attempts})")

        raise IdGenerationExhausted(self.max_id_attempts)

    async def get_event(self, event_id: str) -> EventSnapshot:
        """Get an event with its signups."""
        return await self._load(event_id)

    async def list_events(self, limit: int = 100, offset: int = 0) -> list[EventSummary]:
        """List events, newest first."""
        return await self.repo.list_summaries(limit=limit, offset=offset)

    async def add_signup(self, event_id: str, name: str) -> EventSnapshot:
        """Add a name to an event's list.

        Joining a full event is allowed; the name lands on the waitlist.

        Raises:
            EventNotFound: no such event
            DuplicateName: the normalized name is already on the list
            InvalidName: the name is blank
        """
        async with self._mutating(event_id):
            current = await self._load(event_id)
            ledger.validate_add(current.signups, name)
            signup = await self.repo.append_signup(Signup(event_id=event_id, name=name.strip()))
            updated = EventSnapshot(
                event=current.event,
                signups=ledger.add_signup(current.signups, signup),
            )

        logger.info(f"Signup added to {event_id}: {signup.name!r} ({len(updated.signups)}/{updated.event.capacity})")
        await self.notifier.publish(Change.of_snapshot(updated))
        return updated

    async def remove_signup(self, event_id: str, name: str) -> EventSnapshot:
        """Remove a name from an event's list.

        Raises:
            EventNotFound: no such event
            NameNotFound: the name is not on the list
        """
        async with self._mutating(event_id):
            current = await self._load(event_id)
            ledger.validate_remove(current.signups, name)
            if not await self.repo.delete_signup(event_id, name):
                raise NameNotFound(name.strip())
            updated = EventSnapshot(
                event=current.event,
                signups=ledger.remove_signup(current.signups, name),
            )

        logger.info(f"Signup removed from {event_id}: {name.strip()!r}")
        await self.notifier.publish(Change.of_snapshot(updated))
        return updated

    async def delete_event(self, event_id: str) -> None:
        """Delete an event and all of its signups.

        Live viewers receive a terminal ``deleted`` change.

        Raises:
            EventNotFound: no such event
        """
        async with self._mutating(event_id):
            current = await self._load(event_id)
            if not await self.repo.delete(event_id):
                raise EventNotFound(event_id)

        logger.info(f"Deleted event {event_id} ({len(current.signups)} signups)")
        await self.notifier.publish(Change.of_deletion(current))

    async def open_session(self, event_id: str) -> LiveViewSession:
        """Open a live view of an event.

        Subscribes before reading the initial snapshot so no change can slip
        between the two.
        """
        subscription = await self.notifier.subscribe(event_id)
        try:
            snapshot = await self._load(event_id)
        except Exception:
            await subscription.close()
            raise
        return LiveViewSession(subscription, snapshot)
