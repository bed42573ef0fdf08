"""Repository classes for database access."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import aiosqlite

from headcount.db.connection import Database
from headcount.domain import (
    DuplicateName,
    Event,
    EventSnapshot,
    EventSummary,
    Signup,
    StorageUnavailable,
)
from headcount.domain.ledger import normalize_name

logger = logging.getLogger(__name__)


class EventRepository:
    """Repository for events and their signups.

    Every write commits on its own; a failed write is rolled back and
    surfaces as ``StorageUnavailable`` so no partial signup list survives.
    """

    def __init__(self, db: Database):
        self.db = db

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[None]:
        try:
            yield
        except aiosqlite.Error as e:
            raise StorageUnavailable(f"Read failed: {e}") from e

    @asynccontextmanager
    async def _writing(self) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except aiosqlite.Error as e:
            await self._rollback_quietly()
            if isinstance(e, aiosqlite.IntegrityError):
                raise
            raise StorageUnavailable(f"Write failed: {e}") from e

    async def _rollback_quietly(self) -> None:
        try:
            await self.db.rollback()
        except aiosqlite.Error as e:
            logger.error(f"Rollback failed: {e}")

    # Events

    async def put(self, event: Event) -> bool:
        """Insert a new event.

        Returns False when the id is already taken.
        """
        try:
            async with self._writing():
                await self.db.execute(
                    """
                    INSERT INTO events (id, title, date, capacity, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        event.id,
                        event.title,
                        event.date.isoformat(),
                        event.capacity,
                        event.created_at.isoformat(),
                    ),
                )
        except aiosqlite.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise StorageUnavailable(f"Write failed: {e}") from e
            logger.debug(f"Event id collision: {event.id}")
            return False
        return True

    async def get(self, event_id: str) -> Event | None:
        """Get an event by ID."""
        async with self._reading():
            row = await self.db.fetchone("SELECT * FROM events WHERE id = ?", (event_id,))
        if not row:
            return None
        return self._row_to_event(row)

    async def exists(self, event_id: str) -> bool:
        """Check whether an event id is taken."""
        async with self._reading():
            row = await self.db.fetchone("SELECT 1 FROM events WHERE id = ?", (event_id,))
        return row is not None

    async def delete(self, event_id: str) -> bool:
        """Delete an event; its signups go with it via ON DELETE CASCADE."""
        async with self._writing():
            cursor = await self.db.execute("DELETE FROM events WHERE id = ?", (event_id,))
        return cursor.rowcount > 0

    async def list_ids(self) -> set[str]:
        """Get every stored event id."""
        async with self._reading():
            rows = await self.db.fetchall("SELECT id FROM events")
        return {row["id"] for row in rows}

    async def list_summaries(self, limit: int = 100, offset: int = 0) -> list[EventSummary]:
        """List events newest first, with signup counts."""
        async with self._reading():
            rows = await self.db.fetchall(
                """
                SELECT e.*, COUNT(s.seq) AS signup_count
                FROM events e
                LEFT JOIN signups s ON s.event_id = e.id
                GROUP BY e.id
                ORDER BY e.created_at DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            )
        return [
            EventSummary(
                **self._row_to_event(row).model_dump(),
                signup_count=row["signup_count"],
            )
            for row in rows
        ]

    # Signups

    async def append_signup(self, signup: Signup) -> Signup:
        """Append a signup to its event.

        Raises:
            DuplicateName: the store already holds the same normalized name
        """
        try:
            async with self._writing():
                await self.db.execute(
                    """
                    INSERT INTO signups (event_id, name, normalized_name, timestamp)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        signup.event_id,
                        signup.name,
                        normalize_name(signup.name),
                        signup.timestamp.isoformat(),
                    ),
                )
        except aiosqlite.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise DuplicateName(signup.name) from e
            raise StorageUnavailable(f"Write failed: {e}") from e
        return signup

    async def delete_signup(self, event_id: str, name: str) -> bool:
        """Delete the first signup matching ``name`` (normalized)."""
        async with self._writing():
            cursor = await self.db.execute(
                """
                DELETE FROM signups WHERE seq = (
                    SELECT seq FROM signups
                    WHERE event_id = ? AND normalized_name = ?
                    ORDER BY seq LIMIT 1
                )
                """,
                (event_id, normalize_name(name)),
            )
        return cursor.rowcount > 0

    async def list_signups(self, event_id: str) -> list[Signup]:
        """List an event's signups in creation order."""
        async with self._reading():
            rows = await self.db.fetchall(
                "SELECT * FROM signups WHERE event_id = ? ORDER BY timestamp, seq",
                (event_id,),
            )
        return [self._row_to_signup(row) for row in rows]

    async def get_snapshot(self, event_id: str) -> EventSnapshot | None:
        """Read an event together with its signups."""
        event = await self.get(event_id)
        if event is None:
            return None
        return EventSnapshot(event=event, signups=await self.list_signups(event_id))

    def _row_to_event(self, row: Any) -> Event:
        """Convert a database row to an Event."""
        return Event(
            id=row["id"],
            title=row["title"],
            date=datetime.fromisoformat(row["date"]),
            capacity=row["capacity"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_signup(self, row: Any) -> Signup:
        """Convert a database row to a Signup."""
        return Signup(
            event_id=row["event_id"],
            name=row["name"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )
