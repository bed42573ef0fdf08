"""Core domain models for Headcount.

- Event: a scheduled gathering with a signup capacity
- Signup: one name on an event's list, ordered by its timestamp
- EventSnapshot: an event plus its ordered signups, partitioned on read
- EventSummary: listing row without signup detail
"""

import secrets
import string
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from headcount.domain.ledger import partition

PUBLIC_ID_ALPHABET = string.digits + string.ascii_lowercase
PUBLIC_ID_LENGTH = 6


def generate_public_id() -> str:
    """Generate a short shareable event id (six base-36 characters)."""
    return "".join(secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


class Event(BaseModel):
    """An event that people can sign up for."""

    id: str = Field(default_factory=generate_public_id)
    title: str = Field(min_length=1)
    date: datetime
    capacity: int = Field(ge=1)
    created_at: datetime = Field(default_factory=utc_now)


class Signup(BaseModel):
    """A single name on an event's signup list."""

    event_id: str
    name: str
    timestamp: datetime = Field(default_factory=utc_now)


class EventSnapshot(BaseModel):
    """Full state of an event: the event row and its signups in timestamp order.

    The confirmed/waitlisted split is never stored; it is recomputed from the
    signup order and the capacity every time it is read.
    """

    event: Event
    signups: list[Signup] = Field(default_factory=list)

    @property
    def confirmed(self) -> list[Signup]:
        return partition(self.signups, self.event.capacity)[0]

    @property
    def waitlisted(self) -> list[Signup]:
        return partition(self.signups, self.event.capacity)[1]

    @property
    def spots_left(self) -> int:
        return max(self.event.capacity - len(self.signups), 0)

    @property
    def is_full(self) -> bool:
        return len(self.signups) >= self.event.capacity


class EventSummary(BaseModel):
    """An event as shown in listings (counts only, no signup detail)."""

    id: str
    title: str
    date: datetime
    capacity: int
    created_at: datetime
    signup_count: int = 0
