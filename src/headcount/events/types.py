"""Change types pushed to live viewers of an event."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from headcount.domain import Event, EventSnapshot


class ChangeType(str, Enum):
    """Kinds of change broadcast for an event."""

    SNAPSHOT = "snapshot"
    DELETED = "deleted"


class Change(BaseModel):
    """A full-state change for one event.

    ``snapshot`` carries the event and every signup; for ``DELETED`` it holds
    the last known state, or only the event row when nothing else is known.
    """

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    type: ChangeType
    event_id: str
    snapshot: EventSnapshot
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def of_snapshot(cls, snapshot: EventSnapshot) -> "Change":
        return cls(type=ChangeType.SNAPSHOT, event_id=snapshot.event.id, snapshot=snapshot)

    @classmethod
    def of_deletion(cls, snapshot: EventSnapshot | Event) -> "Change":
        if isinstance(snapshot, Event):
            snapshot = EventSnapshot(event=snapshot)
        return cls(type=ChangeType.DELETED, event_id=snapshot.event.id, snapshot=snapshot)

    @property
    def is_terminal(self) -> bool:
        return self.type == ChangeType.DELETED

    def to_json(self) -> dict[str, Any]:
        """Convert to the JSON wire shape sent to viewers."""
        event = self.snapshot.event
        return {
            "type": self.type.value,
            "event": {
                "id": event.id,
                "title": event.title,
                "date": event.date.isoformat(),
                "capacity": event.capacity,
                "createdAt": event.created_at.isoformat(),
            },
            "signups": [
                {"name": s.name, "timestamp": s.timestamp.isoformat()}
                for s in sorted(self.snapshot.signups, key=lambda s: s.timestamp)
            ],
        }
