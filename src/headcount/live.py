"""Live view of a single event, fed by a notifier subscription."""

import logging
from collections.abc import AsyncIterator
from enum import Enum

from headcount.domain import EventSnapshot, HeadcountError, Signup
from headcount.events import Change, Subscription

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a live view."""

    LIVE = "live"
    DELETED = "deleted"
    CLOSED = "closed"


class EventDeletedError(HeadcountError):
    """Raised when waiting on a session whose event was deleted."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event was deleted: {event_id}")


class SessionClosedError(HeadcountError):
    """Raised when waiting on a session that was closed."""

    pass


class LiveViewSession:
    """Client-side view of an event.

    Every snapshot replaces the whole local view; nothing is merged. A
    ``deleted`` change is terminal: the session stops consuming and every
    later wait raises ``EventDeletedError``.
    """

    def __init__(self, subscription: Subscription, initial: EventSnapshot | None = None):
        self.subscription = subscription
        self.event_id = subscription.event_id
        self.view = initial
        self.state = SessionState.LIVE
        self.last_change: Change | None = None
        self.updates = 0

    @property
    def confirmed(self) -> list[Signup]:
        return self.view.confirmed if self.view else []

    @property
    def waitlisted(self) -> list[Signup]:
        return self.view.waitlisted if self.view else []

    def apply(self, change: Change) -> EventSnapshot | None:
        """Replace the local view with the change's snapshot."""
        if self.state != SessionState.LIVE:
            return self.view
        if change.event_id != self.event_id:
            logger.warning(f"Ignoring change for {change.event_id} on session for {self.event_id}")
            return self.view

        self.last_change = change
        self.view = change.snapshot
        if change.is_terminal:
            self.state = SessionState.DELETED
        else:
            self.updates += 1
        return self.view

    async def next_view(self) -> EventSnapshot:
        """Wait for the next snapshot and return the replaced view.

        Raises:
            EventDeletedError: the event was deleted
            SessionClosedError: the session was closed
        """
        if self.state == SessionState.DELETED:
            raise EventDeletedError(self.event_id)
        if self.state == SessionState.CLOSED:
            raise SessionClosedError(f"Session for {self.event_id} is closed")

        change = await self.subscription.get()
        if change is None:
            self.state = SessionState.CLOSED
            raise SessionClosedError(f"Session for {self.event_id} is closed")

        view = self.apply(change)
        if self.state == SessionState.DELETED:
            raise EventDeletedError(self.event_id)
        assert view is not None
        return view

    async def views(self) -> AsyncIterator[EventSnapshot]:
        """Yield views until the event is deleted or the session closes."""
        while True:
            try:
                yield await self.next_view()
            except (EventDeletedError, SessionClosedError):
                return

    def __aiter__(self) -> AsyncIterator[EventSnapshot]:
        return self.views()

    async def close(self) -> None:
        """Stop receiving changes. Safe to call more than once."""
        await self.subscription.close()
        if self.state == SessionState.LIVE:
            self.state = SessionState.CLOSED

    async def __aenter__(self) -> "LiveViewSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
