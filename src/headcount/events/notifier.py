"""Change notifier for pushing event snapshots to live viewers."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from headcount.events.types import Change

logger = logging.getLogger(__name__)


class Subscription:
    """A live feed of changes for a single event.

    Holds at most one pending change: a newer change replaces one the
    consumer has not picked up yet, so a slow viewer only ever sees the
    latest state.
    """

    def __init__(self, notifier: "ChangeNotifier", event_id: str) -> None:
        self.id = f"sub-{uuid4().hex[:8]}"
        self.event_id = event_id
        self.dropped = 0
        self._notifier = notifier
        self._pending: Change | None = None
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, change: Change) -> None:
        """Replace the pending change with ``change``."""
        if self._closed:
            return
        if self._pending is not None:
            self.dropped += 1
        self._pending = change
        self._ready.set()

    def get_nowait(self) -> Change | None:
        """Take the pending change without waiting."""
        change, self._pending = self._pending, None
        return change

    async def get(self) -> Change | None:
        """Wait for the next change.

        Returns None once the subscription is closed and nothing is pending.
        """
        while True:
            if self._pending is not None:
                return self.get_nowait()
            if self._closed:
                return None
            await self._ready.wait()
            self._ready.clear()

    async def close(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        await self._notifier.unsubscribe(self)

    def _mark_closed(self) -> None:
        self._closed = True
        self._ready.set()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Change:
        change = await self.get()
        if change is None:
            raise StopAsyncIteration
        return change


class ChangeNotifier:
    """Fan-out of event changes to every subscriber of that event id.

    Supports both:
    - Subscriptions for live viewers (WebSocket sessions, LiveViewSession)
    - Callback-based listeners for internal handlers
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, dict[str, Subscription]] = {}
        self._callbacks: list[Callable[[Change], Any]] = []
        self._lock = asyncio.Lock()

    async def subscribe(self, event_id: str) -> Subscription:
        """Register interest in an event and return its subscription."""
        async with self._lock:
            subscription = Subscription(self, event_id)
            self._subscribers.setdefault(event_id, {})[subscription.id] = subscription
            logger.debug(f"Subscriber {subscription.id} connected (event: {event_id})")
            return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown or already removed ones are ignored."""
        async with self._lock:
            subscription._mark_closed()
            subscribers = self._subscribers.get(subscription.event_id)
            if subscribers is None or subscription.id not in subscribers:
                return
            del subscribers[subscription.id]
            if not subscribers:
                del self._subscribers[subscription.event_id]
            logger.debug(f"Subscriber {subscription.id} disconnected")

    def add_callback(self, callback: Callable[[Change], Any]) -> None:
        """Add a callback to be called for every change."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[Change], Any]) -> None:
        """Remove a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def publish(self, change: Change) -> int:
        """Deliver a change to every subscriber of its event.

        A terminal (deleted) change closes every subscription of the event
        after delivery. Returns the number of subscribers reached.
        """
        logger.debug(f"Publishing {change.type.value} for event {change.event_id}")

        delivered = 0
        async with self._lock:
            subscribers = list(self._subscribers.get(change.event_id, {}).values())
            for subscription in subscribers:
                try:
                    subscription.deliver(change)
                    delivered += 1
                except Exception as e:
                    logger.error(f"Failed to send change to {subscription.id}: {e}")

            if change.is_terminal:
                for subscription in subscribers:
                    subscription._mark_closed()
                self._subscribers.pop(change.event_id, None)

        for callback in list(self._callbacks):
            try:
                result = callback(change)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Callback error: {e}")

        return delivered

    def connection_count(self, event_id: str) -> int:
        """Get the number of subscribers watching one event."""
        return len(self._subscribers.get(event_id, {}))

    @property
    def subscriber_count(self) -> int:
        """Get the number of active subscribers across all events."""
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def watched_event_ids(self) -> set[str]:
        return set(self._subscribers)

    def reset(self) -> None:
        """Drop every subscription and callback."""
        for subscribers in self._subscribers.values():
            for subscription in subscribers.values():
                subscription._mark_closed()
        self._subscribers.clear()
        self._callbacks.clear()


# Process-wide notifier, replaceable for tests
_notifier: ChangeNotifier | None = None


def get_notifier() -> ChangeNotifier:
    """Get or create the process-wide notifier."""
    global _notifier

    if _notifier is None:
        _notifier = ChangeNotifier()
    return _notifier


def reset_notifier() -> None:
    """Discard the process-wide notifier and all of its subscriptions."""
    global _notifier

    if _notifier is not None:
        _notifier.reset()
        _notifier = None
