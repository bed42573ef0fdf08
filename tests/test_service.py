"""Tests for the event service."""

import asyncio
from datetime import datetime

import pytest

from headcount.db.connection import Database
from headcount.domain import (
    DuplicateName,
    EventNotFound,
    IdGenerationExhausted,
    InvalidName,
    NameNotFound,
)
from headcount.events import Change, ChangeNotifier, ChangeType
from headcount.service import MAX_ID_ATTEMPTS, EventService

EVENT_DATE = datetime(2025, 6, 1, 18, 30)


def names(signups) -> list[str]:
    return [s.name for s in signups]


class TestCreateEvent:
    """Tests for event creation."""

    async def test_create_and_get(self, service: EventService):
        """A new event has no signups."""
        event = await service.create_event("Book Club", EVENT_DATE, 8)

        snapshot = await service.get_event(event.id)
        assert snapshot.event.title == "Book Club"
        assert snapshot.event.capacity == 8
        assert snapshot.signups == []

    async def test_create_publishes_nothing(self, service: EventService, notifier: ChangeNotifier):
        """Nobody can be watching an event that didn't exist."""
        received: list[Change] = []
        notifier.add_callback(received.append)

        await service.create_event("Quiet", EVENT_DATE, 1)

        assert received == []

    async def test_retries_on_id_collision(self, db: Database, notifier: ChangeNotifier):
        """A colliding id is regenerated."""
        ids = iter(["taken1", "taken1", "fresh1"])
        service = EventService(db, notifier, id_factory=lambda: next(ids))

        first = await service.create_event("First", EVENT_DATE, 1)
        second = await service.create_event("Second", EVENT_DATE, 1)

        assert first.id == "taken1"
        assert second.id == "fresh1"

    async def test_id_generation_exhausted(self, db: Database, notifier: ChangeNotifier):
        """Five colliding ids in a row give up with IdGenerationExhausted."""
        generated: list[str] = []

        def always_taken() -> str:
            generated.append("dup000")
            return "dup000"

        service = EventService(db, notifier, id_factory=always_taken)
        await service.create_event("Existing", EVENT_DATE, 1)
        generated.clear()

        with pytest.raises(IdGenerationExhausted) as exc_info:
            await service.create_event("Unlucky", EVENT_DATE, 1)

        assert exc_info.value.attempts == MAX_ID_ATTEMPTS
        assert len(generated) == MAX_ID_ATTEMPTS
        assert len(await service.list_events()) == 1


class TestSignups:
    """Tests for adding and removing signups."""

    async def test_waitlist_scenario(self, service: EventService):
        """Capacity 2: Carol waits, then gets promoted when Alice leaves."""
        event = await service.create_event("Tennis", EVENT_DATE, 2)

        await service.add_signup(event.id, "Alice")
        await service.add_signup(event.id, "Bob")
        snapshot = await service.add_signup(event.id, "Carol")

        assert names(snapshot.confirmed) == ["Alice", "Bob"]
        assert names(snapshot.waitlisted) == ["Carol"]

        snapshot = await service.remove_signup(event.id, "Alice")

        assert names(snapshot.confirmed) == ["Bob", "Carol"]
        assert snapshot.waitlisted == []

        stored = await service.get_event(event.id)
        assert names(stored.confirmed) == ["Bob", "Carol"]

    async def test_add_then_remove_restores_list(self, service: EventService):
        """Adding then removing a name leaves the list as it was."""
        event = await service.create_event("Yoga", EVENT_DATE, 3)
        await service.add_signup(event.id, "Alice")
        await service.add_signup(event.id, "Bob")
        before = await service.get_event(event.id)

        await service.add_signup(event.id, "Dave")
        after = await service.remove_signup(event.id, "Dave")

        assert names(after.signups) == names(before.signups)
        assert [s.timestamp for s in after.signups] == [s.timestamp for s in before.signups]

    async def test_names_are_stored_trimmed(self, service: EventService):
        """Surrounding whitespace is dropped."""
        event = await service.create_event("Choir", EVENT_DATE, 3)

        snapshot = await service.add_signup(event.id, "  Alice  ")

        assert names(snapshot.signups) == ["Alice"]

    @pytest.mark.parametrize("duplicate", ["alice", "ALICE", " Alice "])
    async def test_duplicate_name_rejected(self, service: EventService, duplicate: str):
        """Case and whitespace variants count as the same name."""
        event = await service.create_event("Chess", EVENT_DATE, 3)
        await service.add_signup(event.id, "Alice")

        with pytest.raises(DuplicateName):
            await service.add_signup(event.id, duplicate)

        assert names((await service.get_event(event.id)).signups) == ["Alice"]

    async def test_blank_name_rejected(self, service: EventService):
        event = await service.create_event("Chess", EVENT_DATE, 3)

        with pytest.raises(InvalidName):
            await service.add_signup(event.id, "   ")

    async def test_full_event_still_accepts(self, service: EventService):
        """Fullness never blocks a signup; extra names are waitlisted."""
        event = await service.create_event("Tiny", EVENT_DATE, 1)
        await service.add_signup(event.id, "Alice")

        snapshot = await service.add_signup(event.id, "Bob")

        assert snapshot.is_full
        assert names(snapshot.waitlisted) == ["Bob"]

    async def test_remove_unknown_name(self, service: EventService):
        event = await service.create_event("Poker", EVENT_DATE, 4)

        with pytest.raises(NameNotFound):
            await service.remove_signup(event.id, "Nobody")

    async def test_remove_is_case_insensitive(self, service: EventService):
        event = await service.create_event("Poker", EVENT_DATE, 4)
        await service.add_signup(event.id, "Alice")

        snapshot = await service.remove_signup(event.id, " ALICE")

        assert snapshot.signups == []

    async def test_unknown_event(self, service: EventService):
        """Every operation on a missing event raises EventNotFound."""
        with pytest.raises(EventNotFound):
            await service.get_event("nope00")
        with pytest.raises(EventNotFound):
            await service.add_signup("nope00", "Alice")
        with pytest.raises(EventNotFound):
            await service.remove_signup("nope00", "Alice")
        with pytest.raises(EventNotFound):
            await service.delete_event("nope00")


class TestDeleteAndList:
    """Tests for deleting and listing events."""

    async def test_delete_event(self, service: EventService, db: Database):
        """Deleting removes the event and all signups."""
        event = await service.create_event("Picnic", EVENT_DATE, 5)
        await service.add_signup(event.id, "Alice")
        await service.add_signup(event.id, "Bob")

        await service.delete_event(event.id)

        with pytest.raises(EventNotFound):
            await service.get_event(event.id)
        row = await db.fetchone("SELECT COUNT(*) AS count FROM signups")
        assert row is not None
        assert row["count"] == 0

    async def test_list_events_newest_first(self, service: EventService):
        first = await service.create_event("First", EVENT_DATE, 1)
        await asyncio.sleep(0.01)
        second = await service.create_event("Second", EVENT_DATE, 1)
        await service.add_signup(first.id, "Alice")

        summaries = await service.list_events()

        assert [s.id for s in summaries] == [second.id, first.id]
        assert [s.signup_count for s in summaries] == [0, 1]


class TestNotifications:
    """Tests for snapshots published after mutations."""

    async def test_subscriber_gets_one_snapshot_per_mutation(
        self, service: EventService, notifier: ChangeNotifier
    ):
        """Each mutation is delivered exactly once, reflecting the new state."""
        event = await service.create_event("Karaoke", EVENT_DATE, 1)
        subscription = await notifier.subscribe(event.id)

        await service.add_signup(event.id, "Alice")
        first = subscription.get_nowait()
        assert subscription.get_nowait() is None

        await service.add_signup(event.id, "Bob")
        second = subscription.get_nowait()

        await service.remove_signup(event.id, "Alice")
        third = subscription.get_nowait()

        assert first is not None and second is not None and third is not None
        assert names(first.snapshot.signups) == ["Alice"]
        assert names(second.snapshot.waitlisted) == ["Bob"]
        assert names(third.snapshot.confirmed) == ["Bob"]
        assert subscription.dropped == 0

    async def test_failed_mutation_publishes_nothing(
        self, service: EventService, notifier: ChangeNotifier
    ):
        event = await service.create_event("Karaoke", EVENT_DATE, 1)
        await service.add_signup(event.id, "Alice")
        subscription = await notifier.subscribe(event.id)

        with pytest.raises(DuplicateName):
            await service.add_signup(event.id, "alice")

        assert subscription.get_nowait() is None

    async def test_delete_sends_terminal_change(self, service: EventService, notifier: ChangeNotifier):
        event = await service.create_event("Bowling", EVENT_DATE, 2)
        await service.add_signup(event.id, "Alice")
        subscription = await notifier.subscribe(event.id)

        await service.delete_event(event.id)

        change = subscription.get_nowait()
        assert change is not None
        assert change.type == ChangeType.DELETED
        assert await subscription.get() is None
        assert notifier.connection_count(event.id) == 0

    async def test_callback_failure_does_not_fail_mutation(
        self, service: EventService, notifier: ChangeNotifier
    ):
        """The mutation has committed; notification problems are only logged."""

        def broken(change: Change) -> None:
            raise RuntimeError("transport down")

        notifier.add_callback(broken)
        event = await service.create_event("Darts", EVENT_DATE, 2)

        snapshot = await service.add_signup(event.id, "Alice")

        assert names(snapshot.signups) == ["Alice"]


class TestConcurrency:
    """Tests for concurrent mutations of one event."""

    async def test_concurrent_duplicate_adds(self, service: EventService):
        """Exactly one of several concurrent adds of the same name wins."""
        event = await service.create_event("Race", EVENT_DATE, 1)

        results = await asyncio.gather(
            *(service.add_signup(event.id, variant) for variant in ["Alice", "alice", " ALICE", "Alice "]),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 1
        assert len(failed) == 3
        assert all(isinstance(r, DuplicateName) for r in failed)
        assert len((await service.get_event(event.id)).signups) == 1

    async def test_concurrent_distinct_adds_all_land(self, service: EventService):
        """Concurrent different names are all kept, past capacity too."""
        event = await service.create_event("Crowd", EVENT_DATE, 3)

        await asyncio.gather(*(service.add_signup(event.id, f"person-{i}") for i in range(10)))

        snapshot = await service.get_event(event.id)
        assert len(snapshot.signups) == 10
        assert len(snapshot.confirmed) == 3
        assert len(snapshot.waitlisted) == 7

    async def test_locks_are_released(self, service: EventService):
        """No per-event lock outlives its mutations."""
        first = await service.create_event("One", EVENT_DATE, 1)
        second = await service.create_event("Two", EVENT_DATE, 1)

        await asyncio.gather(
            service.add_signup(first.id, "Alice"),
            service.add_signup(second.id, "Alice"),
            service.add_signup(first.id, "Bob"),
        )
        with pytest.raises(NameNotFound):
            await service.remove_signup(first.id, "Nobody")

        assert service.active_locks == 0

    async def test_other_events_are_not_blocked(self, service: EventService):
        """A held lock on one event doesn't stall another."""
        first = await service.create_event("One", EVENT_DATE, 1)
        second = await service.create_event("Two", EVENT_DATE, 1)

        async with service._mutating(first.id):
            snapshot = await asyncio.wait_for(service.add_signup(second.id, "Alice"), timeout=1.0)

        assert names(snapshot.signups) == ["Alice"]


class TestOpenSession:
    """Tests for live sessions opened through the service."""

    async def test_session_starts_with_current_state(self, service: EventService):
        event = await service.create_event("Dinner", EVENT_DATE, 2)
        await service.add_signup(event.id, "Alice")

        async with await service.open_session(event.id) as session:
            assert session.view is not None
            assert names(session.view.signups) == ["Alice"]

    async def test_session_for_unknown_event_leaves_no_subscriber(
        self, service: EventService, notifier: ChangeNotifier
    ):
        with pytest.raises(EventNotFound):
            await service.open_session("nope00")

        assert notifier.subscriber_count == 0
