"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from headcount.db.connection import Database
from headcount.events import ChangeNotifier, reset_notifier
from headcount.service import EventService


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_notifier():
    """Make sure no test sees subscribers left over from another."""
    reset_notifier()
    yield
    reset_notifier()


@pytest.fixture
async def db() -> AsyncGenerator[Database, None]:
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        database = Database(Path(tmpdir) / "test.db")
        await database.connect()
        yield database
        await database.disconnect()


@pytest.fixture
def notifier() -> ChangeNotifier:
    """Create a fresh notifier for each test."""
    return ChangeNotifier()


@pytest.fixture
def service(db: Database, notifier: ChangeNotifier) -> EventService:
    """Create an event service on the temporary database."""
    return EventService(db, notifier)
