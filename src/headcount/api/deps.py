"""FastAPI dependencies."""

from starlette.requests import HTTPConnection

from headcount.events import ChangeNotifier, get_notifier
from headcount.service import EventService


async def get_change_notifier(conn: HTTPConnection) -> ChangeNotifier:
    """Get the change notifier from app state, falling back to the process-wide one."""
    state = conn.app.state
    if getattr(state, "notifier", None) is None:
        state.notifier = get_notifier()
    return state.notifier


async def get_service(conn: HTTPConnection) -> EventService:
    """Get the app's event service, creating it on first use."""
    state = conn.app.state
    if getattr(state, "service", None) is None:
        state.service = EventService(state.db, await get_change_notifier(conn))
    return state.service
