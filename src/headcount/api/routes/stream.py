"""WebSocket endpoint pushing live snapshots of one event."""

import asyncio
import contextlib
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from headcount.api.deps import get_service
from headcount.domain import EventNotFound
from headcount.events import Change
from headcount.live import EventDeletedError, LiveViewSession, SessionClosedError
from headcount.service import EventService

logger = logging.getLogger(__name__)

router = APIRouter()

# Application close code for an unknown event id
CLOSE_EVENT_NOT_FOUND = 4404


@router.websocket("/events/{event_id}")
async def event_stream(
    websocket: WebSocket,
    service: Annotated[EventService, Depends(get_service)],
    event_id: str,
) -> None:
    """WebSocket endpoint streaming an event's signup list.

    Messages sent, in order:
    - {"type": "connected", "eventId": "..."}
    - {"type": "snapshot", "event": {...}, "signups": [...]} for the current
      state, then again after every change
    - {"type": "deleted", ...} once, if the event is deleted; the socket
      is then closed

    Clients can send {"action": "ping"} and get {"action": "pong"} back.
    """
    await websocket.accept()

    try:
        session = await service.open_session(event_id)
    except EventNotFound:
        logger.info(f"WebSocket rejected: unknown event {event_id}")
        await websocket.close(code=CLOSE_EVENT_NOT_FOUND, reason="Event not found")
        return

    subscriber_id = session.subscription.id
    logger.info(f"WebSocket connected: {subscriber_id} (event: {event_id})")

    try:
        await websocket.send_json({"type": "connected", "eventId": event_id})
        assert session.view is not None
        await websocket.send_json(Change.of_snapshot(session.view).to_json())

        receive_task = asyncio.create_task(_handle_receive(websocket, subscriber_id))
        send_task = asyncio.create_task(_handle_send(websocket, session))

        # Wait for either task to complete (client disconnect or event deleted)
        done, pending = await asyncio.wait(
            [receive_task, send_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                await task

        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"WebSocket task failed for {subscriber_id}: {error}")

        if send_task in done and send_task.exception() is None:
            await websocket.close()

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {subscriber_id}")

    finally:
        await session.close()
        logger.debug(f"WebSocket session closed: {subscriber_id}")


async def _handle_receive(websocket: WebSocket, subscriber_id: str) -> None:
    """Handle incoming WebSocket messages."""
    while True:
        data = await websocket.receive_text()
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from {subscriber_id}: {data}")
            continue

        action = message.get("action") if isinstance(message, dict) else None
        if action == "ping":
            await websocket.send_json({"action": "pong"})
        else:
            logger.debug(f"Unknown action from {subscriber_id}: {action}")


async def _handle_send(websocket: WebSocket, session: LiveViewSession) -> None:
    """Forward every change the session receives to the WebSocket."""
    try:
        while True:
            await session.next_view()
            assert session.last_change is not None
            await websocket.send_json(session.last_change.to_json())
    except EventDeletedError:
        assert session.last_change is not None
        await websocket.send_json(session.last_change.to_json())
    except SessionClosedError:
        return
