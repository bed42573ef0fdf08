"""Event and signup API routes."""

from datetime import datetime
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from headcount.api.deps import get_change_notifier, get_service
from headcount.domain import (
    DuplicateName,
    Event,
    EventNotFound,
    EventSnapshot,
    EventSummary,
    HeadcountError,
    IdGenerationExhausted,
    InvalidName,
    NameNotFound,
    Signup,
    StorageUnavailable,
)
from headcount.events import ChangeNotifier
from headcount.service import EventService

router = APIRouter()


class EventCreate(BaseModel):
    """Request body for creating an event."""

    title: str = Field(min_length=1, max_length=200)
    date: datetime
    capacity: int = Field(ge=1)


class SignupCreate(BaseModel):
    """Request body for adding a signup."""

    name: str = Field(min_length=1, max_length=100)


class EventDetail(BaseModel):
    """An event with its signups split into confirmed and waitlisted."""

    event: Event
    signups: list[Signup]
    confirmed: list[Signup]
    waitlisted: list[Signup]
    spots_left: int
    is_full: bool
    viewers: int = 0  # Live connections watching this event


def _detail(snapshot: EventSnapshot, notifier: ChangeNotifier) -> EventDetail:
    return EventDetail(
        event=snapshot.event,
        signups=sorted(snapshot.signups, key=lambda s: s.timestamp),
        confirmed=snapshot.confirmed,
        waitlisted=snapshot.waitlisted,
        spots_left=snapshot.spots_left,
        is_full=snapshot.is_full,
        viewers=notifier.connection_count(snapshot.event.id),
    )


def _raise_http(error: HeadcountError) -> NoReturn:
    """Map a domain error onto an HTTP error response."""
    if isinstance(error, EventNotFound):
        raise HTTPException(status_code=404, detail="Event not found") from error
    if isinstance(error, NameNotFound):
        raise HTTPException(status_code=404, detail=str(error)) from error
    if isinstance(error, DuplicateName):
        raise HTTPException(status_code=409, detail=str(error)) from error
    if isinstance(error, InvalidName):
        raise HTTPException(status_code=422, detail=str(error)) from error
    if isinstance(error, (IdGenerationExhausted, StorageUnavailable)):
        raise HTTPException(status_code=503, detail=str(error)) from error
    raise HTTPException(status_code=400, detail=str(error)) from error


@router.get("")
async def list_events(
    service: Annotated[EventService, Depends(get_service)],
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[EventSummary]:
    """List all events, newest first."""
    try:
        return await service.list_events(limit=limit, offset=offset)
    except HeadcountError as e:
        _raise_http(e)


@router.post("", status_code=201)
async def create_event(
    service: Annotated[EventService, Depends(get_service)],
    body: EventCreate,
) -> Event:
    """Create a new event."""
    try:
        return await service.create_event(body.title, body.date, body.capacity)
    except HeadcountError as e:
        _raise_http(e)


@router.get("/{event_id}")
async def get_event(
    service: Annotated[EventService, Depends(get_service)],
    notifier: Annotated[ChangeNotifier, Depends(get_change_notifier)],
    event_id: str,
) -> EventDetail:
    """Get an event with its confirmed and waitlisted signups."""
    try:
        snapshot = await service.get_event(event_id)
    except HeadcountError as e:
        _raise_http(e)
    return _detail(snapshot, notifier)


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    service: Annotated[EventService, Depends(get_service)],
    event_id: str,
) -> None:
    """Delete an event and all of its signups."""
    try:
        await service.delete_event(event_id)
    except HeadcountError as e:
        _raise_http(e)


@router.post("/{event_id}/signups", status_code=201)
async def add_signup(
    service: Annotated[EventService, Depends(get_service)],
    notifier: Annotated[ChangeNotifier, Depends(get_change_notifier)],
    event_id: str,
    body: SignupCreate,
) -> EventDetail:
    """Add a name to an event. Names past capacity go on the waitlist."""
    try:
        snapshot = await service.add_signup(event_id, body.name)
    except HeadcountError as e:
        _raise_http(e)
    return _detail(snapshot, notifier)


@router.delete("/{event_id}/signups/{name}")
async def remove_signup(
    service: Annotated[EventService, Depends(get_service)],
    notifier: Annotated[ChangeNotifier, Depends(get_change_notifier)],
    event_id: str,
    name: str,
) -> EventDetail:
    """Remove a name from an event."""
    try:
        snapshot = await service.remove_signup(event_id, name)
    except HeadcountError as e:
        _raise_http(e)
    return _detail(snapshot, notifier)
