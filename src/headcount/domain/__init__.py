"""Domain models for Headcount."""

from headcount.domain.errors import (
    DuplicateName,
    EventNotFound,
    HeadcountError,
    IdGenerationExhausted,
    InvalidName,
    NameNotFound,
    StorageUnavailable,
)
from headcount.domain.models import (
    Event,
    EventSnapshot,
    EventSummary,
    Signup,
    generate_public_id,
    utc_now,
)

__all__ = [
    "DuplicateName",
    "EventNotFound",
    "HeadcountError",
    "IdGenerationExhausted",
    "InvalidName",
    "NameNotFound",
    "StorageUnavailable",
    "Event",
    "EventSnapshot",
    "EventSummary",
    "Signup",
    "generate_public_id",
    "utc_now",
]
