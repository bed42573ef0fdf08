"""Signup ledger: pure rules for an event's signup list.

No I/O happens here. Every helper takes the current signups in insertion
order and returns new values without mutating its input.

Capacity is informational only. Joining a full event is always allowed and
lands the name on the waitlist; the split is derived from timestamp order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, TypeVar

from headcount.domain.errors import DuplicateName, InvalidName, NameNotFound

if TYPE_CHECKING:
    from headcount.domain.models import Signup

S = TypeVar("S", bound="Signup")


def normalize_name(name: str) -> str:
    """Return the uniqueness key for a signup name (trimmed, case-folded)."""
    return name.strip().casefold()


def partition(signups: Sequence[S], capacity: int) -> tuple[list[S], list[S]]:
    """Split signups into (confirmed, waitlisted).

    Signups are ordered by timestamp ascending. ``sorted`` is stable, so
    signups sharing a timestamp keep their insertion order.
    """
    ordered = sorted(signups, key=lambda s: s.timestamp)
    cut = max(capacity, 0)
    return ordered[:cut], ordered[cut:]


def find_signup(signups: Sequence[S], name: str) -> S | None:
    """Find the first signup whose name normalizes to the same key."""
    key = normalize_name(name)
    for signup in signups:
        if normalize_name(signup.name) == key:
            return signup
    return None


def validate_add(signups: Sequence[Signup], name: str) -> None:
    """Check that ``name`` can be added to the list.

    Raises:
        InvalidName: name is blank after trimming
        DuplicateName: an existing signup has the same normalized name
    """
    if not name.strip():
        raise InvalidName(name)
    if find_signup(signups, name) is not None:
        raise DuplicateName(name.strip())


def validate_remove(signups: Sequence[Signup], name: str) -> None:
    """Check that ``name`` is on the list.

    Raises:
        NameNotFound: no signup has the same normalized name
    """
    if find_signup(signups, name) is None:
        raise NameNotFound(name.strip())


def add_signup(signups: Sequence[S], signup: S) -> list[S]:
    """Return a new list with ``signup`` appended."""
    return [*signups, signup]


def remove_signup(signups: Sequence[S], name: str) -> list[S]:
    """Return a new list without the first signup matching ``name``.

    At most one record is removed even if several match.
    """
    key = normalize_name(name)
    result: list[S] = []
    removed = False
    for signup in signups:
        if not removed and normalize_name(signup.name) == key:
            removed = True
            continue
        result.append(signup)
    return result
