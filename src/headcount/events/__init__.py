"""Change notification for real-time updates."""

from headcount.events.notifier import (
    ChangeNotifier,
    Subscription,
    get_notifier,
    reset_notifier,
)
from headcount.events.types import Change, ChangeType

__all__ = [
    "Change",
    "ChangeNotifier",
    "ChangeType",
    "Subscription",
    "get_notifier",
    "reset_notifier",
]
