"""API route modules."""

from headcount.api.routes import events, stream

__all__ = ["events", "stream"]
