"""Headcount - share an event link, collect names, watch the list fill live."""

__version__ = "0.1.0"
