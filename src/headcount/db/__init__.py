"""Database module for Headcount."""

from headcount.db.connection import Database, close_database, get_database
from headcount.db.repositories import EventRepository

__all__ = [
    "Database",
    "close_database",
    "get_database",
    "EventRepository",
]
