"""Database module for local SQLite storage."""

from .models import Book, Profile, ReadingSession, UserBook, YearlyGoal
from .schemas import (
    BookCreate,
    BookStatus,
    BookUpdate,
    ReadingSessionCreate,
    ReadingSessionUpdate,
    UserBookCreate,
    UserBookUpdate,
)
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Book",
    "Profile",
    "ReadingSession",
    "UserBook",
    "YearlyGoal",
    "BookCreate",
    "BookStatus",
    "BookUpdate",
    "ReadingSessionCreate",
    "ReadingSessionUpdate",
    "UserBookCreate",
    "UserBookUpdate",
    "Database",
    "get_db",
    "reset_db",
]
