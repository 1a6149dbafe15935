"""Manual reading sessions and progress.

Sessions can be timed (see `timer`) or logged by hand, including for
past dates. This module covers the hand-logged side along with editing,
deleting and listing sessions.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..db.models import ReadingSession, UserBook
from ..db.schemas import ReadingSessionCreate, ReadingSessionUpdate, UserBookUpdate
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from ..utils import local_date_str

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LIMIT = 20


@dataclass
class DaySummary:
    """Totals logged on a single day."""

    date: str
    pages_read: int = 0
    duration_seconds: int = 0
    sessions: int = 0


class SessionManager:
    """Logs, edits and lists reading sessions."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize session manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def _require_user_book(self, user_book_id: str) -> UserBook:
        user_book = self.db.get_user_book(user_book_id)
        if not user_book:
            raise NotFoundError("Book", user_book_id)
        return user_book

    def log_session(
        self,
        user_book_id: str,
        session_date: Optional[date] = None,
        minutes: int = 0,
        pages_read: Optional[int] = None,
        start_page: Optional[int] = None,
        end_page: Optional[int] = None,
    ) -> ReadingSession:
        """Manually log a reading session without the timer.

        Args:
            user_book_id: Shelf entry that was read
            session_date: Day of the session (defaults to today)
            minutes: Time spent reading
            pages_read: Number of pages read
            start_page: Starting page number
            end_page: Ending page number

        Returns:
            The created ReadingSession

        Raises:
            NotFoundError: If the shelf entry does not exist
        """
        user_book = self._require_user_book(user_book_id)

        # Calculate pages_read from start/end if not provided
        if pages_read is None:
            if start_page is not None and end_page is not None:
                pages_read = max(0, end_page - start_page)
            else:
                pages_read = 0

        data = ReadingSessionCreate(
            user_book_id=user_book_id,
            date=session_date or local_date_str(),
            duration_seconds=minutes * 60,
            pages_read=pages_read,
            start_page=start_page,
            end_page=end_page,
        )

        with self.db.get_session() as s:
            reading_session = self.db.create_reading_session(data, session=s)
            if end_page is not None and end_page > (user_book.current_page or 0):
                self.db.update_user_book(
                    user_book_id, UserBookUpdate(current_page=end_page), session=s
                )
            s.expunge(reading_session)

        logger.info("Logged %s pages for %s on %s", pages_read, user_book_id, data.date)
        return reading_session

    def edit_session(
        self,
        session_id: str,
        minutes: Optional[int] = None,
        pages_read: Optional[int] = None,
    ) -> ReadingSession:
        """Change the duration or page count of a session.

        Raises:
            NotFoundError: If the session does not exist
        """
        fields = {}
        if minutes is not None:
            fields["duration_seconds"] = minutes * 60
        if pages_read is not None:
            fields["pages_read"] = pages_read

        reading_session = self.db.update_reading_session(
            session_id, ReadingSessionUpdate(**fields)
        )
        if not reading_session:
            raise NotFoundError("Session", session_id)
        return reading_session

    def delete_session(self, session_id: str) -> None:
        """Delete a session.

        Raises:
            NotFoundError: If the session does not exist
        """
        if not self.db.delete_reading_session(session_id):
            raise NotFoundError("Session", session_id)

    def list_sessions(
        self, user_book_id: str, limit: int = DEFAULT_SESSION_LIMIT
    ) -> list[ReadingSession]:
        """Most recent sessions for a book, newest first."""
        return self.db.list_reading_sessions(user_book_id=user_book_id, limit=limit)

    def today_summary(self, today: Optional[date] = None) -> DaySummary:
        """Pages and time logged today across all books."""
        day = local_date_str(today)
        sessions = self.db.list_reading_sessions(start_date=day, end_date=day)
        return DaySummary(
            date=day,
            pages_read=sum(rs.pages_read or 0 for rs in sessions),
            duration_seconds=sum(rs.duration_seconds or 0 for rs in sessions),
            sessions=len(sessions),
        )

    def update_current_page(self, user_book_id: str, page: int) -> UserBook:
        """Set the current page of a book directly.

        Raises:
            NotFoundError: If the shelf entry does not exist
        """
        user_book = self.db.update_user_book(user_book_id, UserBookUpdate(current_page=page))
        if not user_book:
            raise NotFoundError("Book", user_book_id)
        return user_book
