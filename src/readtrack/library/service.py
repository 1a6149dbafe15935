"""Library management.

Adding books from search results or by hand, listing and sorting the
shelf, editing a shelf entry and filling in missing covers.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..api.details import BookDetailsService
from ..api.openlibrary import BookResult
from ..db.models import Book, ReadingSession, UserBook
from ..db.schemas import BookCreate, BookStatus, BookUpdate, UserBookCreate, UserBookUpdate
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from ..utils import local_date_str, progress_percent

logger = logging.getLogger(__name__)

SORT_KEYS = ("date_added", "date_finished", "published_year", "my_rating", "title")
RECENT_SESSIONS = 20


@dataclass
class BookDetail:
    """A shelf entry with its recent sessions."""

    user_book: UserBook
    sessions: list[ReadingSession] = field(default_factory=list)

    @property
    def book(self) -> Book:
        return self.user_book.book

    @property
    def progress(self) -> int:
        return progress_percent(self.user_book.current_page or 0, self.book.total_pages)

    @property
    def total_seconds(self) -> int:
        return sum(s.duration_seconds or 0 for s in self.sessions)

    @property
    def total_pages_read(self) -> int:
        return sum(s.pages_read or 0 for s in self.sessions)


def _sort_key(sort: str):
    if sort == "date_finished":
        return lambda ub: ub.finish_date or ""
    if sort == "published_year":
        return lambda ub: ub.book.published_year or 0
    if sort == "my_rating":
        return lambda ub: ub.rating or 0
    if sort == "title":
        return lambda ub: ub.book.title.lower()
    return lambda ub: ub.added_at or ""


class LibraryService:
    """Manages the books on the user's shelf."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize library service.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def _require(self, user_book_id: str) -> UserBook:
        user_book = self.db.get_user_book(user_book_id)
        if not user_book:
            raise NotFoundError("Book", user_book_id)
        return user_book

    # ========================================================================
    # Adding Books
    # ========================================================================

    def _shelve(self, payload: BookCreate, status: BookStatus, today: Optional[date]) -> UserBook:
        """Store the book and put it on the shelf with `status`."""
        with self.db.get_session() as s:
            if payload.ol_id:
                book = self.db.upsert_book(payload, session=s)
            else:
                book = self.db.find_book_by_title_author(
                    payload.title, payload.author, session=s
                ) or self.db.create_book(payload, session=s)

            user_book = self.db.upsert_user_book(
                UserBookCreate(
                    book_id=book.id,
                    status=status,
                    start_date=local_date_str(today) if status == BookStatus.READING else None,
                ),
                session=s,
            )
            s.expunge(user_book)

        logger.info("Added %r as %s", payload.title, status.value)
        return user_book

    def add_from_search(
        self,
        result: BookResult,
        status: BookStatus = BookStatus.WANT_TO_READ,
        today: Optional[date] = None,
    ) -> UserBook:
        """Add a search result to the shelf.

        The book is matched on its Open Library ID (or title and author when
        it has none). Adding a book already on the shelf updates its status.
        Books added as reading get today as their start date.
        """
        return self._shelve(result.to_book_create(), status, today)

    def add_manual(
        self,
        title: str,
        author: str,
        total_pages: Optional[int] = None,
        status: BookStatus = BookStatus.WANT_TO_READ,
        genres: Optional[list[str]] = None,
        published_year: Optional[int] = None,
        today: Optional[date] = None,
    ) -> UserBook:
        """Add a book that was not found by search."""
        payload = BookCreate(
            title=title.strip(),
            author=author.strip(),
            total_pages=total_pages,
            genres=genres or [],
            published_year=published_year,
        )
        return self._shelve(payload, status, today)

    # ========================================================================
    # Reading the Shelf
    # ========================================================================

    def list_books(
        self,
        status: Optional[BookStatus] = None,
        sort: str = "date_added",
        descending: bool = True,
    ) -> list[UserBook]:
        """List shelf entries, optionally for one status.

        Args:
            status: Only entries with this status
            sort: One of date_added, date_finished, published_year,
                  my_rating or title
            descending: Sort direction
        """
        if sort not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {sort}. Use one of: {', '.join(SORT_KEYS)}")

        user_books = self.db.list_user_books(status.value if status else None)

        if sort == "date_finished":
            # Entries without a finish date go last in either direction
            dated = [ub for ub in user_books if ub.finish_date]
            undated = [ub for ub in user_books if not ub.finish_date]
            return sorted(dated, key=_sort_key(sort), reverse=descending) + undated

        return sorted(user_books, key=_sort_key(sort), reverse=descending)

    def get_book_detail(self, user_book_id: str) -> BookDetail:
        """A shelf entry with its 20 most recent sessions."""
        user_book = self._require(user_book_id)
        sessions = self.db.list_reading_sessions(
            user_book_id=user_book_id, limit=RECENT_SESSIONS
        )
        return BookDetail(user_book=user_book, sessions=sessions)

    # ========================================================================
    # Editing
    # ========================================================================

    def update_user_book(
        self,
        user_book_id: str,
        rating: Optional[float] = None,
        review: Optional[str] = None,
        status: Optional[BookStatus] = None,
        current_page: Optional[int] = None,
        today: Optional[date] = None,
    ) -> UserBook:
        """Update a shelf entry. Arguments left as None are not changed.

        A rating of 0 clears the rating and an empty review clears the
        review. Marking a book finished stamps today's date as the finish
        date unless it already has one. Any status can follow any other.
        """
        user_book = self._require(user_book_id)
        fields = {}

        if rating is not None:
            fields["rating"] = rating if rating > 0 else None
        if review is not None:
            fields["review"] = review.strip() or None
        if current_page is not None:
            fields["current_page"] = current_page
        if status is not None:
            fields["status"] = status
            if status == BookStatus.FINISHED and not user_book.finish_date:
                fields["finish_date"] = local_date_str(today)

        updated = self.db.update_user_book(user_book_id, UserBookUpdate(**fields))
        if not updated:
            raise NotFoundError("Book", user_book_id)
        return updated

    def set_total_pages(self, user_book_id: str, total_pages: int) -> Book:
        """Correct the page count of a shelf entry's book."""
        user_book = self._require(user_book_id)
        book = self.db.update_book(user_book.book_id, BookUpdate(total_pages=total_pages))
        if not book:
            raise NotFoundError("Book", user_book.book_id)
        return book

    def remove_book(self, user_book_id: str) -> None:
        """Take a book off the shelf, deleting its sessions."""
        if not self.db.delete_user_book(user_book_id):
            raise NotFoundError("Book", user_book_id)

    # ========================================================================
    # Cover Backfill
    # ========================================================================

    def backfill_covers(
        self,
        lookup: BookDetailsService,
        status: Optional[BookStatus] = None,
    ) -> int:
        """Look up covers for books that have none.

        A found cover is only written if the book still has no cover at
        write time, so a cover set in the meantime is never replaced.

        Returns:
            Number of covers written
        """
        missing = [
            ub for ub in self.db.list_user_books(status.value if status else None)
            if ub.book and not ub.book.cover_url
        ]

        written = 0
        for user_book in missing:
            details = lookup.get_details(user_book.book.title, user_book.book.author)
            if not details or not details.cover_url:
                continue
            if self.db.fill_book_cover(user_book.book_id, details.cover_url):
                written += 1
            else:
                logger.debug("Cover for %r was set meanwhile, keeping it", user_book.book.title)

        logger.info("Backfilled %d of %d missing covers", written, len(missing))
        return written
