"""SQLite database operations.

Handles database connection, session management, and CRUD operations for
books, shelf entries, reading sessions, the profile and yearly goals.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Generator, Optional, Union

from sqlalchemy import create_engine, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from ..errors import PersistenceError
from .models import DEFAULT_PROFILE_ID, Base, Book, Profile, ReadingSession, UserBook, YearlyGoal
from .schemas import (
    BookCreate,
    BookUpdate,
    ProfileUpdate,
    ReadingSessionCreate,
    ReadingSessionUpdate,
    UserBookCreate,
    UserBookUpdate,
)

logger = logging.getLogger(__name__)


def _to_db_value(value):
    """Convert schema values to their stored representation."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "value"):  # Enum
        return value.value
    return value


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:". If None,
                     uses the configured READTRACK_DB_PATH.
        """
        if db_path is None:
            db_path = get_config().db_path

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # All sessions must share the single in-memory connection
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        Commits on success. SQLAlchemy failures are rolled back, logged and
        re-raised as PersistenceError.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database operation failed: %s", e)
            raise PersistenceError(f"Database operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Book Operations
    # ========================================================================

    def create_book(self, book: BookCreate, session: Optional[Session] = None) -> Book:
        """Create a new book record."""

        def _create(s: Session) -> Book:
            db_book = Book(
                title=book.title,
                author=book.author,
                cover_url=book.cover_url,
                total_pages=book.total_pages,
                published_year=book.published_year,
                isbn=book.isbn,
                description=book.description,
                ol_id=book.ol_id,
            )
            db_book.set_genres(book.genres)
            s.add(db_book)
            s.flush()
            return db_book

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                db_book = _create(s)
                s.expunge(db_book)
                return db_book

    def get_book(self, book_id: str, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""

        def _get(s: Session) -> Optional[Book]:
            return s.get(Book, book_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                db_book = _get(s)
                if db_book:
                    s.expunge(db_book)
                return db_book

    def get_book_by_ol_id(self, ol_id: str, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by its Open Library work ID."""

        def _get(s: Session) -> Optional[Book]:
            stmt = select(Book).where(Book.ol_id == ol_id)
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                db_book = _get(s)
                if db_book:
                    s.expunge(db_book)
                return db_book

    def update_book(
        self, book_id: str, updates: BookUpdate, session: Optional[Session] = None
    ) -> Optional[Book]:
        """Update a book. Only fields explicitly set on `updates` are written."""

        def _update(s: Session) -> Optional[Book]:
            db_book = s.get(Book, book_id)
            if not db_book:
                return None

            for field, value in updates.model_dump(exclude_unset=True).items():
                if field == "genres":
                    db_book.set_genres(value or [])
                else:
                    setattr(db_book, field, _to_db_value(value))

            s.flush()
            return db_book

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                db_book = _update(s)
                if db_book:
                    s.expunge(db_book)
                return db_book

    def upsert_book(self, book: BookCreate, session: Optional[Session] = None) -> Book:
        """Insert a book, or update the existing row with the same ol_id.

        Books without an ol_id are always inserted. On update, only the
        non-empty fields of `book` overwrite stored values.
        """

        def _upsert(s: Session) -> Book:
            existing = None
            if book.ol_id:
                existing = s.execute(
                    select(Book).where(Book.ol_id == book.ol_id)
                ).scalar_one_or_none()

            if existing is None:
                return self.create_book(book, session=s)

            for field, value in book.model_dump(exclude={"ol_id"}).items():
                if value is None or value == []:
                    continue
                if field == "genres":
                    existing.set_genres(value)
                else:
                    setattr(existing, field, value)
            s.flush()
            return existing

        if session:
            return _upsert(session)
        else:
            with self.get_session() as s:
                db_book = _upsert(s)
                s.expunge(db_book)
                return db_book

    def find_book_by_title_author(
        self, title: str, author: str, session: Optional[Session] = None
    ) -> Optional[Book]:
        """Find a book by title and author, ignoring case."""

        def _find(s: Session) -> Optional[Book]:
            stmt = (
                select(Book)
                .where(func.lower(Book.title) == title.lower())
                .where(func.lower(Book.author) == author.lower())
                .limit(1)
            )
            return s.execute(stmt).scalars().first()

        if session:
            return _find(session)
        else:
            with self.get_session() as s:
                db_book = _find(s)
                if db_book:
                    s.expunge(db_book)
                return db_book

    def search_books(self, query: str, session: Optional[Session] = None) -> list[Book]:
        """Search books by title or author."""

        def _search(s: Session) -> list[Book]:
            pattern = f"%{query}%"
            stmt = (
                select(Book)
                .where(or_(Book.title.ilike(pattern), Book.author.ilike(pattern)))
                .order_by(Book.title)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _search(session)
        else:
            with self.get_session() as s:
                books = _search(s)
                for b in books:
                    s.expunge(b)
                return books

    def fill_book_cover(
        self, book_id: str, cover_url: str, session: Optional[Session] = None
    ) -> bool:
        """Set a book's cover only if it has none. Returns True if written."""

        def _fill(s: Session) -> bool:
            stmt = (
                update(Book)
                .where(Book.id == book_id)
                .where(or_(Book.cover_url.is_(None), Book.cover_url == ""))
                .values(cover_url=cover_url)
            )
            return s.execute(stmt).rowcount > 0

        if session:
            return _fill(session)
        else:
            with self.get_session() as s:
                return _fill(s)

    # ========================================================================
    # User Book Operations
    # ========================================================================

    def upsert_user_book(
        self, data: UserBookCreate, session: Optional[Session] = None
    ) -> UserBook:
        """Insert a shelf entry, or update the one that already holds the book."""

        def _upsert(s: Session) -> UserBook:
            existing = s.execute(
                select(UserBook).where(UserBook.book_id == data.book_id)
            ).scalar_one_or_none()

            values = {
                field: _to_db_value(value)
                for field, value in data.model_dump(exclude_unset=True).items()
                if field != "book_id"
            }

            if existing is None:
                existing = UserBook(book_id=data.book_id, **values)
                s.add(existing)
            else:
                for field, value in values.items():
                    setattr(existing, field, value)

            s.flush()
            s.refresh(existing, attribute_names=["book"])
            return existing

        if session:
            return _upsert(session)
        else:
            with self.get_session() as s:
                user_book = _upsert(s)
                s.expunge(user_book)
                return user_book

    def get_user_book(
        self, user_book_id: str, session: Optional[Session] = None
    ) -> Optional[UserBook]:
        """Get a shelf entry by ID, with its book loaded."""

        def _get(s: Session) -> Optional[UserBook]:
            stmt = (
                select(UserBook)
                .options(selectinload(UserBook.book))
                .where(UserBook.id == user_book_id)
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                user_book = _get(s)
                if user_book:
                    s.expunge(user_book)
                return user_book

    def get_user_book_by_book(
        self, book_id: str, session: Optional[Session] = None
    ) -> Optional[UserBook]:
        """Get the shelf entry for a book, if any."""

        def _get(s: Session) -> Optional[UserBook]:
            stmt = (
                select(UserBook)
                .options(selectinload(UserBook.book))
                .where(UserBook.book_id == book_id)
            )
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                user_book = _get(s)
                if user_book:
                    s.expunge(user_book)
                return user_book

    def list_user_books(
        self,
        status: Optional[Union[str, list[str]]] = None,
        session: Optional[Session] = None,
    ) -> list[UserBook]:
        """List shelf entries, newest first, optionally filtered by status."""

        def _list(s: Session) -> list[UserBook]:
            stmt = select(UserBook).options(selectinload(UserBook.book))
            if isinstance(status, str):
                stmt = stmt.where(UserBook.status == status)
            elif status:
                stmt = stmt.where(UserBook.status.in_(status))
            stmt = stmt.order_by(UserBook.added_at.desc())
            return list(s.execute(stmt).scalars().all())

        if session:
            return _list(session)
        else:
            with self.get_session() as s:
                user_books = _list(s)
                for ub in user_books:
                    s.expunge(ub)
                return user_books

    def list_finished_user_books(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> list[UserBook]:
        """List finished shelf entries whose finish date is within the range.

        Both bounds are inclusive YYYY-MM-DD strings.
        """

        def _list(s: Session) -> list[UserBook]:
            stmt = (
                select(UserBook)
                .options(selectinload(UserBook.book))
                .where(UserBook.status == "finished")
            )
            if start_date:
                stmt = stmt.where(UserBook.finish_date >= start_date)
            if end_date:
                stmt = stmt.where(UserBook.finish_date <= end_date)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _list(session)
        else:
            with self.get_session() as s:
                user_books = _list(s)
                for ub in user_books:
                    s.expunge(ub)
                return user_books

    def update_user_book(
        self, user_book_id: str, updates: UserBookUpdate, session: Optional[Session] = None
    ) -> Optional[UserBook]:
        """Update a shelf entry. Only fields explicitly set are written."""

        def _update(s: Session) -> Optional[UserBook]:
            user_book = s.get(UserBook, user_book_id)
            if not user_book:
                return None

            for field, value in updates.model_dump(exclude_unset=True).items():
                setattr(user_book, field, _to_db_value(value))

            s.flush()
            s.refresh(user_book, attribute_names=["book"])
            return user_book

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                user_book = _update(s)
                if user_book:
                    s.expunge(user_book)
                return user_book

    def delete_user_book(self, user_book_id: str, session: Optional[Session] = None) -> bool:
        """Delete a shelf entry and its reading sessions."""

        def _delete(s: Session) -> bool:
            user_book = s.get(UserBook, user_book_id)
            if not user_book:
                return False
            s.delete(user_book)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    # ========================================================================
    # Reading Session Operations
    # ========================================================================

    def create_reading_session(
        self, data: ReadingSessionCreate, session: Optional[Session] = None
    ) -> ReadingSession:
        """Create a new reading session."""

        def _create(s: Session) -> ReadingSession:
            reading_session = ReadingSession(
                user_book_id=data.user_book_id,
                date=data.date.isoformat(),
                duration_seconds=data.duration_seconds,
                pages_read=data.pages_read,
                start_page=data.start_page,
                end_page=data.end_page,
                started_at=data.started_at.isoformat() if data.started_at else None,
                ended_at=data.ended_at.isoformat() if data.ended_at else None,
            )
            s.add(reading_session)
            s.flush()
            return reading_session

        if session:
            return _create(session)
        else:
            with self.get_session() as s:
                reading_session = _create(s)
                s.expunge(reading_session)
                return reading_session

    def get_reading_session(
        self, session_id: str, session: Optional[Session] = None
    ) -> Optional[ReadingSession]:
        """Get a reading session by ID."""

        def _get(s: Session) -> Optional[ReadingSession]:
            return s.get(ReadingSession, session_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                reading_session = _get(s)
                if reading_session:
                    s.expunge(reading_session)
                return reading_session

    def list_reading_sessions(
        self,
        user_book_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> list[ReadingSession]:
        """List reading sessions ordered by date.

        Args:
            user_book_id: Only sessions for this shelf entry
            start_date: Inclusive lower bound (YYYY-MM-DD)
            end_date: Inclusive upper bound (YYYY-MM-DD)
            descending: Newest first when True
            limit: Maximum number of sessions to return
        """

        def _list(s: Session) -> list[ReadingSession]:
            stmt = select(ReadingSession)
            if user_book_id:
                stmt = stmt.where(ReadingSession.user_book_id == user_book_id)
            if start_date:
                stmt = stmt.where(ReadingSession.date >= start_date)
            if end_date:
                stmt = stmt.where(ReadingSession.date <= end_date)
            if descending:
                stmt = stmt.order_by(ReadingSession.date.desc(), ReadingSession.created_at.desc())
            else:
                stmt = stmt.order_by(ReadingSession.date, ReadingSession.created_at)
            if limit:
                stmt = stmt.limit(limit)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _list(session)
        else:
            with self.get_session() as s:
                sessions = _list(s)
                for rs in sessions:
                    s.expunge(rs)
                return sessions

    def update_reading_session(
        self,
        session_id: str,
        updates: ReadingSessionUpdate,
        session: Optional[Session] = None,
    ) -> Optional[ReadingSession]:
        """Update a reading session."""

        def _update(s: Session) -> Optional[ReadingSession]:
            reading_session = s.get(ReadingSession, session_id)
            if not reading_session:
                return None

            for field, value in updates.model_dump(exclude_unset=True).items():
                setattr(reading_session, field, _to_db_value(value))

            s.flush()
            return reading_session

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                reading_session = _update(s)
                if reading_session:
                    s.expunge(reading_session)
                return reading_session

    def delete_reading_session(self, session_id: str, session: Optional[Session] = None) -> bool:
        """Delete a reading session."""

        def _delete(s: Session) -> bool:
            reading_session = s.get(ReadingSession, session_id)
            if not reading_session:
                return False
            s.delete(reading_session)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    def list_session_dates(self, session: Optional[Session] = None) -> list[str]:
        """All distinct dates that have at least one reading session."""

        def _list(s: Session) -> list[str]:
            stmt = select(ReadingSession.date).distinct().order_by(ReadingSession.date)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _list(session)
        else:
            with self.get_session() as s:
                return _list(s)

    # ========================================================================
    # Profile Operations
    # ========================================================================

    def get_profile(
        self, default_goal: int = 50, session: Optional[Session] = None
    ) -> Profile:
        """Get the profile, creating it on first read."""

        def _get(s: Session) -> Profile:
            profile = s.get(Profile, DEFAULT_PROFILE_ID)
            if profile is None:
                profile = Profile(id=DEFAULT_PROFILE_ID, yearly_goal=default_goal)
                s.add(profile)
                s.flush()
            return profile

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                profile = _get(s)
                s.expunge(profile)
                return profile

    def update_profile(
        self, updates: ProfileUpdate, session: Optional[Session] = None
    ) -> Profile:
        """Update the profile."""

        def _update(s: Session) -> Profile:
            profile = self.get_profile(session=s)
            for field, value in updates.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(profile, field, value)
            s.flush()
            return profile

        if session:
            return _update(session)
        else:
            with self.get_session() as s:
                profile = _update(s)
                s.expunge(profile)
                return profile

    # ========================================================================
    # Yearly Goal Operations
    # ========================================================================

    def get_goal_overrides(self, session: Optional[Session] = None) -> dict[int, int]:
        """Per-year goal overrides as {year: goal}."""

        def _get(s: Session) -> dict[int, int]:
            rows = s.execute(select(YearlyGoal)).scalars().all()
            return {row.year: row.goal for row in rows}

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                return _get(s)

    def set_goal_override(self, year: int, goal: int, session: Optional[Session] = None) -> None:
        """Set the goal for a specific year."""

        def _set(s: Session) -> None:
            row = s.get(YearlyGoal, year)
            if row is None:
                s.add(YearlyGoal(year=year, goal=goal))
            else:
                row.goal = goal
            s.flush()

        if session:
            _set(session)
        else:
            with self.get_session() as s:
                _set(s)

    def delete_goal_override(self, year: int, session: Optional[Session] = None) -> bool:
        """Remove a year's goal override."""

        def _delete(s: Session) -> bool:
            row = s.get(YearlyGoal, year)
            if row is None:
                return False
            s.delete(row)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
