"""SQLAlchemy ORM models for the local SQLite database.

Tables:
- books: Shared book metadata, upserted by Open Library work ID
- user_books: The user's shelf entry for a book (status, progress, rating)
- reading_sessions: Individual timed or manually logged reading sessions
- profiles: Singleton user profile with the canonical yearly goal
- yearly_goals: Sparse per-year goal overrides
"""

import json
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import BookStatus

DEFAULT_PROFILE_ID = "default"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> str:
    """Current UTC time as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


class Book(Base):
    """Book metadata shared by every shelf entry that references it."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    cover_url: Mapped[Optional[str]] = mapped_column(Text)
    total_pages: Mapped[Optional[int]] = mapped_column(Integer)
    genres: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    published_year: Mapped[Optional[int]] = mapped_column(Integer)
    isbn: Mapped[Optional[str]] = mapped_column(String(17), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Open Library work ID, the upsert key
    ol_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, index=True)

    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    user_book: Mapped[Optional["UserBook"]] = relationship(
        "UserBook", back_populates="book", cascade="all, delete-orphan", uselist=False
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', author='{self.author}')>"

    def get_genres(self) -> list[str]:
        """Get genres as list."""
        if self.genres:
            return json.loads(self.genres)
        return []

    def set_genres(self, genres: list[str]) -> None:
        """Set genres from list."""
        self.genres = json.dumps(genres) if genres else None


class UserBook(Base):
    """A book on the user's shelf."""

    __tablename__ = "user_books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    book_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), default=BookStatus.WANT_TO_READ.value, index=True
    )
    current_page: Mapped[int] = mapped_column(Integer, default=0)
    start_date: Mapped[Optional[str]] = mapped_column(String(10))  # YYYY-MM-DD
    finish_date: Mapped[Optional[str]] = mapped_column(String(10), index=True)
    rating: Mapped[Optional[float]] = mapped_column(Float)
    review: Mapped[Optional[str]] = mapped_column(Text)
    goodreads_id: Mapped[Optional[str]] = mapped_column(String(32))
    added_at: Mapped[str] = mapped_column(String(32), default=utc_now)

    book: Mapped["Book"] = relationship("Book", back_populates="user_book")
    reading_sessions: Mapped[list["ReadingSession"]] = relationship(
        "ReadingSession", back_populates="user_book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<UserBook(id={self.id}, book_id={self.book_id}, status={self.status})>"


class ReadingSession(Base):
    """A single reading session for a shelf entry."""

    __tablename__ = "reading_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_book_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    pages_read: Mapped[int] = mapped_column(Integer, default=0)
    start_page: Mapped[Optional[int]] = mapped_column(Integer)
    end_page: Mapped[Optional[int]] = mapped_column(Integer)
    started_at: Mapped[Optional[str]] = mapped_column(String(32))
    ended_at: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)

    user_book: Mapped["UserBook"] = relationship("UserBook", back_populates="reading_sessions")

    def __repr__(self) -> str:
        return f"<ReadingSession(id={self.id}, user_book_id={self.user_book_id}, date={self.date})>"


class Profile(Base):
    """The user's profile. There is exactly one row."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=DEFAULT_PROFILE_ID)
    username: Mapped[Optional[str]] = mapped_column(String(100))
    yearly_goal: Mapped[int] = mapped_column(Integer, default=50)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, yearly_goal={self.yearly_goal})>"


class YearlyGoal(Base):
    """Goal override for a specific year."""

    __tablename__ = "yearly_goals"

    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    goal: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<YearlyGoal(year={self.year}, goal={self.goal})>"
