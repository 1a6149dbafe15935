"""Pytest configuration and shared fixtures.

This module provides fixtures for testing readtrack, including temporary
databases, a fake clock for the timer and sample shelf data.
"""

import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Generator

import pytest

from readtrack.config import reset_config
from readtrack.db.models import Book, UserBook
from readtrack.db.schemas import BookCreate, BookStatus, UserBookCreate
from readtrack.db.sqlite import Database, reset_db


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Set environment variable for test database
    os.environ["READTRACK_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    reset_db()
    reset_config()
    if "READTRACK_DB_PATH" in os.environ:
        del os.environ["READTRACK_DB_PATH"]


@pytest.fixture
def memory_db() -> Database:
    """In-memory database for tests that do not need a file."""
    database = Database(":memory:")
    database.create_tables()
    return database


# ============================================================================
# Timer Fixtures
# ============================================================================


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed instant."""
    return FakeClock()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(
        title="The Left Hand of Darkness",
        author="Ursula K. Le Guin",
        total_pages=304,
        genres=["Science Fiction", "Classics"],
        published_year=1969,
        isbn="9780441478125",
        ol_id="OL59863W",
    )


@pytest.fixture
def created_book(db: Database, sample_book_data: BookCreate) -> Book:
    """Create and return a book in the database."""
    return db.create_book(sample_book_data)


@pytest.fixture
def reading_book(db: Database, created_book: Book) -> UserBook:
    """The sample book on the shelf as currently reading, on page 10."""
    return db.upsert_user_book(
        UserBookCreate(
            book_id=created_book.id,
            status=BookStatus.READING,
            current_page=10,
            start_date=date(2025, 3, 1),
        )
    )


@pytest.fixture
def shelf(db: Database) -> list[UserBook]:
    """Several shelf entries with different statuses."""
    entries = [
        ("Dune", "Frank Herbert", BookStatus.FINISHED, 5.0, "2025-02-10", ["Science Fiction"]),
        ("Emma", "Jane Austen", BookStatus.READING, None, None, ["Classics"]),
        ("Persuasion", "Jane Austen", BookStatus.WANT_TO_READ, None, None, ["Classics"]),
        ("Children of Dune", "Frank Herbert", BookStatus.FINISHED, 3.5, "2025-06-01", ["Science Fiction"]),
    ]
    user_books = []
    for title, author, status, rating, finished, genres in entries:
        book = db.create_book(BookCreate(title=title, author=author, genres=genres, total_pages=200))
        user_books.append(
            db.upsert_user_book(
                UserBookCreate(
                    book_id=book.id,
                    status=status,
                    rating=rating,
                    finish_date=finished,
                )
            )
        )
    return user_books


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from readtrack.cli import app
    return app
