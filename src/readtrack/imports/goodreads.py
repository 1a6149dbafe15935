"""Goodreads CSV importer.

Imports a Goodreads library export in three steps:

1. `parse_goodreads_csv` reads the CSV into `GoodreadsRow` objects.
2. `enrich_with_openlibrary` looks each book up on Open Library to attach
   a work ID, cover and genres.
3. `GoodreadsImporter.import_books` writes the books and shelf entries.
"""

import csv
import io
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from ..api.openlibrary import OpenLibraryClient
from ..db.schemas import BookCreate, BookStatus, UserBookCreate
from ..db.sqlite import Database, get_db
from ..errors import ImportFileError, MetadataLookupError, ReadTrackError
from .base import ImportResult

logger = logging.getLogger(__name__)

# Mapping from Goodreads shelf to BookStatus
SHELF_TO_STATUS = {
    "currently-reading": BookStatus.READING,
    "read": BookStatus.FINISHED,
    "to-read": BookStatus.WANT_TO_READ,
}

DATE_FORMATS = [
    "%Y/%m/%d",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%B %d, %Y",
]


@dataclass
class GoodreadsRow:
    """A row of a Goodreads export."""

    title: str
    author: str
    my_rating: float = 0.0
    date_read: Optional[str] = None
    shelves: str = ""
    num_pages: Optional[int] = None
    goodreads_id: str = ""


@dataclass
class ImportBook:
    """A Goodreads row ready to be written, possibly with Open Library data."""

    title: str
    author: str
    status: BookStatus = BookStatus.WANT_TO_READ
    rating: Optional[float] = None
    date_read: Optional[str] = None
    num_pages: Optional[int] = None
    goodreads_id: str = ""
    ol_id: Optional[str] = None
    cover_url: Optional[str] = None
    genres: list[str] = field(default_factory=list)


ProgressCallback = Callable[[int, int], None]


# ============================================================================
# Parsing
# ============================================================================


def _column(row: dict, *names: str) -> str:
    """First non-empty value among the given column names."""
    for name in names:
        value = row.get(name)
        if value:
            return value.strip()
    return ""


def _parse_float(value: str) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


def _parse_int(value: str) -> Optional[int]:
    try:
        number = int(value) if value else 0
    except ValueError:
        return None
    return number or None


def parse_date(value: str) -> Optional[str]:
    """Parse a Goodreads date into YYYY-MM-DD."""
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date().isoformat()
        except ValueError:
            continue
    logger.debug("Unrecognized Goodreads date: %r", value)
    return None


def map_status(shelf: str) -> BookStatus:
    """Goodreads shelf to status. Unknown shelves become want_to_read."""
    return SHELF_TO_STATUS.get(shelf.lower().strip(), BookStatus.WANT_TO_READ)


def parse_goodreads_csv(text: str) -> list[GoodreadsRow]:
    """Parse the text of a Goodreads export.

    Blank lines and rows without a title or author are skipped.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    rows = []

    for line_no, raw in enumerate(reader, start=2):
        title = _column(raw, "Title", "title")
        author = _column(raw, "Author", "author")
        if not title or not author:
            if any((v or "").strip() for v in raw.values() if isinstance(v, str)):
                logger.info("Skipping row %d: missing title or author", line_no)
            continue

        rows.append(
            GoodreadsRow(
                title=title,
                author=author,
                my_rating=_parse_float(_column(raw, "My Rating", "my_rating")),
                date_read=_column(raw, "Date Read", "date_read") or None,
                shelves=_column(raw, "Exclusive Shelf", "Bookshelves"),
                num_pages=_parse_int(_column(raw, "Number of Pages", "number_of_pages")),
                goodreads_id=_column(raw, "Book Id", "book_id"),
            )
        )

    return rows


def read_goodreads_file(file_path: Union[str, Path]) -> list[GoodreadsRow]:
    """Read and parse a Goodreads export file.

    Raises:
        ImportFileError: If the file is missing, not a CSV or unreadable
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise ImportFileError(f"File not found: {file_path}")
    if file_path.suffix.lower() != ".csv":
        raise ImportFileError("File must be a CSV file")

    try:
        text = file_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFileError(f"Error reading file: {e}") from e

    try:
        return parse_goodreads_csv(text)
    except csv.Error as e:
        raise ImportFileError(f"CSV parsing error: {e}") from e


def to_import_book(row: GoodreadsRow) -> ImportBook:
    return ImportBook(
        title=row.title,
        author=row.author,
        status=map_status(row.shelves),
        rating=row.my_rating if row.my_rating > 0 else None,
        date_read=parse_date(row.date_read) if row.date_read else None,
        num_pages=row.num_pages,
        goodreads_id=row.goodreads_id,
    )


# ============================================================================
# Enrichment
# ============================================================================


def enrich_with_openlibrary(
    rows: list[GoodreadsRow],
    client: Optional[OpenLibraryClient] = None,
    on_progress: Optional[ProgressCallback] = None,
    batch_size: int = 5,
    pause: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> list[ImportBook]:
    """Attach Open Library IDs, covers and genres to Goodreads rows.

    The first search hit for "title author" is used. A page count is only
    taken from Open Library when the row has none. Lookup failures leave
    the book as it came from Goodreads.

    Args:
        rows: Parsed Goodreads rows
        client: Open Library client
        on_progress: Called with (done, total) after each batch
        batch_size: Rows per batch
        pause: Seconds to wait between batches
        sleep: Sleep function (replaceable in tests)
    """
    client = client or OpenLibraryClient()
    books: list[ImportBook] = []
    total = len(rows)

    for start in range(0, total, batch_size):
        for row in rows[start:start + batch_size]:
            book = to_import_book(row)
            try:
                matches = client.search(f"{row.title} {row.author}", limit=3)
            except MetadataLookupError as e:
                logger.warning("Open Library lookup failed for %r: %s", row.title, e)
                matches = []

            if matches:
                match = matches[0]
                book.ol_id = match.ol_id
                book.cover_url = match.cover_url
                book.genres = list(match.genres)
                if not book.num_pages and match.total_pages:
                    book.num_pages = match.total_pages

            books.append(book)

        if on_progress:
            on_progress(min(start + batch_size, total), total)
        if start + batch_size < total and pause:
            sleep(pause)

    return books


# ============================================================================
# Import
# ============================================================================


class GoodreadsImporter:
    """Writes Goodreads books to the library."""

    source_name = "goodreads"

    def __init__(self, db: Optional[Database] = None):
        """Initialize importer.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def _import_book(self, book: ImportBook) -> None:
        """Write one book and its shelf entry in a single transaction."""
        payload = BookCreate(
            title=book.title,
            author=book.author,
            cover_url=book.cover_url,
            total_pages=book.num_pages,
            genres=book.genres,
            ol_id=book.ol_id,
        )

        with self.db.get_session() as s:
            if book.ol_id:
                db_book = self.db.upsert_book(payload, session=s)
            else:
                db_book = self.db.find_book_by_title_author(book.title, book.author, session=s)
                if db_book is None:
                    db_book = self.db.create_book(payload, session=s)

            self.db.upsert_user_book(
                UserBookCreate(
                    book_id=db_book.id,
                    status=book.status,
                    rating=book.rating,
                    finish_date=book.date_read,
                    goodreads_id=book.goodreads_id or None,
                ),
                session=s,
            )

    def import_books(
        self,
        books: list[ImportBook],
        on_progress: Optional[ProgressCallback] = None,
        source_file: Optional[Path] = None,
    ) -> ImportResult:
        """Import books. Each book succeeds or fails on its own.

        Returns:
            ImportResult counting only the books that were written
        """
        result = ImportResult(
            source_file=source_file,
            source_type=self.source_name,
            total_records=len(books),
        )

        for i, book in enumerate(books, start=1):
            try:
                self._import_book(book)
                result.imported += 1
            except (ReadTrackError, ValueError) as e:
                result.skipped += 1
                result.error_messages.append(f"{book.title}: {e}")
                logger.info("Skipped %r: %s", book.title, e)

            if on_progress:
                on_progress(i, len(books))

        logger.info("Goodreads import finished. %s", result.summary)
        return result
