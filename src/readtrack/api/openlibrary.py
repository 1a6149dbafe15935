"""Open Library API client for book metadata lookup.

Open Library (openlibrary.org) provides free book metadata including:
- Search by title/author
- Cover images
- Community ratings

No API key required.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional

import requests

from ..db.schemas import BookCreate
from ..errors import MetadataLookupError, RateLimitError
from ..utils import round_half_up

logger = logging.getLogger(__name__)

SEARCH_FIELDS = "key,title,author_name,cover_i,number_of_pages_median,first_publish_year,isbn,subject"
RATING_FIELDS = "key,ratings_average,ratings_count"
MAX_GENRES = 5

# A trailing "(Series Name, #1)"
SERIES_SUFFIX = re.compile(r"\s*\([^)]*#\d+[^)]*\)\s*$")


def strip_series(title: str) -> str:
    """Remove a trailing series marker such as " (The Expanse, #1)"."""
    return SERIES_SUFFIX.sub("", title).strip()


@dataclass
class BookResult:
    """A book found by a metadata search."""

    title: str
    author: str
    ol_id: Optional[str] = None  # Open Library work ID (e.g., OL45883W)
    cover_url: Optional[str] = None
    total_pages: Optional[int] = None
    published_year: Optional[int] = None
    genres: list[str] = field(default_factory=list)
    isbn: Optional[str] = None
    description: Optional[str] = None

    def to_book_create(self) -> BookCreate:
        """Convert to BookCreate schema."""
        return BookCreate(
            title=self.title,
            author=self.author,
            ol_id=self.ol_id,
            cover_url=self.cover_url,
            total_pages=self.total_pages,
            published_year=self.published_year,
            genres=self.genres,
            isbn=self.isbn,
            description=self.description,
        )


@dataclass
class CommunityRating:
    """Average community rating for a book."""

    average: float
    count: int


class OpenLibraryClient:
    """Client for Open Library API."""

    BASE_URL = "https://openlibrary.org"
    COVERS_URL = "https://covers.openlibrary.org"

    def __init__(self, timeout: int = 10):
        """Initialize client.

        Args:
            timeout: Request timeout in seconds
        """
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": "readtrack/0.1 (personal reading tracker)"
        })
        self._last_request_time = 0.0
        self._min_request_interval = 0.5  # Be nice to free API

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _get(self, url: str, params: Optional[dict] = None) -> dict:
        """Make GET request with error handling."""
        self._rate_limit()
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout:
            raise MetadataLookupError("Open Library request timed out")
        except requests.exceptions.HTTPError as e:
            if e.response.status_code == 429:
                raise RateLimitError("Rate limited by Open Library")
            raise MetadataLookupError(f"Open Library HTTP error: {e.response.status_code}")
        except requests.exceptions.RequestException as e:
            raise MetadataLookupError(f"Open Library request failed: {e}")
        except ValueError:
            raise MetadataLookupError("Open Library returned invalid JSON")

    def cover_url(self, cover_id: int, size: str = "M") -> str:
        """Cover image URL for a cover ID. Size is S, M or L."""
        return f"{self.COVERS_URL}/b/id/{cover_id}-{size}.jpg"

    # ========================================================================
    # Search Operations
    # ========================================================================

    def search(self, query: str, limit: int = 10) -> list[BookResult]:
        """Search for books.

        Args:
            query: Free-text search (title, author or both)
            limit: Maximum results to return

        Returns:
            List of BookResult objects
        """
        params = {"q": query, "limit": limit, "fields": SEARCH_FIELDS}
        data = self._get(f"{self.BASE_URL}/search.json", params)

        results = []
        for doc in data.get("docs", []):
            result = self._doc_to_result(doc)
            if result:
                results.append(result)

        logger.debug("Open Library search %r returned %d results", query, len(results))
        return results

    def _doc_to_result(self, doc: dict) -> Optional[BookResult]:
        """Convert search document to BookResult."""
        title = doc.get("title")
        if not title:
            return None

        authors = doc.get("author_name") or []
        isbns = doc.get("isbn") or []

        # Open Library ID from key (e.g., "/works/OL45883W")
        key = doc.get("key", "")
        ol_id = key.replace("/works/", "") if key else None

        cover_id = doc.get("cover_i")

        return BookResult(
            title=title,
            author=authors[0] if authors else "Unknown Author",
            ol_id=ol_id,
            cover_url=self.cover_url(cover_id) if cover_id else None,
            total_pages=doc.get("number_of_pages_median"),
            published_year=doc.get("first_publish_year"),
            genres=(doc.get("subject") or [])[:MAX_GENRES],
            isbn=isbns[0] if isbns else None,
        )

    # ========================================================================
    # Ratings
    # ========================================================================

    def fetch_rating(self, title: str, author: str) -> Optional[CommunityRating]:
        """Look up the community rating of a book.

        Returns:
            The average rating (rounded to 2 places) and count, or None if
            the best match has no ratings
        """
        params = {
            "title": strip_series(title),
            "author": author,
            "limit": 1,
            "fields": RATING_FIELDS,
        }
        data = self._get(f"{self.BASE_URL}/search.json", params)

        docs = data.get("docs") or []
        if not docs:
            return None

        average = docs[0].get("ratings_average")
        if not average:
            return None

        return CommunityRating(
            average=round_half_up(average * 100) / 100,
            count=docs[0].get("ratings_count") or 0,
        )
