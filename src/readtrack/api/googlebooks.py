"""Google Books API client.

Used for descriptions, ratings and covers of a known book, and for the
genre/author suggestions on the explore screen. Works without an API key;
set GOOGLE_BOOKS_API_KEY for a higher quota.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional

import requests

from ..errors import MetadataLookupError, RateLimitError
from .openlibrary import BookResult, strip_series

logger = logging.getLogger(__name__)

# A long trailing parenthetical, usually a series name without a number
LONG_PARENTHETICAL = re.compile(r"\s*\([^)]{20,}\)\s*$")


def clean_title(title: str) -> str:
    """Strip series information from the end of a title.

    Example:
        >>> clean_title("Leviathan Wakes (The Expanse, #1)")
        'Leviathan Wakes'
    """
    return LONG_PARENTHETICAL.sub("", strip_series(title)).strip()


@dataclass
class BookDetails:
    """Metadata for one book."""

    title: str
    author: str
    description: Optional[str] = None
    average_rating: Optional[float] = None
    ratings_count: Optional[int] = None
    page_count: Optional[int] = None
    published_date: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    cover_url: Optional[str] = None
    isbn: Optional[str] = None

    @property
    def published_year(self) -> Optional[int]:
        if self.published_date and self.published_date[:4].isdigit():
            return int(self.published_date[:4])
        return None

    def to_book_result(self) -> BookResult:
        """Convert to a search result that can be added to the library."""
        return BookResult(
            title=self.title,
            author=self.author,
            cover_url=self.cover_url,
            total_pages=self.page_count,
            published_year=self.published_year,
            genres=list(self.categories),
            isbn=self.isbn,
            description=self.description,
        )


def _https(url: Optional[str]) -> Optional[str]:
    return url.replace("http://", "https://") if url else None


def parse_volume(volume: dict) -> BookDetails:
    """Convert a Google Books volume to BookDetails."""
    info = volume.get("volumeInfo", {})

    identifiers = info.get("industryIdentifiers") or []
    isbn = None
    for kind in ("ISBN_13", "ISBN_10"):
        isbn = next((i.get("identifier") for i in identifiers if i.get("type") == kind), None)
        if isbn:
            break

    images = info.get("imageLinks") or {}
    authors = info.get("authors") or []

    return BookDetails(
        title=info.get("title", ""),
        author=authors[0] if authors else "Unknown Author",
        description=info.get("description"),
        average_rating=info.get("averageRating"),
        ratings_count=info.get("ratingsCount"),
        page_count=info.get("pageCount"),
        published_date=info.get("publishedDate"),
        categories=info.get("categories") or [],
        cover_url=_https(images.get("thumbnail")) or _https(images.get("smallThumbnail")),
        isbn=isbn,
    )


class GoogleBooksClient:
    """Client for the Google Books volumes API."""

    BASE_URL = "https://www.googleapis.com/books/v1"

    def __init__(self, api_key: Optional[str] = None, timeout: int = 10):
        """Initialize client.

        Args:
            api_key: Optional Google Books API key
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.timeout = timeout
        self._session = requests.Session()
        self._last_request_time = 0.0
        self._min_request_interval = 0.5

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _volumes(self, query: str, max_results: int, order_by: Optional[str] = None) -> list[dict]:
        """Query the volumes endpoint and return the raw items."""
        self._rate_limit()
        params = {"q": query, "maxResults": max_results}
        if order_by:
            params["orderBy"] = order_by
        if self.api_key:
            params["key"] = self.api_key

        try:
            response = self._session.get(
                f"{self.BASE_URL}/volumes", params=params, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            raise MetadataLookupError("Google Books request timed out")
        except requests.exceptions.HTTPError as e:
            if e.response.status_code == 429:
                raise RateLimitError("Rate limited by Google Books")
            raise MetadataLookupError(f"Google Books HTTP error: {e.response.status_code}")
        except requests.exceptions.RequestException as e:
            raise MetadataLookupError(f"Google Books request failed: {e}")
        except ValueError:
            raise MetadataLookupError("Google Books returned invalid JSON")

        return data.get("items") or []

    def fetch_book_details(self, title: str, author: str) -> Optional[BookDetails]:
        """Find the best match for a title and author.

        Tries a strict intitle/inauthor query first, then a plain text search.
        """
        clean = clean_title(title)

        items = self._volumes(f"intitle:{clean} inauthor:{author}", max_results=1)
        if not items:
            logger.debug("No strict Google Books match for %r, trying loose search", clean)
            items = self._volumes(f"{clean} {author}", max_results=1)

        return parse_volume(items[0]) if items else None

    def search(self, query: str, max_results: int = 10) -> list[BookDetails]:
        """Search volumes ordered by relevance."""
        items = self._volumes(query, max_results=max_results, order_by="relevance")
        return [parse_volume(item) for item in items]

    def search_by_genre(self, genre: str, max_results: int = 8) -> list[BookDetails]:
        return self.search(f"subject:{genre}", max_results)

    def search_by_author(self, author: str, max_results: int = 5) -> list[BookDetails]:
        return self.search(f"inauthor:{author}", max_results)
