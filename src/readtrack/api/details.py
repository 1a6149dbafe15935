"""Combined book detail lookup.

Google Books supplies the description, cover and usually a rating. When it
has no rating, the Open Library community rating is used instead. When
Google Books finds nothing at all, a minimal record carrying only the Open
Library rating is returned.

Lookups never raise: a failing service is logged and treated as having no
data.
"""

import logging
import time
from dataclasses import replace
from typing import Optional

from ..errors import MetadataLookupError
from .googlebooks import BookDetails, GoogleBooksClient
from .openlibrary import CommunityRating, OpenLibraryClient

logger = logging.getLogger(__name__)


class BookDetailsService:
    """Looks up and caches book details."""

    def __init__(
        self,
        google: Optional[GoogleBooksClient] = None,
        openlibrary: Optional[OpenLibraryClient] = None,
        cache_ttl: int = 3600,
    ):
        """Initialize the service.

        Args:
            google: Google Books client
            openlibrary: Open Library client
            cache_ttl: Seconds a lookup result is reused, 0 disables caching
        """
        self.google = google or GoogleBooksClient()
        self.openlibrary = openlibrary or OpenLibraryClient()
        self.cache_ttl = cache_ttl
        self._cache: dict[tuple[str, str], tuple[float, Optional[BookDetails]]] = {}

    def _google_details(self, title: str, author: str) -> Optional[BookDetails]:
        try:
            return self.google.fetch_book_details(title, author)
        except MetadataLookupError as e:
            logger.warning("Google Books lookup failed for %r: %s", title, e)
            return None

    def _openlibrary_rating(self, title: str, author: str) -> Optional[CommunityRating]:
        try:
            return self.openlibrary.fetch_rating(title, author)
        except MetadataLookupError as e:
            logger.warning("Open Library rating lookup failed for %r: %s", title, e)
            return None

    def get_details(self, title: str, author: str = "") -> Optional[BookDetails]:
        """Details for a book, or None if nothing is known about it."""
        if not title:
            return None

        key = (title.lower(), author.lower())
        cached = self._cache.get(key)
        if cached and time.monotonic() - cached[0] < self.cache_ttl:
            return cached[1]

        details = self._google_details(title, author)

        if details is None or not details.average_rating:
            rating = self._openlibrary_rating(title, author)
            if rating:
                if details is None:
                    details = BookDetails(title=title, author=author)
                details = replace(
                    details, average_rating=rating.average, ratings_count=rating.count
                )

        if details is not None and self.cache_ttl > 0:
            self._cache[key] = (time.monotonic(), details)
        return details

    def clear_cache(self) -> None:
        self._cache.clear()
