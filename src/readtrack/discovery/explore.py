"""Explore: suggestions based on favourite genres and authors."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Union

from ..api.googlebooks import BookDetails, GoogleBooksClient
from ..db.models import UserBook
from ..db.schemas import BookStatus
from ..db.sqlite import Database, get_db
from ..errors import MetadataLookupError
from ..library.service import LibraryService
from .recommendations import Recommendation

logger = logging.getLogger(__name__)

TOP_COUNT = 3
GENRE_FETCH = 10
GENRE_SHOWN = 6
AUTHOR_FETCH = 8
AUTHOR_SHOWN = 4


@dataclass
class ExploreResult:
    """Favourites and the suggestions drawn from them."""

    top_genres: list[str] = field(default_factory=list)
    top_authors: list[str] = field(default_factory=list)
    genre_suggestions: list[BookDetails] = field(default_factory=list)
    author_suggestions: list[BookDetails] = field(default_factory=list)


def top_genres_and_authors(
    user_books: list[UserBook], limit: int = TOP_COUNT
) -> tuple[list[str], list[str]]:
    """Most common genres and authors among finished and in-progress books."""
    genres: Counter = Counter()
    authors: Counter = Counter()

    for ub in user_books:
        if ub.status not in (BookStatus.FINISHED.value, BookStatus.READING.value) or not ub.book:
            continue
        for genre in ub.book.get_genres():
            genres[genre] += 1
        if ub.book.author:
            authors[ub.book.author] += 1

    def top(counts: Counter) -> list[str]:
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return [name for name, _ in ranked[:limit]]

    return top(genres), top(authors)


class ExploreService:
    """Finds books similar to what the reader already likes."""

    def __init__(
        self,
        db: Optional[Database] = None,
        google: Optional[GoogleBooksClient] = None,
        library: Optional[LibraryService] = None,
    ):
        self.db = db or get_db()
        self.google = google or GoogleBooksClient()
        self.library = library or LibraryService(self.db)

    def _search(self, kind: str, term: str, max_results: int) -> list[BookDetails]:
        try:
            if kind == "genre":
                return self.google.search_by_genre(term, max_results)
            return self.google.search_by_author(term, max_results)
        except MetadataLookupError as e:
            logger.warning("Explore %s search for %r failed: %s", kind, term, e)
            return []

    def explore(self) -> ExploreResult:
        """Suggestions for the top genre and top author.

        Books whose title is already in the library (ignoring case) are
        left out.
        """
        user_books = self.db.list_user_books()
        owned = {ub.book.title.lower() for ub in user_books if ub.book}
        genres, authors = top_genres_and_authors(user_books)

        def unowned(books: list[BookDetails], limit: int) -> list[BookDetails]:
            return [b for b in books if b.title.lower() not in owned][:limit]

        result = ExploreResult(top_genres=genres, top_authors=authors)
        if genres:
            result.genre_suggestions = unowned(
                self._search("genre", genres[0], GENRE_FETCH), GENRE_SHOWN
            )
        if authors:
            result.author_suggestions = unowned(
                self._search("author", authors[0], AUTHOR_FETCH), AUTHOR_SHOWN
            )
        return result

    def add_to_tbr(self, book: Union[BookDetails, Recommendation]) -> UserBook:
        """Put a suggested or recommended book on the to-read shelf."""
        if isinstance(book, BookDetails):
            result = book.to_book_result()
        else:
            result = BookDetails(
                title=book.title,
                author=book.author,
                description=book.description or None,
            ).to_book_result()
        return self.library.add_from_search(result, BookStatus.WANT_TO_READ)
