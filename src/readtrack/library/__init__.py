"""Library (shelf) management."""

from .service import BookDetail, LibraryService, SORT_KEYS

__all__ = ["BookDetail", "LibraryService", "SORT_KEYS"]
