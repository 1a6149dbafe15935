"""API module for external book metadata services.

Provides clients for book metadata lookup from Open Library and Google Books.
"""

from .details import BookDetailsService
from .googlebooks import BookDetails, GoogleBooksClient
from .openlibrary import BookResult, CommunityRating, OpenLibraryClient

__all__ = [
    "BookDetailsService",
    "BookDetails",
    "GoogleBooksClient",
    "BookResult",
    "CommunityRating",
    "OpenLibraryClient",
]
