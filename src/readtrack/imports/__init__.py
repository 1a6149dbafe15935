"""Book import from Goodreads exports."""

from .base import ImportResult
from .goodreads import (
    GoodreadsImporter,
    GoodreadsRow,
    ImportBook,
    enrich_with_openlibrary,
    map_status,
    parse_goodreads_csv,
    read_goodreads_file,
)

__all__ = [
    "ImportResult",
    "GoodreadsImporter",
    "GoodreadsRow",
    "ImportBook",
    "enrich_with_openlibrary",
    "map_status",
    "parse_goodreads_csv",
    "read_goodreads_file",
]
