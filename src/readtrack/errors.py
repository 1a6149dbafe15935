"""Exception hierarchy for readtrack."""

from typing import Any, Optional


class ReadTrackError(Exception):
    """Base exception for all readtrack errors."""

    pass


class NotFoundError(ReadTrackError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class PersistenceError(ReadTrackError):
    """Raised when a database write fails."""

    pass


class SessionSaveError(PersistenceError):
    """Raised when a timed reading session could not be saved.

    The pending stop request is kept so the caller can retry the save
    without losing the recorded duration.
    """

    def __init__(self, message: str, request: Optional[Any] = None):
        super().__init__(message)
        self.request = request


class TimerStateError(ReadTrackError):
    """Raised on an invalid timer transition."""

    pass


class MetadataLookupError(ReadTrackError):
    """Raised when a book metadata service request fails."""

    pass


class RateLimitError(MetadataLookupError):
    """Raised when rate limited by a metadata service."""

    pass


class RecommendationError(ReadTrackError):
    """Raised when the recommendation service fails or returns bad output."""

    pass


class ImportFileError(ReadTrackError):
    """Raised when an import file cannot be read."""

    pass
