"""Formatting and small calculation helpers shared across readtrack."""

import math
from datetime import date, datetime
from typing import Optional, Union


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves rounded up (17.5 -> 18).

    Example:
        >>> round_half_up(17.5)
        18
        >>> round_half_up(2.4)
        2
    """
    return int(math.floor(value + 0.5))


def format_duration(seconds: int) -> str:
    """
    Format a duration for a running timer display.

    Args:
        seconds: Duration in seconds

    Returns:
        "1h 5m", "5m 30s" or "30s" depending on magnitude

    Example:
        >>> format_duration(3930)
        '1h 5m'
        >>> format_duration(125)
        '2m 5s'
    """
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    if h > 0:
        return f"{h}h {m}m"
    if m > 0:
        return f"{m}m {s}s"
    return f"{s}s"


def format_duration_short(seconds: int) -> str:
    """
    Format a duration without seconds, for totals.

    Example:
        >>> format_duration_short(3930)
        '1h 5m'
        >>> format_duration_short(59)
        '0m'
    """
    h = seconds // 3600
    m = (seconds % 3600) // 60
    if h > 0:
        return f"{h}h {m}m"
    return f"{m}m"


def progress_percent(current: int, total: Optional[int]) -> int:
    """
    Percentage of a book read, capped at 100.

    Returns 0 when the total page count is unknown or zero.

    Example:
        >>> progress_percent(50, 200)
        25
        >>> progress_percent(50, None)
        0
    """
    if not total:
        return 0
    return min(100, round_half_up(current / total * 100))


def snap_rating(value: Union[int, float]) -> float:
    """
    Round a rating to the nearest quarter star.

    Example:
        >>> snap_rating(3.6)
        3.5
        >>> snap_rating(4.2)
        4.25
    """
    return round_half_up(value * 4) / 4


def local_date_str(moment: Optional[Union[date, datetime]] = None) -> str:
    """
    Serialize a calendar day as local YYYY-MM-DD.

    Datetimes are converted to local time before the date is taken, so a
    session recorded late in the evening is not shifted to the next UTC day.
    """
    if moment is None:
        return date.today().isoformat()
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return moment.date().isoformat()
    return moment.isoformat()


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string, returning None for empty or invalid input."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
