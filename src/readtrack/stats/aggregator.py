"""Reading statistics calculations.

Pure functions over plain session and finished-book records. Nothing here
touches the database; `service.StatsService` loads the records and calls
`compute_statistics`.

All dates are local calendar days as YYYY-MM-DD strings.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from ..utils import parse_date, round_half_up

TOP_N = 6
MIN_RECORD_SECONDS = 60
MONTH_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


@dataclass
class SessionRecord:
    """A reading session reduced to what statistics need."""

    date: str
    duration_seconds: int = 0
    pages_read: int = 0
    book_title: str = ""


@dataclass
class FinishedBookRecord:
    """A finished book reduced to what statistics need."""

    finish_date: Optional[str]
    author: Optional[str] = None
    genres: list[str] = field(default_factory=list)
    rating: Optional[float] = None
    start_date: Optional[str] = None
    total_pages: Optional[int] = None
    title: str = ""


@dataclass
class PeriodCount:
    """Books finished in one bucket (a month name or a year)."""

    label: str
    books: int


@dataclass
class PaceRecord:
    title: str
    days: int


@dataclass
class ReadingPace:
    """Days from start to finish across finished books."""

    average_days: int = 0
    quickest: Optional[PaceRecord] = None
    longest: Optional[PaceRecord] = None
    books_measured: int = 0


@dataclass
class SessionHighlight:
    title: str
    date: str
    duration_seconds: int


@dataclass
class GoalProgress:
    finished: int
    goal: int
    percent: int
    completed: bool


@dataclass
class ReadingStatistics:
    """Everything shown on the statistics screen."""

    books_finished: int = 0
    total_seconds: int = 0
    total_pages: int = 0
    average_pages_per_day: int = 0
    streak: int = 0
    genres: list[tuple[str, int]] = field(default_factory=list)
    authors: list[tuple[str, int]] = field(default_factory=list)
    ratings: list[tuple[float, int]] = field(default_factory=list)
    books_per_period: list[PeriodCount] = field(default_factory=list)
    pace: ReadingPace = field(default_factory=ReadingPace)
    longest_session: Optional[SessionHighlight] = None
    shortest_session: Optional[SessionHighlight] = None
    goal: Optional[GoalProgress] = None


# ============================================================================
# Distributions
# ============================================================================


def _top(counts: Counter, limit: int) -> list[tuple[str, int]]:
    # sorted() is stable, so equal counts keep first-seen order
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]


def genre_distribution(
    books: Iterable[FinishedBookRecord], limit: int = TOP_N
) -> list[tuple[str, int]]:
    """Finished books per genre, most common first.

    A book counts once toward each of its genres.
    """
    counts: Counter = Counter()
    for book in books:
        for genre in book.genres or []:
            counts[genre] += 1
    return _top(counts, limit)


def author_distribution(
    books: Iterable[FinishedBookRecord], limit: int = TOP_N
) -> list[tuple[str, int]]:
    """Finished books per author, most common first."""
    counts: Counter = Counter()
    for book in books:
        if book.author:
            counts[book.author] += 1
    return _top(counts, limit)


def rating_distribution(books: Iterable[FinishedBookRecord]) -> list[tuple[float, int]]:
    """Finished books per rating (one decimal place), lowest rating first.

    Unrated books are left out.
    """
    counts: Counter = Counter()
    for book in books:
        if book.rating:
            counts[round_half_up(book.rating * 10) / 10] += 1
    return sorted(counts.items())


def books_per_month(books: Iterable[FinishedBookRecord]) -> list[PeriodCount]:
    """Twelve month buckets, zero-filled, keyed by finish month."""
    counts = [0] * 12
    for book in books:
        finished = parse_date(book.finish_date)
        if finished:
            counts[finished.month - 1] += 1
    return [PeriodCount(label=name, books=n) for name, n in zip(MONTH_NAMES, counts)]


def books_per_year(books: Iterable[FinishedBookRecord]) -> list[PeriodCount]:
    """One bucket per year that has a finished book, oldest first."""
    counts: Counter = Counter()
    for book in books:
        finished = parse_date(book.finish_date)
        if finished:
            counts[finished.year] += 1
    return [PeriodCount(label=str(year), books=counts[year]) for year in sorted(counts)]


# ============================================================================
# Pace and Sessions
# ============================================================================


def reading_pace(books: Iterable[FinishedBookRecord]) -> ReadingPace:
    """Average, quickest and longest days-to-finish.

    Only books with both a start and a finish date are measured. A finish
    date before the start date is a data error and is skipped.
    """
    measured: list[PaceRecord] = []
    for book in books:
        started = parse_date(book.start_date)
        finished = parse_date(book.finish_date)
        if not started or not finished:
            continue
        days = (finished - started).days
        if days < 0:
            continue
        measured.append(PaceRecord(title=book.title, days=days))

    if not measured:
        return ReadingPace()

    return ReadingPace(
        average_days=round_half_up(sum(p.days for p in measured) / len(measured)),
        quickest=min(measured, key=lambda p: p.days),
        longest=max(measured, key=lambda p: p.days),
        books_measured=len(measured),
    )


def session_records(
    sessions: Iterable[SessionRecord],
) -> tuple[Optional[SessionHighlight], Optional[SessionHighlight]]:
    """Longest and shortest session of at least a minute.

    Returns:
        (longest, shortest); both None when no session qualifies
    """
    eligible = [s for s in sessions if s.duration_seconds >= MIN_RECORD_SECONDS]
    if not eligible:
        return None, None

    def highlight(s: SessionRecord) -> SessionHighlight:
        return SessionHighlight(title=s.book_title, date=s.date, duration_seconds=s.duration_seconds)

    longest = max(eligible, key=lambda s: s.duration_seconds)
    shortest = min(eligible, key=lambda s: s.duration_seconds)
    return highlight(longest), highlight(shortest)


def reading_streak(session_dates: Iterable[str], today: date) -> int:
    """Consecutive days with a session, counting back from today.

    If nothing was read today the count starts from yesterday, so a streak
    is not broken until a whole day has been missed.
    """
    active = {d for d in (parse_date(s) for s in session_dates) if d}
    if not active:
        return 0

    day = today if today in active else today - timedelta(days=1)
    streak = 0
    while day in active:
        streak += 1
        day -= timedelta(days=1)
    return streak


def average_pages_per_day(sessions: Iterable[SessionRecord]) -> int:
    """Pages read divided by the number of distinct days with a session."""
    sessions = list(sessions)
    days = {s.date for s in sessions}
    if not days:
        return 0
    return round_half_up(sum(s.pages_read for s in sessions) / len(days))


def goal_progress(finished: int, goal: int) -> GoalProgress:
    """Progress toward a yearly goal, capped at 100%."""
    percent = min(100, round_half_up(finished / goal * 100)) if goal > 0 else 0
    return GoalProgress(
        finished=finished,
        goal=goal,
        percent=percent,
        completed=goal > 0 and finished >= goal,
    )


# ============================================================================
# Everything at once
# ============================================================================


def compute_statistics(
    sessions: list[SessionRecord],
    finished_books: list[FinishedBookRecord],
    today: date,
    yearly_goal: Optional[int] = None,
    group_by: Optional[str] = None,
    streak_dates: Optional[Iterable[str]] = None,
) -> ReadingStatistics:
    """Compute all statistics for one period.

    Args:
        sessions: Sessions within the period
        finished_books: Books finished within the period
        today: The current local day
        yearly_goal: Goal to measure progress against (omitted when None)
        group_by: "month" for twelve month buckets, "year" for per-year
                  buckets, None for no buckets
        streak_dates: Dates from the whole session history. The streak
                      ignores the period; defaults to the dates of `sessions`.
    """
    if group_by == "month":
        per_period = books_per_month(finished_books)
    elif group_by == "year":
        per_period = books_per_year(finished_books)
    else:
        per_period = []

    longest, shortest = session_records(sessions)
    if streak_dates is None:
        streak_dates = [s.date for s in sessions]

    return ReadingStatistics(
        books_finished=len(finished_books),
        total_seconds=sum(s.duration_seconds for s in sessions),
        total_pages=sum(s.pages_read for s in sessions),
        average_pages_per_day=average_pages_per_day(sessions),
        streak=reading_streak(streak_dates, today),
        genres=genre_distribution(finished_books),
        authors=author_distribution(finished_books),
        ratings=rating_distribution(finished_books),
        books_per_period=per_period,
        pace=reading_pace(finished_books),
        longest_session=longest,
        shortest_session=shortest,
        goal=goal_progress(len(finished_books), yearly_goal) if yearly_goal else None,
    )
