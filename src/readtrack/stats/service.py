"""Load reading data for a period and compute its statistics."""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from ..db.models import ReadingSession, UserBook
from ..db.sqlite import Database, get_db
from ..profile.manager import ProfileManager
from .aggregator import (
    FinishedBookRecord,
    GoalProgress,
    ReadingStatistics,
    SessionRecord,
    compute_statistics,
    goal_progress,
)

logger = logging.getLogger(__name__)


class Period(str, Enum):
    """Statistics period."""

    MONTHLY = "monthly"
    YEARLY = "yearly"
    ALL_TIME = "all_time"


@dataclass
class DateRange:
    start: str
    end: str


@dataclass
class StatsReport:
    """Statistics for a period plus the data for a streak calendar."""

    period: Period
    label: str
    date_range: Optional[DateRange]
    statistics: ReadingStatistics
    active_dates: list[str] = field(default_factory=list)


def period_range(period: Period, year: int, month: int) -> Optional[DateRange]:
    """Inclusive date range of a period. All-time has no range."""
    if period == Period.YEARLY:
        return DateRange(start=f"{year}-01-01", end=f"{year}-12-31")
    if period == Period.MONTHLY:
        last_day = calendar.monthrange(year, month)[1]
        return DateRange(start=f"{year}-{month:02d}-01", end=f"{year}-{month:02d}-{last_day:02d}")
    return None


def to_finished_record(user_book: UserBook) -> FinishedBookRecord:
    book = user_book.book
    return FinishedBookRecord(
        finish_date=user_book.finish_date,
        start_date=user_book.start_date,
        rating=user_book.rating,
        author=book.author if book else None,
        genres=book.get_genres() if book else [],
        total_pages=book.total_pages if book else None,
        title=book.title if book else "",
    )


def to_session_record(reading_session: ReadingSession, titles: dict[str, str]) -> SessionRecord:
    return SessionRecord(
        date=reading_session.date,
        duration_seconds=reading_session.duration_seconds or 0,
        pages_read=reading_session.pages_read or 0,
        book_title=titles.get(reading_session.user_book_id, ""),
    )


class StatsService:
    """Builds statistics reports from the database."""

    def __init__(self, db: Optional[Database] = None, profiles: Optional[ProfileManager] = None):
        """Initialize stats service.

        Args:
            db: Database instance
            profiles: Profile manager used to resolve yearly goals
        """
        self.db = db or get_db()
        self.profiles = profiles or ProfileManager(self.db)

    def _titles(self) -> dict[str, str]:
        return {
            ub.id: ub.book.title
            for ub in self.db.list_user_books()
            if ub.book is not None
        }

    def get_statistics(
        self,
        period: Period = Period.YEARLY,
        year: Optional[int] = None,
        month: Optional[int] = None,
        today: Optional[date] = None,
    ) -> StatsReport:
        """Statistics for a month, a year or all time.

        Finished books are filtered on their finish date and sessions on
        their date. The streak always uses the whole session history. Goal
        progress is included for the yearly period only.

        Args:
            period: Which period to report on
            year: Year of a yearly or monthly period (default: this year)
            month: Month (1-12) of a monthly period (default: this month)
            today: The current day (default: today)
        """
        today = today or date.today()
        year = year or today.year
        month = month or today.month

        date_range = period_range(period, year, month)
        start = date_range.start if date_range else None
        end = date_range.end if date_range else None

        finished = [
            to_finished_record(ub)
            for ub in self.db.list_finished_user_books(start_date=start, end_date=end)
        ]
        titles = self._titles()
        sessions = [
            to_session_record(rs, titles)
            for rs in self.db.list_reading_sessions(start_date=start, end_date=end)
        ]
        all_dates = self.db.list_session_dates()

        yearly_goal = None
        if period == Period.YEARLY:
            yearly_goal = self.profiles.goal_resolver(today).goal_for(year)

        group_by = {Period.YEARLY: "month", Period.ALL_TIME: "year"}.get(period)

        statistics = compute_statistics(
            sessions=sessions,
            finished_books=finished,
            today=today,
            yearly_goal=yearly_goal,
            group_by=group_by,
            streak_dates=all_dates,
        )

        if period == Period.YEARLY:
            label = str(year)
        elif period == Period.MONTHLY:
            label = f"{calendar.month_name[month]} {year}"
        else:
            label = "All time"

        logger.debug("Computed %s statistics for %s", period.value, label)
        return StatsReport(
            period=period,
            label=label,
            date_range=date_range,
            statistics=statistics,
            active_dates=all_dates,
        )

    def year_goal(self, year: Optional[int] = None, today: Optional[date] = None) -> GoalProgress:
        """Progress toward a year's goal."""
        today = today or date.today()
        year = year or today.year
        date_range = period_range(Period.YEARLY, year, 1)
        finished = self.db.list_finished_user_books(
            start_date=date_range.start, end_date=date_range.end
        )
        goal = self.profiles.goal_resolver(today).goal_for(year)
        return goal_progress(len(finished), goal)

    def calendar(self, year: int, month: int) -> list[str]:
        """Dates in a month that have at least one session."""
        date_range = period_range(Period.MONTHLY, year, month)
        return [
            d for d in self.db.list_session_dates()
            if date_range.start <= d <= date_range.end
        ]
