"""Reading statistics."""

from .aggregator import (
    FinishedBookRecord,
    GoalProgress,
    ReadingPace,
    ReadingStatistics,
    SessionRecord,
    compute_statistics,
)
from .service import Period, StatsReport, StatsService

__all__ = [
    "FinishedBookRecord",
    "GoalProgress",
    "ReadingPace",
    "ReadingStatistics",
    "SessionRecord",
    "compute_statistics",
    "Period",
    "StatsReport",
    "StatsService",
]
