"""Reading session timing and logging."""

from .sessions import DaySummary, SessionManager
from .timer import (
    JsonFileTimerStore,
    MemoryTimerStore,
    ReadingTimer,
    SessionRecorder,
    StopRequest,
    TimerState,
    TimerStatus,
    TimerStore,
    load_timer_state,
)

__all__ = [
    "DaySummary",
    "SessionManager",
    "JsonFileTimerStore",
    "MemoryTimerStore",
    "ReadingTimer",
    "SessionRecorder",
    "StopRequest",
    "TimerState",
    "TimerStatus",
    "TimerStore",
    "load_timer_state",
]
