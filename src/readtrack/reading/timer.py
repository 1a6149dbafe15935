"""Session timer.

A per-book stopwatch with idle, running and paused states. The timer state
is persisted to a `TimerStore` after every transition so that an
interrupted session (closed terminal, crash, reboot) picks up where it left
off: a timer that was running when last saved is credited with the whole
seconds that passed since it was saved.

Stopping the timer does not write anything to the database. It freezes the
timer and hands back a `StopRequest`; `SessionRecorder.confirm` then turns
the request into a reading session once the user has entered their start
and end pages.
"""

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from ..db.models import ReadingSession
from ..db.schemas import ReadingSessionCreate
from ..db.sqlite import Database
from ..errors import PersistenceError, SessionSaveError, TimerStateError
from ..utils import local_date_str

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class TimerStatus(str, Enum):
    """Timer states."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class TimerState:
    """Snapshot of a book's timer.

    `started_at_ms` is the anchor from which a running timer accrues time;
    it is None unless the timer is running.
    """

    user_book_id: str
    status: TimerStatus = TimerStatus.IDLE
    elapsed_seconds: int = 0
    started_at_ms: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return {
            "user_book_id": self.user_book_id,
            "status": self.status.value,
            "elapsed": self.elapsed_seconds,
            "started_at": self.started_at_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimerState":
        """Create from a persisted dictionary.

        Raises:
            ValueError: If the record is missing fields or holds bad values
        """
        try:
            status = TimerStatus(data["status"])
            elapsed = int(data["elapsed"])
            user_book_id = str(data["user_book_id"])
            started_at = data.get("started_at")
            started_at = int(started_at) if started_at is not None else None
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid timer state: {e}") from e

        if elapsed < 0:
            raise ValueError("Invalid timer state: negative elapsed time")
        if status == TimerStatus.RUNNING and started_at is None:
            raise ValueError("Invalid timer state: running without a start time")

        return cls(
            user_book_id=user_book_id,
            status=status,
            elapsed_seconds=elapsed,
            started_at_ms=started_at,
        )


@dataclass(frozen=True)
class StopRequest:
    """A stopped timer waiting for the user to confirm the page range."""

    user_book_id: str
    elapsed_seconds: int
    suggested_start_page: int
    suggested_end_page: int


# ============================================================================
# Timer Stores
# ============================================================================


class TimerStore(Protocol):
    """Durable single-slot storage for the timer record."""

    def load(self) -> Optional[dict]: ...

    def save(self, data: dict) -> None: ...

    def clear(self) -> None: ...


class MemoryTimerStore:
    """In-process timer store."""

    def __init__(self, data: Optional[dict] = None):
        self.data = dict(data) if data is not None else None

    def load(self) -> Optional[dict]:
        return dict(self.data) if self.data is not None else None

    def save(self, data: dict) -> None:
        self.data = dict(data)

    def clear(self) -> None:
        self.data = None


class JsonFileTimerStore:
    """Timer store backed by a JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write never leaves a truncated record.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        """Read the stored record. Unreadable or non-object content reads as None."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable timer state %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed timer state in %s", self.path)
            return None
        return data

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".timer-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def load_timer_state(store: TimerStore) -> Optional[TimerState]:
    """Read whatever timer is stored, for any book. Corrupt records read as None."""
    raw = store.load()
    if raw is None:
        return None
    try:
        return TimerState.from_dict(raw)
    except ValueError as e:
        logger.warning("Discarding corrupt timer state: %s", e)
        return None


# ============================================================================
# Timer
# ============================================================================


class ReadingTimer:
    """Stopwatch for one shelf entry.

    Every transition replaces the whole state under a lock and then writes it
    to the store.
    """

    def __init__(
        self,
        user_book_id: str,
        store: TimerStore,
        clock: Optional[Clock] = None,
    ):
        """Initialize the timer and restore any saved state for this book.

        Args:
            user_book_id: Shelf entry the timer belongs to
            store: Where timer state is persisted
            clock: Returns epoch milliseconds (default: system clock)
        """
        self.user_book_id = user_book_id
        self.store = store
        self.clock = clock or system_clock
        self._lock = threading.Lock()
        self._state = TimerState(user_book_id=user_book_id)
        self.restore()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _persist(self, state: TimerState) -> None:
        self._state = state
        if state.status == TimerStatus.IDLE and state.elapsed_seconds == 0:
            self.store.clear()
        else:
            self.store.save(state.to_dict())

    def _accrued(self, state: TimerState, now: int) -> int:
        """Whole seconds a running timer has gained since its anchor."""
        if state.status != TimerStatus.RUNNING or state.started_at_ms is None:
            return 0
        return max(0, (now - state.started_at_ms) // 1000)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> TimerState:
        """The last persisted state."""
        return self._state

    @property
    def status(self) -> TimerStatus:
        return self._state.status

    @property
    def elapsed_seconds(self) -> int:
        """Live elapsed time, including seconds not yet credited by a tick."""
        state = self._state
        return state.elapsed_seconds + self._accrued(state, self.clock())

    def restore(self) -> TimerState:
        """Load saved state for this book.

        Records for another book and corrupt records are ignored and leave the
        timer idle. A record saved while running is fast-forwarded by the time
        that passed since it was saved and re-anchored at the current time.
        """
        with self._lock:
            state = TimerState(user_book_id=self.user_book_id)
            saved = load_timer_state(self.store)

            if saved is not None and saved.user_book_id == self.user_book_id:
                state = saved
                if saved.status == TimerStatus.RUNNING:
                    now = self.clock()
                    state = replace(
                        saved,
                        elapsed_seconds=saved.elapsed_seconds + self._accrued(saved, now),
                        started_at_ms=now,
                    )
                    self._persist(state)

            self._state = state
            return state

    def start(self) -> TimerState:
        """Start or resume the timer."""
        with self._lock:
            if self._state.status == TimerStatus.RUNNING:
                raise TimerStateError("Timer is already running")
            state = replace(
                self._state, status=TimerStatus.RUNNING, started_at_ms=self.clock()
            )
            self._persist(state)
            logger.debug("Timer started for %s at %ss", self.user_book_id, state.elapsed_seconds)
            return state

    def pause(self) -> TimerState:
        """Pause a running timer, crediting the time since its anchor."""
        with self._lock:
            if self._state.status != TimerStatus.RUNNING:
                raise TimerStateError("Timer is not running")
            state = self._freeze(self.clock())
            self._persist(state)
            return state

    def tick(self) -> int:
        """Credit whole seconds since the anchor to a running timer.

        Returns the elapsed seconds. The anchor advances by exactly the
        credited seconds so fractions carry over to the next tick.

        The stored record is re-read first, since another process may have
        changed it. Anything other than a running
        record for this book is adopted as is and nothing is written.
        """
        with self._lock:
            saved = load_timer_state(self.store)
            if saved is None or saved.user_book_id != self.user_book_id:
                self._state = TimerState(user_book_id=self.user_book_id)
                return 0
            state = saved
            self._state = state
            if state.status != TimerStatus.RUNNING:
                return state.elapsed_seconds
            gained = self._accrued(state, self.clock())
            if gained > 0:
                state = replace(
                    state,
                    elapsed_seconds=state.elapsed_seconds + gained,
                    started_at_ms=state.started_at_ms + gained * 1000,
                )
                self._persist(state)
            return state.elapsed_seconds

    def stop(self, current_page: int = 0) -> StopRequest:
        """Freeze the timer and ask for the page range.

        The timer is left paused with its elapsed time until the session is
        confirmed or the timer is discarded.

        Args:
            current_page: The book's current page, offered as both the
                          start and end page
        """
        with self._lock:
            if self._state.status == TimerStatus.IDLE:
                raise TimerStateError("Timer has not been started")
            state = self._freeze(self.clock())
            self._persist(state)
            return StopRequest(
                user_book_id=self.user_book_id,
                elapsed_seconds=state.elapsed_seconds,
                suggested_start_page=current_page,
                suggested_end_page=current_page,
            )

    def discard(self) -> None:
        """Reset to idle without recording anything."""
        with self._lock:
            self._persist(TimerState(user_book_id=self.user_book_id))

    def _freeze(self, now: int) -> TimerState:
        state = self._state
        return replace(
            state,
            status=TimerStatus.PAUSED,
            elapsed_seconds=state.elapsed_seconds + self._accrued(state, now),
            started_at_ms=None,
        )


# ============================================================================
# Session Recording
# ============================================================================


class SessionRecorder:
    """Turns a confirmed stop request into a reading session."""

    def __init__(self, db: Database, timer: ReadingTimer):
        self.db = db
        self.timer = timer

    def confirm(
        self,
        request: StopRequest,
        start_page: Optional[int] = None,
        end_page: Optional[int] = None,
    ) -> ReadingSession:
        """Save the timed session.

        Missing pages fall back to the suggested pages. The book's current
        page advances when the end page is beyond it. On success the timer is
        reset to idle.

        Raises:
            SessionSaveError: If the session could not be written. The timer
                keeps its elapsed time so the save can be retried.
        """
        if start_page is None:
            start_page = request.suggested_start_page
        if end_page is None:
            end_page = request.suggested_end_page

        ended_at = datetime.fromtimestamp(self.timer.clock() / 1000, tz=timezone.utc)
        started_at = ended_at - timedelta(seconds=request.elapsed_seconds)

        data = ReadingSessionCreate(
            user_book_id=request.user_book_id,
            date=local_date_str(ended_at),
            duration_seconds=request.elapsed_seconds,
            pages_read=max(0, end_page - start_page),
            start_page=start_page,
            end_page=end_page,
            started_at=started_at,
            ended_at=ended_at,
        )

        try:
            with self.db.get_session() as s:
                reading_session = self.db.create_reading_session(data, session=s)
                user_book = self.db.get_user_book(request.user_book_id, session=s)
                if user_book is not None and end_page > (user_book.current_page or 0):
                    user_book.current_page = end_page
                s.flush()
                s.expunge(reading_session)
        except PersistenceError as e:
            logger.error("Failed to save reading session for %s: %s", request.user_book_id, e)
            raise SessionSaveError(
                "Could not save the reading session. Your time has been kept; try again.",
                request=request,
            ) from e

        self.timer.discard()
        logger.info(
            "Saved %ss session for %s (%s pages)",
            data.duration_seconds,
            request.user_book_id,
            data.pages_read,
        )
        return reading_session
