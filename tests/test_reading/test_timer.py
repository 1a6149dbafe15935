"""Tests for the session timer and session recording."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from readtrack.errors import PersistenceError, SessionSaveError, TimerStateError
from readtrack.reading.timer import (
    JsonFileTimerStore,
    MemoryTimerStore,
    ReadingTimer,
    SessionRecorder,
    StopRequest,
    TimerState,
    TimerStatus,
    load_timer_state,
)
from readtrack.utils import local_date_str


class TestTimerState:
    """Tests for TimerState serialization."""

    def test_to_dict(self):
        """Test the persisted field names."""
        state = TimerState("ub-1", TimerStatus.RUNNING, 42, 1000)

        assert state.to_dict() == {
            "user_book_id": "ub-1",
            "status": "running",
            "elapsed": 42,
            "started_at": 1000,
        }

    def test_from_dict(self):
        """Test loading a persisted record."""
        state = TimerState.from_dict(
            {"user_book_id": "ub-1", "status": "paused", "elapsed": 12, "started_at": None}
        )

        assert state.status == TimerStatus.PAUSED
        assert state.elapsed_seconds == 12
        assert state.started_at_ms is None

    @pytest.mark.parametrize(
        "data",
        [
            {"status": "running", "elapsed": 1, "started_at": 5},
            {"user_book_id": "ub-1", "status": "sprinting", "elapsed": 1},
            {"user_book_id": "ub-1", "status": "paused", "elapsed": -5},
            {"user_book_id": "ub-1", "status": "running", "elapsed": 5, "started_at": None},
            {"user_book_id": "ub-1", "status": "paused", "elapsed": "lots"},
        ],
    )
    def test_from_dict_rejects_bad_records(self, data):
        """Test that malformed records raise ValueError."""
        with pytest.raises(ValueError):
            TimerState.from_dict(data)


class TestTimerStores:
    """Tests for timer state stores."""

    def test_memory_store(self):
        """Test save, load and clear."""
        store = MemoryTimerStore()
        assert store.load() is None

        store.save({"a": 1})
        assert store.load() == {"a": 1}

        store.clear()
        assert store.load() is None

    def test_json_file_store_round_trip(self, tmp_path):
        """Test the file store writes and reads JSON."""
        path = tmp_path / "state" / "timer.json"
        store = JsonFileTimerStore(path)

        store.save({"user_book_id": "ub-1", "status": "paused", "elapsed": 3, "started_at": None})

        assert path.exists()
        assert json.loads(path.read_text())["elapsed"] == 3
        assert store.load()["user_book_id"] == "ub-1"

    def test_json_file_store_leaves_no_temp_files(self, tmp_path):
        """Test that atomic writes clean up after themselves."""
        store = JsonFileTimerStore(tmp_path / "timer.json")
        store.save({"x": 1})
        store.save({"x": 2})

        assert [p.name for p in tmp_path.iterdir()] == ["timer.json"]

    def test_json_file_store_missing_file(self, tmp_path):
        """Test loading when nothing has been saved."""
        assert JsonFileTimerStore(tmp_path / "none.json").load() is None

    def test_json_file_store_unreadable(self, tmp_path):
        """Test that garbage and non-object JSON load as None."""
        path = tmp_path / "timer.json"
        store = JsonFileTimerStore(path)

        path.write_text("{not json")
        assert store.load() is None

        path.write_text("[1, 2, 3]")
        assert store.load() is None

    def test_json_file_store_clear(self, tmp_path):
        """Test clearing removes the file and tolerates a missing one."""
        path = tmp_path / "timer.json"
        store = JsonFileTimerStore(path)
        store.save({"x": 1})

        store.clear()
        store.clear()

        assert not path.exists()

    def test_load_timer_state_corrupt(self):
        """Test that a corrupt record reads as no timer."""
        store = MemoryTimerStore({"status": "running"})
        assert load_timer_state(store) is None


class TestReadingTimer:
    """Tests for ReadingTimer transitions."""

    @pytest.fixture
    def store(self):
        return MemoryTimerStore()

    @pytest.fixture
    def timer(self, store, clock):
        return ReadingTimer("ub-1", store, clock=clock)

    def test_starts_idle(self, timer, store):
        """Test a new timer with nothing stored."""
        assert timer.status == TimerStatus.IDLE
        assert timer.elapsed_seconds == 0
        assert store.data is None

    def test_start_persists_running_state(self, timer, store, clock):
        """Test starting writes the anchor."""
        timer.start()

        assert timer.status == TimerStatus.RUNNING
        assert store.data["status"] == "running"
        assert store.data["started_at"] == clock.now_ms

    def test_start_twice_raises(self, timer):
        """Test starting a running timer."""
        timer.start()
        with pytest.raises(TimerStateError):
            timer.start()

    def test_pause_requires_running(self, timer):
        """Test pausing an idle timer."""
        with pytest.raises(TimerStateError):
            timer.pause()

    def test_stop_requires_started(self, timer):
        """Test stopping an idle timer."""
        with pytest.raises(TimerStateError):
            timer.stop()

    def test_elapsed_is_sum_of_running_intervals(self, timer, clock):
        """Test that paused time is not counted."""
        timer.start()
        clock.advance(30)
        timer.pause()
        clock.advance(600)
        timer.start()
        clock.advance(15)

        assert timer.elapsed_seconds == 45

        clock.advance(5)
        timer.pause()
        assert timer.elapsed_seconds == 50
        assert timer.state.started_at_ms is None

    def test_tick_credits_whole_seconds(self, timer, clock, store):
        """Test that fractions of a second carry over between ticks."""
        timer.start()
        anchor = clock.now_ms

        clock.advance(2.5)
        assert timer.tick() == 2
        assert timer.state.started_at_ms == anchor + 2000
        assert store.data["elapsed"] == 2

        clock.advance(0.5)
        assert timer.tick() == 3

    def test_tick_while_paused(self, timer, clock):
        """Test ticking a paused timer changes nothing."""
        timer.start()
        clock.advance(10)
        timer.pause()
        clock.advance(10)

        assert timer.tick() == 10

    def test_tick_adopts_pause_from_another_process(self, timer, clock, store):
        """Test a pause written by another timer on the same store is kept."""
        timer.start()
        clock.advance(10)
        timer.tick()

        other = ReadingTimer("ub-1", store, clock=clock)
        other.pause()
        clock.advance(5)

        assert timer.tick() == 10
        assert timer.status == TimerStatus.PAUSED
        assert store.data["status"] == "paused"
        assert store.data["elapsed"] == 10

    def test_tick_after_stop_saved_elsewhere(self, db, reading_book, clock):
        """Test a watcher does not revive a timer whose session was saved."""
        store = MemoryTimerStore()
        watcher = ReadingTimer(reading_book.id, store, clock=clock)
        watcher.start()
        clock.advance(100)
        watcher.tick()

        other = ReadingTimer(reading_book.id, store, clock=clock)
        SessionRecorder(db, other).confirm(other.stop(current_page=10), end_page=12)
        clock.advance(3)

        assert watcher.tick() == 0
        assert watcher.status == TimerStatus.IDLE
        assert store.data is None

    def test_tick_leaves_other_books_timer(self, timer, clock, store):
        """Test a watcher never overwrites a timer started for another book."""
        timer.start()
        clock.advance(10)

        other = ReadingTimer("ub-2", store, clock=clock)
        other.start()
        clock.advance(5)

        assert timer.tick() == 0
        assert store.data["user_book_id"] == "ub-2"

    def test_stop_freezes_and_suggests_pages(self, timer, clock, store):
        """Test stop returns a request and leaves the timer paused."""
        timer.start()
        clock.advance(125)

        request = timer.stop(current_page=40)

        assert request == StopRequest(
            user_book_id="ub-1",
            elapsed_seconds=125,
            suggested_start_page=40,
            suggested_end_page=40,
        )
        assert timer.status == TimerStatus.PAUSED
        assert store.data["elapsed"] == 125

        clock.advance(60)
        assert timer.elapsed_seconds == 125

    def test_discard_clears_store(self, timer, clock, store):
        """Test discarding resets to idle and removes the record."""
        timer.start()
        clock.advance(20)
        timer.discard()

        assert timer.status == TimerStatus.IDLE
        assert timer.elapsed_seconds == 0
        assert store.data is None


class TestTimerRestore:
    """Tests for restoring a saved timer."""

    def test_restore_paused(self, clock):
        """Test a paused record is restored as is."""
        store = MemoryTimerStore(
            {"user_book_id": "ub-1", "status": "paused", "elapsed": 300, "started_at": None}
        )
        clock.advance(10_000)

        timer = ReadingTimer("ub-1", store, clock=clock)

        assert timer.status == TimerStatus.PAUSED
        assert timer.elapsed_seconds == 300

    def test_restore_running_fast_forwards(self, clock):
        """Test a running record is credited with the time since it was saved."""
        store = MemoryTimerStore(
            {
                "user_book_id": "ub-1",
                "status": "running",
                "elapsed": 10,
                "started_at": clock.now_ms - 90_500,
            }
        )

        timer = ReadingTimer("ub-1", store, clock=clock)

        assert timer.status == TimerStatus.RUNNING
        assert timer.state.elapsed_seconds == 100
        assert timer.state.started_at_ms == clock.now_ms
        assert store.data["elapsed"] == 100
        assert store.data["started_at"] == clock.now_ms

    def test_restore_ignores_other_book(self, clock):
        """Test that a record for another book is left alone."""
        record = {"user_book_id": "ub-2", "status": "paused", "elapsed": 50, "started_at": None}
        store = MemoryTimerStore(record)

        timer = ReadingTimer("ub-1", store, clock=clock)

        assert timer.status == TimerStatus.IDLE
        assert timer.elapsed_seconds == 0
        assert store.data == record

    def test_restore_corrupt_record(self, clock):
        """Test that a corrupt record leaves the timer idle."""
        store = MemoryTimerStore({"user_book_id": "ub-1", "status": "running", "elapsed": -1})

        timer = ReadingTimer("ub-1", store, clock=clock)

        assert timer.status == TimerStatus.IDLE

    def test_restore_from_file(self, tmp_path, clock):
        """Test surviving a restart with the file store."""
        path = tmp_path / "timer.json"
        first = ReadingTimer("ub-1", JsonFileTimerStore(path), clock=clock)
        first.start()
        clock.advance(61)

        second = ReadingTimer("ub-1", JsonFileTimerStore(path), clock=clock)

        assert second.status == TimerStatus.RUNNING
        assert second.elapsed_seconds == 61


class TestSessionRecorder:
    """Tests for saving a stopped timer as a session."""

    def test_confirm_saves_session(self, db, reading_book, clock):
        """Test a 125 second session from page 10 to 15."""
        store = MemoryTimerStore()
        timer = ReadingTimer(reading_book.id, store, clock=clock)
        timer.start()
        clock.advance(125)
        request = timer.stop(current_page=reading_book.current_page)

        reading_session = SessionRecorder(db, timer).confirm(request, start_page=10, end_page=15)

        assert reading_session.duration_seconds == 125
        assert reading_session.pages_read == 5
        assert reading_session.start_page == 10
        assert reading_session.end_page == 15
        assert reading_session.date == local_date_str(
            datetime.fromtimestamp(clock.now_ms / 1000, tz=timezone.utc)
        )

        assert db.get_user_book(reading_book.id).current_page == 15
        assert timer.status == TimerStatus.IDLE
        assert store.data is None

        reloaded = db.get_reading_session(reading_session.id)
        assert reloaded.duration_seconds == 125
        assert reloaded.pages_read == 5
        assert (reloaded.start_page, reloaded.end_page) == (10, 15)

    def test_confirm_uses_suggested_pages(self, db, reading_book, clock):
        """Test that missing pages fall back to the suggestion."""
        timer = ReadingTimer(reading_book.id, MemoryTimerStore(), clock=clock)
        timer.start()
        clock.advance(60)
        request = timer.stop(current_page=10)

        reading_session = SessionRecorder(db, timer).confirm(request)

        assert reading_session.pages_read == 0
        assert reading_session.start_page == 10
        assert db.get_user_book(reading_book.id).current_page == 10

    def test_pages_never_negative(self, db, reading_book, clock):
        """Test that an end page before the start page records zero pages."""
        timer = ReadingTimer(reading_book.id, MemoryTimerStore(), clock=clock)
        timer.start()
        clock.advance(60)
        request = timer.stop(current_page=10)

        reading_session = SessionRecorder(db, timer).confirm(request, start_page=30, end_page=20)

        assert reading_session.pages_read == 0
        assert db.get_user_book(reading_book.id).current_page == 20

    def test_current_page_does_not_move_back(self, db, reading_book, clock):
        """Test that an end page before the current page leaves progress alone."""
        timer = ReadingTimer(reading_book.id, MemoryTimerStore(), clock=clock)
        timer.start()
        clock.advance(60)
        request = timer.stop(current_page=10)

        SessionRecorder(db, timer).confirm(request, start_page=2, end_page=5)

        assert db.get_user_book(reading_book.id).current_page == 10

    def test_save_failure_keeps_timer(self, clock):
        """Test that a failed save raises and keeps the elapsed time."""
        store = MemoryTimerStore()
        timer = ReadingTimer("ub-1", store, clock=clock)
        timer.start()
        clock.advance(90)
        request = timer.stop()

        failing_db = MagicMock()
        failing_db.get_session.side_effect = PersistenceError("disk full")

        with pytest.raises(SessionSaveError) as exc_info:
            SessionRecorder(failing_db, timer).confirm(request, start_page=0, end_page=4)

        assert exc_info.value.request == request
        assert timer.status == TimerStatus.PAUSED
        assert timer.elapsed_seconds == 90
        assert store.data["elapsed"] == 90
