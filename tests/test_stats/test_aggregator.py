"""Tests for the statistics calculations."""

from datetime import date, timedelta

import pytest

from readtrack.stats.aggregator import (
    FinishedBookRecord,
    SessionRecord,
    author_distribution,
    average_pages_per_day,
    books_per_month,
    books_per_year,
    compute_statistics,
    genre_distribution,
    goal_progress,
    rating_distribution,
    reading_pace,
    reading_streak,
    session_records,
)

TODAY = date(2025, 6, 15)


def days_ago(n: int) -> str:
    return (TODAY - timedelta(days=n)).isoformat()


class TestReadingStreak:
    """Tests for reading_streak."""

    def test_three_days_including_today(self):
        """Test an unbroken run ending today."""
        assert reading_streak([days_ago(0), days_ago(1), days_ago(2)], TODAY) == 3

    def test_gap_today_and_yesterday(self):
        """Test that a missed yesterday breaks the streak."""
        assert reading_streak([days_ago(2)], TODAY) == 0

    def test_not_read_yet_today(self):
        """Test the streak survives until the end of today."""
        assert reading_streak([days_ago(1), days_ago(2)], TODAY) == 2

    def test_duplicates_and_order(self):
        """Test duplicate and unordered dates."""
        dates = [days_ago(1), days_ago(0), days_ago(1), days_ago(3)]
        assert reading_streak(dates, TODAY) == 2

    def test_empty(self):
        """Test no sessions at all."""
        assert reading_streak([], TODAY) == 0


class TestAveragePagesPerDay:
    """Tests for average_pages_per_day."""

    def test_distinct_days(self):
        """Test 35 pages over 2 days rounds half up to 18."""
        sessions = [
            SessionRecord(date="2024-01-01", pages_read=10),
            SessionRecord(date="2024-01-01", pages_read=5),
            SessionRecord(date="2024-01-02", pages_read=20),
        ]
        assert average_pages_per_day(sessions) == 18

    def test_empty(self):
        """Test no sessions."""
        assert average_pages_per_day([]) == 0


class TestGoalProgress:
    """Tests for goal_progress."""

    def test_partial(self):
        """Test 12 of 50."""
        progress = goal_progress(12, 50)

        assert progress.percent == 24
        assert progress.completed is False

    def test_complete(self):
        """Test 50 of 50."""
        progress = goal_progress(50, 50)

        assert progress.percent == 100
        assert progress.completed is True

    def test_capped(self):
        """Test exceeding the goal caps at 100%."""
        progress = goal_progress(70, 50)

        assert progress.percent == 100
        assert progress.completed is True


class TestDistributions:
    """Tests for genre, author and rating distributions."""

    @pytest.fixture
    def books(self):
        return [
            FinishedBookRecord("2025-01-01", author="A", genres=["Fantasy", "Horror"], rating=4.0),
            FinishedBookRecord("2025-01-02", author="B", genres=["Mystery"], rating=4.25),
            FinishedBookRecord("2025-01-03", author="A", genres=["Fantasy"], rating=None),
            FinishedBookRecord("2025-01-04", author="C", genres=["Mystery", "Horror"], rating=4.0),
        ]

    def test_genre_counts(self, books):
        """Test each genre of a book is counted."""
        assert dict(genre_distribution(books)) == {"Fantasy": 2, "Horror": 2, "Mystery": 2}

    def test_genre_ties_keep_first_seen_order(self, books):
        """Test ties are ordered by first appearance."""
        assert [g for g, _ in genre_distribution(books)] == ["Fantasy", "Horror", "Mystery"]

    def test_genre_counts_independent_of_order(self, books):
        """Test reordering input does not change the counts."""
        assert dict(genre_distribution(reversed(books))) == dict(genre_distribution(books))

    def test_top_six(self):
        """Test only the top six are kept."""
        books = [FinishedBookRecord("2025-01-01", genres=[f"G{i}"]) for i in range(10)]
        assert len(genre_distribution(books)) == 6

    def test_authors(self, books):
        """Test author counts, most common first."""
        assert author_distribution(books) == [("A", 2), ("B", 1), ("C", 1)]

    def test_ratings(self, books):
        """Test ratings are bucketed and unrated books skipped."""
        assert rating_distribution(books) == [(4.0, 2), (4.3, 1)]

    def test_empty(self):
        """Test empty input."""
        assert genre_distribution([]) == []
        assert author_distribution([]) == []
        assert rating_distribution([]) == []


class TestBuckets:
    """Tests for per-month and per-year buckets."""

    def test_per_month_zero_filled(self):
        """Test twelve buckets with the right counts."""
        books = [
            FinishedBookRecord("2025-01-10"),
            FinishedBookRecord("2025-01-20"),
            FinishedBookRecord("2025-12-31"),
            FinishedBookRecord(None),
        ]

        buckets = books_per_month(books)

        assert len(buckets) == 12
        assert (buckets[0].label, buckets[0].books) == ("Jan", 2)
        assert buckets[5].books == 0
        assert (buckets[11].label, buckets[11].books) == ("Dec", 1)

    def test_per_year_sorted(self):
        """Test year buckets in ascending order."""
        books = [
            FinishedBookRecord("2024-05-01"),
            FinishedBookRecord("2022-05-01"),
            FinishedBookRecord("2024-06-01"),
        ]

        assert [(b.label, b.books) for b in books_per_year(books)] == [("2022", 1), ("2024", 2)]


class TestReadingPace:
    """Tests for reading_pace."""

    def test_pace(self):
        """Test average, quickest and longest."""
        books = [
            FinishedBookRecord("2025-01-11", start_date="2025-01-01", title="Ten"),
            FinishedBookRecord("2025-02-05", start_date="2025-02-01", title="Four"),
            FinishedBookRecord("2025-03-31", start_date="2025-03-01", title="Thirty"),
        ]

        pace = reading_pace(books)

        assert pace.average_days == 15
        assert pace.quickest.title == "Four"
        assert pace.longest.title == "Thirty"
        assert pace.books_measured == 3

    def test_skips_unmeasurable(self):
        """Test missing and backwards dates are skipped."""
        books = [
            FinishedBookRecord("2025-01-11", start_date=None, title="No start"),
            FinishedBookRecord("2025-01-01", start_date="2025-01-10", title="Backwards"),
            FinishedBookRecord("2025-01-03", start_date="2025-01-01", title="Two"),
        ]

        pace = reading_pace(books)

        assert pace.books_measured == 1
        assert pace.quickest.title == "Two"

    def test_ties_use_first(self):
        """Test the first book wins ties."""
        books = [
            FinishedBookRecord("2025-01-03", start_date="2025-01-01", title="First"),
            FinishedBookRecord("2025-02-03", start_date="2025-02-01", title="Second"),
        ]

        pace = reading_pace(books)

        assert pace.quickest.title == "First"
        assert pace.longest.title == "First"

    def test_empty(self):
        """Test no measurable books."""
        pace = reading_pace([])

        assert pace.average_days == 0
        assert pace.quickest is None


class TestSessionRecords:
    """Tests for session_records."""

    def test_ignores_short_sessions(self):
        """Test sessions under a minute do not count."""
        sessions = [
            SessionRecord("2025-01-01", duration_seconds=30, book_title="Blip"),
            SessionRecord("2025-01-02", duration_seconds=60, book_title="Short"),
            SessionRecord("2025-01-03", duration_seconds=3600, book_title="Long"),
        ]

        longest, shortest = session_records(sessions)

        assert longest.title == "Long"
        assert longest.duration_seconds == 3600
        assert shortest.title == "Short"
        assert shortest.date == "2025-01-02"

    def test_none_eligible(self):
        """Test no qualifying sessions."""
        assert session_records([SessionRecord("2025-01-01", duration_seconds=10)]) == (None, None)


class TestComputeStatistics:
    """Tests for compute_statistics."""

    def test_empty_input(self):
        """Test empty input yields zeroed output."""
        stats = compute_statistics([], [], TODAY)

        assert stats.books_finished == 0
        assert stats.total_seconds == 0
        assert stats.total_pages == 0
        assert stats.average_pages_per_day == 0
        assert stats.streak == 0
        assert stats.genres == []
        assert stats.books_per_period == []
        assert stats.longest_session is None
        assert stats.goal is None

    def test_full(self):
        """Test all fields together."""
        sessions = [
            SessionRecord(days_ago(0), duration_seconds=1200, pages_read=20, book_title="X"),
            SessionRecord(days_ago(1), duration_seconds=600, pages_read=10, book_title="X"),
        ]
        finished = [
            FinishedBookRecord("2025-03-01", author="A", genres=["Fantasy"], rating=5.0),
        ]

        stats = compute_statistics(sessions, finished, TODAY, yearly_goal=10, group_by="month")

        assert stats.books_finished == 1
        assert stats.total_seconds == 1800
        assert stats.total_pages == 30
        assert stats.average_pages_per_day == 15
        assert stats.streak == 2
        assert stats.books_per_period[2].books == 1
        assert stats.goal.percent == 10

    def test_streak_uses_given_dates(self):
        """Test the streak can come from outside the period."""
        stats = compute_statistics([], [], TODAY, streak_dates=[days_ago(0)])

        assert stats.streak == 1

    def test_group_by_year(self):
        """Test per-year buckets."""
        finished = [FinishedBookRecord("2023-01-01"), FinishedBookRecord("2025-01-01")]

        stats = compute_statistics([], finished, TODAY, group_by="year")

        assert [p.label for p in stats.books_per_period] == ["2023", "2025"]
