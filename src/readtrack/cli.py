"""Command-line interface for readtrack.

Built with Typer for commands and Rich for beautiful output.
"""

import time
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import get_config
from .db import get_db
from .db.models import UserBook
from .db.schemas import BookStatus
from .errors import MetadataLookupError, ReadTrackError, SessionSaveError
from .log import setup_logging
from .utils import format_duration, format_duration_short, local_date_str, parse_date, progress_percent

# Create the main app
app = typer.Typer(
    name="readtrack",
    help="Track your reading: time sessions, log pages and see your stats.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
timer_app = typer.Typer(help="Time a reading session.")
app.add_typer(timer_app, name="timer")

sessions_app = typer.Typer(help="List, edit and delete reading sessions.")
app.add_typer(sessions_app, name="sessions")

import_app = typer.Typer(help="Import books from other services.")
app.add_typer(import_app, name="import")

profile_app = typer.Typer(help="View and change your profile.")
app.add_typer(profile_app, name="profile")

goal_app = typer.Typer(help="Set reading goals for specific years.")
app.add_typer(goal_app, name="goal")

# Rich console for pretty output
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track your reading: time sessions, log pages and see your stats."""
    setup_logging("DEBUG" if verbose else get_config().log_level)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def format_rating(rating: Optional[float]) -> str:
    """Render a rating as e.g. '4.25★'."""
    return f"{rating:g}★" if rating else "-"


def format_book_table(user_books: list[UserBook], title: str = "Books") -> Table:
    """Create a rich table for displaying shelf entries."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=8)
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Status", style="yellow")
    table.add_column("Rating", justify="center")
    table.add_column("Progress", justify="center")

    for ub in user_books:
        percent = progress_percent(ub.current_page or 0, ub.book.total_pages)
        table.add_row(
            ub.id[:8],
            ub.book.title,
            ub.book.author,
            ub.status,
            format_rating(ub.rating),
            f"{percent}%" if ub.book.total_pages else "-",
        )

    return table


def find_user_book(query: str) -> UserBook:
    """Resolve a shelf entry from an ID, ID prefix or title.

    Exits with an error if nothing matches. Asks the user to choose when
    several titles match.
    """
    db = get_db()

    user_book = db.get_user_book(query)
    if user_book:
        return user_book

    user_books = db.list_user_books()
    by_id = [ub for ub in user_books if ub.id.startswith(query)]
    if len(by_id) == 1:
        return by_id[0]

    needle = query.lower()
    matches = [ub for ub in user_books if needle in ub.book.title.lower()]
    exact = [ub for ub in matches if ub.book.title.lower() == needle]
    if len(exact) == 1:
        return exact[0]

    if not matches:
        print_error(f"No book found matching: {query}")
        raise typer.Exit(1)

    if len(matches) == 1:
        return matches[0]

    console.print("\n[bold]Multiple books found:[/bold]")
    for i, ub in enumerate(matches, 1):
        console.print(f"  {i}. {ub.book.title} by {ub.book.author}")
    choice = typer.prompt("Select book number", type=int, default=1)
    if choice < 1 or choice > len(matches):
        print_error("Invalid selection")
        raise typer.Exit(1)
    return matches[choice - 1]


def parse_date_option(value: Optional[str]) -> Optional[date]:
    """Parse a --date option, exiting on bad input."""
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        print_error(f"Invalid date: {value}. Use YYYY-MM-DD.")
        raise typer.Exit(1)
    return parsed


def get_timer_store():
    from .reading import JsonFileTimerStore

    return JsonFileTimerStore(get_config().timer_path)


# ============================================================================
# Book Management Commands
# ============================================================================


@app.command()
def add(
    query: str = typer.Argument(..., help="Title and/or author to search for"),
    status: BookStatus = typer.Option(
        BookStatus.WANT_TO_READ, "--status", "-s", help="Initial status"
    ),
    limit: int = typer.Option(10, "--limit", "-l", help="Max search results"),
) -> None:
    """Add a book by searching Open Library."""
    from .api import OpenLibraryClient
    from .library import LibraryService

    client = OpenLibraryClient(timeout=get_config().http_timeout)

    console.print(f"[dim]Searching Open Library for: {query}...[/dim]")
    try:
        results = client.search(query, limit=limit)
    except MetadataLookupError as e:
        print_error(f"Open Library error: {e}")
        raise typer.Exit(1)

    if not results:
        print_error(f"No books found matching: {query}")
        console.print("[dim]Try 'readtrack add-manual' to add manually.[/dim]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Found {len(results)} results:[/bold]\n")
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="cyan", width=3)
    table.add_column("Title", width=35)
    table.add_column("Author", width=20)
    table.add_column("Year", width=6)
    table.add_column("Pages", width=6)

    for i, r in enumerate(results, 1):
        table.add_row(
            str(i),
            r.title[:35],
            r.author[:20],
            str(r.published_year or "-"),
            str(r.total_pages or "-"),
        )

    console.print(table)

    choice = typer.prompt("\nSelect book number (0 to cancel)", type=int, default=1)
    if choice < 1 or choice > len(results):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(0)

    selected = results[choice - 1]
    try:
        user_book = LibraryService(get_db()).add_from_search(selected, status)
    except ReadTrackError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added: {user_book.book.title} by {user_book.book.author} ({status.value})")


@app.command("add-manual")
def add_manual(
    title: str = typer.Option(..., "--title", "-t", prompt="Book title"),
    author: str = typer.Option(..., "--author", "-a", prompt="Author"),
    status: BookStatus = typer.Option(
        BookStatus.WANT_TO_READ, "--status", "-s", help="Reading status"
    ),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Page count"),
    genre: Optional[list[str]] = typer.Option(None, "--genre", "-g", help="Genre (repeatable)"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Publication year"),
) -> None:
    """Add a book manually (without Open Library search)."""
    from .library import LibraryService

    try:
        user_book = LibraryService(get_db()).add_manual(
            title=title,
            author=author,
            total_pages=pages,
            status=status,
            genres=genre or [],
            published_year=year,
        )
    except (ReadTrackError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added: {user_book.book.title} by {user_book.book.author}")


@app.command("list")
def list_books(
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    sort: str = typer.Option(
        "date_added",
        "--sort",
        help="date_added, date_finished, published_year, my_rating or title",
    ),
    ascending: bool = typer.Option(False, "--asc", help="Sort ascending"),
) -> None:
    """List books in your library."""
    from .library import LibraryService

    try:
        user_books = LibraryService(get_db()).list_books(
            status=status, sort=sort, descending=not ascending
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not user_books:
        console.print("[dim]No books found.[/dim]")
        return

    title = f"Books ({status.value})" if status else "All Books"
    console.print(format_book_table(user_books, title=title))
    print_info(f"{len(user_books)} book(s)")


@app.command()
def show(
    query: str = typer.Argument(..., help="Book title or ID"),
    details: bool = typer.Option(
        False, "--details", "-d", help="Fetch description and community rating"
    ),
) -> None:
    """Show a book with its recent reading sessions."""
    from .library import LibraryService

    user_book = find_user_book(query)
    detail = LibraryService(get_db()).get_book_detail(user_book.id)
    book = detail.book

    lines = [
        f"[bold]{book.title}[/bold]",
        f"by {book.author}",
        "",
        f"Status: {detail.user_book.status}",
        f"Rating: {format_rating(detail.user_book.rating)}",
    ]
    if book.total_pages:
        lines.append(
            f"Progress: page {detail.user_book.current_page} of {book.total_pages} ({detail.progress}%)"
        )
    else:
        lines.append(f"Current page: {detail.user_book.current_page}")
    if detail.user_book.start_date:
        lines.append(f"Started: {detail.user_book.start_date}")
    if detail.user_book.finish_date:
        lines.append(f"Finished: {detail.user_book.finish_date}")
    if book.get_genres():
        lines.append(f"Genres: {', '.join(book.get_genres())}")
    if detail.user_book.review:
        lines.append(f"\nReview: {detail.user_book.review}")

    if details:
        from .api import BookDetailsService

        info = BookDetailsService(cache_ttl=get_config().cache_ttl).get_details(
            book.title, book.author
        )
        if info:
            if info.average_rating:
                lines.append(
                    f"Community rating: {info.average_rating:g} ({info.ratings_count or 0} ratings)"
                )
            if info.description:
                lines.append(f"\n{info.description}")
        else:
            lines.append("[dim]No community details found.[/dim]")

    console.print(Panel("\n".join(lines), title=f"Book {detail.user_book.id[:8]}"))

    if detail.sessions:
        table = Table(title="Recent Sessions", show_header=True, header_style="bold")
        table.add_column("ID", style="dim", width=8)
        table.add_column("Date")
        table.add_column("Time", justify="right")
        table.add_column("Pages", justify="right")
        for s in detail.sessions:
            table.add_row(s.id[:8], s.date, format_duration(s.duration_seconds), str(s.pages_read))
        console.print(table)
        print_info(
            f"Total: {format_duration_short(detail.total_seconds)}, {detail.total_pages_read} pages"
        )
    else:
        print_info("No reading sessions yet.")


@app.command()
def update(
    query: str = typer.Argument(..., help="Book title or ID"),
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="New status"),
    rating: Optional[float] = typer.Option(
        None, "--rating", "-r", help="Rating 0-5 in quarter steps (0 clears)"
    ),
    review: Optional[str] = typer.Option(None, "--review", help="Review text (empty clears)"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Current page"),
    total_pages: Optional[int] = typer.Option(None, "--total-pages", help="Correct the page count"),
) -> None:
    """Update a book's status, rating, review or progress."""
    from .library import LibraryService

    if all(v is None for v in (status, rating, review, page, total_pages)):
        print_warning("Nothing to update.")
        raise typer.Exit(0)

    user_book = find_user_book(query)
    library = LibraryService(get_db())

    try:
        if total_pages is not None:
            library.set_total_pages(user_book.id, total_pages)
        if any(v is not None for v in (status, rating, review, page)):
            library.update_user_book(
                user_book.id,
                rating=rating,
                review=review,
                status=status,
                current_page=page,
            )
    except (ReadTrackError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Updated: {user_book.book.title}")


@app.command()
def remove(
    query: str = typer.Argument(..., help="Book title or ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a book and its sessions from your library."""
    from .library import LibraryService

    user_book = find_user_book(query)
    if not yes and not typer.confirm(
        f"Remove '{user_book.book.title}' and all its sessions?", default=False
    ):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(0)

    LibraryService(get_db()).remove_book(user_book.id)
    print_success(f"Removed: {user_book.book.title}")


# ============================================================================
# Timer Commands
# ============================================================================


def _active_timer():
    """The stored timer and its shelf entry, or exit if there is none."""
    from .reading import ReadingTimer, load_timer_state

    store = get_timer_store()
    state = load_timer_state(store)
    if state is None or state.status.value == "idle":
        print_warning("No timer running. Use 'readtrack timer start <book>' to begin.")
        raise typer.Exit(1)

    user_book = get_db().get_user_book(state.user_book_id)
    if user_book is None:
        store.clear()
        print_warning("The timed book is no longer in your library. Timer cleared.")
        raise typer.Exit(1)

    return ReadingTimer(user_book.id, store), user_book


@timer_app.command("start")
def timer_start(
    query: str = typer.Argument(..., help="Book title or ID"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Discard a timer running for another book"
    ),
) -> None:
    """Start or resume the timer for a book."""
    from .reading import ReadingTimer, TimerStatus, load_timer_state

    user_book = find_user_book(query)
    store = get_timer_store()

    other = load_timer_state(store)
    if other and other.user_book_id != user_book.id and other.status != TimerStatus.IDLE:
        if not force:
            print_error(
                "A timer is already active for another book. "
                "Stop or discard it first, or use --force."
            )
            raise typer.Exit(1)
        store.clear()
        print_warning("Discarded the timer for the other book.")

    timer = ReadingTimer(user_book.id, store)
    if timer.status == TimerStatus.RUNNING:
        print_info(f"Timer already running: {format_duration(timer.elapsed_seconds)}")
        return

    timer.start()
    console.print(f"[green]Timer started:[/green] {user_book.book.title}")
    if timer.elapsed_seconds:
        print_info(f"Resumed at {format_duration(timer.elapsed_seconds)}")
    print_info("Use 'readtrack timer stop' when you are done.")


@timer_app.command("pause")
def timer_pause() -> None:
    """Pause the running timer."""
    from .reading import TimerStatus

    timer, user_book = _active_timer()
    if timer.status != TimerStatus.RUNNING:
        print_warning("Timer is already paused.")
        return
    timer.pause()
    console.print(
        f"[yellow]Paused[/yellow] {user_book.book.title} at {format_duration(timer.elapsed_seconds)}"
    )


@timer_app.command("status")
def timer_status() -> None:
    """Show the current timer."""
    from .reading import load_timer_state

    state = load_timer_state(get_timer_store())
    if state is None or state.status.value == "idle":
        console.print("[dim]No timer running.[/dim]")
        return

    timer, user_book = _active_timer()
    table = Table(title="Reading Timer", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Book", user_book.book.title)
    table.add_row("Status", timer.status.value)
    table.add_row("Elapsed", format_duration(timer.elapsed_seconds))
    table.add_row("Current page", str(user_book.current_page or 0))
    console.print(table)


@timer_app.command("watch")
def timer_watch() -> None:
    """Show the running timer live.

    Ctrl+C stops watching and the timer keeps running. Watching ends on its own
    once another terminal pauses or clears the timer.
    """
    from .reading import TimerStatus

    timer, user_book = _active_timer()
    if timer.status != TimerStatus.RUNNING:
        print_warning("Timer is paused. Use 'readtrack timer start' to resume.")
        return

    try:
        with Live(console=console, refresh_per_second=4) as live:
            while True:
                elapsed = timer.tick()
                live.update(f"[bold]{user_book.book.title}[/bold]  {format_duration(elapsed)}")
                if timer.status != TimerStatus.RUNNING:
                    break
                time.sleep(1)
    except KeyboardInterrupt:
        print_info("Stopped watching. The timer is still running.")
        return

    print_info(f"Timer is no longer running ({timer.status.value}).")


@timer_app.command("stop")
def timer_stop(
    start_page: Optional[int] = typer.Option(None, "--start-page", help="Page you started on"),
    end_page: Optional[int] = typer.Option(None, "--end-page", help="Page you finished on"),
) -> None:
    """Stop the timer and save the session."""
    from .reading import SessionRecorder

    timer, user_book = _active_timer()
    request = timer.stop(current_page=user_book.current_page or 0)

    console.print(
        f"[bold]{user_book.book.title}[/bold]: {format_duration(request.elapsed_seconds)}"
    )
    if start_page is None:
        start_page = typer.prompt("Start page", type=int, default=request.suggested_start_page)
    if end_page is None:
        end_page = typer.prompt("End page", type=int, default=request.suggested_end_page)

    if start_page < 0 or end_page < 0:
        print_error("Pages cannot be negative. The timer is paused; run 'timer stop' again.")
        raise typer.Exit(1)

    try:
        reading_session = SessionRecorder(get_db(), timer).confirm(request, start_page, end_page)
    except SessionSaveError as e:
        print_error(str(e))
        print_info("Run 'readtrack timer stop' again to retry.")
        raise typer.Exit(1)

    print_success(
        f"Logged {format_duration(reading_session.duration_seconds)}, "
        f"{reading_session.pages_read} pages"
    )


@timer_app.command("discard")
def timer_discard(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Throw away the current timer without saving."""
    timer, user_book = _active_timer()
    if not yes and not typer.confirm(
        f"Discard {format_duration(timer.elapsed_seconds)} for '{user_book.book.title}'?",
        default=False,
    ):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(0)
    timer.discard()
    print_success("Timer discarded.")


# ============================================================================
# Session Commands
# ============================================================================


@app.command()
def log(
    query: str = typer.Argument(..., help="Book title or ID"),
    minutes: int = typer.Option(0, "--minutes", "-m", help="Minutes read"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Pages read"),
    start_page: Optional[int] = typer.Option(None, "--from", help="Starting page"),
    end_page: Optional[int] = typer.Option(None, "--to", help="Ending page"),
    session_date: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date read (YYYY-MM-DD, default today)"
    ),
) -> None:
    """Log a reading session by hand, including for past days."""
    from .reading import SessionManager

    day = parse_date_option(session_date)
    user_book = find_user_book(query)

    try:
        reading_session = SessionManager(get_db()).log_session(
            user_book.id,
            session_date=day,
            minutes=minutes,
            pages_read=pages,
            start_page=start_page,
            end_page=end_page,
        )
    except (ReadTrackError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(
        f"Logged {reading_session.pages_read} pages, {minutes} min "
        f"for {user_book.book.title} on {reading_session.date}"
    )


@sessions_app.command("list")
def sessions_list(
    query: str = typer.Argument(..., help="Book title or ID"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max sessions"),
) -> None:
    """List recent sessions for a book."""
    from .reading import SessionManager

    user_book = find_user_book(query)
    sessions = SessionManager(get_db()).list_sessions(user_book.id, limit=limit)

    if not sessions:
        console.print("[dim]No sessions found.[/dim]")
        return

    table = Table(title=f"Sessions: {user_book.book.title}", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Date")
    table.add_column("Time", justify="right")
    table.add_column("Pages", justify="right")
    table.add_column("Range")
    for s in sessions:
        page_range = f"{s.start_page}-{s.end_page}" if s.start_page is not None else "-"
        table.add_row(s.id, s.date, format_duration(s.duration_seconds), str(s.pages_read), page_range)
    console.print(table)


@sessions_app.command("edit")
def sessions_edit(
    session_id: str = typer.Argument(..., help="Session ID"),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="New duration in minutes"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="New page count"),
) -> None:
    """Change the duration or pages of a session."""
    from .reading import SessionManager

    if minutes is None and pages is None:
        print_warning("Nothing to update.")
        raise typer.Exit(0)

    try:
        reading_session = SessionManager(get_db()).edit_session(
            session_id, minutes=minutes, pages_read=pages
        )
    except (ReadTrackError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(
        f"Updated session on {reading_session.date}: "
        f"{format_duration(reading_session.duration_seconds)}, {reading_session.pages_read} pages"
    )


@sessions_app.command("delete")
def sessions_delete(
    session_id: str = typer.Argument(..., help="Session ID"),
) -> None:
    """Delete a session."""
    from .reading import SessionManager

    try:
        SessionManager(get_db()).delete_session(session_id)
    except ReadTrackError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success("Session deleted.")


@app.command()
def today() -> None:
    """Show what you have read today and your current streak."""
    from .reading import SessionManager
    from .stats import StatsService

    db = get_db()
    summary = SessionManager(db).today_summary()
    stats_service = StatsService(db)
    goal = stats_service.year_goal()
    report = stats_service.get_statistics()

    table = Table(title=f"Today ({summary.date})", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Pages", str(summary.pages_read))
    table.add_row("Time", format_duration_short(summary.duration_seconds))
    table.add_row("Streak", f"{report.statistics.streak} days")
    table.add_row("Yearly goal", f"{goal.finished}/{goal.goal} ({goal.percent}%)")
    console.print(table)

    reading = db.list_user_books(BookStatus.READING.value)
    if reading:
        console.print(format_book_table(reading, title="Currently Reading"))


# ============================================================================
# Statistics
# ============================================================================


@app.command()
def stats(
    period: str = typer.Option(
        "yearly", "--period", "-p", help="monthly, yearly or all-time"
    ),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Year (default: this year)"),
    month: Optional[int] = typer.Option(None, "--month", "-m", help="Month 1-12 (monthly only)"),
) -> None:
    """Show reading statistics for a month, a year or all time."""
    from .stats import Period, StatsService

    try:
        selected = Period(period.replace("-", "_").lower())
    except ValueError:
        print_error(f"Unknown period: {period}. Use monthly, yearly or all-time.")
        raise typer.Exit(1)
    if month is not None and not 1 <= month <= 12:
        print_error("Month must be between 1 and 12.")
        raise typer.Exit(1)

    report = StatsService(get_db()).get_statistics(selected, year=year, month=month)
    s = report.statistics

    table = Table(title=f"Reading Stats: {report.label}", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Books finished", str(s.books_finished))
    table.add_row("Time reading", format_duration_short(s.total_seconds))
    table.add_row("Pages read", str(s.total_pages))
    table.add_row("Avg pages/day", str(s.average_pages_per_day))
    table.add_row("Current streak", f"{s.streak} days")
    if s.goal:
        status = "completed!" if s.goal.completed else f"{s.goal.percent}%"
        table.add_row("Yearly goal", f"{s.goal.finished}/{s.goal.goal} ({status})")
    if s.pace.books_measured:
        table.add_row("Avg days to finish", str(s.pace.average_days))
        table.add_row("Quickest", f"{s.pace.quickest.title} ({s.pace.quickest.days} days)")
        table.add_row("Longest", f"{s.pace.longest.title} ({s.pace.longest.days} days)")
    if s.longest_session:
        table.add_row(
            "Longest session",
            f"{format_duration(s.longest_session.duration_seconds)} "
            f"({s.longest_session.title}, {s.longest_session.date})",
        )
    if s.shortest_session:
        table.add_row(
            "Shortest session",
            f"{format_duration(s.shortest_session.duration_seconds)} "
            f"({s.shortest_session.title}, {s.shortest_session.date})",
        )
    console.print(table)

    if s.books_per_period and any(p.books for p in s.books_per_period):
        per_period = Table(title="Books Finished", show_header=True, header_style="bold")
        per_period.add_column("Period", style="cyan")
        per_period.add_column("Books", justify="right")
        per_period.add_column("")
        for p in s.books_per_period:
            per_period.add_row(p.label, str(p.books), "█" * p.books)
        console.print(per_period)

    for title, rows in (("Top Genres", s.genres), ("Top Authors", s.authors)):
        if rows:
            dist = Table(title=title, show_header=False)
            dist.add_column("Name", style="cyan")
            dist.add_column("Books", justify="right")
            for name, count in rows:
                dist.add_row(name, str(count))
            console.print(dist)

    if s.ratings:
        ratings = Table(title="Ratings", show_header=False)
        ratings.add_column("Rating", style="cyan")
        ratings.add_column("Books", justify="right")
        for value, count in s.ratings:
            ratings.add_row(f"★{value:.1f}", str(count))
        console.print(ratings)

    if not s.books_finished and not s.total_seconds:
        print_info("No reading recorded for this period.")


# ============================================================================
# Import Commands
# ============================================================================


@import_app.command("goodreads")
def import_goodreads_cmd(
    file: Path = typer.Argument(..., help="Goodreads export CSV"),
    enrich: bool = typer.Option(
        True, "--enrich/--no-enrich", help="Look up covers and genres on Open Library"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Import without confirmation"),
) -> None:
    """Import books from a Goodreads library export."""
    from rich.progress import Progress

    from .api import OpenLibraryClient
    from .imports import GoodreadsImporter, enrich_with_openlibrary, read_goodreads_file
    from .imports.goodreads import to_import_book

    try:
        rows = read_goodreads_file(file)
    except ReadTrackError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not rows:
        print_error("No books found in CSV. Make sure it's a valid Goodreads export.")
        raise typer.Exit(1)

    console.print(f"[bold]Found {len(rows)} books[/bold]")

    if enrich:
        client = OpenLibraryClient(timeout=get_config().http_timeout)
        with Progress(console=console) as progress:
            task = progress.add_task("Looking up books...", total=len(rows))
            books = enrich_with_openlibrary(
                rows,
                client,
                on_progress=lambda done, total: progress.update(task, completed=done),
            )
    else:
        books = [to_import_book(row) for row in rows]

    if not yes and not typer.confirm(f"Import {len(books)} books?", default=True):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(0)

    result = GoodreadsImporter(get_db()).import_books(books, source_file=file)

    print_success(result.summary)
    for message in result.error_messages[:10]:
        print_warning(message)
    if len(result.error_messages) > 10:
        print_info(f"... and {len(result.error_messages) - 10} more")


# ============================================================================
# Discovery Commands
# ============================================================================


@app.command()
def recommend(
    prompt: str = typer.Argument(..., help='What you want to read, e.g. "a cozy mystery set in Japan"'),
    add: Optional[list[int]] = typer.Option(
        None, "--add", "-a", help="Add recommendation N to your to-read list (repeatable)"
    ),
) -> None:
    """Ask Claude for six book recommendations."""
    from .discovery import ExploreService, RecommendationService

    db = get_db()
    console.print("[dim]Finding books...[/dim]")
    try:
        books = RecommendationService(db).recommend(prompt)
    except ReadTrackError as e:
        message = str(e)
        if message == "ANTHROPIC_API_KEY not configured":
            message = "AI recommendations require an Anthropic API key. Set ANTHROPIC_API_KEY."
        print_error(message)
        raise typer.Exit(1)

    for i, book in enumerate(books, 1):
        console.print(
            Panel(
                f"{book.description}\n\n[italic]{book.reason}[/italic]",
                title=f"{i}. {book.title} by {book.author}",
                title_align="left",
            )
        )

    if add:
        explore = ExploreService(db)
        for n in add:
            if not 1 <= n <= len(books):
                print_warning(f"No recommendation #{n}")
                continue
            explore.add_to_tbr(books[n - 1])
            print_success(f"Added to your to-read list: {books[n - 1].title}")


@app.command()
def explore() -> None:
    """Suggest books from your favourite genre and author."""
    from .discovery import ExploreService

    result = ExploreService(get_db()).explore()

    if not result.top_genres and not result.top_authors:
        console.print("[dim]Finish or start some books to get suggestions.[/dim]")
        return

    if result.top_genres:
        console.print(f"[bold]Top genres:[/bold] {', '.join(result.top_genres)}")
    if result.top_authors:
        console.print(f"[bold]Top authors:[/bold] {', '.join(result.top_authors)}")

    sections = (
        (f"More {result.top_genres[0]}" if result.top_genres else "", result.genre_suggestions),
        (f"More by {result.top_authors[0]}" if result.top_authors else "", result.author_suggestions),
    )
    for title, books in sections:
        if not books:
            continue
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Author", style="green", max_width=25)
        table.add_column("Rating", justify="center")
        for b in books:
            table.add_row(b.title, b.author, format_rating(b.average_rating))
        console.print(table)


# ============================================================================
# Profile and Goals
# ============================================================================


@profile_app.command("show")
def profile_show() -> None:
    """Show your profile and goals."""
    from .profile import ProfileManager

    manager = ProfileManager(get_db())
    profile = manager.get_profile()
    resolver = manager.goal_resolver()

    table = Table(title="Profile", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Username", profile.username or "-")
    table.add_row("Yearly goal", str(profile.yearly_goal))
    for year in sorted(resolver.overrides):
        table.add_row(f"Goal {year}", str(resolver.overrides[year]))
    console.print(table)


@profile_app.command("set")
def profile_set(
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Display name"),
    goal: Optional[int] = typer.Option(None, "--goal", "-g", help="Books to read this year (1-1000)"),
) -> None:
    """Update your profile."""
    from .profile import ProfileManager

    if username is None and goal is None:
        print_warning("Nothing to update.")
        raise typer.Exit(0)

    profile = ProfileManager(get_db()).update_profile(username=username, yearly_goal=goal)
    print_success(f"Profile updated. Yearly goal: {profile.yearly_goal}")


@goal_app.command("set")
def goal_set(
    goal: int = typer.Argument(..., help="Books to read (1-1000)"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Year (default: this year)"),
) -> None:
    """Set the reading goal for a year."""
    from .profile import ProfileManager

    year = year or date.today().year
    stored = ProfileManager(get_db()).set_year_goal(year, goal)
    if stored != goal:
        print_warning(f"Goal must be between 1 and 1000; using {stored}.")
    print_success(f"Goal for {year}: {stored} books")


@goal_app.command("clear")
def goal_clear(
    year: int = typer.Option(..., "--year", "-y", help="Year"),
) -> None:
    """Remove the goal set for a year."""
    from .profile import ProfileManager

    if ProfileManager(get_db()).clear_year_goal(year):
        print_success(f"Cleared the goal for {year}.")
    else:
        print_warning(f"No goal was set for {year}.")


# ============================================================================
# Maintenance
# ============================================================================


@app.command("backfill-covers")
def backfill_covers(
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="Only this shelf"),
) -> None:
    """Find covers for books that have none."""
    from .api import BookDetailsService, GoogleBooksClient, OpenLibraryClient
    from .library import LibraryService

    config = get_config()
    lookup = BookDetailsService(
        google=GoogleBooksClient(api_key=config.google_books_api_key, timeout=config.http_timeout),
        openlibrary=OpenLibraryClient(timeout=config.http_timeout),
        cache_ttl=config.cache_ttl,
    )
    written = LibraryService(get_db()).backfill_covers(lookup, status=status)
    print_success(f"Added {written} cover(s).")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"readtrack version {__version__}")
    print_info(f"Database: {get_config().db_path}")
    print_info(f"Today: {local_date_str()}")


if __name__ == "__main__":
    app()
