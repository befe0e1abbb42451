#!/usr/bin/env python3
"""
ScoreRead - practice scheduler for musicians.
CLI interface for managing pieces and spots, and running practice sessions.
"""

import logging
import time
from datetime import timedelta

import click
from rich.console import Console
from rich.table import Table

from config import Config
from core.dto import SessionMode, SpotPriority, SpotResult, utc_now
from core.errors import ScoreReadError
from core.service import PracticeService
from storage.database import Database

console = Console()

COLOR_STYLES = {
    "red": "bold red",
    "yellow": "yellow",
    "green": "green",
    "blue": "blue",
}

# Single-key answers accepted during a practice session
RESULT_KEYS = {
    "f": SpotResult.FAILED,
    "s": SpotResult.STRUGGLED,
    "g": SpotResult.GOOD,
    "e": SpotResult.EXCELLENT,
}


class TickClock:
    """Whole-second ticks from a monotonic clock; fractions carry over to the next read."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._last = clock()

    def take(self):
        """Whole seconds since the previous take() or restart()."""
        whole = int(self._clock() - self._last)
        self._last += whole
        return whole

    def restart(self):
        self._last = self._clock()


def _format_seconds(seconds):
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def _spots_table(title, spots, now):
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Spot", style="white")
    table.add_column("Page", justify="right")
    table.add_column("Priority", style="magenta")
    table.add_column("Readiness", style="cyan")
    table.add_column("Color")
    table.add_column("Due", justify="right")
    table.add_column("Success", justify="right")

    for spot in spots:
        due_in = (spot.next_due - now).total_seconds()
        if due_in <= 0:
            due = "now"
        elif due_in < 86400:
            due = f"in {due_in / 3600:.0f}h"
        else:
            due = f"in {due_in / 86400:.0f}d"
        table.add_row(
            spot.id[:8],
            spot.title,
            str(spot.page_number),
            spot.priority.value,
            spot.readiness_level.value,
            f"[{COLOR_STYLES[spot.color.value]}]{spot.color.value}[/]",
            due,
            f"{spot.success_count}/{spot.practice_count}",
        )
    return table


def _resolve_spot_id(service, prefix):
    """Expand an id prefix (as shown in tables) to the full spot id."""
    matches = [s.id for s in service.spots() if s.id.startswith(prefix)]
    if len(matches) != 1:
        raise click.BadParameter(f"'{prefix}' matches {len(matches)} spots", param_hint="SPOT_ID")
    return matches[0]


def _resolve_piece_id(service, prefix):
    if prefix is None:
        return None
    matches = [p.id for p in service.pieces() if p.id.startswith(prefix)]
    if len(matches) != 1:
        raise click.BadParameter(f"'{prefix}' matches {len(matches)} pieces", param_hint="--piece")
    return matches[0]


@click.group()
@click.version_option(version="0.1.0", prog_name="ScoreRead")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose):
    """ScoreRead - spaced-repetition practice for difficult passages."""
    level = logging.DEBUG if verbose else getattr(logging, Config.LOG_LEVEL.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
def init():
    """Initialize ScoreRead database."""
    console.print("\n[bold cyan]Initializing ScoreRead...[/bold cyan]\n")

    try:
        Config.ensure_dirs()
        with Database() as db:
            db.initialize()

        console.print("[bold green]✨ ScoreRead initialized successfully![/bold green]\n")
        console.print(f"Database: {Config.DB_PATH}")
        console.print(f"Data directory: {Config.DATA_DIR}\n")
        console.print("Next steps:")
        console.print("  • scoreread add-piece <TITLE> --composer <NAME>")
        console.print("  • scoreread add-spot <PIECE_ID> <TITLE> --page <N>")
        console.print("  • scoreread practice\n")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


@cli.command("add-piece")
@click.argument("title")
@click.option("--composer", "-c", required=True, help="Composer name")
@click.option("--difficulty", "-d", type=click.IntRange(1, 5), default=3, help="Difficulty 1-5")
@click.option("--concert", type=click.DateTime(formats=["%Y-%m-%d"]), help="Concert date (YYYY-MM-DD)")
def add_piece(title, composer, difficulty, concert):
    """Add a piece to the library."""
    try:
        with Database() as db:
            db.initialize()
            piece = PracticeService(db).add_piece(title, composer, difficulty=difficulty, concert_date=concert)

        console.print(f"\n[green]✓[/green] Added [bold]{piece.title}[/bold] ({piece.composer})")
        console.print(f"  ID: [cyan]{piece.id}[/cyan]\n")

    except (ScoreReadError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


@cli.command("add-spot")
@click.argument("piece_id")
@click.argument("title")
@click.option("--page", "-p", type=int, default=1, help="Page number (1-based)")
@click.option(
    "--region",
    nargs=4,
    type=float,
    default=(0.0, 0.0, 1.0, 1.0),
    help="Region as X Y WIDTH HEIGHT, relative to the page (0-1)",
)
@click.option(
    "--priority",
    type=click.Choice([p.value for p in SpotPriority]),
    default=SpotPriority.MEDIUM.value,
    help="Practice priority",
)
@click.option("--description", help="What makes this passage hard")
def add_spot(piece_id, title, page, region, priority, description):
    """Mark a passage of a piece as a practice spot."""
    try:
        with Database() as db:
            db.initialize()
            service = PracticeService(db)
            spot = service.add_spot(
                _resolve_piece_id(service, piece_id),
                title,
                page_number=page,
                region=tuple(region),
                priority=SpotPriority(priority),
                description=description,
            )

        console.print(f"\n[green]✓[/green] Added spot [bold]{spot.title}[/bold] on page {spot.page_number}")
        console.print(f"  ID: [cyan]{spot.id}[/cyan]\n")

    except (ScoreReadError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


@cli.command()
@click.option("--piece", help="Limit to one piece (id or id prefix)")
def spots(piece):
    """List practice spots with their schedule."""
    try:
        now = utc_now()
        with Database() as db:
            db.initialize()
            service = PracticeService(db)
            all_spots = service.spots(_resolve_piece_id(service, piece))

        if not all_spots:
            console.print("\n[yellow]No spots yet. Add one with 'scoreread add-spot'.[/yellow]\n")
            return

        console.print(_spots_table("\n🎼 Practice Spots", all_spots, now))
        console.print(f"\nTotal: {len(all_spots)} spots\n")

    except ScoreReadError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


@cli.command()
@click.option("--piece", help="Limit to one piece (id or id prefix)")
def due(piece):
    """Show spots due for practice, most urgent first."""
    try:
        now = utc_now()
        with Database() as db:
            db.initialize()
            service = PracticeService(db)
            piece_id = _resolve_piece_id(service, piece)
            due_spots = service.due_spots(piece_id, now=now)
            summaries = service.piece_summaries(now=now)

        if not due_spots:
            console.print("\n[green]Nothing due right now.[/green]\n")
        else:
            console.print(_spots_table("\n⏰ Due Spots", due_spots, now))

        if summaries and piece_id is None:
            table = Table(title="Pieces", show_header=True, header_style="bold")
            table.add_column("Piece", style="cyan")
            table.add_column("Ready", justify="right")
            table.add_column("Due", justify="right")
            table.add_column("Concert", justify="right")
            for summary in summaries:
                concert = "" if summary.days_until_concert is None else f"{summary.days_until_concert}d"
                table.add_row(
                    summary.title,
                    f"{summary.readiness_percentage:.0f}%",
                    str(summary.due_spots),
                    concert,
                )
            console.print(table)
        console.print()

    except ScoreReadError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


@cli.command()
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in SessionMode]),
    default=SessionMode.SMART.value,
    help="Session mode",
)
@click.option("--piece", help="Limit to one piece (id or id prefix)")
@click.option("--minutes", type=int, help="Time per spot in minutes (default: recommended per spot)")
@click.option("--target", type=int, help=f"Session length in minutes (default: {Config.SESSION_TARGET_MINUTES})")
@click.option("--max-spots", type=click.IntRange(min=1), help="Maximum number of spots")
def practice(mode, piece, minutes, target, max_spots):
    """Run an interactive practice session."""
    try:
        with Database() as db:
            db.initialize()
            service = PracticeService(db)
            session = service.start_practice(
                SessionMode(mode),
                piece_id=_resolve_piece_id(service, piece),
                allocated_time_per_spot=minutes * 60 if minutes else None,
                target_minutes=target,
                max_spots=max_spots,
            )
            total = len(session.spot_sessions)
            console.print(f"\n[bold cyan]{session.name}[/bold cyan] - {total} spots\n")
            console.print(
                "[dim]Rate each spot: (f)ailed (s)truggled (g)ood (e)xcellent, "
                "(k) skip, (p) pause, (q) quit[/dim]\n"
            )

            ticker = TickClock()
            while service.machine.is_active:
                spot = service.current_spot()
                progress = service.progress()
                allocated = session.spot_sessions[progress.current_index].allocated_time
                console.print(
                    f"[bold]{progress.current_index + 1}/{total}[/bold] {spot.title} "
                    f"(page {spot.page_number}, {spot.readiness_level.value}) "
                    f"[dim]~{_format_seconds(allocated)}[/dim]"
                )

                answer = click.prompt(
                    "  Result",
                    type=click.Choice(list(RESULT_KEYS) + ["k", "p", "q"]),
                    show_choices=False,
                )
                service.tick(ticker.take())

                if answer in RESULT_KEYS:
                    updated = service.complete_current_spot(RESULT_KEYS[answer])
                    console.print(
                        f"  [green]✓[/green] next due {updated.next_due:%Y-%m-%d %H:%M} "
                        f"({updated.readiness_level.value})\n"
                    )
                elif answer == "k":
                    service.skip_current_spot()
                elif answer == "p":
                    service.pause()
                    click.prompt("  Paused - press Enter to resume", default="", show_default=False)
                    service.resume()
                    ticker.restart()
                else:
                    session = service.cancel(now=utc_now())
                    console.print(
                        f"\n[yellow]Session cancelled after "
                        f"{len(session.completed_spots)}/{total} spots.[/yellow]\n"
                    )
                    return

            session = service.finish()

        console.print("[bold green]✨ Session complete![/bold green]")
        console.print(f"  Time: {_format_seconds(session.elapsed_seconds)}")
        console.print(f"  Success rate: {session.success_rate * 100:.0f}%\n")

    except ScoreReadError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


@cli.command()
@click.option("--days", type=int, default=30, help="Window in days")
def stats(days):
    """Show practice statistics and streaks."""
    try:
        with Database() as db:
            db.initialize()
            result = PracticeService(db).stats(since=utc_now() - timedelta(days=days))

        table = Table(title=f"\n📊 Last {days} days", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white", justify="right")
        table.add_row("Sessions", str(result.total_sessions))
        table.add_row("Completed", str(result.completed_sessions))
        table.add_row("Cancelled", str(result.cancelled_sessions))
        table.add_row("Practice time", _format_seconds(result.total_practice_seconds))
        table.add_row("Spots worked", str(result.spots_worked))
        for name, count in result.results.items():
            table.add_row(f"  {name}", str(count))
        table.add_row("Success rate", f"{result.success_rate * 100:.0f}%")
        table.add_row("Current streak", f"{result.current_streak} days")
        table.add_row("Longest streak", f"{result.longest_streak} days")
        console.print(table)
        console.print()

    except ScoreReadError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise click.Abort()


if __name__ == "__main__":
    cli()
