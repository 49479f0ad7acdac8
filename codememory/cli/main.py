"""
CodeMemory CLI - spaced-repetition reviews from the terminal.

Usage:
    codememory init                    # Make every catalog item known
    codememory review ITEM good        # Rate an item (1-4 or again/hard/good/easy)
    codememory preview ITEM            # Show where each rating would schedule it
    codememory due                     # List due items
    codememory mastery CONCEPT         # Concept mastery
    codememory streak                  # Daily streak
    codememory stats                   # Learner dashboard
    codememory reset --yes             # Delete all progress
    codememory serve                   # Run the HTTP API

Every command accepts --learner; without it progress stays on this device.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codememory.config import get_settings
from codememory.core.exceptions import CodeMemoryError, ValidationError
from codememory.core.logging import configure_logging
from codememory.progress.mastery import MasteryLevel
from codememory.review.service import ReviewService, build_review_service
from codememory.scheduling.models import CardState
from codememory.store.router import is_anonymous

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="codememory",
    help="🧠 CodeMemory - spaced-repetition reviews for programming concepts",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()

LearnerOption = Annotated[
    str | None,
    typer.Option("--learner", "-l", help="Learner id (omit for device-local progress)"),
]

STATE_COLORS = {
    CardState.NEW: "blue",
    CardState.LEARNING: "yellow",
    CardState.REVIEW: "green",
    CardState.RELEARNING: "red",
}


def _service(learner: str | None, catalog: bool = True) -> ReviewService:
    """
    Build the service; anonymous sessions never touch the account database.

    Commands that only read or clear progress pass catalog=False so they work
    without a catalog file.
    """
    return build_review_service(
        get_settings(), with_accounts=not is_anonymous(learner), load_catalog=catalog
    )


@contextmanager
def _errors() -> Iterator[None]:
    """Map engine errors to a message and exit code (2 = bad input, 1 = failure)."""
    try:
        yield
    except ValidationError as e:
        console.print(f"[red]Invalid input:[/] {e}")
        raise typer.Exit(code=2) from e
    except CodeMemoryError as e:
        console.print(f"[red]{type(e).__name__}:[/] {e}")
        raise typer.Exit(code=1) from e


# =============================================================================
# Review Commands
# =============================================================================


@app.command()
def init(learner: LearnerOption = None) -> None:
    """Initialize every catalog item for the learner (existing progress is kept)."""
    with _errors():
        created = _service(learner).initialize_items(learner)
    console.print(f"[green]✓[/] Initialized {created} new items")


@app.command()
def review(
    item: Annotated[str, typer.Argument(help="Item id")],
    rating: Annotated[str, typer.Argument(help="1-4 or again/hard/good/easy")],
    learner: LearnerOption = None,
) -> None:
    """
    Submit a review for one item.

    Examples:
        codememory review closures-001 good
        codememory review closures-001 1 --learner alice
    """
    with _errors():
        result = _service(learner).submit_review(learner, item, rating)

    state = result.state
    color = STATE_COLORS[state.state]
    lines = [
        f"Rating: [bold]{result.rating.label}[/]",
        f"State: [{color}]{state.state.label}[/]",
        f"Next review: {state.due_at:%Y-%m-%d %H:%M} UTC"
        + (f" ({state.scheduled_days}d)" if state.scheduled_days else ""),
        f"Stability: {state.stability:.2f}d  Difficulty: {state.difficulty:.2f}",
    ]
    if result.mastery is not None:
        level = MasteryLevel.from_score(result.mastery.mastery_level)
        lines.append(
            f"{result.concept_id}: [{level.color}]{result.mastery.mastery_level:.0f}% "
            f"{level.display_name}[/]"
        )
    lines.append(f"Streak: 🔥 {result.streak.current_streak}")
    console.print(Panel("\n".join(lines), title=f"✓ {item}", border_style=color))


@app.command()
def preview(
    item: Annotated[str, typer.Argument(help="Item id")],
    learner: LearnerOption = None,
) -> None:
    """Show the schedule each rating would produce, without saving."""
    with _errors():
        outcomes = _service(learner).preview_review(learner, item)

    table = Table(title=f"Preview: {item}")
    table.add_column("Rating", style="bold")
    table.add_column("State")
    table.add_column("Interval", justify="right")
    table.add_column("Due (UTC)")
    table.add_column("Stability", justify="right")
    for rating, state in outcomes.items():
        if state.scheduled_days:
            interval = f"{state.scheduled_days}d"
        else:
            interval = f"{(state.due_at - state.last_reviewed_at) // timedelta(minutes=1)}m"
        table.add_row(
            rating.label,
            f"[{STATE_COLORS[state.state]}]{state.state.label}[/]",
            interval,
            f"{state.due_at:%Y-%m-%d %H:%M}",
            f"{state.stability:.2f}",
        )
    console.print(table)


@app.command()
def due(learner: LearnerOption = None) -> None:
    """List items due now, earliest first."""
    with _errors():
        states = _service(learner, catalog=False).list_due_items(learner)

    if not states:
        console.print("[green]All caught up![/] Nothing is due.")
        return

    table = Table(title=f"Due items ({len(states)})")
    table.add_column("Item", style="cyan")
    table.add_column("State")
    table.add_column("Due (UTC)")
    table.add_column("Reps", justify="right")
    table.add_column("Lapses", justify="right")
    for state in states:
        table.add_row(
            state.item_id,
            f"[{STATE_COLORS[state.state]}]{state.state.label}[/]",
            f"{state.due_at:%Y-%m-%d %H:%M}",
            str(state.reps),
            str(state.lapses),
        )
    console.print(table)


# =============================================================================
# Progress Commands
# =============================================================================


@app.command()
def mastery(
    concept: Annotated[str, typer.Argument(help="Concept id")],
    learner: LearnerOption = None,
) -> None:
    """Show mastery for one concept."""
    with _errors():
        record = _service(learner, catalog=False).get_concept_mastery(learner, concept)

    if record is None:
        console.print(f"[dim]No reviews recorded for {concept} yet.[/]")
        return

    level = MasteryLevel.from_score(record.mastery_level)
    console.print(
        Panel(
            f"Mastery: [{level.color}]{record.mastery_level:.1f}% ({level.display_name})[/]\n"
            f"Retention: {record.retention_rate:.1f}%\n"
            f"Reviews: {record.total_reviews}",
            title=concept,
            border_style=level.color,
        )
    )


@app.command()
def streak(learner: LearnerOption = None) -> None:
    """Show the daily review streak."""
    with _errors():
        record = _service(learner, catalog=False).get_streak(learner)

    last = record.last_active_date.isoformat() if record.last_active_date else "never"
    console.print(
        Panel(
            f"Current: 🔥 [bold]{record.current_streak}[/] days\n"
            f"Longest: {record.longest_streak} days\n"
            f"Active days: {record.total_active_days}\n"
            f"Last active: {last}",
            title="Streak",
            border_style="yellow",
        )
    )


@app.command()
def stats(
    days: Annotated[int, typer.Option("--days", "-d", min=1, max=365, help="Activity window")] = 7,
    recent: Annotated[
        int, typer.Option("--recent", "-r", min=1, max=100, help="Latest reviews to list")
    ] = 10,
    learner: LearnerOption = None,
) -> None:
    """Learner dashboard: totals, rating mix and recent activity."""
    with _errors():
        service = _service(learner, catalog=False)
        summary = service.get_stats(learner)
        activity = service.get_activity_summary(learner, days=days)
        history = service.recent_reviews(learner, limit=recent)

    retention = (
        f"{summary.average_retention:.1f}%" if summary.average_retention is not None else "-"
    )
    console.print(
        Panel(
            f"Items: {summary.total_items}  Due: {summary.due_now}  "
            f"Reviewed today: {summary.reviewed_today}\n"
            f"Reviews: {summary.total_reviews}  Predicted recall: {retention}\n"
            f"Concepts mastered: {summary.concepts_mastered}/{summary.concepts_tracked}\n"
            f"Streak: 🔥 {summary.current_streak} (longest {summary.longest_streak})",
            title="📊 Stats",
            border_style="cyan",
        )
    )

    ratings = Table(title="Ratings")
    ratings.add_column("Rating")
    ratings.add_column("Count", justify="right")
    ratings.add_column("%", justify="right")
    for share in activity.ratings:
        ratings.add_row(share.rating.label, str(share.count), str(share.percentage))
    console.print(ratings)

    daily = Table(title=f"Last {days} days")
    daily.add_column("Date")
    daily.add_column("Reviews", justify="right")
    for entry in activity.daily:
        daily.add_row(entry.day.isoformat(), str(entry.count))
    console.print(daily)

    if history:
        latest = Table(title="Recent reviews")
        latest.add_column("When (UTC)")
        latest.add_column("Item", style="cyan")
        latest.add_column("Rating")
        latest.add_column("State")
        latest.add_column("Next due (UTC)")
        for event in history:
            latest.add_row(
                f"{event.reviewed_at:%Y-%m-%d %H:%M}",
                event.item_id,
                event.rating.label,
                f"[{STATE_COLORS[event.result.state]}]{event.result.state.label}[/]",
                f"{event.result.due_at:%Y-%m-%d %H:%M}",
            )
        console.print(latest)


@app.command()
def reset(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Confirm deletion")] = False,
    learner: LearnerOption = None,
) -> None:
    """Delete all progress for the learner."""
    if not yes:
        console.print("[yellow]This deletes every review, mastery record and streak.[/]")
        console.print("Re-run with [bold]--yes[/] to confirm.")
        raise typer.Exit(code=1)

    with _errors():
        _service(learner, catalog=False).reset_all(learner)
    console.print("[green]✓[/] Progress reset")


# =============================================================================
# Server
# =============================================================================


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Bind address")] = None,
    port: Annotated[int | None, typer.Option(help="Port")] = None,
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from codememory.api.main import create_app

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    with _errors():
        api = create_app(build_review_service(settings))
    uvicorn.run(
        api,
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """CLI entry point."""
    configure_logging(level="WARNING", log_file=get_settings().log_file)
    app()


if __name__ == "__main__":
    main()
