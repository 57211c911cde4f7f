"""
Recall developer CLI.

A Rich terminal interface for poking at the scheduler without a host
application. Nothing is persisted; every command runs against a fresh
in-memory scheduler.

Commands:
- recall card-id    - Derive a card identifier from title, author and text
- recall simulate   - Replay an outcome sequence and show each transition
- recall config     - Show the effective scheduler configuration
"""
from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .card_id import derive_card_id
from .config import get_settings
from .errors import RecallError
from .models import CardState, Outcome, ScheduleRecord
from .scheduler import Scheduler

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="recall",
    help="Recall: spaced repetition scheduling tools",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "error": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "state": {
        CardState.NEW: "green",
        CardState.LEARNING: "blue",
        CardState.REVIEW: "cyan",
        CardState.RELEARNING: "magenta",
    },
    "outcome": {
        Outcome.AGAIN: "red",
        Outcome.HARD: "yellow",
        Outcome.GOOD: "green",
        Outcome.EASY: "bright_blue",
    },
}


def style_state(state: CardState) -> str:
    color = STYLES["state"][state]
    return f"[{color}]{state.value}[/{color}]"


def style_outcome(outcome: Outcome) -> str:
    color = STYLES["outcome"][outcome]
    return f"[{color}]{outcome.value}[/{color}]"


def format_wait(delta: timedelta) -> str:
    """Render a wait as minutes, hours or days."""
    minutes = delta.total_seconds() / 60
    if minutes < 60:
        return f"{minutes:.0f}m"
    if minutes < 60 * 24:
        return f"{minutes / 60:.1f}h"
    return f"{minutes / (60 * 24):.0f}d"


class SimulatedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance_to(self, moment: datetime) -> None:
        if moment > self.current:
            self.current = moment


# =============================================================================
# Commands
# =============================================================================


@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Recall: spaced repetition scheduling tools."""
    if debug:
        configure_logging("DEBUG")


@app.command("card-id")
def card_id(
    title: str = typer.Argument(..., help="Book or source title"),
    author: str = typer.Argument(..., help="Author name"),
    content: str = typer.Argument(..., help="Highlighted text"),
) -> None:
    """Derive the stable identifier for a highlight."""
    try:
        console.print(derive_card_id(title, author, content))
    except RecallError as e:
        console.print(f"[{STYLES['error']}]{e}[/{STYLES['error']}]")
        raise typer.Exit(1)


@app.command()
def simulate(
    outcomes: list[str] = typer.Argument(..., help="Outcomes in order: again, hard, good, easy"),
    advance: bool = typer.Option(
        True,
        "--advance/--no-advance",
        help="Move the clock to each card's due time before the next review",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the final record as JSON"),
) -> None:
    """Replay an outcome sequence against a fresh card."""
    try:
        parsed = [Outcome.parse(o) for o in outcomes]
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="OUTCOMES")

    clock = SimulatedClock(datetime.now().replace(microsecond=0))
    scheduler = Scheduler(config=get_settings().to_config(), clock=clock)
    card = "simulated-card"

    table = Table(title="Simulated Reviews")
    table.add_column("#", justify="right")
    table.add_column("Outcome")
    table.add_column("State")
    table.add_column("Step", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Lapses", justify="right")
    table.add_column("Next in", justify="right")

    record: ScheduleRecord = scheduler.get_or_create(card)
    for index, outcome in enumerate(parsed, start=1):
        if advance and record.next_review_at is not None:
            clock.advance_to(record.next_review_at)
        record = scheduler.review(card, outcome)
        wait = record.next_review_at - clock() if record.next_review_at else timedelta(0)
        table.add_row(
            str(index),
            style_outcome(outcome),
            style_state(record.state) + (" [red](buried)[/red]" if record.buried else ""),
            str(record.current_step) if record.state.in_steps else "-",
            f"{record.interval_days}d",
            f"{record.ease_factor:.2f}",
            str(record.lapses),
            format_wait(wait),
        )

    if as_json:
        console.print_json(json.dumps(record.to_dict()))
    else:
        console.print(table)


@app.command("config")
def show_config() -> None:
    """Show the effective scheduler configuration."""
    config = get_settings().to_config()

    table = Table(title="Scheduler Configuration")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    for name, value in config.to_dict().items():
        table.add_row(name, str(value))
    console.print(table)

    if config.adjustments:
        console.print(f"\n[{STYLES['warning']}]Clamped values[/{STYLES['warning']}]")
        for adj in config.adjustments:
            console.print(f"  {adj.field}: {adj.given!r} -> {adj.applied!r}")


# =============================================================================
# Entry Point
# =============================================================================


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<level>{message}</level>",
    )


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings().effective_log_level)
    app()


if __name__ == "__main__":
    main()
