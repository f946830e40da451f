"""
Command-line interface for the exam planner.

Every command works on a snapshot JSON file (STATE). A missing file starts
from a fresh state; mutating commands write the state back.

Usage:
    python -m planner import-subjects state.json subjects.xlsx --mode merge
    python -m planner import-rooms state.json rooms.csv
    python -m planner summary state.json
    python -m planner export state.json --format csv -o exams.csv
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .data.loader import DataValidationError, load_state, read_rows, save_state
from .data.models import PlannerConfig
from .output.formatters import export as render_export
from .state import PlannerState

# Create Typer app
app = typer.Typer(
    name="planner",
    help="Exam calendar planner: import catalogs, place exams, export calendars.",
    add_completion=False,
)

# Rich console for pretty output
console = Console()


class ImportMode(str, Enum):
    REPLACE = "replace"
    MERGE = "merge"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    TXT = "txt"


# =============================================================================
# Helper Functions
# =============================================================================

@app.callback()
def configure(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show debug logging",
    ),
) -> None:
    """Exam calendar planner."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def open_state(state_file: Path, config: Optional[PlannerConfig] = None) -> PlannerState:
    """Load a state file or exit with a readable error."""
    try:
        return load_state(state_file, config=config)
    except (DataValidationError, ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]Error loading state:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)


def open_rows(rows_file: Path) -> list[dict]:
    try:
        return read_rows(rows_file)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] File not found: {rows_file}")
        raise typer.Exit(code=1)
    except DataValidationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)


def write_state(state: PlannerState, state_file: Path) -> None:
    save_state(state, state_file)
    console.print(f"[green]State saved to:[/green] {state_file}")


def print_summary(state: PlannerState) -> None:
    """Print state summary to console."""
    counts = state.summary()

    table = Table(title="Summary", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Subjects", str(counts["subjects"]))
    table.add_row("Hidden subjects", str(counts["hidden_subjects"]))
    table.add_row("Periods", str(counts["periods"]))
    active = counts["active_period"]
    table.add_row("Active period", "-" if active is None else str(active))
    table.add_row("Placements", str(counts["placements"]))
    table.add_row("Room records", str(counts["room_records"]))

    console.print(table)

    periods = Table(title="Periods")
    periods.add_column("Id", style="cyan")
    periods.add_column("Label")
    periods.add_column("Kind")
    periods.add_column("Window")
    periods.add_column("Slots")
    for period in state.periods:
        slots = state.slots_per_period.get(period.id, [])
        periods.add_row(
            str(period.id),
            period.label,
            period.kind.value,
            f"{period.start_date or '?'} .. {period.end_date or '?'}",
            ", ".join(str(s) for s in slots),
        )
    console.print(periods)


# =============================================================================
# Commands
# =============================================================================

@app.command("import-subjects")
def import_subjects(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
    rows_file: Path = typer.Argument(..., help="Subject/period CSV or XLSX file"),
    mode: ImportMode = typer.Option(
        ImportMode.REPLACE,
        "--mode", "-m",
        help="replace rebuilds the catalog; merge folds rows into it",
    ),
) -> None:
    """
    Import the subject and period catalog.

    Example:
        python -m planner import-subjects state.json subjects.csv --mode merge
    """
    state = open_state(state_file)
    rows = open_rows(rows_file)

    if mode == ImportMode.REPLACE:
        result = state.apply_replace_import(rows)
        console.print(Panel(
            f"{len(result.subjects)} subjects, {len(result.periods)} periods "
            f"from {result.rows_read} rows",
            title="Replace import",
        ))
    else:
        merged = state.apply_merge_import(rows)
        console.print(Panel(
            f"Subjects: +{merged.added_subjects} added, {merged.updated_subjects} updated\n"
            f"Periods: +{merged.added_periods} added, {merged.updated_periods} updated",
            title="Merge import",
        ))
        if merged.remapped_periods:
            console.print(
                f"[yellow]Slot layout changed[/yellow] in periods "
                f"{', '.join(str(p) for p in merged.remapped_periods)}; "
                f"{merged.dropped_cells} cells dropped"
            )

    write_state(state, state_file)


@app.command("import-rooms")
def import_rooms(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
    rows_file: Path = typer.Argument(..., help="Room/enrollment CSV or XLSX file"),
) -> None:
    """Attach rooms and headcounts to placed exams."""
    state = open_state(state_file)
    rows = open_rows(rows_file)

    result = state.apply_room_import(rows)
    console.print(Panel(
        f"{result.attached} rows attached, {result.skipped} skipped",
        title="Room import",
    ))
    if result.skip_reasons:
        table = Table(show_header=False, box=None)
        table.add_column("Reason", style="yellow")
        table.add_column("Rows", style="white")
        for reason, count in result.skip_reasons.most_common():
            table.add_row(reason.value, str(count))
        console.print(table)

    write_state(state, state_file)


@app.command()
def summary(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
) -> None:
    """Show counts and the period catalog."""
    print_summary(open_state(state_file))


@app.command()
def available(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
    period: Optional[int] = typer.Option(
        None,
        "--period", "-p",
        help="Period id (defaults to the active period)",
    ),
) -> None:
    """List subjects that can still be placed in a period."""
    state = open_state(state_file)
    pid = state.active_pid if period is None else period
    if state.get_period(pid) is None:
        console.print(f"[red]Error:[/red] Period {pid} not found")
        raise typer.Exit(code=1)

    subjects = state.available_subjects(pid)
    table = Table(title=f"Available in period {pid}")
    table.add_column("Id", style="cyan")
    table.add_column("Code")
    table.add_column("Acronym")
    table.add_column("Year")
    table.add_column("Half")
    for subject in subjects:
        table.add_row(
            subject.id,
            subject.code,
            subject.acronym,
            subject.academic_year or "",
            str(subject.half_year) if subject.half_year is not None else "",
        )
    console.print(table)
    console.print(f"{len(subjects)} subjects available")


@app.command("delete-subject")
def delete_subject(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
    subject_id: str = typer.Argument(..., help="Subject id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Permanently delete a subject with all its placements and room records."""
    state = open_state(state_file)
    subject = state.get_subject(subject_id)
    if subject is None:
        console.print(f"[red]Error:[/red] Subject '{subject_id}' not found")
        raise typer.Exit(code=1)

    if not yes and not typer.confirm(f"Delete {subject} permanently?"):
        console.print("Cancelled.")
        raise typer.Exit(code=0)

    snapshot = state.delete_subject_permanently(subject_id)
    placed = sum(len(keys) for keys in snapshot.placed.values())
    console.print(f"[green]Deleted[/green] {escape(str(subject))} ({placed} placements removed)")
    write_state(state, state_file)


@app.command("add-period")
def add_period(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
) -> None:
    """Add a partial-exam period for the current week."""
    state = open_state(state_file)
    period = state.add_period()
    if period is None:
        console.print(f"[red]Error:[/red] Period limit ({state.config.max_periods}) reached")
        raise typer.Exit(code=1)

    console.print(f"[green]Added[/green] {escape(str(period))}")
    write_state(state, state_file)


@app.command("remove-period")
def remove_period(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
    period_id: int = typer.Argument(..., help="Period id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a period with its slots, placements and room records."""
    state = open_state(state_file)
    period = state.get_period(period_id)
    if period is None:
        console.print(f"[red]Error:[/red] Period {period_id} not found")
        raise typer.Exit(code=1)

    if not yes and not typer.confirm(f"Remove {period.label} and everything placed in it?"):
        console.print("Cancelled.")
        raise typer.Exit(code=0)

    state.remove_period(period_id)
    console.print(f"[green]Removed[/green] {period.label}")
    write_state(state, state_file)


@app.command()
def export(
    state_file: Path = typer.Argument(..., help="Planner state JSON file"),
    fmt: ExportFormat = typer.Option(
        ExportFormat.JSON,
        "--format", "-f",
        help="Output format",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="File to write (prints to stdout when omitted)",
    ),
) -> None:
    """
    Export the calendar.

    Example:
        python -m planner export state.json --format txt -o exams.txt
    """
    state = open_state(state_file)
    content = render_export(state, fmt.value)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content, encoding="utf-8")
        console.print(f"[green]Exported to:[/green] {output}")
    else:
        typer.echo(content)


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
