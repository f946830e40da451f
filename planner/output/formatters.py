"""
Output formatters for the exam calendar.

This module provides read-only projections of a ``PlannerState``:
- JSON: The full persisted snapshot
- CSV: One line per scheduled exam, for the academic records system
- TXT: The same exams in fixed-width columns
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, timedelta
from io import StringIO
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

from ..data.models import PeriodKind
from ..data.normalize import cell_key

if TYPE_CHECKING:
    from ..data.models import Period, Subject, TimeSlot
    from ..state import PlannerState


# =============================================================================
# Constants
# =============================================================================

KIND_EXPORT_NAMES = {
    PeriodKind.PARTIAL: "PARCIAL",
    PeriodKind.FINAL: "FINAL",
    PeriodKind.RESIT: "REAVALUACIO",
}

EXPORT_DATE_FORMAT = "%d-%m-%Y"


def infer_academic_year(day: date) -> int:
    """Starting year of the academic year containing ``day`` (September starts a year)."""
    return day.year if day.month >= 9 else day.year - 1


def infer_half_year(day: date) -> int:
    """1 for September to January, 2 otherwise."""
    return 1 if day.month >= 9 or day.month == 1 else 2


# =============================================================================
# Exam Rows
# =============================================================================

@dataclass
class ExamRow:
    """One placed subject on one day and slot, with fallbacks resolved."""
    period: Period
    subject: Subject
    day: date
    slot: TimeSlot
    academic_year: str
    half_year: int

    @property
    def kind_name(self) -> str:
        return KIND_EXPORT_NAMES[self.period.kind]

    @property
    def day_text(self) -> str:
        return self.day.strftime(EXPORT_DATE_FORMAT)


def period_days(period: Period) -> Iterator[date]:
    """Weekdays inside the period window that are not blacked out."""
    if not period.start_date or not period.end_date:
        return
    start = date.fromisoformat(period.start_date)
    end = date.fromisoformat(period.end_date)
    day = start
    while day <= end:
        if day.weekday() < 5 and not period.is_blacked_out(day.isoformat()):
            yield day
        day += timedelta(days=1)


def iter_exam_rows(state: PlannerState) -> Iterator[ExamRow]:
    """
    Walk every period, day and slot in calendar order and yield one row per
    placed subject. Ids no longer in the catalog are skipped.
    """
    subjects = {s.id: s for s in state.subjects}
    for period in state.periods:
        slots = state.slots_per_period.get(period.id, [])
        cells = state.assigned_per_period.get(period.id, {})
        for day in period_days(period):
            for index, slot in enumerate(slots):
                for subject_id in cells.get(cell_key(day.isoformat(), index), []):
                    subject = subjects.get(subject_id)
                    if subject is None:
                        continue

                    if subject.academic_year:
                        year = subject.academic_year
                    elif period.academic_year is not None:
                        year = str(period.academic_year)
                    else:
                        year = str(infer_academic_year(day))

                    if subject.half_year is not None:
                        half = subject.half_year
                    elif period.half_year is not None:
                        half = period.half_year
                    else:
                        half = infer_half_year(day)

                    yield ExamRow(period, subject, day, slot, year, half)


# =============================================================================
# JSON Formatter
# =============================================================================

class JSONFormatter:
    """Formats the planner snapshot as JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def format(self, state: PlannerState) -> str:
        return state.to_snapshot().to_json(indent=self.indent)


def format_json(state: PlannerState, indent: int = 2) -> str:
    """Convenience function for JSON formatting."""
    return JSONFormatter(indent=indent).format(state)


# =============================================================================
# CSV Formatter
# =============================================================================

class CSVFormatter:
    """Formats scheduled exams as CSV."""

    COLUMNS = [
        "CENTRE", "CURS", "QUADRIMESTRE", "TIPUS_EXAMEN", "DIA",
        "HORA_INICI", "HORA_FI", "UNITAT_DOCENT", "GRUPS",
    ]

    def __init__(
        self,
        centre_code: str = "230",
        include_header: bool = True,
        delimiter: str = ",",
    ):
        """
        Initialize CSV formatter.

        Args:
            centre_code: Value of the CENTRE column
            include_header: Whether to include header row
            delimiter: Field delimiter
        """
        self.centre_code = centre_code
        self.include_header = include_header
        self.delimiter = delimiter

    def format(self, state: PlannerState) -> str:
        """
        Format scheduled exams as CSV string.

        Args:
            state: Planner state to export

        Returns:
            CSV string
        """
        buffer = StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, lineterminator="\n")

        if self.include_header:
            writer.writerow(self.COLUMNS)

        for row in iter_exam_rows(state):
            writer.writerow([
                self.centre_code,
                row.academic_year,
                row.half_year,
                row.kind_name,
                row.day_text,
                row.slot.start,
                row.slot.end,
                row.subject.code,
                "",
            ])

        return buffer.getvalue()


def format_csv(state: PlannerState, centre_code: str = "230", include_header: bool = True) -> str:
    """Convenience function for CSV formatting."""
    return CSVFormatter(centre_code=centre_code, include_header=include_header).format(state)


# =============================================================================
# Fixed-width TXT Formatter
# =============================================================================

class TXTFormatter:
    """Formats scheduled exams as fixed-width text lines."""

    # (field, width, right-aligned)
    LAYOUT = [
        ("code", 10, False),
        ("year", 4, True),
        ("half_year", 1, True),
        ("acronym", 120, False),
        ("day", 10, False),
        ("start", 5, False),
        ("kind", 2000, False),
    ]

    @staticmethod
    def pad(value: str, width: int, right: bool = False) -> str:
        """Truncate or pad ``value`` to exactly ``width`` characters."""
        value = value[:width]
        return value.rjust(width) if right else value.ljust(width)

    def format_row(self, row: ExamRow) -> str:
        values = {
            "code": row.subject.code,
            "year": row.academic_year,
            "half_year": str(row.half_year),
            "acronym": row.subject.acronym,
            "day": row.day_text,
            "start": row.slot.start.replace(":", "-", 1),
            "kind": row.kind_name,
        }
        return " ".join(self.pad(values[name], width, right) for name, width, right in self.LAYOUT)

    def format(self, state: PlannerState) -> str:
        return "\n".join(self.format_row(row) for row in iter_exam_rows(state))


def format_txt(state: PlannerState) -> str:
    """Convenience function for TXT formatting."""
    return TXTFormatter().format(state)


# =============================================================================
# File Output
# =============================================================================

def _write(content: str, filepath: str | Path) -> Path:
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(content, encoding="utf-8")
    return filepath


def save_json(state: PlannerState, filepath: str | Path, indent: int = 2) -> Path:
    """
    Save the planner snapshot to a JSON file.

    Args:
        state: Planner state
        filepath: Path to output file
        indent: JSON indentation level

    Returns:
        The written path
    """
    return _write(format_json(state, indent=indent), filepath)


def save_csv(
    state: PlannerState,
    filepath: str | Path,
    centre_code: str = "230",
    include_header: bool = True,
) -> Path:
    """
    Save scheduled exams to a CSV file.

    Args:
        state: Planner state
        filepath: Path to output file
        centre_code: Value of the CENTRE column
        include_header: Whether to include header row

    Returns:
        The written path
    """
    return _write(format_csv(state, centre_code, include_header), filepath)


def save_txt(state: PlannerState, filepath: str | Path) -> Path:
    """Save scheduled exams to a fixed-width text file."""
    return _write(format_txt(state), filepath)


def export(state: PlannerState, fmt: str, centre_code: Optional[str] = None) -> str:
    """
    Render ``state`` in one of the supported formats ("json", "csv", "txt").

    Raises:
        ValueError: For an unknown format name
    """
    fmt = fmt.lower()
    if fmt == "json":
        return format_json(state)
    if fmt == "csv":
        return format_csv(state, centre_code or state.config.centre_code)
    if fmt == "txt":
        return format_txt(state)
    raise ValueError(f"Unknown export format: {fmt}")
