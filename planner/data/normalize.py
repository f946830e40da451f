"""
Normalization helpers for raw spreadsheet values.

Every parser takes whatever a row reader produced for a cell (a string, a
number, a ``datetime``/``time`` from an XLSX reader, or ``None``) and returns
the canonical form, or ``None`` when the value is absent or unparseable.
None of these functions raise on bad input.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from .models import PeriodKind, TimeSlot


# =============================================================================
# Constants
# =============================================================================

CELL_KEY_SEPARATOR = "|"
LIST_SEPARATORS = re.compile(r"[;,|]")
SERIAL_DATE_EPOCH = date(1899, 12, 30)

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DMY_DATE = re.compile(r"^(\d{1,2})([/-])(\d{1,2})\2(\d{4})$")
_ACADEMIC_YEAR = re.compile(r"^(\d{4})\s*[-/]")
_BARE_YEAR = re.compile(r"^\d{4}$")
_SLOT_PAIR = re.compile(r"^(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})$")
_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")

_RESIT_SPELLINGS = {"REAVALUACIO", "REAVALUACIÓ", "REAVALUACION", "REAVALUACIÓN", "RESIT"}


# =============================================================================
# Scalar Helpers
# =============================================================================

def as_text(raw: Any) -> str:
    """
    Render a raw cell value as text.

    ``None`` becomes "" and integral floats lose their ".0" (spreadsheet
    readers hand numeric codes back as floats).
    """
    if raw is None:
        return ""
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw)


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


# =============================================================================
# Dates and Years
# =============================================================================

def parse_date(raw: Any) -> Optional[str]:
    """
    Convert a raw date cell to an ISO date string.

    Accepts ``YYYY-MM-DD``, ``DD/MM/YYYY`` and ``DD-MM-YYYY`` (one or two
    digit day and month) and date objects. Anything else, including
    impossible calendar dates, is unparseable.

    Args:
        raw: Raw cell value

    Returns:
        "YYYY-MM-DD" or None
    """
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()

    text = as_text(raw).strip()
    if not text:
        return None

    m = _ISO_DATE.match(text)
    if m:
        return _iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _DMY_DATE.match(text)
    if m:
        return _iso(int(m.group(4)), int(m.group(3)), int(m.group(1)))

    return None


def parse_serial_date(raw: Any, lower: int = 40000, upper: int = 70000) -> Optional[str]:
    """
    Interpret a spreadsheet serial day number (days since 1899-12-30).

    Only values strictly between ``lower`` and ``upper`` are accepted so that
    small integers in a date column are not mistaken for dates.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        serial = float(raw)
    else:
        try:
            serial = float(as_text(raw).strip())
        except ValueError:
            return None
    if not (lower < serial < upper):
        return None
    return (SERIAL_DATE_EPOCH + timedelta(days=int(serial))).isoformat()


def parse_exam_date(raw: Any, lower: int = 40000, upper: int = 70000) -> Optional[str]:
    """Date parsing for exam rows: text formats first, then serial numbers."""
    return parse_date(raw) or parse_serial_date(raw, lower, upper)


def normalize_half_year(raw: Any) -> Optional[int]:
    """
    Reduce a quadrimester cell to 1 or 2.

    All non-digit characters are stripped first, so "Q1" and
    "Quadrimestre 2" are understood; "12" or "" are not.
    """
    digits = re.sub(r"\D", "", as_text(raw))
    if digits == "1":
        return 1
    if digits == "2":
        return 2
    return None


def normalize_academic_year(raw: Any) -> Optional[str]:
    """
    Extract the starting year of an academic year.

    "2025-26", "2025/26" and "2025" all give "2025".
    """
    text = as_text(raw).strip()
    m = _ACADEMIC_YEAR.match(text)
    if m:
        return m.group(1)
    if _BARE_YEAR.match(text):
        return text
    return None


# =============================================================================
# Identity and Keys
# =============================================================================

def subject_key(code: Any, acronym: Any) -> str:
    """Merge identity of a subject: lower(trim(code)) || lower(trim(acronym))."""
    return f"{as_text(code).strip().lower()}||{as_text(acronym).strip().lower()}"


def cell_key(date_iso: str, slot_index: int) -> str:
    return f"{date_iso}{CELL_KEY_SEPARATOR}{slot_index}"


def split_cell_key(key: str) -> tuple[str, int]:
    """Split "YYYY-MM-DD|N" into its date and slot index."""
    date_iso, _, index = key.partition(CELL_KEY_SEPARATOR)
    return date_iso, int(index)


def parse_period_id(raw: Any) -> Optional[int]:
    """Period ids are positive integers; "3" and 3.0 are both accepted."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(as_text(raw).strip())
    except ValueError:
        return None
    if not value.is_integer() or value < 1:
        return None
    return int(value)


def parse_period_kind(raw: Any) -> Optional[PeriodKind]:
    """
    Map a period-type cell to a PeriodKind.

    Empty cells give None so callers can tell "not supplied" from PARTIAL.
    """
    text = as_text(raw).strip().upper()
    if not text:
        return None
    if text == "FINAL":
        return PeriodKind.FINAL
    if text in _RESIT_SPELLINGS:
        return PeriodKind.RESIT
    return PeriodKind.PARTIAL


# =============================================================================
# Times and Slot Lists
# =============================================================================

def _pad_clock(hours: str, minutes: str) -> str:
    return f"{hours.zfill(2)}:{minutes.zfill(2)}"


def parse_time(raw: Any) -> Optional[str]:
    """
    Normalize a time-of-day cell to "HH:MM".

    Accepts "9:00", "14:45:00", "14.45" and "14-45" as well as ``time``
    objects from XLSX readers.
    """
    if isinstance(raw, (time, datetime)):
        return f"{raw.hour:02d}:{raw.minute:02d}"

    text = as_text(raw).strip()
    if not text:
        return None
    text = text.replace(".", ":", 1).replace("-", ":", 1)
    m = _CLOCK.match(text)
    if not m:
        return None
    return _pad_clock(m.group(1), m.group(2))


def parse_slots(raw: Any) -> list[TimeSlot]:
    """
    Parse a slot list such as "8:00-10:00; 10:30-12:30".

    Items are separated by ';', ',' or '|'. Malformed items are dropped.
    """
    slots: list[TimeSlot] = []
    for item in LIST_SEPARATORS.split(as_text(raw)):
        m = _SLOT_PAIR.match(item.strip())
        if not m:
            continue
        slots.append(TimeSlot(
            start=_pad_clock(m.group(1), m.group(2)),
            end=_pad_clock(m.group(3), m.group(4)),
        ))
    return slots


def parse_blackouts(raw: Any) -> list[str]:
    """Parse a delimited list of dates into sorted, unique ISO dates."""
    if isinstance(raw, date):
        return [parse_date(raw)]
    found: set[str] = set()
    for token in LIST_SEPARATORS.split(as_text(raw)):
        parsed = parse_date(token.strip())
        if parsed:
            found.add(parsed)
    return sorted(found)


def parse_headcount(raw: Any) -> Optional[int]:
    """Keep the digits of a headcount cell ("40 alumnes" -> 40)."""
    digits = re.sub(r"\D", "", as_text(raw))
    return int(digits) if digits else None
