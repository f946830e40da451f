"""
Room and enrollment import.

Attaches room names and headcounts to subjects that are already placed in a
cell. A row never creates a placement: rows that cannot be tied to an
existing (period, date, slot, subject) placement are skipped and counted by
reason.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from ..data.columns import ROOM_FIELDS, resolve
from ..data.models import (
    AssignedPerPeriod,
    Period,
    RoomsDataPerPeriod,
    RoomsEnroll,
    SlotsPerPeriod,
    Subject,
)
from ..data.normalize import (
    as_text,
    cell_key,
    parse_exam_date,
    parse_headcount,
    parse_period_id,
    parse_time,
)

logger = logging.getLogger(__name__)


class SkipReason(str, Enum):
    """Why a room row was not attached."""
    NO_IDENTITY = "no_identity"
    NO_PERIOD = "no_period"
    NO_DATE = "no_date"
    NO_TIME = "no_time"
    NO_SLOT = "no_slot"
    NOT_PLACED = "not_placed"
    NO_ROOM = "no_room"


@dataclass
class RoomImportResult:
    """Next room data plus attach/skip counts."""
    rooms_data: RoomsDataPerPeriod
    attached: int = 0
    skip_reasons: Counter = field(default_factory=Counter)

    @property
    def skipped(self) -> int:
        return sum(self.skip_reasons.values())


def find_subject(subjects: list[Subject], code: str, acronym: str) -> Optional[Subject]:
    """
    Find a subject by code, falling back to acronym.

    Comparison ignores case and surrounding whitespace but is otherwise exact.
    """
    code = code.strip().lower()
    acronym = acronym.strip().lower()
    if code:
        for subject in subjects:
            if subject.code.strip().lower() == code:
                return subject
    if acronym:
        for subject in subjects:
            if subject.acronym.strip().lower() == acronym:
                return subject
    return None


def import_rooms(
    rows: Iterable[Mapping[str, Any]],
    subjects: list[Subject],
    periods: list[Period],
    slots_per_period: SlotsPerPeriod,
    assigned_per_period: AssignedPerPeriod,
    rooms_data: RoomsDataPerPeriod,
    serial_range: tuple[int, int] = (40000, 70000),
) -> RoomImportResult:
    """
    Attach room/headcount rows to existing placements.

    Room names are appended once each, in first-seen order. The first
    headcount recorded for a (cell, subject) is kept; later rows cannot
    overwrite it.

    Args:
        rows: Header -> raw value mappings
        subjects: Subject catalog
        periods: Period catalog
        slots_per_period: Slot layout per period
        assigned_per_period: Placements per period
        rooms_data: Current room records (not modified)
        serial_range: Exclusive bounds for spreadsheet serial dates

    Returns:
        RoomImportResult with the updated room data
    """
    period_ids = {p.id for p in periods}
    next_rooms: RoomsDataPerPeriod = {
        pid: {
            key: {sid: entry.model_copy(deep=True) for sid, entry in per_subject.items()}
            for key, per_subject in cells.items()
        }
        for pid, cells in rooms_data.items()
    }
    result = RoomImportResult(rooms_data=next_rooms)

    def skip(line: int, reason: SkipReason) -> None:
        result.skip_reasons[reason] += 1
        logger.debug("Room row %d skipped: %s", line, reason.value)

    for line, raw in enumerate(rows, start=1):
        def get(name: str) -> Any:
            return resolve(raw, name, ROOM_FIELDS)

        subject = find_subject(subjects, as_text(get("code")), as_text(get("acronym")))
        if subject is None:
            skip(line, SkipReason.NO_IDENTITY)
            continue

        pid = parse_period_id(get("period_id"))
        if pid is None or pid not in period_ids:
            skip(line, SkipReason.NO_PERIOD)
            continue

        date_iso = parse_exam_date(get("exam_date"), *serial_range)
        if date_iso is None:
            skip(line, SkipReason.NO_DATE)
            continue

        start = parse_time(get("start_time"))
        end = parse_time(get("end_time"))
        if start is None or end is None:
            skip(line, SkipReason.NO_TIME)
            continue

        slots = slots_per_period.get(pid, [])
        slot_index = next((i for i, s in enumerate(slots) if s.matches(start, end)), None)
        if slot_index is None:
            skip(line, SkipReason.NO_SLOT)
            continue

        key = cell_key(date_iso, slot_index)
        if subject.id not in assigned_per_period.get(pid, {}).get(key, []):
            skip(line, SkipReason.NOT_PLACED)
            continue

        room = as_text(get("room")).strip()
        if not room:
            skip(line, SkipReason.NO_ROOM)
            continue

        entry = next_rooms.setdefault(pid, {}).setdefault(key, {}).setdefault(subject.id, RoomsEnroll())
        if room not in entry.rooms:
            entry.rooms.append(room)
        students = parse_headcount(get("students"))
        if students is not None and entry.students is None:
            entry.students = students
        result.attached += 1

    logger.info("Room import: %d attached, %d skipped", result.attached, result.skipped)
    return result
