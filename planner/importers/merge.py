"""
Merge-mode catalog import.

Folds a batch of subject/period rows into an existing catalog. Unlike the
replace import, the newest row always wins for subject attributes. Periods
are only overwritten field by field where the row supplies a value.

Slot cells are addressed by position, so a changed slot list for an existing
period moves or drops every assignment and room record of that period. The
remap runs once, after the whole batch, from the layout before the import to
the layout after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, TypeVar

from ..data.models import (
    AllowedPeriods,
    AssignedPerPeriod,
    Period,
    PeriodKind,
    RoomsDataPerPeriod,
    SlotsPerPeriod,
    Subject,
    TimeSlot,
)
from ..data.normalize import cell_key, split_cell_key
from .replace import DEFAULT_SLOT, period_label
from .rows import SUBJECT_FIELDS, CatalogRow, unique_subject_id

logger = logging.getLogger(__name__)

CellValue = TypeVar("CellValue")


@dataclass
class MergeResult:
    """Next catalog state plus what the merge changed."""
    subjects: list[Subject]
    periods: list[Period]
    slots_per_period: SlotsPerPeriod
    assigned_per_period: AssignedPerPeriod
    rooms_data: RoomsDataPerPeriod
    allowed_periods_by_subject: AllowedPeriods
    added_subjects: int = 0
    updated_subjects: int = 0
    added_periods: int = 0
    updated_periods: int = 0
    remapped_periods: list[int] = field(default_factory=list)
    index_maps: dict[int, dict[int, int]] = field(default_factory=dict, repr=False)
    dropped_cells: int = 0


# =============================================================================
# Slot Remapping
# =============================================================================

def slot_index_map(old_slots: list[TimeSlot], new_slots: list[TimeSlot]) -> dict[int, int]:
    """
    Map each old slot position to the position of the same (start, end) slot
    in the new layout. Old slots missing from the new layout have no entry.
    """
    mapping: dict[int, int] = {}
    for old_index, old in enumerate(old_slots):
        for new_index, new in enumerate(new_slots):
            if new.matches(old.start, old.end):
                mapping[old_index] = new_index
                break
    return mapping


def remap_cells(cells: dict[str, CellValue], index_map: dict[int, int]) -> dict[str, CellValue]:
    """Rewrite "date|old" keys to "date|new"; cells without a mapping are dropped."""
    remapped: dict[str, CellValue] = {}
    for key, value in cells.items():
        date_iso, old_index = split_cell_key(key)
        new_index = index_map.get(old_index)
        if new_index is not None:
            remapped[cell_key(date_iso, new_index)] = value
    return remapped


# =============================================================================
# Import
# =============================================================================

def _merge_subject(subject: Subject, row: CatalogRow) -> bool:
    """Overwrite every differing attribute; return whether anything changed."""
    changed = False
    values = row.subject_values()
    for name in SUBJECT_FIELDS:
        if getattr(subject, name) != values[name]:
            setattr(subject, name, values[name])
            changed = True
    return changed


def _merge_period(period: Period, row: CatalogRow) -> bool:
    changed = False
    if row.period_kind is not None and period.kind != row.period_kind:
        period.kind = row.period_kind
        changed = True
    if row.period_start and period.start_date != row.period_start:
        period.start_date = row.period_start
        changed = True
    if row.period_end and period.end_date != row.period_end:
        period.end_date = row.period_end
        changed = True
    return changed


def import_subjects_merge(
    rows: Iterable[Mapping[str, Any]],
    subjects: list[Subject],
    periods: list[Period],
    slots_per_period: SlotsPerPeriod,
    assigned_per_period: AssignedPerPeriod,
    rooms_data: RoomsDataPerPeriod,
    allowed_periods_by_subject: AllowedPeriods,
    default_slot: Optional[TimeSlot] = None,
) -> MergeResult:
    """
    Merge subject/period rows into the current catalog.

    Inputs are never modified; the result holds fresh copies.

    Args:
        rows: Header -> raw value mappings
        subjects: Current subject catalog
        periods: Current period catalog
        slots_per_period: Current slot layout per period
        assigned_per_period: Current placements per period
        rooms_data: Current room records per period
        allowed_periods_by_subject: Current allowed-periods index
        default_slot: Slot for new periods whose rows carry no parseable slots

    Returns:
        MergeResult with periods re-sorted by id and cells remapped
    """
    default_slot = default_slot or DEFAULT_SLOT

    next_subjects = [s.model_copy(deep=True) for s in subjects]
    next_periods = {p.id: p.model_copy(deep=True) for p in periods}
    next_slots: SlotsPerPeriod = {pid: list(slots) for pid, slots in slots_per_period.items()}
    next_allowed: AllowedPeriods = {sid: list(pids) for sid, pids in allowed_periods_by_subject.items()}

    by_id = {s.id: s for s in next_subjects}
    id_by_key = {s.identity_key: s.id for s in next_subjects}

    added_subjects: set[str] = set()
    updated_subjects: set[str] = set()
    added_periods: set[int] = set()
    updated_periods: set[int] = set()

    for raw in rows:
        row = CatalogRow.from_raw(raw)
        if not row.has_identity:
            continue

        subject_id = id_by_key.get(row.key)
        if subject_id is None:
            subject_id = unique_subject_id(row.code or row.acronym, by_id)
            subject = row.to_subject(subject_id)
            next_subjects.append(subject)
            by_id[subject_id] = subject
            id_by_key[row.key] = subject_id
            added_subjects.add(subject_id)
        elif _merge_subject(by_id[subject_id], row) and subject_id not in added_subjects:
            updated_subjects.add(subject_id)

        pid = row.period_id
        if pid is None:
            continue

        period = next_periods.get(pid)
        if period is None:
            next_periods[pid] = Period(
                id=pid,
                label=period_label(pid),
                kind=row.period_kind or PeriodKind.PARTIAL,
                start_date=row.period_start,
                end_date=row.period_end,
                academic_year=row.period_academic_year,
                half_year=row.period_half_year,
                blackout_dates=row.period_blackouts,
            )
            next_slots[pid] = row.period_slots or [default_slot]
            added_periods.add(pid)
        else:
            changed = _merge_period(period, row)
            if row.period_slots and next_slots.get(pid) != row.period_slots:
                next_slots[pid] = row.period_slots
                changed = True
            if changed and pid not in added_periods:
                updated_periods.add(pid)

        allowed = set(next_allowed.get(subject_id, []))
        allowed.add(pid)
        next_allowed[subject_id] = sorted(allowed)

    # Single remap pass from the pre-import layout to the final one
    next_assigned: AssignedPerPeriod = {
        pid: {key: list(ids) for key, ids in cells.items()}
        for pid, cells in assigned_per_period.items()
    }
    next_rooms: RoomsDataPerPeriod = {
        pid: {
            key: {sid: entry.model_copy(deep=True) for sid, entry in per_subject.items()}
            for key, per_subject in cells.items()
        }
        for pid, cells in rooms_data.items()
    }
    index_maps: dict[int, dict[int, int]] = {}
    dropped = 0
    for pid, new_slots in next_slots.items():
        old_slots = slots_per_period.get(pid)
        if not old_slots or old_slots == new_slots:
            continue

        index_map = slot_index_map(old_slots, new_slots)
        index_maps[pid] = index_map
        if pid in next_assigned:
            before = len(next_assigned[pid])
            next_assigned[pid] = remap_cells(next_assigned[pid], index_map)
            dropped += before - len(next_assigned[pid])
        if pid in next_rooms:
            next_rooms[pid] = remap_cells(next_rooms[pid], index_map)
        logger.info("Period %d slot layout changed; remapped cells with %s", pid, index_map)

    result = MergeResult(
        subjects=next_subjects,
        periods=[next_periods[pid] for pid in sorted(next_periods)],
        slots_per_period=next_slots,
        assigned_per_period=next_assigned,
        rooms_data=next_rooms,
        allowed_periods_by_subject=next_allowed,
        added_subjects=len(added_subjects),
        updated_subjects=len(updated_subjects),
        added_periods=len(added_periods),
        updated_periods=len(updated_periods),
        remapped_periods=list(index_maps),
        index_maps=index_maps,
        dropped_cells=dropped,
    )
    logger.info(
        "Merge import: +%d subjects, ~%d subjects, +%d periods, ~%d periods, %d cells dropped",
        result.added_subjects, result.updated_subjects, result.added_periods,
        result.updated_periods, result.dropped_cells,
    )
    return result
