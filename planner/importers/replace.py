"""
Replace-mode catalog import.

Builds the subject catalog, period catalog, slot layout and allowed-periods
index from nothing. Within one batch the first row that introduces a subject
or period decides its values; later rows only fill fields still unset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from ..data.models import (
    AllowedPeriods,
    Period,
    PeriodKind,
    SlotsPerPeriod,
    Subject,
    TimeSlot,
)
from .rows import SUBJECT_FIELDS, CatalogRow, unique_subject_id

logger = logging.getLogger(__name__)

DEFAULT_SLOT = TimeSlot(start="08:00", end="10:00")


@dataclass
class ReplaceResult:
    """Fresh catalog produced by a replace import."""
    subjects: list[Subject] = field(default_factory=list)
    periods: list[Period] = field(default_factory=list)
    slots_per_period: SlotsPerPeriod = field(default_factory=dict)
    allowed_periods_by_subject: AllowedPeriods = field(default_factory=dict)
    rows_read: int = 0


def period_label(period_id: int) -> str:
    return f"Period {period_id}"


def import_subjects_replace(
    rows: Iterable[Mapping[str, Any]],
    default_slot: Optional[TimeSlot] = None,
) -> ReplaceResult:
    """
    Rebuild the catalog from a batch of subject/period rows.

    Clearing placements, room data and hidden subjects is left to the caller
    (``PlannerState.apply_replace_import`` does it).

    Args:
        rows: Header -> raw value mappings
        default_slot: Slot for new periods whose rows carry no parseable slots

    Returns:
        ReplaceResult with periods sorted by id
    """
    default_slot = default_slot or DEFAULT_SLOT

    subjects_by_key: dict[str, Subject] = {}
    periods_by_key: dict[str, set[int]] = {}
    periods: dict[int, Period] = {}
    slots_per_period: SlotsPerPeriod = {}

    # Subject-level year/half-year seen on rows of each period, used as fallback
    half_year_seen: dict[int, int] = {}
    year_seen: dict[int, int] = {}

    count = 0
    for raw in rows:
        count += 1
        row = CatalogRow.from_raw(raw)
        pid = row.period_id

        if row.has_identity:
            existing = subjects_by_key.get(row.key)
            if existing is None:
                taken = (s.id for s in subjects_by_key.values())
                subject_id = unique_subject_id(row.code or row.acronym, taken)
                subjects_by_key[row.key] = row.to_subject(subject_id)
            else:
                values = row.subject_values()
                for name in SUBJECT_FIELDS:
                    if getattr(existing, name) is None and values[name] is not None:
                        setattr(existing, name, values[name])

            if pid is not None:
                periods_by_key.setdefault(row.key, set()).add(pid)

        if pid is None:
            continue

        if row.half_year is not None:
            half_year_seen[pid] = row.half_year
        if row.academic_year is not None:
            year_seen[pid] = int(row.academic_year)

        period = periods.get(pid)
        if period is None:
            periods[pid] = Period(
                id=pid,
                label=period_label(pid),
                kind=row.period_kind or PeriodKind.PARTIAL,
                start_date=row.period_start,
                end_date=row.period_end,
                academic_year=row.period_academic_year,
                half_year=row.period_half_year,
                blackout_dates=row.period_blackouts,
            )
            slots_per_period[pid] = row.period_slots or [default_slot]
        else:
            if period.academic_year is None and row.period_academic_year is not None:
                period.academic_year = row.period_academic_year
            if period.half_year is None and row.period_half_year is not None:
                period.half_year = row.period_half_year

    for pid, period in periods.items():
        if period.half_year is None and pid in half_year_seen:
            period.half_year = half_year_seen[pid]
        if period.academic_year is None and pid in year_seen:
            period.academic_year = year_seen[pid]

    subjects = list(subjects_by_key.values())
    allowed: AllowedPeriods = {}
    for subject in subjects:
        pids = periods_by_key.get(subject.identity_key)
        if pids:
            allowed[subject.id] = sorted(pids)

    result = ReplaceResult(
        subjects=subjects,
        periods=[periods[pid] for pid in sorted(periods)],
        slots_per_period={pid: slots_per_period[pid] for pid in sorted(slots_per_period)},
        allowed_periods_by_subject=allowed,
        rows_read=count,
    )
    logger.info(
        "Replace import: %d rows -> %d subjects, %d periods",
        count, len(result.subjects), len(result.periods),
    )
    return result
