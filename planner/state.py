"""
Planner state container.

``PlannerState`` owns every collection of the exam planner and is the only
place they change. Each mutator computes complete new collections and
assigns them at the end, so a reader never sees a half-applied change.

Typical use:
    state = PlannerState()
    state.apply_replace_import(read_rows("subjects.csv"))
    state.place_subject(1, "2025-03-10", 0, "230001")
    state.apply_room_import(read_rows("rooms.xlsx"))
"""

from __future__ import annotations

import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Iterable, Mapping, Optional

from .data.models import (
    AllowedPeriods,
    AssignedPerPeriod,
    DeletedSnapshot,
    Period,
    PeriodKind,
    PlannerConfig,
    PlannerSnapshot,
    RoomsDataPerPeriod,
    SlotsPerPeriod,
    Subject,
)
from .data.normalize import cell_key
from .importers.merge import MergeResult, import_subjects_merge
from .importers.replace import ReplaceResult, import_subjects_replace, period_label
from .importers.rooms import RoomImportResult, import_rooms
from .undo import (
    Collections,
    UndoBuffer,
    remap_snapshot,
    restore,
    strip_subject,
    take_snapshot,
    without_period,
)

logger = logging.getLogger(__name__)


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Friday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=4)


class PlannerState:
    """The mutable planner data model with its composite operations."""

    def __init__(
        self,
        config: Optional[PlannerConfig] = None,
        today: Optional[Callable[[], date]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or PlannerConfig()
        self._today = today or date.today
        self._undo = UndoBuffer(self.config.undo_window_seconds, clock)
        self._highest_period_id = 1
        self.reset()

    def reset(self) -> None:
        """
        Return to a fresh planner: no subjects, and period 1 covering the
        current week with the initial slot layout. Any pending undo is dropped.
        """
        monday, friday = week_bounds(self._today())
        self._subjects: list[Subject] = []
        self._periods: list[Period] = [
            Period(
                id=1,
                label=period_label(1),
                kind=PeriodKind.PARTIAL,
                start_date=monday.isoformat(),
                end_date=friday.isoformat(),
            )
        ]
        self._active_pid: Optional[int] = 1
        self._slots_per_period: SlotsPerPeriod = {1: list(self.config.initial_slots)}
        self._assigned_per_period: AssignedPerPeriod = {}
        self._rooms_data: RoomsDataPerPeriod = {}
        self._allowed_periods_by_subject: AllowedPeriods = {}
        self._hidden_subject_ids: list[str] = []
        self._undo.clear()

    # -------------------------------------------------------------------------
    # Read Accessors
    # -------------------------------------------------------------------------

    @property
    def subjects(self) -> list[Subject]:
        return self._subjects

    @property
    def periods(self) -> list[Period]:
        return self._periods

    @property
    def active_pid(self) -> Optional[int]:
        return self._active_pid

    @property
    def slots_per_period(self) -> SlotsPerPeriod:
        return self._slots_per_period

    @property
    def assigned_per_period(self) -> AssignedPerPeriod:
        return self._assigned_per_period

    @property
    def rooms_data(self) -> RoomsDataPerPeriod:
        return self._rooms_data

    @property
    def allowed_periods_by_subject(self) -> AllowedPeriods:
        return self._allowed_periods_by_subject

    @property
    def hidden_subject_ids(self) -> list[str]:
        return self._hidden_subject_ids

    @property
    def pending_undo(self) -> Optional[DeletedSnapshot]:
        """The deletion that can still be undone, if any."""
        return self._undo.peek()

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self._subjects if s.id == subject_id), None)

    def get_period(self, period_id: Optional[int]) -> Optional[Period]:
        return next((p for p in self._periods if p.id == period_id), None)

    @property
    def active_period(self) -> Optional[Period]:
        return self.get_period(self._active_pid)

    # -------------------------------------------------------------------------
    # Replace-all Mutators
    # -------------------------------------------------------------------------

    def replace_collections(
        self,
        subjects: Optional[list[Subject]] = None,
        periods: Optional[list[Period]] = None,
        slots_per_period: Optional[SlotsPerPeriod] = None,
        assigned_per_period: Optional[AssignedPerPeriod] = None,
        rooms_data: Optional[RoomsDataPerPeriod] = None,
        allowed_periods_by_subject: Optional[AllowedPeriods] = None,
        hidden_subject_ids: Optional[list[str]] = None,
        active_pid: Optional[int] = None,
    ) -> None:
        """Swap in whole collections; arguments left as None keep their current value."""
        if subjects is not None:
            self._subjects = subjects
        if periods is not None:
            self._periods = sorted(periods, key=lambda p: p.id)
            if self._periods:
                self._highest_period_id = max(self._highest_period_id, self._periods[-1].id)
        if slots_per_period is not None:
            self._slots_per_period = slots_per_period
        if assigned_per_period is not None:
            self._assigned_per_period = assigned_per_period
        if rooms_data is not None:
            self._rooms_data = rooms_data
        if allowed_periods_by_subject is not None:
            self._allowed_periods_by_subject = allowed_periods_by_subject
        if hidden_subject_ids is not None:
            self._hidden_subject_ids = hidden_subject_ids
        if active_pid is not None:
            self._active_pid = active_pid

    def set_active_period(self, period_id: int) -> bool:
        if self.get_period(period_id) is None:
            return False
        self._active_pid = period_id
        return True

    def _collections(self) -> Collections:
        return Collections(
            subjects=self._subjects,
            allowed_periods_by_subject=self._allowed_periods_by_subject,
            hidden_subject_ids=self._hidden_subject_ids,
            assigned_per_period=self._assigned_per_period,
            rooms_data=self._rooms_data,
        )

    def _publish(self, collections: Collections) -> None:
        self.replace_collections(
            subjects=collections.subjects,
            allowed_periods_by_subject=collections.allowed_periods_by_subject,
            hidden_subject_ids=collections.hidden_subject_ids,
            assigned_per_period=collections.assigned_per_period,
            rooms_data=collections.rooms_data,
        )

    # -------------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------------

    def _valid_cell(self, period_id: int, slot_index: int) -> bool:
        if self.get_period(period_id) is None:
            return False
        return 0 <= slot_index < len(self._slots_per_period.get(period_id, []))

    def place_subject(self, period_id: int, date_iso: str, slot_index: int, subject_id: str) -> bool:
        """Add a subject to a cell. Returns False for unknown subjects, periods or slots."""
        if self.get_subject(subject_id) is None or not self._valid_cell(period_id, slot_index):
            logger.debug("Ignored placement of %s at %d/%s|%d", subject_id, period_id, date_iso, slot_index)
            return False

        key = cell_key(date_iso, slot_index)
        cells = dict(self._assigned_per_period.get(period_id, {}))
        ids = list(cells.get(key, []))
        if subject_id not in ids:
            ids.append(subject_id)
        cells[key] = ids
        self._assigned_per_period = {**self._assigned_per_period, period_id: cells}
        logger.debug("Placed %s at %d/%s", subject_id, period_id, key)
        return True

    def remove_subject_from_cell(self, period_id: int, date_iso: str, slot_index: int, subject_id: str) -> bool:
        """Take a subject out of a cell together with its room record there."""
        key = cell_key(date_iso, slot_index)
        cells = dict(self._assigned_per_period.get(period_id, {}))
        if subject_id not in cells.get(key, []):
            return False

        remaining = [i for i in cells[key] if i != subject_id]
        if remaining:
            cells[key] = remaining
        else:
            del cells[key]

        rooms = self._rooms_without(period_id, key, subject_id)
        self._assigned_per_period = {**self._assigned_per_period, period_id: cells}
        self._rooms_data = rooms
        return True

    def move_subject(
        self,
        period_id: int,
        source: tuple[str, int],
        target: tuple[str, int],
        subject_id: str,
        target_period_id: Optional[int] = None,
    ) -> bool:
        """
        Move a placed subject between two cells of the same period.

        The subject's room record travels with it unless the target cell
        already holds one for that subject.
        """
        if target_period_id is not None and target_period_id != period_id:
            logger.debug("Ignored cross-period move of %s", subject_id)
            return False
        if not self._valid_cell(period_id, target[1]):
            return False

        src_key = cell_key(*source)
        dst_key = cell_key(*target)
        cells = dict(self._assigned_per_period.get(period_id, {}))
        if subject_id not in cells.get(src_key, []):
            return False
        if src_key == dst_key:
            return True

        remaining = [i for i in cells[src_key] if i != subject_id]
        if remaining:
            cells[src_key] = remaining
        else:
            del cells[src_key]
        dst_ids = list(cells.get(dst_key, []))
        if subject_id not in dst_ids:
            dst_ids.append(subject_id)
        cells[dst_key] = dst_ids

        entry = self._rooms_data.get(period_id, {}).get(src_key, {}).get(subject_id)
        rooms = self._rooms_without(period_id, src_key, subject_id)
        if entry is not None:
            per_cell = dict(rooms.get(period_id, {}))
            per_subject = dict(per_cell.get(dst_key, {}))
            per_subject.setdefault(subject_id, entry)
            per_cell[dst_key] = per_subject
            rooms[period_id] = per_cell

        self._assigned_per_period = {**self._assigned_per_period, period_id: cells}
        self._rooms_data = rooms
        logger.debug("Moved %s from %s to %s in period %d", subject_id, src_key, dst_key, period_id)
        return True

    def _rooms_without(self, period_id: int, key: str, subject_id: str) -> RoomsDataPerPeriod:
        rooms = dict(self._rooms_data)
        per_cell = dict(rooms.get(period_id, {}))
        per_subject = {sid: e for sid, e in per_cell.get(key, {}).items() if sid != subject_id}
        if per_subject:
            per_cell[key] = per_subject
        else:
            per_cell.pop(key, None)
        if period_id in rooms:
            rooms[period_id] = per_cell
        return rooms

    # -------------------------------------------------------------------------
    # Pick-list
    # -------------------------------------------------------------------------

    def hide_subject(self, subject_id: str) -> None:
        if subject_id not in self._hidden_subject_ids:
            self._hidden_subject_ids = [*self._hidden_subject_ids, subject_id]

    def unhide_subject(self, subject_id: str) -> None:
        self._hidden_subject_ids = [sid for sid in self._hidden_subject_ids if sid != subject_id]

    def available_subjects(self, period_id: Optional[int] = None) -> list[Subject]:
        """
        Subjects that can still be dropped into a period.

        An explicit allowed-periods entry decides on its own; the period's
        half-year is only consulted for subjects without one.
        """
        period_id = self._active_pid if period_id is None else period_id
        period = self.get_period(period_id)
        if period is None:
            return []

        used = {sid for ids in self._assigned_per_period.get(period_id, {}).values() for sid in ids}
        hidden = set(self._hidden_subject_ids)
        period_year = str(period.academic_year) if period.academic_year is not None else None

        available = []
        for subject in self._subjects:
            if subject.id in used or subject.id in hidden:
                continue
            if period_year is not None and subject.academic_year != period_year:
                continue
            allowed = self._allowed_periods_by_subject.get(subject.id)
            if allowed is not None:
                if period_id not in allowed:
                    continue
            elif period.half_year is not None and subject.half_year != period.half_year:
                continue
            available.append(subject)
        return available

    # -------------------------------------------------------------------------
    # Deletion and Undo
    # -------------------------------------------------------------------------

    def delete_subject_permanently(self, subject_id: str) -> Optional[DeletedSnapshot]:
        """
        Remove a subject and every reference to it.

        Confirmation is the caller's job. The returned snapshot becomes the
        single pending undo, replacing any earlier one.
        """
        current = self._collections()
        snapshot = take_snapshot(current, subject_id)
        if snapshot is None:
            logger.debug("Delete ignored, unknown subject %s", subject_id)
            return None

        self._publish(strip_subject(current, subject_id))
        self._undo.put(snapshot)
        logger.info(
            "Deleted subject %s (%d periods with placements)",
            subject_id, len(snapshot.placed),
        )
        return snapshot

    def undo_delete(self) -> bool:
        """Restore the pending deletion. No-op (False) when nothing is pending."""
        snapshot = self._undo.pop()
        if snapshot is None:
            return False
        self._publish(restore(self._collections(), snapshot, self._slots_per_period))
        logger.info("Restored subject %s", snapshot.subject.id)
        return True

    # -------------------------------------------------------------------------
    # Periods
    # -------------------------------------------------------------------------

    def add_period(self) -> Optional[Period]:
        """Append a PARTIAL period for the current week and make it active."""
        if len(self._periods) >= self.config.max_periods:
            logger.info("Period limit (%d) reached", self.config.max_periods)
            return None

        new_id = max([self._highest_period_id, *(p.id for p in self._periods)]) + 1
        monday, friday = week_bounds(self._today())
        period = Period(
            id=new_id,
            label=period_label(new_id),
            kind=PeriodKind.PARTIAL,
            start_date=monday.isoformat(),
            end_date=friday.isoformat(),
        )
        self._periods = [*self._periods, period]
        self._slots_per_period = {**self._slots_per_period, new_id: [self.config.default_slot]}
        self._highest_period_id = new_id
        self._active_pid = new_id
        return period

    def remove_period(self, period_id: int) -> bool:
        """Delete a period together with its slots, placements and room data."""
        if self.get_period(period_id) is None:
            return False

        periods = [p for p in self._periods if p.id != period_id]
        slots = {pid: s for pid, s in self._slots_per_period.items() if pid != period_id}
        assigned = {pid: c for pid, c in self._assigned_per_period.items() if pid != period_id}
        rooms = {pid: c for pid, c in self._rooms_data.items() if pid != period_id}

        self.replace_collections(
            periods=periods,
            slots_per_period=slots,
            assigned_per_period=assigned,
            rooms_data=rooms,
        )
        self._undo.revise(lambda snapshot: without_period(snapshot, period_id))
        self._repoint_active()
        logger.info("Removed period %d", period_id)
        return True

    # -------------------------------------------------------------------------
    # Imports
    # -------------------------------------------------------------------------

    def apply_replace_import(self, rows: Iterable[Mapping[str, Any]]) -> ReplaceResult:
        """Rebuild the catalog and clear placements, rooms and hidden subjects."""
        result = import_subjects_replace(rows, default_slot=self.config.default_slot)
        self.replace_collections(
            subjects=result.subjects,
            periods=result.periods,
            slots_per_period=result.slots_per_period,
            allowed_periods_by_subject=result.allowed_periods_by_subject,
            assigned_per_period={},
            rooms_data={},
            hidden_subject_ids=[],
        )
        self._undo.clear()
        self._repoint_active()
        return result

    def apply_merge_import(self, rows: Iterable[Mapping[str, Any]]) -> MergeResult:
        result = import_subjects_merge(
            rows,
            subjects=self._subjects,
            periods=self._periods,
            slots_per_period=self._slots_per_period,
            assigned_per_period=self._assigned_per_period,
            rooms_data=self._rooms_data,
            allowed_periods_by_subject=self._allowed_periods_by_subject,
            default_slot=self.config.default_slot,
        )
        self.replace_collections(
            subjects=result.subjects,
            periods=result.periods,
            slots_per_period=result.slots_per_period,
            assigned_per_period=result.assigned_per_period,
            rooms_data=result.rooms_data,
            allowed_periods_by_subject=result.allowed_periods_by_subject,
        )
        if result.index_maps:
            self._undo.revise(lambda snapshot: remap_snapshot(snapshot, result.index_maps))
        self._repoint_active()
        return result

    def apply_room_import(self, rows: Iterable[Mapping[str, Any]]) -> RoomImportResult:
        result = import_rooms(
            rows,
            subjects=self._subjects,
            periods=self._periods,
            slots_per_period=self._slots_per_period,
            assigned_per_period=self._assigned_per_period,
            rooms_data=self._rooms_data,
            serial_range=(self.config.serial_date_min, self.config.serial_date_max),
        )
        self._rooms_data = result.rooms_data
        return result

    def _repoint_active(self) -> None:
        """Point at the first period when the active one is gone; None when there are none."""
        if self.get_period(self._active_pid) is None:
            self._active_pid = self._periods[0].id if self._periods else None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> PlannerSnapshot:
        return PlannerSnapshot(
            subjects=self._subjects,
            periods=self._periods,
            slots_per_period=self._slots_per_period,
            assigned_per_period=self._assigned_per_period,
            active_pid=self._active_pid,
            rooms_data=self._rooms_data,
            allowed_periods_by_subject=self._allowed_periods_by_subject,
            hidden_subject_ids=self._hidden_subject_ids,
        )

    def load_snapshot(self, data: PlannerSnapshot | Mapping[str, Any]) -> None:
        """
        Load a saved snapshot. Fields absent from ``data`` keep their value.

        Raises:
            pydantic.ValidationError: If a present field has the wrong shape
        """
        snapshot = data if isinstance(data, PlannerSnapshot) else PlannerSnapshot.model_validate(data)
        self.replace_collections(
            subjects=snapshot.subjects,
            periods=snapshot.periods,
            slots_per_period=snapshot.slots_per_period,
            assigned_per_period=snapshot.assigned_per_period,
            rooms_data=snapshot.rooms_data,
            allowed_periods_by_subject=snapshot.allowed_periods_by_subject,
            hidden_subject_ids=snapshot.hidden_subject_ids,
            active_pid=snapshot.active_pid,
        )
        self._repoint_active()

    @classmethod
    def from_snapshot(cls, data: PlannerSnapshot | Mapping[str, Any], **kwargs: Any) -> PlannerState:
        state = cls(**kwargs)
        state.load_snapshot(data)
        return state

    def summary(self) -> dict[str, Any]:
        """Counts describing the current state."""
        return {
            "subjects": len(self._subjects),
            "hidden_subjects": len(self._hidden_subject_ids),
            "periods": len(self._periods),
            "active_period": self._active_pid,
            "placements": sum(
                len(ids) for cells in self._assigned_per_period.values() for ids in cells.values()
            ),
            "room_records": sum(
                len(per) for cells in self._rooms_data.values() for per in cells.values()
            ),
            "pending_undo": self.pending_undo is not None,
        }
