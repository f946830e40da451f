"""
Permanent subject deletion with single-level undo.

A deletion first captures every reference to the subject in a
``DeletedSnapshot``, then strips those references. ``restore`` puts them
back. ``UndoBuffer`` holds at most one pending snapshot and forgets it once
the undo window has elapsed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .data.models import (
    AllowedPeriods,
    AssignedPerPeriod,
    DeletedSnapshot,
    RoomsDataPerPeriod,
    SlotsPerPeriod,
    Subject,
)
from .data.normalize import split_cell_key
from .importers.merge import remap_cells

logger = logging.getLogger(__name__)


@dataclass
class Collections:
    """The parts of planner state that can reference a subject."""
    subjects: list[Subject]
    allowed_periods_by_subject: AllowedPeriods
    hidden_subject_ids: list[str]
    assigned_per_period: AssignedPerPeriod
    rooms_data: RoomsDataPerPeriod


# =============================================================================
# Snapshot / Strip / Restore
# =============================================================================

def take_snapshot(state: Collections, subject_id: str) -> Optional[DeletedSnapshot]:
    """Capture everything referencing ``subject_id``; None if it is not in the catalog."""
    subject = next((s for s in state.subjects if s.id == subject_id), None)
    if subject is None:
        return None

    placed: dict[int, list[str]] = {}
    for pid, cells in state.assigned_per_period.items():
        keys = [key for key, ids in cells.items() if subject_id in ids]
        if keys:
            placed[pid] = keys

    rooms: dict[int, dict] = {}
    for pid, cells in state.rooms_data.items():
        per_cell = {
            key: per_subject[subject_id].model_copy(deep=True)
            for key, per_subject in cells.items()
            if subject_id in per_subject
        }
        if per_cell:
            rooms[pid] = per_cell

    allowed = state.allowed_periods_by_subject.get(subject_id)
    return DeletedSnapshot(
        subject=subject.model_copy(deep=True),
        allowed_periods=list(allowed) if allowed is not None else None,
        placed=placed,
        rooms=rooms,
    )


def strip_subject(state: Collections, subject_id: str) -> Collections:
    """Return new collections with every reference to ``subject_id`` removed."""
    assigned: AssignedPerPeriod = {}
    for pid, cells in state.assigned_per_period.items():
        kept = {}
        for key, ids in cells.items():
            remaining = [i for i in ids if i != subject_id]
            if remaining:
                kept[key] = remaining
        assigned[pid] = kept

    rooms: RoomsDataPerPeriod = {}
    for pid, cells in state.rooms_data.items():
        kept_rooms = {}
        for key, per_subject in cells.items():
            remaining_rooms = {sid: entry for sid, entry in per_subject.items() if sid != subject_id}
            if remaining_rooms:
                kept_rooms[key] = remaining_rooms
        rooms[pid] = kept_rooms

    return Collections(
        subjects=[s for s in state.subjects if s.id != subject_id],
        allowed_periods_by_subject={
            sid: pids for sid, pids in state.allowed_periods_by_subject.items() if sid != subject_id
        },
        hidden_subject_ids=[sid for sid in state.hidden_subject_ids if sid != subject_id],
        assigned_per_period=assigned,
        rooms_data=rooms,
    )


def without_period(snapshot: DeletedSnapshot, period_id: int) -> DeletedSnapshot:
    """Copy of ``snapshot`` with nothing left in ``period_id``."""
    return snapshot.model_copy(update={
        "placed": {pid: list(keys) for pid, keys in snapshot.placed.items() if pid != period_id},
        "rooms": {pid: dict(cells) for pid, cells in snapshot.rooms.items() if pid != period_id},
    })


def remap_snapshot(snapshot: DeletedSnapshot, index_maps: dict[int, dict[int, int]]) -> DeletedSnapshot:
    """
    Copy of ``snapshot`` with cell keys moved to a new slot layout.

    ``index_maps`` holds one old-position -> new-position map per period whose
    layout changed. Cells whose slot no longer exists are dropped, the same
    way the merge import drops them from live state.
    """
    placed: dict[int, list[str]] = {}
    for pid, keys in snapshot.placed.items():
        if pid in index_maps:
            keys = list(remap_cells({key: key for key in keys}, index_maps[pid]))
        if keys:
            placed[pid] = list(keys)

    rooms: dict[int, dict] = {}
    for pid, cells in snapshot.rooms.items():
        if pid in index_maps:
            cells = remap_cells(cells, index_maps[pid])
        if cells:
            rooms[pid] = dict(cells)

    return snapshot.model_copy(update={"placed": placed, "rooms": rooms})


def _cell_exists(slots_per_period: Optional[SlotsPerPeriod], pid: int, key: str) -> bool:
    if slots_per_period is None:
        return True
    slots = slots_per_period.get(pid)
    if slots is None:
        return False
    _, index = split_cell_key(key)
    return 0 <= index < len(slots)


def restore(
    state: Collections,
    snapshot: DeletedSnapshot,
    slots_per_period: Optional[SlotsPerPeriod] = None,
) -> Collections:
    """
    Return new collections with the snapshot put back.

    The subject is re-added only if no subject with its id exists. Placements
    are unioned into whatever the cells hold now; room records are written
    back as captured. When ``slots_per_period`` is given, cells of unknown
    periods or past the end of a period's slot list are skipped.
    """
    subject_id = snapshot.subject.id

    subjects = list(state.subjects)
    if not any(s.id == subject_id for s in subjects):
        subjects.append(snapshot.subject.model_copy(deep=True))

    allowed = dict(state.allowed_periods_by_subject)
    if snapshot.allowed_periods is not None:
        allowed[subject_id] = list(snapshot.allowed_periods)

    assigned = {pid: dict(cells) for pid, cells in state.assigned_per_period.items()}
    for pid, keys in snapshot.placed.items():
        for key in keys:
            if not _cell_exists(slots_per_period, pid, key):
                logger.debug("Skipping restore of %s into missing cell %d/%s", subject_id, pid, key)
                continue
            cells = assigned.setdefault(pid, {})
            ids = list(cells.get(key, []))
            if subject_id not in ids:
                ids.append(subject_id)
            cells[key] = ids

    rooms = {pid: {key: dict(per) for key, per in cells.items()} for pid, cells in state.rooms_data.items()}
    for pid, per_cell in snapshot.rooms.items():
        for key, entry in per_cell.items():
            if not _cell_exists(slots_per_period, pid, key):
                continue
            rooms.setdefault(pid, {}).setdefault(key, {})[subject_id] = entry.model_copy(deep=True)

    return Collections(
        subjects=subjects,
        allowed_periods_by_subject=allowed,
        hidden_subject_ids=list(state.hidden_subject_ids),
        assigned_per_period=assigned,
        rooms_data=rooms,
    )


# =============================================================================
# Pending Undo
# =============================================================================

class UndoBuffer:
    """
    Holds the most recent deletion for a limited time.

    Expiry is measured with ``clock`` from the moment a snapshot is stored and
    is checked whenever the buffer is read, so a replaced snapshot never
    inherits the old deadline.
    """

    def __init__(self, window_seconds: float = 20.0, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._snapshot: Optional[DeletedSnapshot] = None
        self._deadline = 0.0

    def put(self, snapshot: DeletedSnapshot) -> None:
        if self._snapshot is not None:
            logger.debug("Discarding pending undo for %s", self._snapshot.subject.id)
        self._snapshot = snapshot
        self._deadline = self._clock() + self.window_seconds

    def peek(self) -> Optional[DeletedSnapshot]:
        """The pending snapshot, or None if there is none or it has expired."""
        if self._snapshot is not None and self._clock() >= self._deadline:
            logger.info("Undo for %s expired", self._snapshot.subject.id)
            self._snapshot = None
        return self._snapshot

    def pop(self) -> Optional[DeletedSnapshot]:
        snapshot = self.peek()
        self._snapshot = None
        return snapshot

    def clear(self) -> None:
        self._snapshot = None

    def revise(self, change: Callable[[DeletedSnapshot], DeletedSnapshot]) -> None:
        """Replace the pending snapshot with ``change(snapshot)``, keeping its deadline."""
        snapshot = self.peek()
        if snapshot is not None:
            self._snapshot = change(snapshot)
