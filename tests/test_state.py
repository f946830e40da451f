"""Tests for the PlannerState container."""

from __future__ import annotations

import json
from datetime import date

import pytest

from planner.data.models import (
    Period,
    PeriodKind,
    PlannerConfig,
    PlannerSnapshot,
    RoomsEnroll,
    Subject,
    TimeSlot,
)
from planner.state import PlannerState, week_bounds


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(clock) -> PlannerState:
    """Fresh state dated Wednesday 2025-03-12 with two subjects."""
    s = PlannerState(today=lambda: date(2025, 3, 12), clock=clock)
    s.replace_collections(subjects=[
        Subject(id="230001", code="230001", acronym="ALG", academic_year="2025", half_year=1),
        Subject(id="230002", code="230002", acronym="CAL", academic_year="2025", half_year=2),
    ])
    return s


@pytest.fixture
def placed(state) -> PlannerState:
    """230001 placed at 2025-03-10 slot 0 with a room record."""
    state.place_subject(1, "2025-03-10", 0, "230001")
    state.apply_room_import([{
        "codi": "230001", "period_id": 1, "data_examen": "2025-03-10",
        "hora_inici": "08:00", "hora_fi": "10:00", "aula": "A1", "estudiants": 40,
    }])
    return state


class TestFreshState:
    """Tests for the initial state."""

    def test_week_bounds(self):
        assert week_bounds(date(2025, 3, 12)) == (date(2025, 3, 10), date(2025, 3, 14))
        assert week_bounds(date(2025, 3, 16)) == (date(2025, 3, 10), date(2025, 3, 14))

    def test_initial_period(self, state):
        period = state.periods[0]
        assert period.id == 1
        assert period.label == "Period 1"
        assert period.kind == PeriodKind.PARTIAL
        assert (period.start_date, period.end_date) == ("2025-03-10", "2025-03-14")
        assert state.active_pid == 1
        assert len(state.slots_per_period[1]) == 3

    def test_empty_collections(self, state):
        assert state.assigned_per_period == {}
        assert state.rooms_data == {}
        assert state.hidden_subject_ids == []
        assert state.pending_undo is None


class TestPlacement:
    """Tests for place/move/remove."""

    def test_place(self, state):
        assert state.place_subject(1, "2025-03-10", 0, "230001")
        assert state.assigned_per_period[1] == {"2025-03-10|0": ["230001"]}

    def test_place_twice_is_a_set(self, state):
        state.place_subject(1, "2025-03-10", 0, "230001")
        state.place_subject(1, "2025-03-10", 0, "230001")
        assert state.assigned_per_period[1]["2025-03-10|0"] == ["230001"]

    def test_cell_can_hold_several_subjects(self, state):
        state.place_subject(1, "2025-03-10", 0, "230001")
        state.place_subject(1, "2025-03-10", 0, "230002")
        assert state.assigned_per_period[1]["2025-03-10|0"] == ["230001", "230002"]

    @pytest.mark.parametrize("pid,slot,subject_id", [(9, 0, "230001"), (1, 3, "230001"), (1, -1, "230001"), (1, 0, "nope")])
    def test_invalid_placement(self, state, pid, slot, subject_id):
        assert not state.place_subject(pid, "2025-03-10", slot, subject_id)
        assert state.assigned_per_period == {}

    def test_remove_drops_room_record(self, placed):
        assert placed.remove_subject_from_cell(1, "2025-03-10", 0, "230001")
        assert placed.assigned_per_period[1] == {}
        assert placed.rooms_data[1] == {}

    def test_remove_not_placed(self, state):
        assert not state.remove_subject_from_cell(1, "2025-03-10", 0, "230001")

    def test_move_carries_room_record(self, placed):
        assert placed.move_subject(1, ("2025-03-10", 0), ("2025-03-11", 2), "230001")
        assert placed.assigned_per_period[1] == {"2025-03-11|2": ["230001"]}
        assert placed.rooms_data[1] == {"2025-03-11|2": {"230001": RoomsEnroll(rooms=["A1"], students=40)}}

    def test_move_across_periods_refused(self, placed):
        placed.add_period()
        assert not placed.move_subject(1, ("2025-03-10", 0), ("2025-03-10", 0), "230001", target_period_id=2)
        assert placed.assigned_per_period[1] == {"2025-03-10|0": ["230001"]}

    def test_move_to_invalid_slot_refused(self, placed):
        assert not placed.move_subject(1, ("2025-03-10", 0), ("2025-03-10", 5), "230001")

    def test_move_unplaced_refused(self, state):
        assert not state.move_subject(1, ("2025-03-10", 0), ("2025-03-11", 0), "230001")


class TestDeleteAndUndo:
    """Tests for permanent deletion and undo."""

    def test_delete_strips_everything(self, placed):
        placed.replace_collections(allowed_periods_by_subject={"230001": [1]})
        placed.hide_subject("230001")
        snap = placed.delete_subject_permanently("230001")
        assert snap.placed == {1: ["2025-03-10|0"]}
        assert placed.get_subject("230001") is None
        assert placed.assigned_per_period[1] == {}
        assert placed.rooms_data[1] == {}
        assert placed.allowed_periods_by_subject == {}
        assert placed.hidden_subject_ids == []
        assert placed.pending_undo is snap

    def test_delete_unknown(self, state):
        assert state.delete_subject_permanently("nope") is None
        assert state.pending_undo is None

    def test_undo_round_trip(self, placed):
        placed.delete_subject_permanently("230001")
        assert placed.undo_delete()
        assert placed.get_subject("230001") is not None
        assert placed.assigned_per_period[1] == {"2025-03-10|0": ["230001"]}
        assert placed.rooms_data[1]["2025-03-10|0"]["230001"] == RoomsEnroll(rooms=["A1"], students=40)
        assert placed.pending_undo is None

    def test_undo_after_period_removed(self, placed):
        placed.add_period()
        placed.place_subject(2, "2025-03-11", 0, "230001")
        placed.delete_subject_permanently("230001")
        placed.remove_period(2)
        assert placed.pending_undo.placed == {1: ["2025-03-10|0"]}
        assert placed.undo_delete()
        assert sorted(placed.assigned_per_period) == [1]
        assert placed.assigned_per_period[1] == {"2025-03-10|0": ["230001"]}

    def test_undo_follows_reordered_slots(self, state):
        state.place_subject(1, "2025-03-10", 1, "230001")
        state.delete_subject_permanently("230001")
        state.apply_merge_import([{
            "codi": "230002", "sigles": "CAL", "curs": "2025", "quadrimestre": "2",
            "period_id": "1", "period_slots": "10:30-12:30;08:00-10:00",
        }])
        assert state.undo_delete()
        assert state.assigned_per_period[1] == {"2025-03-10|0": ["230001"]}

    def test_undo_after_slot_dropped(self, placed):
        placed.delete_subject_permanently("230001")
        placed.apply_merge_import([{
            "codi": "230002", "sigles": "CAL", "period_id": "1", "period_slots": "15:00-17:00",
        }])
        assert placed.undo_delete()
        assert placed.get_subject("230001") is not None
        assert placed.assigned_per_period[1] == {}
        assert placed.rooms_data[1] == {}

    def test_replace_import_discards_pending_undo(self, placed):
        placed.delete_subject_permanently("230001")
        placed.apply_replace_import([{"codi": "230003", "sigles": "FIS", "period_id": "1"}])
        assert placed.pending_undo is None
        assert not placed.undo_delete()
        assert placed.get_subject("230001") is None
        assert placed.assigned_per_period == {}

    def test_double_undo_is_noop(self, placed):
        placed.delete_subject_permanently("230001")
        assert placed.undo_delete()
        assert not placed.undo_delete()
        assert len([s for s in placed.subjects if s.id == "230001"]) == 1

    def test_undo_after_expiry(self, placed, clock):
        placed.delete_subject_permanently("230001")
        clock.now = 20.0
        assert placed.pending_undo is None
        assert not placed.undo_delete()
        assert placed.get_subject("230001") is None

    def test_undo_window_from_config(self, clock):
        s = PlannerState(config=PlannerConfig(undo_window_seconds=5), clock=clock)
        s.replace_collections(subjects=[Subject(id="x")])
        s.delete_subject_permanently("x")
        clock.now = 5.0
        assert s.pending_undo is None

    def test_new_delete_replaces_pending(self, placed):
        placed.delete_subject_permanently("230001")
        placed.delete_subject_permanently("230002")
        assert placed.pending_undo.subject.id == "230002"
        placed.undo_delete()
        assert placed.get_subject("230001") is None
        assert placed.get_subject("230002") is not None

    def test_undo_when_subject_readded(self, placed):
        placed.delete_subject_permanently("230001")
        placed.replace_collections(subjects=[*placed.subjects, Subject(id="230001", code="230001")])
        placed.undo_delete()
        assert len([s for s in placed.subjects if s.id == "230001"]) == 1
        assert placed.assigned_per_period[1]["2025-03-10|0"] == ["230001"]


class TestPeriods:
    """Tests for add/remove period."""

    def test_add_period(self, state):
        period = state.add_period()
        assert period.id == 2
        assert period.label == "Period 2"
        assert period.kind == PeriodKind.PARTIAL
        assert period.start_date == "2025-03-10"
        assert state.active_pid == 2
        assert state.slots_per_period[2] == [TimeSlot(start="08:00", end="10:00")]

    def test_ids_never_reused(self, state):
        state.add_period()
        state.remove_period(2)
        assert state.add_period().id == 3

    def test_max_periods(self, clock):
        s = PlannerState(config=PlannerConfig(max_periods=2), clock=clock)
        assert s.add_period() is not None
        assert s.add_period() is None
        assert len(s.periods) == 2

    def test_remove_cascades(self, placed):
        assert placed.remove_period(1)
        assert placed.periods == []
        assert 1 not in placed.slots_per_period
        assert 1 not in placed.assigned_per_period
        assert 1 not in placed.rooms_data

    def test_remove_active_falls_back(self, state):
        state.add_period()
        state.add_period()
        state.set_active_period(2)
        state.remove_period(2)
        assert state.active_pid == 1

    def test_remove_unknown(self, state):
        assert not state.remove_period(42)

    def test_remove_last_period_clears_active(self, state):
        state.remove_period(1)
        assert state.active_pid is None
        assert state.active_period is None
        assert state.summary()["active_period"] is None

    def test_remove_inactive_keeps_active(self, state):
        state.add_period()
        state.remove_period(1)
        assert state.active_pid == 2


class TestAvailability:
    """Tests for the pick-list filter."""

    def _period(self, state, **fields):
        period = Period(id=1, label="Period 1", start_date="2025-03-10", end_date="2025-03-14", **fields)
        state.replace_collections(periods=[period])

    def test_all_available_without_period_filters(self, state):
        assert [s.id for s in state.available_subjects(1)] == ["230001", "230002"]

    def test_half_year_filter(self, state):
        self._period(state, half_year=1)
        assert [s.id for s in state.available_subjects(1)] == ["230001"]

    def test_allowed_periods_override_half_year(self, state):
        self._period(state, half_year=1)
        state.replace_collections(allowed_periods_by_subject={"230002": [1], "230001": [2]})
        assert [s.id for s in state.available_subjects(1)] == ["230002"]

    def test_academic_year_filter(self, state):
        self._period(state, academic_year=2024)
        assert state.available_subjects(1) == []

    def test_placed_and_hidden_excluded(self, state):
        state.place_subject(1, "2025-03-10", 0, "230001")
        state.hide_subject("230002")
        assert state.available_subjects(1) == []
        state.unhide_subject("230002")
        assert [s.id for s in state.available_subjects(1)] == ["230002"]

    def test_unknown_period(self, state):
        assert state.available_subjects(9) == []


class TestImports:
    """Tests for the import entry points."""

    def test_replace_import_clears_placements(self, placed):
        placed.hide_subject("230002")
        placed.apply_replace_import([{"codi": "230003", "sigles": "FIS", "period_id": "3"}])
        assert [s.id for s in placed.subjects] == ["230003"]
        assert placed.assigned_per_period == {}
        assert placed.rooms_data == {}
        assert placed.hidden_subject_ids == []
        assert placed.active_pid == 3

    def test_merge_import_remaps(self, placed):
        placed.apply_merge_import([{
            "codi": "230001", "sigles": "ALG", "curs": "2025", "quadrimestre": "1",
            "period_id": "1", "period_slots": "10:30-12:30;08:00-10:00",
        }])
        assert placed.assigned_per_period[1] == {"2025-03-10|1": ["230001"]}
        assert list(placed.rooms_data[1]) == ["2025-03-10|1"]

    def test_merged_period_ids_advance_counter(self, state):
        state.apply_merge_import([{"codi": "230001", "sigles": "ALG", "period_id": "4"}])
        assert state.add_period().id == 5

    def test_room_import_requires_placement(self, state):
        result = state.apply_room_import([{
            "codi": "230001", "period_id": 1, "data_examen": "2025-03-10",
            "hora_inici": "08:00", "hora_fi": "10:00", "aula": "A1",
        }])
        assert result.attached == 0
        assert state.rooms_data == {}


class TestSnapshots:
    """Tests for snapshot round trips."""

    def test_round_trip_through_json(self, placed, clock):
        data = json.loads(placed.to_snapshot().to_json())
        assert set(data) == {
            "subjects", "periods", "slotsPerPeriod", "assignedPerPeriod", "activePid",
            "roomsData", "allowedPeriodsBySubject", "hiddenSubjectIds",
        }
        restored = PlannerState.from_snapshot(data, clock=clock)
        assert restored.to_snapshot().to_dict() == placed.to_snapshot().to_dict()

    def test_missing_fields_keep_current_value(self, placed):
        placed.load_snapshot({"hiddenSubjectIds": ["230002"]})
        assert placed.hidden_subject_ids == ["230002"]
        assert placed.assigned_per_period[1] == {"2025-03-10|0": ["230001"]}

    def test_load_model_instance(self, state):
        state.load_snapshot(PlannerSnapshot(active_pid=1, subjects=[]))
        assert state.subjects == []

    def test_load_points_at_existing_period(self, state):
        state.load_snapshot({"periods": [{"id": 3, "label": "Period 3"}, {"id": 4, "label": "Period 4"}]})
        assert state.active_pid == 3

    def test_load_keeps_valid_active(self, state):
        state.load_snapshot({
            "periods": [{"id": 1, "label": "Period 1"}, {"id": 2, "label": "Period 2"}],
            "activePid": 2,
        })
        assert state.active_pid == 2

    def test_load_catalan_field_names(self, clock):
        restored = PlannerState.from_snapshot({
            "subjects": [{
                "id": "230001", "codi": "230001", "sigles": "ALG", "curs": "2025", "quadrimestre": 1,
            }],
            "periods": [{
                "id": 1, "label": "Finals", "tipus": "REAVALUACIÓ",
                "startStr": "2025-01-13", "endStr": "2025-01-17",
                "curs": 2024, "quad": 1, "blackouts": ["2025-01-15"],
            }],
            "activePid": 1,
        }, clock=clock)
        subject = restored.get_subject("230001")
        assert (subject.code, subject.acronym, subject.academic_year, subject.half_year) == (
            "230001", "ALG", "2025", 1,
        )
        period = restored.get_period(1)
        assert period.kind == PeriodKind.RESIT
        assert (period.start_date, period.end_date) == ("2025-01-13", "2025-01-17")
        assert (period.academic_year, period.half_year) == (2024, 1)
        assert period.blackout_dates == ["2025-01-15"]

        saved = restored.to_snapshot().to_dict()
        assert saved["periods"][0]["startDate"] == "2025-01-13"
        assert saved["subjects"][0]["code"] == "230001"

    def test_summary(self, placed):
        counts = placed.summary()
        assert counts["subjects"] == 2
        assert counts["placements"] == 1
        assert counts["room_records"] == 1
        assert counts["pending_undo"] is False


class TestReset:
    """Tests for reset."""

    def test_reset_returns_to_fresh_state(self, placed):
        placed.delete_subject_permanently("230002")
        placed.reset()
        assert placed.subjects == []
        assert [p.id for p in placed.periods] == [1]
        assert placed.assigned_per_period == {}
        assert placed.rooms_data == {}
        assert placed.pending_undo is None
