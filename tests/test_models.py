"""Tests for Pydantic models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from planner.data.models import (
    DeletedSnapshot,
    Period,
    PeriodKind,
    PlannerConfig,
    PlannerSnapshot,
    RoomsEnroll,
    Subject,
    TimeSlot,
)


class TestTimeSlot:
    """Tests for TimeSlot model."""

    def test_matches(self):
        slot = TimeSlot(start="08:00", end="10:00")
        assert slot.matches("08:00", "10:00")
        assert not slot.matches("8:00", "10:00")

    def test_str(self):
        assert str(TimeSlot(start="10:30", end="12:30")) == "10:30-12:30"

    def test_rejects_unpadded_time(self):
        with pytest.raises(ValidationError):
            TimeSlot(start="8:00", end="10:00")

    def test_equality_by_value(self):
        assert TimeSlot(start="08:00", end="10:00") == TimeSlot(start="08:00", end="10:00")


class TestSubject:
    """Tests for Subject model."""

    def test_populate_by_alias(self):
        subject = Subject(id="s1", code="230001", academicYear="2025", halfYear=1, MET="X")
        assert subject.academic_year == "2025"
        assert subject.half_year == 1
        assert subject.met == "X"

    def test_populate_by_name(self):
        subject = Subject(id="s1", academic_year="2025", half_year=2)
        assert subject.half_year == 2

    def test_half_year_out_of_range(self):
        with pytest.raises(ValidationError):
            Subject(id="s1", half_year=3)

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Subject(id="")

    def test_identity_key(self):
        subject = Subject(id="s1", code=" 230001 ", acronym="Alg")
        assert subject.identity_key == "230001||alg"

    def test_dump_uses_aliases(self):
        data = Subject(id="s1", code="C", half_year=1).model_dump(by_alias=True)
        assert data["halfYear"] == 1
        assert "MCYBERS" in data

    def test_catalan_field_names(self):
        subject = Subject.model_validate({
            "id": "230001",
            "codi": "230001",
            "sigles": "ALG",
            "nivell": "GRAU",
            "curs": 2025,
            "quadrimestre": 1,
        })
        assert subject.code == "230001"
        assert subject.acronym == "ALG"
        assert subject.level == "GRAU"
        assert subject.academic_year == "2025"
        assert subject.half_year == 1

    def test_catalan_names_saved_as_camel_case(self):
        data = Subject.model_validate({"id": "s1", "codi": "C", "curs": "2025"}).model_dump(by_alias=True)
        assert data["code"] == "C"
        assert data["academicYear"] == "2025"
        assert "codi" not in data and "curs" not in data


class TestPeriod:
    """Tests for Period model."""

    def test_defaults(self):
        period = Period(id=1, label="Period 1")
        assert period.kind == PeriodKind.PARTIAL
        assert period.blackout_dates == []
        assert period.start_date == ""

    def test_id_must_be_positive(self):
        with pytest.raises(ValidationError):
            Period(id=0, label="Period 0")

    def test_blackout(self):
        period = Period(id=1, label="P", blackoutDates=["2025-03-12"])
        assert period.is_blacked_out("2025-03-12")
        assert not period.is_blacked_out("2025-03-13")

    def test_catalan_field_names(self):
        period = Period.model_validate({
            "id": 1,
            "label": "Finals",
            "tipus": "FINAL",
            "startStr": "2025-01-13",
            "endStr": "2025-01-24",
            "curs": 2024,
            "quad": 1,
            "blackouts": ["2025-01-20"],
        })
        assert period.kind == PeriodKind.FINAL
        assert period.start_date == "2025-01-13"
        assert period.end_date == "2025-01-24"
        assert period.academic_year == 2024
        assert period.half_year == 1
        assert period.is_blacked_out("2025-01-20")

    @pytest.mark.parametrize("spelling,kind", [
        ("PARCIAL", PeriodKind.PARTIAL),
        ("REAVALUACIÓ", PeriodKind.RESIT),
        ("reavaluacio", PeriodKind.RESIT),
        ("RESIT", PeriodKind.RESIT),
    ])
    def test_kind_spellings(self, spelling, kind):
        assert Period.model_validate({"id": 1, "label": "P", "tipus": spelling}).kind == kind

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            Period(id=1, label="P", kind="MIDTERM")

    def test_academic_year_from_course_text(self):
        assert Period(id=1, label="P", academic_year="2025-26").academic_year == 2025

    def test_missing_label_defaults_from_id(self):
        assert Period.model_validate({"id": 3}).label == "Period 3"

    def test_dump_uses_camel_case(self):
        period = Period.model_validate({"id": 1, "label": "P", "startStr": "2025-01-13", "tipus": "PARCIAL"})
        data = period.model_dump(mode="json", by_alias=True)
        assert data["startDate"] == "2025-01-13"
        assert data["kind"] == "PARTIAL"
        assert "startStr" not in data


class TestRoomsEnroll:
    """Tests for RoomsEnroll model."""

    def test_defaults(self):
        entry = RoomsEnroll()
        assert entry.rooms == []
        assert entry.students is None

    def test_negative_students_rejected(self):
        with pytest.raises(ValidationError):
            RoomsEnroll(students=-1)


class TestPlannerConfig:
    """Tests for PlannerConfig model."""

    def test_defaults(self):
        config = PlannerConfig()
        assert config.undo_window_seconds == 20.0
        assert config.max_periods == 5
        assert config.default_slot == TimeSlot(start="08:00", end="10:00")
        assert len(config.initial_slots) == 3
        assert config.centre_code == "230"

    def test_invalid_serial_range(self):
        with pytest.raises(ValueError, match="serial_date_min.*must be less than"):
            PlannerConfig(serial_date_min=70000, serial_date_max=40000)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            PlannerConfig(undo_window=5)


class TestPlannerSnapshot:
    """Tests for the persisted snapshot model."""

    def test_to_dict_uses_camel_case_and_skips_missing(self):
        snapshot = PlannerSnapshot(active_pid=2, hidden_subject_ids=["s1"])
        assert snapshot.to_dict() == {"activePid": 2, "hiddenSubjectIds": ["s1"]}

    def test_string_period_keys_are_coerced(self):
        snapshot = PlannerSnapshot.model_validate({
            "slotsPerPeriod": {"1": [{"start": "08:00", "end": "10:00"}]},
            "assignedPerPeriod": {"1": {"2025-03-10|0": ["s1"]}},
        })
        assert snapshot.slots_per_period[1][0].start == "08:00"
        assert snapshot.assigned_per_period[1]["2025-03-10|0"] == ["s1"]

    def test_unknown_fields_ignored(self):
        snapshot = PlannerSnapshot.model_validate({"theme": "dark", "activePid": 1})
        assert snapshot.active_pid == 1

    def test_deleted_snapshot_defaults(self):
        snap = DeletedSnapshot(subject=Subject(id="s1"))
        assert snap.allowed_periods is None
        assert snap.placed == {}
        assert snap.rooms == {}
