"""
Pydantic models for the exam planner data model.

Field aliases follow the camelCase names of the saved planner snapshot and
``model_dump(by_alias=True)`` produces that shape. On load, subjects and
periods also accept the Catalan field names of older saved calendars
(``codi``, ``sigles``, ``tipus``, ``startStr`` and so on), which are rewritten
to the camelCase names on the next save.

Addressing conventions:
- Dates are ISO strings ("YYYY-MM-DD")
- Times are zero-padded wall-clock strings ("HH:MM")
- A cell is "<ISO-date>|<zero-based slot index>" within one period
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# Constants and Enums
# =============================================================================

class PeriodKind(str, Enum):
    """Kind of examination window."""
    PARTIAL = "PARTIAL"
    FINAL = "FINAL"
    RESIT = "RESIT"


# Kind spellings accepted on load, including those of older Catalan calendars
KIND_SPELLINGS = {
    "PARTIAL": PeriodKind.PARTIAL,
    "PARCIAL": PeriodKind.PARTIAL,
    "FINAL": PeriodKind.FINAL,
    "RESIT": PeriodKind.RESIT,
    "REAVALUACIO": PeriodKind.RESIT,
    "REAVALUACIÓ": PeriodKind.RESIT,
}

LEADING_YEAR = re.compile(r"^(\d{4})(?:\D.*)?$")


HalfYear = Annotated[int, Field(ge=1, le=2, description="Quadrimester (1 or 2)")]
ClockTime = Annotated[str, Field(pattern=r"^\d{2}:\d{2}$", description="Wall-clock time HH:MM")]

# Collection shapes shared by importers, the state container and exporters
AssignedMap = dict[str, list[str]]
AssignedPerPeriod = dict[int, AssignedMap]
AllowedPeriods = dict[str, list[int]]


# =============================================================================
# Core Entity Models
# =============================================================================

class TimeSlot(BaseModel):
    """A (start, end) pair inside a period's ordered slot list."""
    model_config = ConfigDict(frozen=True)

    start: ClockTime
    end: ClockTime

    def matches(self, start: str, end: str) -> bool:
        return self.start == start and self.end == end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


SlotsPerPeriod = dict[int, list[TimeSlot]]


class Subject(BaseModel):
    """A course offering that can be placed in the calendar."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1, description="Stable identifier, set at first import")
    code: str = Field(default="", validation_alias=AliasChoices("code", "codi"), description="Subject code")
    acronym: str = Field(default="", validation_alias=AliasChoices("acronym", "sigles"), description="Short name")
    level: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("level", "nivell"),
        description="Study level",
    )
    academic_year: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("academicYear", "academic_year", "curs"),
        serialization_alias="academicYear",
        description="Starting calendar year",
    )
    half_year: Optional[HalfYear] = Field(
        default=None,
        validation_alias=AliasChoices("halfYear", "half_year", "quadrimestre"),
        serialization_alias="halfYear",
    )

    # Master's track tags
    met: Optional[str] = Field(default=None, alias="MET")
    matt: Optional[str] = Field(default=None, alias="MATT")
    mee: Optional[str] = Field(default=None, alias="MEE")
    mcybers: Optional[str] = Field(default=None, alias="MCYBERS")

    @field_validator("academic_year", mode="before")
    @classmethod
    def year_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def identity_key(self) -> str:
        """Merge identity (lower-cased, trimmed code and acronym)."""
        return f"{self.code.strip().lower()}||{self.acronym.strip().lower()}"

    def __str__(self) -> str:
        return f"{self.acronym or self.code} ({self.id})"


class RoomsEnroll(BaseModel):
    """Rooms and headcount attached to one placed subject in one cell."""
    model_config = ConfigDict(extra="ignore")

    rooms: list[str] = Field(default_factory=list, description="Room names, first-seen order")
    students: Optional[int] = Field(default=None, ge=0, description="Enrolled students")


RoomsMapPerCell = dict[str, RoomsEnroll]
RoomsDataPerPeriod = dict[int, dict[str, RoomsMapPerCell]]


class Period(BaseModel):
    """
    A bounded calendar window divided into time slots.

    Besides the field names and camelCase aliases, the Catalan names of older
    saved calendars are accepted on load (``tipus``, ``startStr``, ``endStr``,
    ``curs``, ``quad``, ``blackouts``), including the PARCIAL and REAVALUACIÓ
    kind spellings.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(ge=1, description="Period number, never reused within a session")
    label: str = Field(description="Display name")
    kind: PeriodKind = Field(
        default=PeriodKind.PARTIAL,
        validation_alias=AliasChoices("kind", "tipus"),
    )
    start_date: str = Field(
        default="",
        validation_alias=AliasChoices("startDate", "start_date", "startStr"),
        serialization_alias="startDate",
        description="First day (ISO), inclusive",
    )
    end_date: str = Field(
        default="",
        validation_alias=AliasChoices("endDate", "end_date", "endStr"),
        serialization_alias="endDate",
        description="Last day (ISO), inclusive",
    )
    academic_year: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("academicYear", "academic_year", "curs"),
        serialization_alias="academicYear",
    )
    half_year: Optional[HalfYear] = Field(
        default=None,
        validation_alias=AliasChoices("halfYear", "half_year", "quad"),
        serialization_alias="halfYear",
    )
    blackout_dates: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("blackoutDates", "blackout_dates", "blackouts"),
        serialization_alias="blackoutDates",
    )

    @model_validator(mode="before")
    @classmethod
    def default_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("label") and data.get("id") is not None:
            return {**data, "label": f"Period {data['id']}"}
        return data

    @field_validator("kind", mode="before")
    @classmethod
    def kind_spelling(cls, v: Any) -> Any:
        if isinstance(v, str):
            return KIND_SPELLINGS.get(v.strip().upper(), v)
        return v

    @field_validator("academic_year", mode="before")
    @classmethod
    def year_from_text(cls, v: Any) -> Any:
        # "2025-26" and "2025/2026" name the starting year
        if isinstance(v, str):
            match = LEADING_YEAR.match(v.strip())
            return int(match.group(1)) if match else (v.strip() or None)
        return v

    def is_blacked_out(self, date_iso: str) -> bool:
        return date_iso in self.blackout_dates

    def __str__(self) -> str:
        return f"{self.label} [{self.kind.value}] {self.start_date}..{self.end_date}"


# =============================================================================
# Undo Snapshot
# =============================================================================

class DeletedSnapshot(BaseModel):
    """Everything that referenced a subject at the moment it was deleted."""

    subject: Subject
    allowed_periods: Optional[list[int]] = None
    placed: dict[int, list[str]] = Field(default_factory=dict, description="period id -> cell keys")
    rooms: dict[int, dict[str, RoomsEnroll]] = Field(
        default_factory=dict,
        description="period id -> cell key -> room record of the deleted subject",
    )


# =============================================================================
# Configuration
# =============================================================================

class PlannerConfig(BaseModel):
    """Tunable constants of the planner."""
    model_config = ConfigDict(extra="forbid")

    undo_window_seconds: float = Field(default=20.0, gt=0, description="Lifetime of a pending undo")
    max_periods: int = Field(default=5, ge=1, description="Limit for manually added periods")
    default_slot: TimeSlot = Field(
        default_factory=lambda: TimeSlot(start="08:00", end="10:00"),
        description="Slot for new periods without an explicit layout",
    )
    initial_slots: list[TimeSlot] = Field(
        default_factory=lambda: [
            TimeSlot(start="08:00", end="10:00"),
            TimeSlot(start="10:30", end="12:30"),
            TimeSlot(start="15:00", end="17:00"),
        ],
        description="Slot layout of period 1 in a fresh state",
    )
    centre_code: str = Field(default="230", description="Centre column of the CSV export")
    serial_date_min: int = Field(default=40000, description="Lowest accepted spreadsheet serial (exclusive)")
    serial_date_max: int = Field(default=70000, description="Highest accepted spreadsheet serial (exclusive)")

    @model_validator(mode="after")
    def validate_serial_range(self) -> "PlannerConfig":
        if self.serial_date_min >= self.serial_date_max:
            raise ValueError(
                f"serial_date_min ({self.serial_date_min}) must be less than "
                f"serial_date_max ({self.serial_date_max})"
            )
        return self


# =============================================================================
# Serialized Snapshot
# =============================================================================

class PlannerSnapshot(BaseModel):
    """
    Persisted planner state.

    Every field is optional: a field missing from a loaded document means
    "keep the current value". Unknown fields are ignored.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subjects: Optional[list[Subject]] = None
    periods: Optional[list[Period]] = None
    slots_per_period: Optional[SlotsPerPeriod] = Field(default=None, alias="slotsPerPeriod")
    assigned_per_period: Optional[AssignedPerPeriod] = Field(default=None, alias="assignedPerPeriod")
    active_pid: Optional[int] = Field(default=None, alias="activePid")
    rooms_data: Optional[RoomsDataPerPeriod] = Field(default=None, alias="roomsData")
    allowed_periods_by_subject: Optional[AllowedPeriods] = Field(default=None, alias="allowedPeriodsBySubject")
    hidden_subject_ids: Optional[list[str]] = Field(default=None, alias="hiddenSubjectIds")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)
