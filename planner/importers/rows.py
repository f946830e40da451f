"""Parsing of catalog rows shared by the replace and merge importers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from ..data.columns import CATALOG_FIELDS, TRACK_FIELDS, resolve
from ..data.models import PeriodKind, Subject, TimeSlot
from ..data.normalize import (
    as_text,
    normalize_academic_year,
    normalize_half_year,
    parse_blackouts,
    parse_date,
    parse_period_id,
    parse_period_kind,
    parse_slots,
    subject_key,
)

# Subject attributes an import may set; identity (code, acronym) and id are excluded
SUBJECT_FIELDS = ("level", "academic_year", "half_year") + TRACK_FIELDS


@dataclass
class CatalogRow:
    """One subject/period row with every field already normalized."""
    code: str
    acronym: str
    level: Optional[str] = None
    academic_year: Optional[str] = None
    half_year: Optional[int] = None
    tracks: dict[str, Optional[str]] = field(default_factory=dict)

    period_id: Optional[int] = None
    period_kind: Optional[PeriodKind] = None
    period_start: str = ""
    period_end: str = ""
    period_slots: list[TimeSlot] = field(default_factory=list)
    period_blackouts: list[str] = field(default_factory=list)
    period_academic_year: Optional[int] = None
    period_half_year: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> CatalogRow:
        def get(name: str) -> Any:
            return resolve(raw, name, CATALOG_FIELDS)

        period_year = normalize_academic_year(get("period_academic_year"))
        return cls(
            code=as_text(get("code")).strip(),
            acronym=as_text(get("acronym")).strip(),
            level=as_text(get("level")).strip() or None,
            academic_year=normalize_academic_year(get("academic_year")),
            half_year=normalize_half_year(get("half_year")),
            tracks={name: as_text(get(name)).strip() or None for name in TRACK_FIELDS},
            period_id=parse_period_id(get("period_id")),
            period_kind=parse_period_kind(get("period_kind")),
            period_start=parse_date(get("period_start")) or "",
            period_end=parse_date(get("period_end")) or "",
            period_slots=parse_slots(get("period_slots")),
            period_blackouts=parse_blackouts(get("period_blackouts")),
            period_academic_year=int(period_year) if period_year else None,
            period_half_year=normalize_half_year(get("period_half_year")),
        )

    @property
    def has_identity(self) -> bool:
        return bool(self.code or self.acronym)

    @property
    def key(self) -> str:
        return subject_key(self.code, self.acronym)

    def subject_values(self) -> dict[str, Any]:
        """Importable subject attributes carried by this row."""
        values: dict[str, Any] = {
            "level": self.level,
            "academic_year": self.academic_year,
            "half_year": self.half_year,
        }
        values.update(self.tracks)
        return values

    def to_subject(self, subject_id: str) -> Subject:
        return Subject(
            id=subject_id,
            code=self.code,
            acronym=self.acronym,
            **self.subject_values(),
        )


def unique_subject_id(base: str, taken: Iterable[str]) -> str:
    """
    Return ``base`` unless another subject already owns it.

    Two rows can differ in identity key and still derive the same id (same
    code, different acronym). The later one gets "<base>~2", "<base>~3", ...
    """
    taken = set(taken)
    if base not in taken:
        return base
    n = 2
    while f"{base}~{n}" in taken:
        n += 1
    return f"{base}~{n}"
