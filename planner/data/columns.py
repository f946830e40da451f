"""
Header variants for spreadsheet rows.

Each logical field maps to the header spellings seen in real exports, in the
order they are tried. Matching is exact and case-sensitive; the first header
present in the row with a non-null value wins, even if that value is "".
Headers not listed here are ignored.
"""

from __future__ import annotations

from typing import Any, Mapping

BOM = "\ufeff"


# =============================================================================
# Catalog rows (subjects + periods)
# =============================================================================

CATALOG_FIELDS: dict[str, tuple[str, ...]] = {
    "code": ("codi", "CODI", "codigo", "CODIGO", "code", f"{BOM}codi", f"{BOM}CODI"),
    "acronym": ("sigles", "SIGLES", "siglas", "SIGLAS"),
    "level": ("nivell", "NIVELL", "nivel", "NIVEL"),
    "academic_year": ("curs", "CURS", "curso", "CURSO"),
    "half_year": ("quadrimestre", "QUADRIMESTRE", "quad", "QUAD"),
    "met": ("MET", "met"),
    "matt": ("MATT", "matt"),
    "mee": ("MEE", "mee"),
    "mcybers": ("MCYBERS", "mcybers"),
    "period_id": ("period_id", "PERIOD_ID", "PeriodId", "periode", "PERIODO", "PERIOD"),
    "period_kind": ("period_tipus", "PERIOD_TIPUS", "tipo", "TIPO"),
    "period_start": ("period_inici", "PERIOD_INICI", "start"),
    "period_end": ("period_fi", "PERIOD_FI", "end"),
    "period_slots": ("period_slots", "PERIOD_SLOTS", "slots"),
    "period_blackouts": ("period_blackouts", "PERIOD_BLACKOUTS", "blackouts", "BLOCKED_DATES"),
    "period_academic_year": ("period_curs", "PERIOD_CURS"),
    "period_half_year": ("period_quad", "PERIOD_QUAD"),
}

TRACK_FIELDS = ("met", "matt", "mee", "mcybers")


# =============================================================================
# Room / enrollment rows
# =============================================================================

ROOM_FIELDS: dict[str, tuple[str, ...]] = {
    "code": ("codi", "CODI", "codigo", "CODIGO", "code", f"{BOM}codi", f"{BOM}CODI"),
    "acronym": ("sigles", "SIGLES", "siglas", "SIGLAS", "nom", "NOM"),
    "period_id": (
        "period_id", "PERIOD_ID", f"{BOM}period_id", "PeriodId",
        "periode", "PERIODE", "PERIODO", "PERIOD", "Period",
    ),
    "exam_date": (
        "data_examen", "DATA_EXAMEN", f"{BOM}data_examen", "dia d'examen", "dia examen",
        "dia", "DIA", "fecha", "FECHA", "data", "DATA", "day",
    ),
    "start_time": (
        "hora_inici", "HORA_INICI", f"{BOM}hora_inici", "hora_inici_examen",
        "hora d'inici de l'examen", "hora inici examen", "inici", "start", "HORA_INI",
    ),
    "end_time": (
        "hora_fi", "HORA_FI", f"{BOM}hora_fi", "hora_fi_examen",
        "hora de fi de l'examen", "hora fi examen", "fi", "end",
    ),
    "room": ("aula", "AULA", f"{BOM}aula", "sala", "SALA", "room", "ROOM"),
    "students": (
        "estudiants", "ESTUDIANTS", f"{BOM}estudiants", "número d'estudiants matriculats",
        "num_estudiants", "matriculats", "MATRICULATS", "matriculados", "MATRICULADOS",
        "students", "STUDENTS", "ENROLLED", "enrolled",
    ),
}


def resolve(row: Mapping[str, Any], field: str, table: Mapping[str, tuple[str, ...]] = CATALOG_FIELDS) -> Any:
    """
    Look up a logical field in a raw row.

    Args:
        row: Header -> raw value mapping
        field: Logical field name (a key of ``table``)
        table: Variant table to use

    Returns:
        The first non-null value among the field's header variants, or None
    """
    for header in table[field]:
        value = row.get(header)
        if value is not None:
            return value
    return None
