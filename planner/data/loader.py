"""Read import rows from CSV/XLSX files and load/save planner snapshots."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from openpyxl import load_workbook

from .models import PlannerConfig, PlannerSnapshot

if TYPE_CHECKING:
    from ..state import PlannerState

logger = logging.getLogger(__name__)

CSV_DELIMITERS = ",;"
ROW_FILE_SUFFIXES = (".csv", ".xlsx", ".xlsm")


class DataValidationError(Exception):
    """Raised when an input file cannot be used at all."""
    pass


def _is_blank(row: dict[str, Any]) -> bool:
    return all(v is None or str(v).strip() == "" for v in row.values())


def read_csv_rows(path: Union[str, Path]) -> list[dict[str, Any]]:
    """
    Read a CSV file into header -> value dictionaries.

    The delimiter (comma or semicolon) is sniffed from the first line and a
    leading byte-order mark is dropped. Blank lines are skipped.
    """
    path = Path(path)

    with open(path, newline="", encoding="utf-8-sig") as f:
        sample = f.readline()
        f.seek(0)
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS)
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ","
        rows = [row for row in csv.DictReader(f, delimiter=delimiter) if not _is_blank(row)]

    logger.debug("Read %d rows from %s (delimiter %r)", len(rows), path, delimiter)
    return rows


def read_xlsx_rows(path: Union[str, Path], sheet: Optional[str] = None) -> list[dict[str, Any]]:
    """
    Read a worksheet into header -> value dictionaries (first row = header).

    Cell values are kept as openpyxl returns them, so dates arrive as
    ``datetime`` objects and numbers as ``int``/``float``.
    """
    path = Path(path)
    wb = load_workbook(str(path), read_only=True, data_only=True)
    try:
        ws = wb[sheet] if sheet else wb.active
        values = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()

    if not values:
        return []

    headers = [
        str(h).strip() if h is not None else f"col_{i}"
        for i, h in enumerate(values[0])
    ]
    rows = []
    for raw in values[1:]:
        row = {headers[i]: v for i, v in enumerate(raw) if i < len(headers)}
        if not _is_blank(row):
            rows.append(row)

    logger.debug("Read %d rows from %s", len(rows), path)
    return rows


def read_rows(path: Union[str, Path]) -> list[dict[str, Any]]:
    """
    Read import rows from a CSV or XLSX file.

    Args:
        path: Path to the file

    Returns:
        List of header -> raw value dictionaries

    Raises:
        FileNotFoundError: If the file doesn't exist
        DataValidationError: If the file type is not supported
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in ROW_FILE_SUFFIXES:
        raise DataValidationError(
            f"Unsupported file type '{path.suffix}' (expected one of {', '.join(ROW_FILE_SUFFIXES)})"
        )
    if not path.exists():
        raise FileNotFoundError(path)

    if suffix == ".csv":
        return read_csv_rows(path)
    return read_xlsx_rows(path)


def load_snapshot(path: Union[str, Path]) -> PlannerSnapshot:
    """
    Load a planner snapshot from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file isn't valid JSON
        DataValidationError: If the top level is not an object
        pydantic.ValidationError: If a field has the wrong shape
    """
    path = Path(path)

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise DataValidationError(f"Snapshot must be a JSON object, got {type(data).__name__}")
    return PlannerSnapshot.model_validate(data)


def load_state(path: Union[str, Path], config: Optional[PlannerConfig] = None) -> PlannerState:
    """Build a state from a snapshot file; a missing file gives a fresh state."""
    from ..state import PlannerState

    path = Path(path)
    state = PlannerState(config=config)
    if path.exists():
        state.load_snapshot(load_snapshot(path))
        logger.debug("Loaded state from %s", path)
    else:
        logger.info("No state file at %s, starting fresh", path)
    return state


def save_state(state: PlannerState, path: Union[str, Path], indent: int = 2) -> None:
    """Write the state's snapshot as JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.to_snapshot().to_json(indent=indent), encoding="utf-8")
    logger.debug("Saved state to %s", path)
