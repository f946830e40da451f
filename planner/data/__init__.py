"""Data model, normalization and file loading."""

from .models import (
    PeriodKind,
    TimeSlot,
    Subject,
    RoomsEnroll,
    Period,
    DeletedSnapshot,
    PlannerConfig,
    PlannerSnapshot,
)
from .loader import (
    DataValidationError,
    read_rows,
    read_csv_rows,
    read_xlsx_rows,
    load_snapshot,
    load_state,
    save_state,
)

__all__ = [
    # Models
    "PeriodKind",
    "TimeSlot",
    "Subject",
    "RoomsEnroll",
    "Period",
    "DeletedSnapshot",
    "PlannerConfig",
    "PlannerSnapshot",
    # Loader
    "DataValidationError",
    "read_rows",
    "read_csv_rows",
    "read_xlsx_rows",
    "load_snapshot",
    "load_state",
    "save_state",
]
