"""Catalog and room importers."""

from .replace import ReplaceResult, import_subjects_replace
from .merge import MergeResult, import_subjects_merge, remap_cells, slot_index_map
from .rooms import RoomImportResult, SkipReason, find_subject, import_rooms

__all__ = [
    "ReplaceResult",
    "import_subjects_replace",
    "MergeResult",
    "import_subjects_merge",
    "remap_cells",
    "slot_index_map",
    "RoomImportResult",
    "SkipReason",
    "find_subject",
    "import_rooms",
]
