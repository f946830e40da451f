"""Calendar export formatting."""

from .formatters import (
    # Formatter classes
    JSONFormatter,
    CSVFormatter,
    TXTFormatter,
    ExamRow,
    # Convenience functions
    iter_exam_rows,
    format_json,
    format_csv,
    format_txt,
    export,
    # File utilities
    save_json,
    save_csv,
    save_txt,
)

__all__ = [
    "JSONFormatter",
    "CSVFormatter",
    "TXTFormatter",
    "ExamRow",
    "iter_exam_rows",
    "format_json",
    "format_csv",
    "format_txt",
    "export",
    "save_json",
    "save_csv",
    "save_txt",
]
