"""`devicetrack_io` exports the file-source helpers used by the ingestion pipeline."""

# Module responsibilities:
# - Re-export workbook reading and file fingerprinting so consumers have a stable API surface.

from __future__ import annotations

from .file_hash import (
    DEFAULT_EXTENSIONS,
    fingerprint_bytes,
    fingerprint_file,
    is_workbook_file,
    list_workbook_files,
)
from .workbook_reader import (
    SheetData,
    WorkbookData,
    WorkbookFormatError,
    cell_to_text,
    read_workbook,
    read_workbook_bytes,
    sheet_from_rows,
)

__all__ = [
    "DEFAULT_EXTENSIONS",
    "SheetData",
    "WorkbookData",
    "WorkbookFormatError",
    "cell_to_text",
    "fingerprint_bytes",
    "fingerprint_file",
    "is_workbook_file",
    "list_workbook_files",
    "read_workbook",
    "read_workbook_bytes",
    "sheet_from_rows",
]

__version__ = "0.1.0"
