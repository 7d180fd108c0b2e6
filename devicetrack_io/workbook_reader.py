"""Workbook input helpers."""

# Module responsibilities:
# - Load .xlsx/.xlsm workbooks through openpyxl into plain in-memory sheets.
# - Reduce typed cells to text the way the ingestion layer expects (dates to calendar days,
#   formulas to cached results, integral floats without a trailing ".0").

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from io import BytesIO
from pathlib import Path
from typing import List, Sequence, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .utils.log import get_logger

logger = get_logger("workbook_reader")

Row = Tuple[object, ...]


class WorkbookFormatError(ValueError):
    """Raised when a payload is not a workbook openpyxl can open."""


def cell_to_text(value: object) -> str:
    """Render a cell value as the plain text used for header matching and conversion."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(slots=True)
class SheetData:
    """Values of one worksheet, addressed with 1-based row/column numbers."""

    title: str
    rows: List[Row] = field(default_factory=list)

    @property
    def max_row(self) -> int:
        return len(self.rows)

    @property
    def max_column(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def row_values(self, row: int) -> Row:
        if row < 1 or row > len(self.rows):
            return ()
        return self.rows[row - 1]

    def cell(self, row: int, column: int) -> object:
        values = self.row_values(row)
        if column < 1 or column > len(values):
            return None
        return values[column - 1]

    def row_text(self, row: int) -> List[str]:
        return [cell_to_text(value) for value in self.row_values(row)]


@dataclass(slots=True)
class WorkbookData:
    name: str
    sheets: List[SheetData] = field(default_factory=list)

    @property
    def sheet_names(self) -> List[str]:
        return [sheet.title for sheet in self.sheets]


def read_workbook_bytes(payload: bytes, name: str = "<memory>") -> WorkbookData:
    """Parse workbook bytes into :class:`WorkbookData`.

    Raises:
        WorkbookFormatError: When the payload is not a readable workbook.
    """

    try:
        workbook = load_workbook(BytesIO(payload), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        logger.error("Failed to open workbook", extra={"workbook": name, "error": str(exc)})
        raise WorkbookFormatError(f"Cannot read workbook {name}: {exc}") from exc

    try:
        sheets: List[SheetData] = []
        for worksheet in workbook.worksheets:
            rows: List[Row] = [tuple(row) for row in worksheet.iter_rows(values_only=True)]
            sheets.append(SheetData(title=worksheet.title, rows=rows))
    finally:
        workbook.close()

    logger.info(
        "Workbook loaded",
        extra={"workbook": name, "sheets": [sheet.title for sheet in sheets]},
    )
    return WorkbookData(name=name, sheets=sheets)


def read_workbook(path: Path) -> WorkbookData:
    """Load every worksheet of the workbook at *path*.

    Raises:
        FileNotFoundError: When the workbook does not exist.
        WorkbookFormatError: When the file is not a readable workbook.
    """

    if not path.exists():
        raise FileNotFoundError(f"Source workbook not found: {path}")
    return read_workbook_bytes(path.read_bytes(), name=path.name)


def sheet_from_rows(title: str, rows: Sequence[Sequence[object]]) -> SheetData:
    """Build a sheet from literal rows; used by callers holding data already in memory."""

    return SheetData(title=title, rows=[tuple(row) for row in rows])
