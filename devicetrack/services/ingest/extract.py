"""Record extraction from device and inventory worksheets.

Each worksheet goes through the same steps: find the header row within the
first few rows, map its columns onto canonical fields, then transform every
following non-blank row into a record. A row that fails to convert turns into
a :class:`ParseError` and the loop carries on with the next row.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

from devicetrack_io.workbook_reader import cell_to_text

from .classify import SheetKind, classify_sheet
from .columns import ColumnMap, build_column_map, is_valid_device_record, normalize_status
from .models import DeviceRecord, InventoryRecord, ParseError, SheetExtraction, WorkbookExtraction
from .normalize import convert_inventory_value, convert_value, is_date_field, is_explicit_date

LOGGER = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 5
DEVICE_MIN_HEADER_COLUMNS = 3
INVENTORY_MIN_HEADER_COLUMNS = 2

DEVICE_HEADER_MISSING = "No valid headers found in sheet"
INVENTORY_HEADER_MISSING = "No valid inventory headers found"

# Inventory attributes filled straight from the resolved field of the same name.
_INVENTORY_DIRECT_FIELDS: tuple[str, ...] = (
    "brand",
    "marketing_name",
    "model",
    "serial_number",
    "imei1",
    "imei2",
    "received_on",
    "returned_on",
    "remark",
    "target_customer",
    "in_inventory",
    "nm_flow",
    "tac",
    "device_name",
)
_INVENTORY_CONSUMED_FIELDS = frozenset(
    _INVENTORY_DIRECT_FIELDS
    + ("solution_type", "target_solution", "comments", "inventory_comments", "device")
)

_BRAND_SPLIT_RE = re.compile(r"[\s_-]+")


class SheetLike(Protocol):
    title: str

    @property
    def max_row(self) -> int: ...

    def cell(self, row: int, column: int) -> object: ...

    def row_text(self, row: int) -> List[str]: ...


class WorkbookLike(Protocol):
    sheets: Sequence[SheetLike]


class _FieldConversionError(Exception):
    def __init__(self, column: str, cause: Exception) -> None:
        super().__init__(f"{column}: {cause}")
        self.column = column


RowOutcome = Union[DeviceRecord, InventoryRecord, ParseError, None]


def brand_from_filename(path: Union[str, Path]) -> Optional[str]:
    """Last whitespace/underscore/hyphen separated token of the file's base name.

    ``"Validation_Tracker-Motorola.xlsx"`` yields ``"Motorola"``.
    """

    stem = Path(path).stem
    tokens = [token for token in _BRAND_SPLIT_RE.split(stem) if token]
    return tokens[-1] if tokens else None


def locate_header_row(sheet: SheetLike, min_columns: int) -> Optional[Tuple[int, ColumnMap]]:
    """Return the first row (1-based) among the first five resolving enough columns."""

    last = min(HEADER_SCAN_ROWS, sheet.max_row)
    for row_idx in range(1, last + 1):
        column_map = build_column_map(sheet.row_text(row_idx))
        if len(column_map) >= min_columns:
            return row_idx, column_map
    return None


def _is_blank_row(sheet: SheetLike, row_idx: int) -> bool:
    return not any(text.strip() for text in sheet.row_text(row_idx))


def _convert_row(
    sheet: SheetLike,
    row_idx: int,
    column_map: ColumnMap,
    review: List[ParseError],
    *,
    inventory: bool = False,
) -> Dict[str, object]:
    values: Dict[str, object] = {}
    for position, field_name in column_map.items():
        text = cell_to_text(sheet.cell(row_idx, position + 1)).strip()
        if not text:
            continue
        try:
            if inventory:
                converted = convert_inventory_value(field_name, text)
            else:
                converted = convert_value(field_name, text)
        except Exception as exc:  # noqa: BLE001 - surfaced as a row-level ParseError
            raise _FieldConversionError(field_name, exc) from exc
        values[field_name] = converted
        if inventory or not is_date_field(field_name):
            continue
        if converted is None:
            message = f"Date '{text}' is not a valid date; stored empty, verify manually"
        elif not is_explicit_date(text):
            message = f"Date '{text}' read as {converted} by the generic parser; verify manually"
        else:
            continue
        review.append(ParseError(sheet=sheet.title, row=row_idx, column=field_name, message=message))
    return values


def _row_error(sheet: SheetLike, row_idx: int, exc: Exception) -> ParseError:
    column = exc.column if isinstance(exc, _FieldConversionError) else None
    return ParseError(sheet=sheet.title, row=row_idx, message=str(exc), column=column)


def _transform_device_row(
    sheet: SheetLike,
    row_idx: int,
    column_map: ColumnMap,
    brand_override: Optional[str],
    source_file_id: Optional[str],
    review: List[ParseError],
) -> RowOutcome:
    row_review: List[ParseError] = []
    try:
        values = _convert_row(sheet, row_idx, column_map, row_review)
        if not is_valid_device_record(values):
            return None
        values["status"] = normalize_status(values.get("status"))
        if brand_override:
            values["brand"] = brand_override
        record = DeviceRecord.from_fields(values)
        record.sheet_name = sheet.title
        record.row_index = row_idx
        record.source_file_id = source_file_id
    except Exception as exc:  # noqa: BLE001 - one bad row must not stop the sheet
        return _row_error(sheet, row_idx, exc)
    review.extend(row_review)
    return record


def _transform_inventory_row(
    sheet: SheetLike,
    row_idx: int,
    column_map: ColumnMap,
    source_file_id: Optional[str],
    review: List[ParseError],
) -> RowOutcome:
    row_review: List[ParseError] = []
    try:
        values = _convert_row(sheet, row_idx, column_map, row_review, inventory=True)
        record = InventoryRecord(**{name: values[name] for name in _INVENTORY_DIRECT_FIELDS if name in values})
        record.solution_type = values.get("solution_type") or values.get("target_solution")
        record.comments = values.get("comments") or values.get("inventory_comments")
        if not record.device_name:
            record.device_name = values.get("device")
        record.metadata = {
            name: value for name, value in values.items() if name not in _INVENTORY_CONSUMED_FIELDS
        }
        if not record.has_identity():
            return None
        record.sheet_name = sheet.title
        record.row_index = row_idx
        record.source_file_id = source_file_id
    except Exception as exc:  # noqa: BLE001 - one bad row must not stop the sheet
        return _row_error(sheet, row_idx, exc)
    review.extend(row_review)
    return record


def _collect(extraction: SheetExtraction, outcome: RowOutcome) -> None:
    if outcome is None:
        return
    if isinstance(outcome, ParseError):
        extraction.errors.append(outcome)
        LOGGER.warning("Row %s of sheet %r skipped: %s", outcome.row, outcome.sheet, outcome.message)
        return
    extraction.records.append(outcome)


def extract_devices(
    sheet: SheetLike,
    brand_override: Optional[str] = None,
    source_file_id: Optional[str] = None,
) -> SheetExtraction:
    """Extract device records from a validation-tracking sheet."""

    located = locate_header_row(sheet, DEVICE_MIN_HEADER_COLUMNS)
    if located is None:
        LOGGER.warning("No header row found in sheet %r", sheet.title)
        return SheetExtraction(
            sheet_name=sheet.title,
            header_row=None,
            errors=[ParseError(sheet=sheet.title, row=0, message=DEVICE_HEADER_MISSING)],
        )

    header_row, column_map = located
    extraction = SheetExtraction(sheet_name=sheet.title, header_row=header_row)
    for row_idx in range(header_row + 1, sheet.max_row + 1):
        if _is_blank_row(sheet, row_idx):
            continue
        outcome = _transform_device_row(
            sheet, row_idx, column_map, brand_override, source_file_id, extraction.review
        )
        _collect(extraction, outcome)

    LOGGER.info(
        "Sheet %r: %s device records, %s errors (header row %s)",
        sheet.title,
        len(extraction.records),
        len(extraction.errors),
        header_row,
    )
    return extraction


def extract_inventory(sheet: SheetLike, source_file_id: Optional[str] = None) -> SheetExtraction:
    """Extract inventory records; rows need one identifying attribute to be kept."""

    located = locate_header_row(sheet, INVENTORY_MIN_HEADER_COLUMNS)
    if located is None:
        LOGGER.warning("No inventory header row found in sheet %r", sheet.title)
        return SheetExtraction(
            sheet_name=sheet.title,
            header_row=None,
            errors=[ParseError(sheet=sheet.title, row=0, message=INVENTORY_HEADER_MISSING)],
        )

    header_row, column_map = located
    extraction = SheetExtraction(sheet_name=sheet.title, header_row=header_row)
    for row_idx in range(header_row + 1, sheet.max_row + 1):
        if _is_blank_row(sheet, row_idx):
            continue
        outcome = _transform_inventory_row(sheet, row_idx, column_map, source_file_id, extraction.review)
        _collect(extraction, outcome)

    LOGGER.info(
        "Sheet %r: %s inventory records, %s errors (header row %s)",
        sheet.title,
        len(extraction.records),
        len(extraction.errors),
        header_row,
    )
    return extraction


def extract_workbook(
    workbook: WorkbookLike,
    brand_override: Optional[str] = None,
    source_file_id: Optional[str] = None,
) -> WorkbookExtraction:
    """Classify every sheet and merge the per-sheet extractions."""

    result = WorkbookExtraction(sheet_count=len(workbook.sheets))
    for sheet in workbook.sheets:
        if classify_sheet(sheet.title) is SheetKind.INVENTORY:
            extraction = extract_inventory(sheet, source_file_id=source_file_id)
            result.inventory.extend(extraction.records)
        else:
            extraction = extract_devices(sheet, brand_override=brand_override, source_file_id=source_file_id)
            result.devices.extend(extraction.records)
        result.errors.extend(extraction.errors)
        result.review.extend(extraction.review)
    return result


__all__ = [
    "DEVICE_HEADER_MISSING",
    "DEVICE_MIN_HEADER_COLUMNS",
    "HEADER_SCAN_ROWS",
    "INVENTORY_HEADER_MISSING",
    "INVENTORY_MIN_HEADER_COLUMNS",
    "brand_from_filename",
    "extract_devices",
    "extract_inventory",
    "extract_workbook",
    "locate_header_row",
]
