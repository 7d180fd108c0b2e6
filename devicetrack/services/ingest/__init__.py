"""Spreadsheet ingestion service package."""

from .classify import SheetKind, classify_sheet
from .columns import COLUMN_ALIASES, IGNORED_COLUMNS, build_column_map, normalize_status, resolve_field
from .extract import (
    brand_from_filename,
    extract_devices,
    extract_inventory,
    extract_workbook,
    locate_header_row,
)
from .fingerprint import (
    DEVICE_KEY_FIELDS,
    INVENTORY_KEY_FIELDS,
    compute_fingerprint,
    content_digest,
    device_fingerprint,
    inventory_fingerprint,
)
from .models import (
    AutomationAction,
    DeviceRecord,
    DeviceStatus,
    InventoryRecord,
    ParseError,
    RunStatus,
    SheetExtraction,
    UpsertCounts,
    WorkbookExtraction,
)
from .normalize import (
    convert_inventory_value,
    convert_value,
    normalize_region_customer,
    normalize_solution,
    parse_bool,
    parse_date,
    parse_date_detailed,
)

__all__ = [
    "AutomationAction",
    "COLUMN_ALIASES",
    "DEVICE_KEY_FIELDS",
    "DeviceRecord",
    "DeviceStatus",
    "IGNORED_COLUMNS",
    "INVENTORY_KEY_FIELDS",
    "InventoryRecord",
    "ParseError",
    "RunStatus",
    "SheetExtraction",
    "SheetKind",
    "UpsertCounts",
    "WorkbookExtraction",
    "brand_from_filename",
    "build_column_map",
    "classify_sheet",
    "compute_fingerprint",
    "content_digest",
    "convert_inventory_value",
    "convert_value",
    "device_fingerprint",
    "extract_devices",
    "extract_inventory",
    "extract_workbook",
    "inventory_fingerprint",
    "locate_header_row",
    "normalize_region_customer",
    "normalize_solution",
    "normalize_status",
    "parse_bool",
    "parse_date",
    "parse_date_detailed",
    "resolve_field",
]
