"""
RESPONSIBILITIES
- Persist inventory rows in <root>/store/inventory_store.xlsx.
- Keep the open metadata mapping as a JSON cell.
PROCESS OVERVIEW
1. InventoryStore.init_store() ensures the workbook and header exist.
2. upsert_many() merges InventoryRecord batches by fingerprint.
3. query() decodes metadata back into dicts and filters by brand/customer/solution/search.
"""

from __future__ import annotations

from devicetrack.services.ingest.models import INVENTORY_FIELDS
from devicetrack_persist.stores.fingerprint_store import KEY_COLUMN, PROVENANCE_COLUMNS, FingerprintStore

INVENTORY_WORKBOOK = "inventory_store.xlsx"
INVENTORY_SHEET_NAME = "inventory"
INVENTORY_DATA_COLUMNS: tuple[str, ...] = tuple(
    name for name in INVENTORY_FIELDS if name != KEY_COLUMN and name not in PROVENANCE_COLUMNS
)


class InventoryStore(FingerprintStore):
    """XLSX store for inventory rows."""

    workbook_name = INVENTORY_WORKBOOK
    sheet_name = INVENTORY_SHEET_NAME
    logger_name = "inventory_store"
    data_columns = INVENTORY_DATA_COLUMNS
    json_columns = frozenset({"metadata"})
    substring_filters = {
        "brand": "brand",
        "customer": "target_customer",
        "solution": "solution_type",
    }
    exact_filters = {"in_inventory": "in_inventory"}
    search_columns = ("device_name", "marketing_name", "model", "serial_number", "imei1", "tac")
