"""
RESPONSIBILITIES
- Persist normalized device-validation records in <root>/store/devices_store.xlsx.
- Expose the filtered listing used by the CLI.
PROCESS OVERVIEW
1. init_device_store() ensures the workbook and header exist.
2. upsert_many() merges DeviceRecord batches by fingerprint (see FingerprintStore).
3. query_devices() filters by region/customer/solution/brand substrings, free-text search
   over device/model/TAC, and exact status.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import pandas as pd

from devicetrack.services.ingest.models import DEVICE_FIELDS
from devicetrack_persist.stores.fingerprint_store import KEY_COLUMN, PROVENANCE_COLUMNS, FingerprintStore

DEVICES_WORKBOOK = "devices_store.xlsx"
DEVICES_SHEET_NAME = "devices"
DEVICE_DATA_COLUMNS: tuple[str, ...] = tuple(
    name for name in DEVICE_FIELDS if name != KEY_COLUMN and name not in PROVENANCE_COLUMNS
)


class DeviceStore(FingerprintStore):
    """XLSX store for device rows."""

    workbook_name = DEVICES_WORKBOOK
    sheet_name = DEVICES_SHEET_NAME
    logger_name = "device_store"
    data_columns = DEVICE_DATA_COLUMNS
    substring_filters = {
        "region": "target_region",
        "customer": "target_customer",
        "solution": "target_solution",
        "brand": "brand",
    }
    exact_filters = {"status": "status"}
    search_columns = ("device", "model", "tac")


def init_device_store(root: Path | None = None) -> Path:
    return DeviceStore(root).init_store()


def query_devices(params: Mapping[str, object] | None = None, *, root: Path | None = None) -> pd.DataFrame:
    return DeviceStore(root).query(params)
