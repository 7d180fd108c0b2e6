"""
Persistence facade exposing XLSX-backed stores.
"""

from .storage import DEVICES_TABLE, INVENTORY_TABLE, XlsxIngestStorage
from .stores.base_store import (
    PersistHealth,
    StoreError,
    StoreInitializationError,
    StoreLockedError,
    StoreValidationError,
)
from .stores.device_store import DeviceStore, init_device_store, query_devices
from .stores.inventory_store import InventoryStore
from .stores.run_store import AutomationLogStore, ProcessedFileStore

__all__ = [
    "AutomationLogStore",
    "DEVICES_TABLE",
    "DeviceStore",
    "INVENTORY_TABLE",
    "InventoryStore",
    "PersistHealth",
    "ProcessedFileStore",
    "StoreError",
    "StoreInitializationError",
    "StoreLockedError",
    "StoreValidationError",
    "XlsxIngestStorage",
    "init_device_store",
    "query_devices",
]
