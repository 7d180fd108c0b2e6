"""
RESPONSIBILITIES
- Implement the ingestion pipeline's storage collaborator over the XLSX stores.
PROCESS OVERVIEW
1. XlsxIngestStorage(root) wires device, inventory, processed-file and audit-log stores
   rooted at the same directory.
2. The pipeline calls has_completed_run() before parsing, register_run() once a file must
   be processed, upsert_by_fingerprint() per table, log_action() after each load, and
   record_run_outcome() to close the run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Sequence

from devicetrack.services.ingest.models import AutomationAction, RunStatus, UpsertCounts
from devicetrack_persist.schemas.runs import AutomationLogEntry
from devicetrack_persist.stores.base_store import PersistHealth, StoreValidationError, SupportsToDict
from devicetrack_persist.stores.device_store import DeviceStore
from devicetrack_persist.stores.fingerprint_store import FingerprintStore
from devicetrack_persist.stores.inventory_store import InventoryStore
from devicetrack_persist.stores.run_store import AutomationLogStore, ProcessedFileStore
from devicetrack_persist.utils.log import get_logger

DEVICES_TABLE = "devices"
INVENTORY_TABLE = "inventory"


class XlsxIngestStorage:
    """Storage collaborator backed by one workbook per table."""

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        resolved_root = Path(root).expanduser().resolve() if root else None
        self.logger = logger or get_logger("storage", resolved_root)
        self.devices = DeviceStore(resolved_root)
        self.inventory = InventoryStore(resolved_root)
        self.files = ProcessedFileStore(resolved_root)
        self.logs = AutomationLogStore(resolved_root)
        self._tables: Dict[str, FingerprintStore] = {
            DEVICES_TABLE: self.devices,
            INVENTORY_TABLE: self.inventory,
        }

    def init(self) -> Dict[str, Path]:
        return {
            "devices": self.devices.init_store(),
            "inventory": self.inventory.init_store(),
            "processed_files": self.files.init_store(),
            "automation_logs": self.logs.init_store(),
        }

    def has_completed_run(self, file_hash: str) -> bool:
        return self.files.has_completed(file_hash)

    def register_run(self, *, file_name: str, file_path: str, file_hash: str, file_size: int = 0) -> str:
        return self.files.register(
            file_name=file_name,
            file_path=file_path,
            file_hash=file_hash,
            file_size=file_size,
        )

    def upsert_by_fingerprint(
        self,
        table: str,
        records: Iterable[Mapping[str, object] | SupportsToDict],
    ) -> UpsertCounts:
        store = self._tables.get(table)
        if store is None:
            raise StoreValidationError(f"Unknown table: {table}")
        batch = list(records)
        self.logger.debug("Upserting %s records into %s", len(batch), table)
        return store.upsert_many(batch)

    def record_run_outcome(
        self,
        file_id: str,
        status: RunStatus | str,
        counts: Mapping[str, object] | None = None,
        error: str | None = None,
    ) -> None:
        self.files.record_outcome(file_id, status, counts, error)

    def log_action(
        self,
        file_id: str | None,
        action: AutomationAction | str,
        *,
        table_name: str | None = None,
        counts: UpsertCounts | None = None,
        errors: Sequence[object] = (),
        duration_ms: int = 0,
    ) -> None:
        counts = counts or UpsertCounts()
        self.logs.append(
            AutomationLogEntry(
                file_id=file_id,
                action=AutomationAction(action),
                table_name=table_name,
                rows_inserted=counts.inserted,
                rows_updated=counts.updated,
                rows_skipped=counts.skipped,
                errors=list(errors),
                duration_ms=duration_ms,
            )
        )

    def healthcheck(self) -> Dict[str, PersistHealth]:
        return {
            "devices": self.devices.healthcheck(),
            "inventory": self.inventory.healthcheck(),
            "processed_files": self.files.healthcheck(),
            "automation_logs": self.logs.healthcheck(),
        }
