"""
RESPONSIBILITIES
- Provide typed containers for processed-file bookkeeping and automation audit entries.
PROCESS OVERVIEW
1. Stores instantiate ProcessedFileRecord / AutomationLogEntry from pipeline inputs.
2. to_dict() prepares flat payloads for XLSX rows (enums as values, errors as JSON).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import MutableMapping, Sequence

from devicetrack.services.ingest.models import AutomationAction, RunStatus

PROCESSED_FILE_COLUMNS: tuple[str, ...] = (
    "id",
    "file_name",
    "file_path",
    "file_hash",
    "content_hash",
    "file_size",
    "sheet_count",
    "devices_count",
    "inventory_count",
    "status",
    "processed_at",
    "error_message",
    "created_at",
    "updated_at",
)

AUTOMATION_LOG_COLUMNS: tuple[str, ...] = (
    "id",
    "file_id",
    "action",
    "table_name",
    "rows_inserted",
    "rows_updated",
    "rows_skipped",
    "errors",
    "duration_ms",
    "created_at",
)

# Outcome fields record_outcome() may set besides status/error.
OUTCOME_FIELDS = frozenset({"content_hash", "sheet_count", "devices_count", "inventory_count"})


@dataclass(slots=True)
class ProcessedFileRecord:
    id: str
    file_name: str
    file_path: str
    file_hash: str
    file_size: int = 0
    status: RunStatus = RunStatus.PENDING
    content_hash: str = ""
    sheet_count: int = 0
    devices_count: int = 0
    inventory_count: int = 0
    processed_at: str = ""
    error_message: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> MutableMapping[str, object]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_hash": self.file_hash,
            "content_hash": self.content_hash,
            "file_size": self.file_size,
            "sheet_count": self.sheet_count,
            "devices_count": self.devices_count,
            "inventory_count": self.inventory_count,
            "status": RunStatus(self.status).value,
            "processed_at": self.processed_at,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(slots=True)
class AutomationLogEntry:
    file_id: str | None
    action: AutomationAction
    table_name: str | None = None
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_skipped: int = 0
    errors: Sequence[object] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> MutableMapping[str, object]:
        return {
            "file_id": self.file_id or "",
            "action": AutomationAction(self.action).value,
            "table_name": self.table_name or "",
            "rows_inserted": self.rows_inserted,
            "rows_updated": self.rows_updated,
            "rows_skipped": self.rows_skipped,
            "errors": json.dumps(list(self.errors), ensure_ascii=False, default=str) if self.errors else "",
            "duration_ms": self.duration_ms,
        }
