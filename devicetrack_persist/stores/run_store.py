"""
RESPONSIBILITIES
- Track one row per distinct file content (keyed by file hash) with its run status and counts.
- Keep an append-only audit log of table loads and failures.
PROCESS OVERVIEW
1. ProcessedFileStore.register() returns the id for a file hash, creating a PENDING row or
   resetting an existing one so a changed or failed file can be processed again.
2. has_completed() is the unchanged-file gate consulted before any parsing.
3. record_outcome() moves the run through PROCESSING -> COMPLETED | ERROR and stores counts.
4. AutomationLogStore.append() adds an audit entry without touching earlier rows.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Iterable, Mapping

import pandas as pd

from devicetrack.services.ingest.models import RunStatus
from devicetrack_persist.schemas.runs import (
    AUTOMATION_LOG_COLUMNS,
    OUTCOME_FIELDS,
    PROCESSED_FILE_COLUMNS,
    AutomationLogEntry,
    ProcessedFileRecord,
)
from devicetrack_persist.stores.base_store import (
    BaseStore,
    PersistHealth,
    StoreInitializationError,
    StoreValidationError,
    SupportsToDict,
    utcnow_iso,
)
from devicetrack_persist.stores.health import workbook_health
from devicetrack_persist.utils.excel_io import append_rows, ensure_workbook, read_sheet, workbook_lock, write_sheet
from devicetrack_persist.utils.log import get_logger
from devicetrack_persist.utils.paths import store_file_path

PROCESSED_FILES_WORKBOOK = "processed_files.xlsx"
PROCESSED_FILES_SHEET = "processed_files"
AUTOMATION_LOG_WORKBOOK = "automation_logs.xlsx"
AUTOMATION_LOG_SHEET = "automation_logs"

_FINAL_STATUSES = {RunStatus.COMPLETED.value, RunStatus.ERROR.value}


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


class ProcessedFileStore(BaseStore):
    """Run registry keyed by whole-file SHA-256."""

    sheet_name = PROCESSED_FILES_SHEET
    columns = PROCESSED_FILE_COLUMNS

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        resolved_root = Path(root).expanduser().resolve() if root else None
        super().__init__(logger=logger or get_logger("processed_files", resolved_root))
        self._root = resolved_root
        self.path = store_file_path(PROCESSED_FILES_WORKBOOK, self._root)

    def init_store(self) -> Path:
        try:
            ensure_workbook(self.path, self.sheet_name, self.columns)
        except OSError as exc:
            raise StoreInitializationError(str(exc)) from exc
        return self.path

    def register(self, *, file_name: str, file_path: str, file_hash: str, file_size: int = 0) -> str:
        """Return the run id for *file_hash*, resetting a previous row to PENDING."""

        if not file_hash:
            raise StoreValidationError("file_hash is required")
        self.init_store()
        now_iso = utcnow_iso()
        with workbook_lock(self.path):
            rows = read_sheet(self.path, self.sheet_name, self.columns, use_lock=False)
            for row in rows:
                if _text(row.get("file_hash")) == file_hash:
                    row.update(
                        file_name=file_name,
                        file_path=file_path,
                        file_size=file_size,
                        status=RunStatus.PENDING.value,
                        error_message="",
                        updated_at=now_iso,
                    )
                    file_id = _text(row.get("id"))
                    break
            else:
                file_id = uuid.uuid4().hex
                record = ProcessedFileRecord(
                    id=file_id,
                    file_name=file_name,
                    file_path=file_path,
                    file_hash=file_hash,
                    file_size=file_size,
                    created_at=now_iso,
                    updated_at=now_iso,
                )
                rows.append(dict(record.to_dict()))
            write_sheet(self.path, self.sheet_name, rows, self.columns, use_lock=False)
        self.logger.info("Registered %s (hash %s) as run %s", file_name, file_hash[:12], file_id)
        return file_id

    def has_completed(self, file_hash: str) -> bool:
        self.init_store()
        return any(
            _text(row.get("file_hash")) == file_hash and _text(row.get("status")) == RunStatus.COMPLETED.value
            for row in read_sheet(self.path, self.sheet_name, self.columns)
        )

    def record_outcome(
        self,
        file_id: str,
        status: RunStatus | str,
        counts: Mapping[str, object] | None = None,
        error: str | None = None,
    ) -> None:
        """Set the run status, optional outcome counts, and error message."""

        status_value = RunStatus(status).value
        unknown = sorted(set(counts or {}) - OUTCOME_FIELDS)
        if unknown:
            raise StoreValidationError(f"Unknown outcome fields: {', '.join(unknown)}")
        self.init_store()
        now_iso = utcnow_iso()
        with workbook_lock(self.path):
            rows = read_sheet(self.path, self.sheet_name, self.columns, use_lock=False)
            target = next((row for row in rows if _text(row.get("id")) == file_id), None)
            if target is None:
                raise StoreValidationError(f"Unknown run id: {file_id}")
            target.update(dict(counts or {}))
            target["status"] = status_value
            target["error_message"] = error or ""
            target["updated_at"] = now_iso
            if status_value in _FINAL_STATUSES:
                target["processed_at"] = now_iso
            write_sheet(self.path, self.sheet_name, rows, self.columns, use_lock=False)

    def get(self, file_id: str) -> dict[str, object] | None:
        self.init_store()
        for row in read_sheet(self.path, self.sheet_name, self.columns):
            if _text(row.get("id")) == file_id:
                return row
        return None

    def upsert(self, record: Mapping[str, object] | SupportsToDict) -> None:
        payload = dict(record) if isinstance(record, Mapping) else dict(record.to_dict())
        file_id = self.register(
            file_name=_text(payload.get("file_name")),
            file_path=_text(payload.get("file_path")),
            file_hash=_text(payload.get("file_hash")),
            file_size=int(payload.get("file_size") or 0),
        )
        status = _text(payload.get("status"))
        if status and status != RunStatus.PENDING.value:
            counts = {key: payload[key] for key in OUTCOME_FIELDS if key in payload}
            self.record_outcome(file_id, status, counts, _text(payload.get("error_message")) or None)

    def bulk_import(self, payload: Iterable[Mapping[str, object] | SupportsToDict], **kwargs: object) -> int:
        count = 0
        for record in payload:
            self.upsert(record)
            count += 1
        return count

    def query(self, params: Mapping[str, object] | None = None) -> pd.DataFrame:
        filters = dict(params or {})
        self.init_store()
        frame = pd.DataFrame(read_sheet(self.path, self.sheet_name, self.columns), columns=list(self.columns))
        if frame.empty:
            return frame
        status = filters.get("status")
        if status:
            frame = frame[frame["status"].astype(str) == RunStatus(status).value]
        return frame.reset_index(drop=True)

    def healthcheck(self) -> PersistHealth:
        return workbook_health(self.path, self.sheet_name, self.columns, self._root)


class AutomationLogStore(BaseStore):
    """Append-only audit trail of table loads."""

    sheet_name = AUTOMATION_LOG_SHEET
    columns = AUTOMATION_LOG_COLUMNS

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        resolved_root = Path(root).expanduser().resolve() if root else None
        super().__init__(logger=logger or get_logger("automation_logs", resolved_root))
        self._root = resolved_root
        self.path = store_file_path(AUTOMATION_LOG_WORKBOOK, self._root)

    def init_store(self) -> Path:
        try:
            ensure_workbook(self.path, self.sheet_name, self.columns)
        except OSError as exc:
            raise StoreInitializationError(str(exc)) from exc
        return self.path

    def append(self, entry: AutomationLogEntry) -> str:
        self.init_store()
        entry_id = uuid.uuid4().hex
        payload = dict(entry.to_dict())
        payload["id"] = entry_id
        payload["created_at"] = utcnow_iso()
        append_rows(self.path, self.sheet_name, [payload], self.columns)
        return entry_id

    def upsert(self, record: Mapping[str, object] | SupportsToDict) -> None:
        if isinstance(record, AutomationLogEntry):
            self.append(record)
            return
        payload = dict(record) if isinstance(record, Mapping) else dict(record.to_dict())
        payload.setdefault("id", uuid.uuid4().hex)
        payload.setdefault("created_at", utcnow_iso())
        self.init_store()
        append_rows(self.path, self.sheet_name, [payload], self.columns)

    def bulk_import(self, payload: Iterable[Mapping[str, object] | SupportsToDict], **kwargs: object) -> int:
        count = 0
        for record in payload:
            self.upsert(record)
            count += 1
        return count

    def query(self, params: Mapping[str, object] | None = None) -> pd.DataFrame:
        filters = dict(params or {})
        self.init_store()
        frame = pd.DataFrame(read_sheet(self.path, self.sheet_name, self.columns), columns=list(self.columns))
        if frame.empty:
            return frame
        for column in ("file_id", "action", "table_name"):
            wanted = filters.get(column)
            if wanted:
                frame = frame[frame[column].astype(str) == str(getattr(wanted, "value", wanted))]
        return frame.reset_index(drop=True)

    def healthcheck(self) -> PersistHealth:
        return workbook_health(self.path, self.sheet_name, self.columns, self._root)
