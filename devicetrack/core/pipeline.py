from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

from pydantic import BaseModel, Field, computed_field

from .errors import DeviceTrackError, PersistenceError, WorkbookReadError
from .logger import get_logger
from devicetrack.services.ingest import (
    AutomationAction,
    ParseError,
    RunStatus,
    SheetKind,
    UpsertCounts,
    brand_from_filename,
    classify_sheet,
    content_digest,
    device_fingerprint,
    extract_workbook,
    inventory_fingerprint,
)
from devicetrack_io import (
    DEFAULT_EXTENSIONS,
    WorkbookFormatError,
    fingerprint_bytes,
    list_workbook_files,
    read_workbook_bytes,
)

DEVICES_TABLE = "devices"
INVENTORY_TABLE = "inventory"


class IngestStorage(Protocol):
    """Storage collaborator used by :class:`IngestPipeline`."""

    def has_completed_run(self, file_hash: str) -> bool: ...

    def register_run(self, *, file_name: str, file_path: str, file_hash: str, file_size: int = 0) -> str: ...

    def upsert_by_fingerprint(self, table: str, records: Iterable[Any]) -> UpsertCounts: ...

    def record_run_outcome(
        self,
        file_id: str,
        status: RunStatus,
        counts: Mapping[str, object] | None = None,
        error: str | None = None,
    ) -> None: ...

    def log_action(
        self,
        file_id: str | None,
        action: AutomationAction,
        *,
        table_name: str | None = None,
        counts: UpsertCounts | None = None,
        errors: Sequence[object] = (),
        duration_ms: int = 0,
    ) -> None: ...


class EtlResult(BaseModel):
    """Per-file outcome returned to the CLI and automation callers."""

    file_path: str
    file_hash: str = ""
    file_id: str | None = None
    success: bool = True
    unchanged: bool = False
    devices_inserted: int = 0
    devices_updated: int = 0
    devices_skipped: int = 0
    inventory_inserted: int = 0
    inventory_updated: int = 0
    inventory_skipped: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
    review: list[dict[str, Any]] = Field(default_factory=list)
    sheet_count: int = 0
    duration_ms: int = 0
    error: str | None = None

    @computed_field
    @property
    def inserted_count(self) -> int:
        return self.devices_inserted + self.inventory_inserted

    @computed_field
    @property
    def updated_count(self) -> int:
        return self.devices_updated + self.inventory_updated

    @computed_field
    @property
    def skipped_count(self) -> int:
        return self.devices_skipped + self.inventory_skipped


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def _errors_for(kind: SheetKind, errors: Sequence[ParseError]) -> list[dict[str, object]]:
    return [error.to_dict() for error in errors if classify_sheet(error.sheet) is kind]


class IngestPipeline:
    """Coordinates Hash -> Extract -> Fingerprint -> Upsert for workbook files.

    Status moves PENDING -> PROCESSING -> COMPLETED | ERROR. Row-level problems
    never fail a run; an unreadable workbook or a storage failure does.
    """

    def __init__(
        self,
        storage: IngestStorage,
        *,
        logger=None,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    ) -> None:
        self.storage = storage
        self.logger = logger or get_logger()
        self.extensions = tuple(extensions)

    def process_file(self, path: str | Path) -> EtlResult:
        start = time.perf_counter()
        path = Path(path)
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise WorkbookReadError(f"Cannot read {path}: {exc}") from exc

        file_hash = fingerprint_bytes(payload)
        result = EtlResult(file_path=str(path), file_hash=file_hash)

        # 1. Change gate, before any worksheet is opened
        try:
            completed = self.storage.has_completed_run(file_hash)
            if not completed:
                file_id = self.storage.register_run(
                    file_name=path.name,
                    file_path=str(path.resolve()),
                    file_hash=file_hash,
                    file_size=len(payload),
                )
        except Exception as exc:  # noqa: BLE001
            message = f"Run registry unavailable for {path.name}: {exc}"
            self.logger.error("Run registry unavailable for %s: %s", path.name, exc)
            raise PersistenceError(message) from exc

        if completed:
            self.logger.info("Skipping %s: unchanged since last completed run", path.name)
            result.unchanged = True
            result.duration_ms = _elapsed_ms(start)
            return result

        result.file_id = file_id
        try:
            self.storage.record_run_outcome(file_id, RunStatus.PROCESSING)
        except Exception as exc:  # noqa: BLE001
            message = f"Persistence failed: {exc}"
            self._fail(file_id, message, start)
            raise PersistenceError(message) from exc

        # 2. Extract
        try:
            workbook = read_workbook_bytes(payload, name=path.name)
        except WorkbookFormatError as exc:
            message = str(exc)
            self._fail(file_id, message, start)
            raise WorkbookReadError(message) from exc

        extraction = extract_workbook(
            workbook,
            brand_override=brand_from_filename(path),
            source_file_id=file_id,
        )
        result.sheet_count = extraction.sheet_count
        result.errors = [error.to_dict() for error in extraction.errors]
        result.review = [entry.to_dict() for entry in extraction.review]
        for entry in extraction.review:
            self.logger.warning("Review %s row %s: %s", entry.sheet, entry.row, entry.message)

        # 3. Fingerprint
        for device in extraction.devices:
            device.fingerprint = device_fingerprint(device)
        for item in extraction.inventory:
            item.fingerprint = inventory_fingerprint(item)
        content_hash = content_digest(
            [record.fingerprint for record in extraction.devices]
            + [record.fingerprint for record in extraction.inventory]
        )

        # 4. Persist
        try:
            device_counts = self._load(
                file_id,
                DEVICES_TABLE,
                AutomationAction.LOAD_DEVICES,
                extraction.devices,
                _errors_for(SheetKind.DEVICE, extraction.errors),
            )
            inventory_counts = self._load(
                file_id,
                INVENTORY_TABLE,
                AutomationAction.LOAD_INVENTORY,
                extraction.inventory,
                _errors_for(SheetKind.INVENTORY, extraction.errors),
            )
            self.storage.record_run_outcome(
                file_id,
                RunStatus.COMPLETED,
                counts={
                    "content_hash": content_hash,
                    "sheet_count": extraction.sheet_count,
                    "devices_count": len(extraction.devices),
                    "inventory_count": len(extraction.inventory),
                },
            )
        except Exception as exc:  # noqa: BLE001
            message = f"Persistence failed: {exc}"
            self._fail(file_id, message, start)
            raise PersistenceError(message) from exc

        result.devices_inserted = device_counts.inserted
        result.devices_updated = device_counts.updated
        result.devices_skipped = device_counts.skipped
        result.inventory_inserted = inventory_counts.inserted
        result.inventory_updated = inventory_counts.updated
        result.inventory_skipped = inventory_counts.skipped
        result.duration_ms = _elapsed_ms(start)
        self.logger.info(
            "Processed %s: %s inserted / %s updated / %s skipped, %s row errors (%s ms)",
            path.name,
            result.inserted_count,
            result.updated_count,
            result.skipped_count,
            len(result.errors),
            result.duration_ms,
        )
        return result

    def process_folder(self, folder: str | Path) -> list[EtlResult]:
        """Process every workbook in *folder*; a failing file does not stop the rest."""

        results: list[EtlResult] = []
        for path in list_workbook_files(Path(folder), self.extensions):
            try:
                results.append(self.process_file(path))
            except DeviceTrackError as exc:
                self.logger.error("Failed to process %s: %s", path.name, exc)
                results.append(EtlResult(file_path=str(path), success=False, error=str(exc)))
        return results

    def _load(
        self,
        file_id: str,
        table: str,
        action: AutomationAction,
        records: list,
        errors: list[dict[str, object]],
    ) -> UpsertCounts:
        if not records:
            return UpsertCounts()
        start = time.perf_counter()
        counts = self.storage.upsert_by_fingerprint(table, records)
        self.storage.log_action(
            file_id,
            action,
            table_name=table,
            counts=counts,
            errors=errors,
            duration_ms=_elapsed_ms(start),
        )
        return counts

    def _fail(self, file_id: str, message: str, start: float) -> None:
        self.logger.error("Run %s failed: %s", file_id, message)
        try:
            self.storage.record_run_outcome(file_id, RunStatus.ERROR, error=message)
            self.storage.log_action(
                file_id,
                AutomationAction.ERROR,
                errors=[message],
                duration_ms=_elapsed_ms(start),
            )
        except Exception:  # noqa: BLE001 - the run failure is what gets raised
            self.logger.exception("Could not record failure for run %s", file_id)
