from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Dict, List

import pytest

from devicetrack.core import pipeline as pipeline_module
from devicetrack.core.errors import PersistenceError, WorkbookReadError
from devicetrack.core.pipeline import IngestPipeline
from devicetrack.services.ingest.models import AutomationAction, RunStatus, UpsertCounts
from devicetrack_persist.storage import XlsxIngestStorage
from devicetrack_persist.stores.base_store import StoreLockedError
from devicetrack_persist.utils.excel_io import lock_file_path


class FakeStorage:
    """In-memory storage collaborator recording every call."""

    def __init__(self) -> None:
        self.completed: set[str] = set()
        self.registered: List[Dict[str, Any]] = []
        self.upserts: List[tuple[str, list]] = []
        self.outcomes: List[tuple[str, RunStatus, Dict[str, object] | None, str | None]] = []
        self.actions: List[tuple[str | None, AutomationAction, Dict[str, Any]]] = []
        self.fail_upsert: Exception | None = None
        self.fail_gate: Exception | None = None
        self.fail_register: Exception | None = None

    def has_completed_run(self, file_hash: str) -> bool:
        if self.fail_gate is not None:
            raise self.fail_gate
        return file_hash in self.completed

    def register_run(self, **kwargs: Any) -> str:
        if self.fail_register is not None:
            raise self.fail_register
        self.registered.append(kwargs)
        return f"run-{len(self.registered)}"

    def upsert_by_fingerprint(self, table: str, records: list) -> UpsertCounts:
        if self.fail_upsert is not None:
            raise self.fail_upsert
        self.upserts.append((table, list(records)))
        return UpsertCounts(inserted=len(records))

    def record_run_outcome(self, file_id, status, counts=None, error=None) -> None:
        self.outcomes.append((file_id, status, counts, error))

    def log_action(self, file_id, action, **kwargs: Any) -> None:
        self.actions.append((file_id, action, kwargs))


@pytest.fixture
def tracker_file(make_workbook, device_rows) -> Path:
    return make_workbook(
        "Validation_Tracker-Motorola.xlsx",
        {
            "Validation": device_rows,
            "Inventario": [
                ["Brand", "Model", "Serial Number", "DPC/DLC"],
                ["Moto", "XT2347-2", "SN-001", "DPC"],
                ["Moto", "XT2303-2", "SN-002", "DLC"],
            ],
            "Notes": [["free text only"]],
        },
    )


def test_process_file_runs_all_stages(tracker_file: Path) -> None:
    storage = FakeStorage()

    result = IngestPipeline(storage).process_file(tracker_file)

    assert result.success and not result.unchanged
    assert result.file_hash == hashlib.sha256(tracker_file.read_bytes()).hexdigest()
    assert result.file_id == "run-1"
    assert result.devices_inserted == 3
    assert result.inventory_inserted == 2
    assert result.inserted_count == 5
    assert result.sheet_count == 3
    assert [error["sheet"] for error in result.errors] == ["Notes"]

    assert storage.registered[0]["file_name"] == tracker_file.name
    assert storage.registered[0]["file_size"] == tracker_file.stat().st_size
    assert [table for table, _ in storage.upserts] == ["devices", "inventory"]
    devices = storage.upserts[0][1]
    assert {device.brand for device in devices} == {"Motorola"}
    assert all(len(device.fingerprint) == 64 for device in devices)
    assert {device.source_file_id for device in devices} == {"run-1"}
    inventory = storage.upserts[1][1]
    assert [item.brand for item in inventory] == ["Moto", "Moto"]

    statuses = [status for _, status, _, _ in storage.outcomes]
    assert statuses == [RunStatus.PROCESSING, RunStatus.COMPLETED]
    final_counts = storage.outcomes[-1][2]
    assert final_counts["devices_count"] == 3
    assert final_counts["inventory_count"] == 2
    assert len(final_counts["content_hash"]) == 64
    actions = [action for _, action, _ in storage.actions]
    assert actions == [AutomationAction.LOAD_DEVICES, AutomationAction.LOAD_INVENTORY]
    assert storage.actions[0][2]["errors"][0]["sheet"] == "Notes"


def test_unchanged_file_short_circuits(tracker_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    storage = FakeStorage()
    storage.completed.add(hashlib.sha256(tracker_file.read_bytes()).hexdigest())

    def _must_not_open(*args: object, **kwargs: object) -> None:
        raise AssertionError("workbook should not be opened")

    monkeypatch.setattr(pipeline_module, "read_workbook_bytes", _must_not_open)

    result = IngestPipeline(storage).process_file(tracker_file)

    assert result.unchanged and result.success
    assert (result.inserted_count, result.updated_count, result.skipped_count) == (0, 0, 0)
    assert result.errors == []
    assert storage.registered == []
    assert storage.upserts == []
    assert storage.outcomes == []


def test_persistence_failure_marks_run_as_error(tracker_file: Path) -> None:
    storage = FakeStorage()
    storage.fail_upsert = RuntimeError("disk full")

    with pytest.raises(PersistenceError) as excinfo:
        IngestPipeline(storage).process_file(tracker_file)

    assert "disk full" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    file_id, status, _, error = storage.outcomes[-1]
    assert (file_id, status) == ("run-1", RunStatus.ERROR)
    assert "disk full" in error
    assert storage.actions[-1][1] is AutomationAction.ERROR


def test_run_registry_failure_is_a_persistence_error(tracker_file: Path) -> None:
    storage = FakeStorage()
    storage.fail_gate = StoreLockedError("Workbook appears locked: processed_files.xlsx.lock")

    with pytest.raises(PersistenceError) as excinfo:
        IngestPipeline(storage).process_file(tracker_file)

    assert tracker_file.name in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, StoreLockedError)
    assert storage.registered == []
    assert storage.outcomes == []


def test_register_failure_is_a_persistence_error(tracker_file: Path) -> None:
    storage = FakeStorage()
    storage.fail_register = OSError("read-only file system")

    with pytest.raises(PersistenceError):
        IngestPipeline(storage).process_file(tracker_file)

    assert storage.upserts == []
    assert storage.outcomes == []


def test_process_folder_continues_after_registry_failure(make_workbook, device_rows) -> None:
    first = make_workbook("a-Moto.xlsx", {"Validation": device_rows})
    make_workbook("b-ZTE.xlsx", {"Validation": device_rows[:2]})
    storage = FakeStorage()
    storage.fail_register = StoreLockedError("Workbook appears locked")

    results = IngestPipeline(storage).process_folder(first.parent)

    assert [Path(result.file_path).name for result in results] == ["a-Moto.xlsx", "b-ZTE.xlsx"]
    assert [result.success for result in results] == [False, False]
    assert all("Run registry unavailable" in result.error for result in results)


def test_stale_registry_lock_is_reported_per_file(tmp_path: Path, make_workbook, device_rows) -> None:
    first = make_workbook("a-Moto.xlsx", {"Validation": device_rows})
    make_workbook("b-ZTE.xlsx", {"Validation": device_rows[:2]})
    storage = XlsxIngestStorage(tmp_path / "store-root")
    storage.init()
    lock_file_path(storage.files.path).write_text("4242")

    results = IngestPipeline(storage).process_folder(first.parent)

    assert len(results) == 2
    assert not any(result.success for result in results)
    assert all("locked" in result.error for result in results)


def test_unreadable_workbook_is_fatal(tmp_path: Path) -> None:
    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"this is not a workbook")
    storage = FakeStorage()

    with pytest.raises(WorkbookReadError):
        IngestPipeline(storage).process_file(broken)

    assert [status for _, status, _, _ in storage.outcomes] == [RunStatus.PROCESSING, RunStatus.ERROR]
    assert storage.upserts == []


def test_missing_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(WorkbookReadError):
        IngestPipeline(FakeStorage()).process_file(tmp_path / "gone.xlsx")


def test_end_to_end_with_xlsx_storage(tmp_path: Path, make_workbook, device_rows) -> None:
    storage = XlsxIngestStorage(tmp_path / "store-root")
    pipeline = IngestPipeline(storage)
    path = make_workbook("tracker-Moto.xlsx", {"Validation": device_rows})

    first = pipeline.process_file(path)
    assert (first.devices_inserted, first.devices_updated, first.devices_skipped) == (3, 0, 0)

    second = pipeline.process_file(path)
    assert second.unchanged
    assert second.inserted_count == 0

    edited = [list(row) for row in device_rows]
    edited[1][11] = "second pass"
    make_workbook("tracker-Moto.xlsx", {"Validation": edited})

    third = pipeline.process_file(path)
    assert (third.devices_inserted, third.devices_updated, third.devices_skipped) == (0, 1, 2)
    assert storage.devices.count() == 3
    assert len(storage.files.query()) == 2
    assert set(storage.files.query()["status"]) == {"COMPLETED"}
    assert set(storage.logs.query()["action"]) == {"LOAD_DEVICES"}


def test_process_folder_reports_each_file(make_workbook, device_rows) -> None:
    good = make_workbook("a-Moto.xlsx", {"Validation": device_rows})
    make_workbook("b-ZTE.xlsx", {"Validation": device_rows[:2]})
    (good.parent / "c-broken.xlsx").write_bytes(b"garbage")
    (good.parent / "~$a-Moto.xlsx").write_bytes(b"lock")

    results = IngestPipeline(FakeStorage()).process_folder(good.parent)

    assert [Path(result.file_path).name for result in results] == ["a-Moto.xlsx", "b-ZTE.xlsx", "c-broken.xlsx"]
    assert [result.success for result in results] == [True, True, False]
    assert results[1].devices_inserted == 1
    assert "c-broken.xlsx" in results[2].error
