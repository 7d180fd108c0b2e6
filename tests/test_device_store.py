from __future__ import annotations

import time
from pathlib import Path

import pytest

from devicetrack.services.ingest.fingerprint import device_fingerprint, inventory_fingerprint
from devicetrack.services.ingest.models import DeviceRecord, DeviceStatus, InventoryRecord
from devicetrack_persist.stores.base_store import StoreLockedError, StoreValidationError
from devicetrack_persist.stores.device_store import DeviceStore, init_device_store, query_devices
from devicetrack_persist.stores.inventory_store import InventoryStore
from devicetrack_persist.utils.excel_io import lock_file_path


def _device(**overrides: object) -> DeviceRecord:
    values = {
        "brand": "Moto",
        "device": "Moto G84",
        "model": "XT2347-2",
        "tac": "35123456",
        "build": "U1TC",
        "target_region": "Mexico, Peru",
        "target_customer": "Claro",
        "target_solution": "DPC 1.0",
        "status": DeviceStatus.TESTING,
        "dual_sim": True,
        "comments": "first pass",
        "sheet_name": "Validation",
        "row_index": 2,
    }
    values.update(overrides)
    record = DeviceRecord(**values)
    record.fingerprint = device_fingerprint(record)
    return record


def test_device_store_upsert_counts(tmp_path: Path) -> None:
    root = tmp_path / "persist"
    store = DeviceStore(root)
    assert init_device_store(root).exists()

    first = store.upsert_many([_device(), _device(model="XT2303-2", device="Edge 40")])
    assert first.to_dict() == {"inserted": 2, "updated": 0, "skipped": 0}
    stored = store.get(_device().fingerprint)
    assert stored is not None
    created_at = stored["created_at"]
    updated_at = stored["updated_at"]

    time.sleep(1)
    again = store.upsert_many([_device(source_file_id="run-2", row_index=7)])
    assert again.to_dict() == {"inserted": 0, "updated": 0, "skipped": 1}
    unchanged = store.get(_device().fingerprint)
    assert unchanged["updated_at"] == updated_at

    changed = store.upsert_many([_device(comments="retest", status=DeviceStatus.COMPLETED)])
    assert changed.to_dict() == {"inserted": 0, "updated": 1, "skipped": 0}
    row = store.get(_device().fingerprint)
    assert row["comments"] == "retest"
    assert row["status"] == "Completed"
    assert row["created_at"] == created_at
    assert row["updated_at"] > updated_at
    assert store.count() == 2


def test_duplicate_in_one_batch_is_not_inserted_twice(tmp_path: Path) -> None:
    store = DeviceStore(tmp_path)

    counts = store.upsert_many([_device(), _device()])

    assert counts.to_dict() == {"inserted": 1, "updated": 0, "skipped": 1}
    assert store.count() == 1


def test_device_query_filters(tmp_path: Path) -> None:
    store = DeviceStore(tmp_path)
    store.upsert_many(
        [
            _device(),
            _device(model="XT2303-2", device="Edge 40", target_region="Chile", target_customer="Entel",
                    status=DeviceStatus.COMPLETED, tac="35987654"),
            _device(brand="ZTE", model="Blade A35", device="Blade", target_solution="DLC", status=None,
                    tac="86000001"),
        ]
    )

    assert len(query_devices({}, root=tmp_path)) == 3
    assert query_devices({"region": "peru"}, root=tmp_path)["model"].tolist() == ["XT2347-2", "Blade A35"]
    assert query_devices({"customer": "ENTEL"}, root=tmp_path)["model"].tolist() == ["XT2303-2"]
    assert query_devices({"solution": "dlc"}, root=tmp_path)["model"].tolist() == ["Blade A35"]
    assert query_devices({"brand": "zte"}, root=tmp_path)["model"].tolist() == ["Blade A35"]
    assert query_devices({"status": "completed"}, root=tmp_path)["model"].tolist() == ["XT2303-2"]
    assert query_devices({"search": "35987"}, root=tmp_path)["model"].tolist() == ["XT2303-2"]
    assert query_devices({"search": "edge", "status": None}, root=tmp_path)["device"].tolist() == ["Edge 40"]


def test_record_without_fingerprint_is_rejected(tmp_path: Path) -> None:
    store = DeviceStore(tmp_path)
    with pytest.raises(StoreValidationError):
        store.upsert_many([DeviceRecord(model="XT2347-2")])


def test_locked_workbook_raises(tmp_path: Path) -> None:
    store = DeviceStore(tmp_path)
    store.init_store()
    lock_path = lock_file_path(store.path.resolve())
    lock_path.write_text("4242", encoding="ascii")
    try:
        with pytest.raises(StoreLockedError):
            store.upsert_many([_device()])
        assert lock_path.exists()
    finally:
        lock_path.unlink()


def test_inventory_store_keeps_metadata_as_mapping(tmp_path: Path) -> None:
    store = InventoryStore(tmp_path)
    item = InventoryRecord(
        brand="Moto",
        model="XT2347-2",
        serial_number="SN-001",
        imei1="351234560000011",
        comments="shelf B",
        in_inventory=True,
        metadata={"priority": "High", "tester": "QA-1"},
    )
    item.fingerprint = inventory_fingerprint(item)

    assert store.upsert_many([item]).inserted == 1
    assert store.upsert_many([item]).skipped == 1

    frame = store.query({"search": "SN-001"})
    assert len(frame) == 1
    assert frame.iloc[0]["metadata"] == {"priority": "High", "tester": "QA-1"}
    assert len(store.query({"in_inventory": True})) == 1
    assert store.get(item.fingerprint)["imei1"] == "351234560000011"


def test_healthcheck_reports_rows(tmp_path: Path) -> None:
    store = DeviceStore(tmp_path)
    store.upsert_many([_device()])

    health = store.healthcheck()

    assert health.is_healthy()
    assert health.row_count == 1
