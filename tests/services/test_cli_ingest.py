from __future__ import annotations

import hashlib
import json
from pathlib import Path

from typer.testing import CliRunner

from devicetrack.cli import app
from devicetrack_persist.storage import XlsxIngestStorage
from devicetrack_persist.stores.base_store import StoreLockedError
from devicetrack_persist.utils.excel_io import lock_file_path

runner = CliRunner()


def _invoke(*args: str):
    return runner.invoke(app, ["--log-level", "ERROR", *args])


def test_ingest_file_prints_summary(make_workbook, device_rows, tmp_path: Path) -> None:
    path = make_workbook("tracker-Moto.xlsx", {"Validation": device_rows})
    root = tmp_path / "cli-root"

    result = _invoke("ingest", str(path), "--root", str(root))

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["success"] is True
    assert summary["inserted_count"] == 3
    assert summary["errors"] == []
    assert isinstance(summary["duration_ms"], int)

    again = json.loads(_invoke("ingest", str(path), "--root", str(root)).stdout)
    assert again["unchanged"] is True


def test_ingest_folder_and_list_devices(make_workbook, device_rows, tmp_path: Path) -> None:
    path = make_workbook("tracker-Moto.xlsx", {"Validation": device_rows})
    root = tmp_path / "cli-root"

    folder = _invoke("ingest", str(path.parent), "--root", str(root))
    assert folder.exit_code == 0, folder.output
    assert [item["inserted_count"] for item in json.loads(folder.stdout)] == [3]

    listing = _invoke("devices", "--root", str(root), "--status", "Testing", "--format", "json")
    assert listing.exit_code == 0, listing.output
    rows = json.loads(listing.stdout)
    assert [row["model"] for row in rows] == ["XT2347-2"]
    assert rows[0]["brand"] == "Moto"

    table = _invoke("devices", "--root", str(root), "--region", "chile")
    assert table.exit_code == 0
    assert "XT2303-2" in table.stdout
    assert "XT2347-2" not in table.stdout


def test_ingest_broken_file_exits_with_error(tmp_path: Path) -> None:
    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"not a workbook")

    result = _invoke("ingest", str(broken), "--root", str(tmp_path / "cli-root"))

    assert result.exit_code == 1


def test_ingest_reports_locked_registry(make_workbook, device_rows, tmp_path: Path) -> None:
    path = make_workbook("tracker-Moto.xlsx", {"Validation": device_rows})
    root = tmp_path / "cli-root"
    storage = XlsxIngestStorage(root)
    storage.init()
    lock_file_path(storage.files.path).write_text("4242")

    result = _invoke("ingest", str(path), "--root", str(root))

    assert result.exit_code == 1
    assert not isinstance(result.exception, StoreLockedError)
    assert "Ingestion failed:" in result.output


def test_hash_command(tmp_path: Path) -> None:
    target = tmp_path / "file.xlsx"
    target.write_bytes(b"payload")

    result = _invoke("hash", str(target))

    assert result.exit_code == 0
    assert result.stdout.strip() == hashlib.sha256(b"payload").hexdigest()


def test_health_command(tmp_path: Path) -> None:
    result = _invoke("health", "--root", str(tmp_path / "cli-root"))

    assert result.exit_code == 0, result.output
    assert "[OK] devices (0 rows)" in result.stdout
    assert "[OK] automation_logs" in result.stdout


def test_unknown_log_level_is_rejected() -> None:
    result = runner.invoke(app, ["--log-level", "LOUD", "health"])
    assert result.exit_code != 0
