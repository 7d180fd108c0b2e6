from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Dict, List

import pytest
from openpyxl import Workbook

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Loggers configured at import time must not write into the real home directory.
os.environ.setdefault("DEVICETRACK_ROOT", tempfile.mkdtemp(prefix="devicetrack-tests-"))

from devicetrack.core.logger import reset_logger  # noqa: E402

WorkbookFactory = Callable[[str, Dict[str, List[List[object]]]], Path]


@pytest.fixture(autouse=True)
def devicetrack_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point settings, stores and logs at a per-test directory."""

    root = tmp_path / "devicetrack"
    monkeypatch.setenv("DEVICETRACK_ROOT", str(root))
    monkeypatch.delenv("DEVICETRACK_WATCH_DIR", raising=False)
    monkeypatch.delenv("DEVICETRACK_LOG_LEVEL", raising=False)
    reset_logger()
    yield root
    reset_logger()


@pytest.fixture
def make_workbook(tmp_path: Path) -> WorkbookFactory:
    """Write an .xlsx with the given sheets (title -> rows) under tmp_path/inbox."""

    def _make(name: str, sheets: Dict[str, List[List[object]]]) -> Path:
        workbook = Workbook()
        workbook.remove(workbook.active)
        for title, rows in sheets.items():
            worksheet = workbook.create_sheet(title=title)
            for row in rows:
                worksheet.append(row)
        target = tmp_path / "inbox" / name
        target.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(target)
        return target

    return _make


DEVICE_HEADER = ["Brand", "Market Name", "Model", "TAC", "Build", "Target Region", "Target Customer",
                 "Target Solution", "Status", "Launch Date", "Dual SIM", "Comments"]


@pytest.fixture
def device_rows() -> List[List[object]]:
    return [
        DEVICE_HEADER,
        ["Moto", "Moto G84", "XT2347-2", 35123456, "U1TC", "peru, Mxico", "Claro", "DPC 1.o", "Testing",
         "15/03/2024", "Y", "first pass"],
        ["Moto", "Edge 40", "XT2303-2", 35987654, "U1RX", "Chile", "Entel", "DLC", "completed",
         "2024-04-01", "no", None],
        ["Moto", "Razr 40", "XT2323-3", 35000001, "U1TX", "Colomiba & panam", "Tigo", "DPC, DLC", "On hold",
         None, "si", "waiting samples"],
    ]
