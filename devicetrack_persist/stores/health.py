"""
RESPONSIBILITIES
- Shared healthcheck routine for workbook-backed stores.
PROCESS OVERVIEW
1. Ensure the directory scaffold and the store workbook exist.
2. Record whether the store directory is writable.
3. Try to take the workbook lock and count data rows.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from devicetrack_persist.stores.base_store import PersistHealth, StoreError
from devicetrack_persist.utils.excel_io import ensure_workbook, read_sheet
from devicetrack_persist.utils.paths import ensure_structure


def workbook_health(
    path: Path,
    sheet_name: str,
    columns: Sequence[str],
    root: Path | None = None,
) -> PersistHealth:
    issues: list[str] = []
    dependencies = {"pandas": True, "openpyxl": True}
    writable_paths: dict[str, bool] = {}
    locked: list[str] = []
    row_count: int | None = None

    try:
        ensure_structure(root)
    except OSError as exc:
        issues.append(f"Failed to ensure root directories: {exc}")

    target_dir = path.parent
    writable_paths[str(target_dir)] = target_dir.is_dir() and os.access(target_dir, os.W_OK | os.X_OK)
    try:
        ensure_workbook(path, sheet_name, columns)
        row_count = len(read_sheet(path, sheet_name, columns))
    except StoreError as exc:
        locked.append(str(path))
        issues.append(f"Lock acquisition failed: {exc}")
    except OSError as exc:
        issues.append(str(exc))

    return PersistHealth(
        dependencies=dependencies,
        writable_paths=writable_paths,
        locked_paths=locked,
        issues=issues,
        row_count=row_count,
    )
