"""
RESPONSIBILITIES
- Resolve and create the DeviceTrack directory scaffold used for persistence.
- Provide helpers for locating store workbooks and scratch files.
PROCESS OVERVIEW
1. resolve_root() expands user input or falls back to the configured root.
2. ensure_structure() materializes store/tmp/logs directories.
3. store_file_path() returns the canonical store location for a workbook.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from devicetrack.core.settings import load_settings

_DEFAULT_SUBDIRS: tuple[str, ...] = ("store", "tmp", "logs")


def resolve_root(root: str | os.PathLike[str] | None = None) -> Path:
    """Return the persistence root, defaulting to the settings root (~/DeviceTrack)."""

    base = load_settings().root if root is None else Path(root)
    return base.expanduser().resolve()


def ensure_structure(root: str | os.PathLike[str] | None = None, *, subdirs: Iterable[str] | None = None) -> dict[str, Path]:
    """Ensure persistence directories exist and return a mapping."""

    base = resolve_root(root)
    requested = tuple(subdirs) if subdirs is not None else _DEFAULT_SUBDIRS
    base.mkdir(parents=True, exist_ok=True)
    resolved: dict[str, Path] = {"base": base}
    for name in requested:
        target = base / name
        target.mkdir(parents=True, exist_ok=True)
        resolved[name] = target
    return resolved


def store_file_path(filename: str, root: str | os.PathLike[str] | None = None) -> Path:
    """Return the absolute path for a store workbook under "store"."""

    return ensure_structure(root)["store"] / filename
