from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from devicetrack.config import load_settings_file


load_dotenv(override=False)

DEFAULT_ROOT = Path.home() / "DeviceTrack"
DEFAULT_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xlsm")


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings.

    Attributes:
        root: Base directory holding the store workbooks.
        watch_dir: Folder scanned by ``devicetrack ingest`` when no path is given.
        log_dir: Directory for the rotating log file.
        log_level: Default logging level name.
        workbook_extensions: File suffixes treated as ingestible workbooks.
    """

    root: Path
    watch_dir: Path | None
    log_dir: Path
    log_level: str = "INFO"
    workbook_extensions: tuple[str, ...] = DEFAULT_EXTENSIONS

    @property
    def store_dir(self) -> Path:
        return self.root / "store"


def _as_path(value: str | None) -> Path | None:
    if not value:
        return None
    return Path(value).expanduser().resolve()


def load_settings(path: str | Path | None = None) -> Settings:
    """Build :class:`Settings` from settings.yaml and environment overrides."""
    file_values = load_settings_file(path)

    root = _as_path(os.getenv("DEVICETRACK_ROOT")) or _as_path(file_values.get("root")) or DEFAULT_ROOT
    watch_dir = _as_path(os.getenv("DEVICETRACK_WATCH_DIR")) or _as_path(file_values.get("watch_dir"))
    log_dir = _as_path(file_values.get("log_dir")) or root / "logs"
    if os.getenv("DEVICETRACK_ROOT"):
        log_dir = root / "logs"
    log_level = (os.getenv("DEVICETRACK_LOG_LEVEL") or file_values.get("log_level") or "INFO").upper()

    return Settings(
        root=root,
        watch_dir=watch_dir,
        log_dir=log_dir,
        log_level=log_level,
        workbook_extensions=file_values.get("workbook_extensions", DEFAULT_EXTENSIONS),
    )
