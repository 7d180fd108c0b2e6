"""File fingerprinting and workbook discovery."""

# Module responsibilities:
# - Compute the whole-file SHA-256 used to skip files that were already ingested.
# - List ingestible workbooks in a folder, ignoring Office lock files and hidden files.

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, List

from .utils.log import get_logger

logger = get_logger("file_hash")

DEFAULT_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xlsm")
_CHUNK_SIZE = 1024 * 1024


def fingerprint_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def fingerprint_file(path: Path) -> str:
    """Return the SHA-256 hex digest of the file's raw bytes."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_workbook_file(path: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> bool:
    """True for visible workbook files that are not Office lock files (``~$name.xlsx``)."""

    name = path.name
    if name.startswith("~$") or name.startswith("."):
        return False
    allowed = {ext.lower() for ext in extensions}
    return path.suffix.lower() in allowed


def list_workbook_files(folder: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> List[Path]:
    """Return ingestible workbooks directly inside *folder*, sorted by name."""

    if not folder.is_dir():
        raise NotADirectoryError(f"Not a directory: {folder}")
    allowed = tuple(extensions)
    files = sorted(
        (entry for entry in folder.iterdir() if entry.is_file() and is_workbook_file(entry, allowed)),
        key=lambda entry: entry.name.lower(),
    )
    logger.info("Discovered workbooks", extra={"folder": str(folder), "count": len(files)})
    return files
