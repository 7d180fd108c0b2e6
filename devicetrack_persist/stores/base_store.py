"""
RESPONSIBILITIES
- Define shared interfaces and exceptions for XLSX-based stores.
- Outline the workflow for init/import/upsert/query/healthcheck used by concrete stores.
PROCESS OVERVIEW
1. init_store -> resolve target path, ensure directories and workbook skeleton exist.
2. bulk_import -> normalize payloads and merge them in one locked write.
3. upsert -> merge a single record by primary key, keeping created/updated timestamps.
4. query -> filter the in-memory frame returned from the sheet read helper.
5. healthcheck -> verify dependencies, directory write access, and lock availability.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Mapping, MutableMapping, Protocol


class StoreError(RuntimeError):
    """Base exception type for persistence-layer failures."""


class StoreInitializationError(StoreError):
    """Raised when a store cannot be initialized due to missing prerequisites."""


class StoreValidationError(StoreError):
    """Raised when input data fails validation rules."""


class StoreLockedError(StoreError):
    """Raised when a target workbook is locked by another process."""


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(slots=True)
class PersistHealth:
    """Structured report produced by health checks."""

    dependencies: dict[str, bool]
    writable_paths: dict[str, bool]
    locked_paths: list[str]
    issues: list[str] = field(default_factory=list)
    row_count: int | None = None

    def is_healthy(self) -> bool:
        """Return True when no issues are observed."""

        return not self.issues and all(self.dependencies.values()) and all(
            self.writable_paths.values()
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "healthy": self.is_healthy(),
            "dependencies": dict(self.dependencies),
            "writable_paths": dict(self.writable_paths),
            "locked_paths": list(self.locked_paths),
            "issues": list(self.issues),
            "row_count": self.row_count,
        }


class SupportsToDict(Protocol):
    """Typed protocol for records that offer dict serialization."""

    def to_dict(self) -> MutableMapping[str, object]:
        """Return a dict representation ready for persistence."""


class BaseStore(ABC):
    """Abstract class shared by concrete XLSX-backed stores."""

    sheet_name: str
    columns: tuple[str, ...]

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def init_store(self) -> Path:
        """Ensure backing workbook exists, returning absolute path."""

    @abstractmethod
    def upsert(self, record: Mapping[str, object] | SupportsToDict) -> None:
        """Merge a single record into the store, updating timestamps as needed."""

    @abstractmethod
    def bulk_import(self, payload: Iterable[Mapping[str, object] | SupportsToDict], **kwargs: object) -> int:
        """Import multiple records, returning the count of inserted/updated rows."""

    @abstractmethod
    def query(self, params: Mapping[str, object]) -> object:
        """Run a query and return results (usually a pandas.DataFrame)."""

    @abstractmethod
    def healthcheck(self) -> PersistHealth:
        """Run diagnostics for the store and return a structured report."""
