"""
RESPONSIBILITIES
- Shared machinery for stores keyed by a record fingerprint (devices, inventory).
- Merge whole batches in a single locked read/modify/write so each batch is all-or-nothing.
PROCESS OVERVIEW
1. init_store() ensures <root>/store/<workbook> exists with the canonical header.
2. upsert_many() serializes records, then under the workbook lock:
   - new fingerprint -> inserted (created_at = updated_at = now),
   - stored row with identical content -> skipped (row untouched),
   - stored row with different content -> updated (created_at kept, updated_at = now).
3. The merged sheet is written once through a temp-file swap; nothing is written when
   every record was skipped.
4. query() returns a pandas.DataFrame filtered by case-insensitive substring filters.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import ClassVar, Iterable, Mapping

import pandas as pd

from devicetrack.services.ingest.models import UpsertCounts
from devicetrack_persist.stores.base_store import (
    BaseStore,
    PersistHealth,
    StoreInitializationError,
    StoreValidationError,
    SupportsToDict,
    utcnow_iso,
)
from devicetrack_persist.stores.health import workbook_health
from devicetrack_persist.utils.excel_io import ensure_workbook, read_sheet, workbook_lock, write_sheet
from devicetrack_persist.utils.log import get_logger
from devicetrack_persist.utils.paths import store_file_path

KEY_COLUMN = "fingerprint"
PROVENANCE_COLUMNS: tuple[str, ...] = ("sheet_name", "row_index", "source_file_id")
TIMESTAMP_COLUMNS: tuple[str, ...] = ("created_at", "updated_at")


def comparable(value: object) -> str:
    """Text form used to decide whether a stored cell differs from a new value."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class FingerprintStore(BaseStore):
    """XLSX store whose rows are unique by ``fingerprint``."""

    workbook_name: ClassVar[str]
    logger_name: ClassVar[str]
    data_columns: ClassVar[tuple[str, ...]]
    json_columns: ClassVar[frozenset[str]] = frozenset()
    # query parameter -> column searched with a case-insensitive substring match
    substring_filters: ClassVar[dict[str, str]] = {}
    exact_filters: ClassVar[dict[str, str]] = {}
    search_columns: ClassVar[tuple[str, ...]] = ()

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        resolved_root = Path(root).expanduser().resolve() if root else None
        super().__init__(logger=logger or get_logger(self.logger_name, resolved_root))
        self._root = resolved_root
        self.path = store_file_path(self.workbook_name, self._root)
        self.columns = self.data_columns + (KEY_COLUMN,) + PROVENANCE_COLUMNS + TIMESTAMP_COLUMNS

    # BaseStore API -----------------------------------------------------------------

    def init_store(self) -> Path:
        self.logger.debug("Ensuring %s workbook exists at %s", self.sheet_name, self.path)
        try:
            ensure_workbook(self.path, self.sheet_name, self.columns)
        except OSError as exc:
            raise StoreInitializationError(str(exc)) from exc
        return self.path

    def upsert(self, record: Mapping[str, object] | SupportsToDict) -> None:
        self.upsert_many([record])

    def bulk_import(self, payload: Iterable[Mapping[str, object] | SupportsToDict], **kwargs: object) -> int:
        counts = self.upsert_many(payload)
        return counts.inserted + counts.updated

    def upsert_many(self, records: Iterable[Mapping[str, object] | SupportsToDict]) -> UpsertCounts:
        """Merge *records* by fingerprint in one transaction."""

        payloads = [self._serialize(record) for record in records]
        counts = UpsertCounts()
        if not payloads:
            return counts

        self.init_store()
        now_iso = utcnow_iso()
        with workbook_lock(self.path):
            stored = read_sheet(self.path, self.sheet_name, self.columns, use_lock=False)
            index = {comparable(row.get(KEY_COLUMN)): pos for pos, row in enumerate(stored)}
            for payload in payloads:
                key = payload[KEY_COLUMN]
                pos = index.get(key)
                if pos is None:
                    payload["created_at"] = now_iso
                    payload["updated_at"] = now_iso
                    index[key] = len(stored)
                    stored.append(payload)
                    counts.inserted += 1
                elif self._same_content(stored[pos], payload):
                    counts.skipped += 1
                else:
                    payload["created_at"] = stored[pos].get("created_at") or now_iso
                    payload["updated_at"] = now_iso
                    stored[pos] = payload
                    counts.updated += 1
            if counts.inserted or counts.updated:
                write_sheet(self.path, self.sheet_name, stored, self.columns, use_lock=False)

        self.logger.info(
            "%s upsert: %s inserted, %s updated, %s skipped",
            self.sheet_name,
            counts.inserted,
            counts.updated,
            counts.skipped,
        )
        return counts

    def query(self, params: Mapping[str, object] | None = None) -> pd.DataFrame:
        filters = {key: value for key, value in dict(params or {}).items() if value not in (None, "")}
        self.init_store()
        rows = read_sheet(self.path, self.sheet_name, self.columns)
        frame = pd.DataFrame(rows, columns=list(self.columns))
        if frame.empty:
            return frame

        for param, column in self.substring_filters.items():
            needle = filters.get(param)
            if needle:
                frame = frame[frame[column].astype(str).str.contains(str(needle), case=False, regex=False, na=False)]
        for param, column in self.exact_filters.items():
            wanted = filters.get(param)
            if wanted is not None:
                frame = frame[frame[column].map(comparable).str.lower() == comparable(wanted).lower()]
        search = filters.get("search")
        if search and self.search_columns:
            mask = pd.Series(False, index=frame.index)
            for column in self.search_columns:
                mask |= frame[column].astype(str).str.contains(str(search), case=False, regex=False, na=False)
            frame = frame[mask]

        for column in self.json_columns:
            frame[column] = frame[column].map(_load_json)
        return frame.reset_index(drop=True)

    def count(self) -> int:
        self.init_store()
        return len(read_sheet(self.path, self.sheet_name, self.columns))

    def get(self, fingerprint: str) -> dict[str, object] | None:
        self.init_store()
        for row in read_sheet(self.path, self.sheet_name, self.columns):
            if comparable(row.get(KEY_COLUMN)) == fingerprint:
                for column in self.json_columns:
                    row[column] = _load_json(row[column])
                return row
        return None

    def healthcheck(self) -> PersistHealth:
        return workbook_health(self.path, self.sheet_name, self.columns, self._root)

    # Helpers ----------------------------------------------------------------------

    def _serialize(self, record: Mapping[str, object] | SupportsToDict) -> dict[str, object]:
        raw = dict(record) if isinstance(record, Mapping) else dict(record.to_dict())
        key = comparable(raw.get(KEY_COLUMN))
        if not key:
            raise StoreValidationError(f"{self.sheet_name} record is missing its fingerprint")
        payload: dict[str, object] = {}
        for column in self.data_columns + PROVENANCE_COLUMNS:
            value = raw.get(column)
            if column in self.json_columns:
                value = json.dumps(value or {}, sort_keys=True, ensure_ascii=False, default=str)
            elif isinstance(value, Enum):
                value = value.value
            payload[column] = "" if value is None else value
        payload[KEY_COLUMN] = key
        return payload

    def _same_content(self, stored: Mapping[str, object], payload: Mapping[str, object]) -> bool:
        return all(comparable(stored.get(column)) == comparable(payload.get(column)) for column in self.data_columns)


def _load_json(value: object) -> object:
    text = comparable(value)
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}
