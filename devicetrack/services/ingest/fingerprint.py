"""Deterministic identities for records and extracted content.

A fingerprint is the SHA-256 of the key fields, each trimmed and lowercased,
joined by ``|``. It is the natural key for upserts: the same logical record
always hashes the same no matter which file or row it came from, and any
change to a key field yields a new identity.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, Mapping, Sequence

from .models import DeviceRecord, InventoryRecord

DEVICE_KEY_FIELDS: tuple[str, ...] = (
    "device",
    "model",
    "tac",
    "build",
    "target_region",
    "target_solution",
    "target_customer",
)

INVENTORY_KEY_FIELDS: tuple[str, ...] = (
    "brand",
    "model",
    "serial_number",
    "imei1",
    "imei2",
    "solution_type",
    "target_customer",
    "nm_flow",
)

KEY_DELIMITER = "|"


def _field_value(record: object, name: str) -> object:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _key_text(value: object) -> str:
    if value is None or value is False:
        return ""
    return str(value).strip().lower()


def compute_fingerprint(record: object, key_fields: Sequence[str]) -> str:
    """Hash the given key fields of a mapping or record object."""

    key_data = KEY_DELIMITER.join(_key_text(_field_value(record, name)) for name in key_fields)
    return hashlib.sha256(key_data.encode("utf-8")).hexdigest()


def device_fingerprint(record: DeviceRecord | Mapping[str, object]) -> str:
    return compute_fingerprint(record, DEVICE_KEY_FIELDS)


def inventory_fingerprint(record: InventoryRecord | Mapping[str, object]) -> str:
    return compute_fingerprint(record, INVENTORY_KEY_FIELDS)


def content_digest(fingerprints: Iterable[str]) -> str:
    """Order-independent digest over a collection of record fingerprints."""

    joined = "\n".join(sorted(fingerprints))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
