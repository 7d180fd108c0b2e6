"""Data models used by the ingestion service."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, MutableMapping, Optional


class DeviceStatus(str, Enum):
    """Closed set of validation states a device row may carry."""

    NOT_STARTED = "Not Started"
    TESTING = "Testing"
    COMPLETED = "Completed"
    ISSUE = "Issue"
    CANCELLED = "Cancelled"


class RunStatus(str, Enum):
    """Lifecycle of one file's processing run."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class AutomationAction(str, Enum):
    """Audit-log action recorded after each table load or failure."""

    LOAD_DEVICES = "LOAD_DEVICES"
    LOAD_INVENTORY = "LOAD_INVENTORY"
    ERROR = "ERROR"


@dataclass(slots=True)
class ParseError:
    """A row-level or sheet-level problem collected during extraction."""

    sheet: str
    row: int
    message: str
    column: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"sheet": self.sheet, "row": self.row, "message": self.message}
        if self.column is not None:
            payload["column"] = self.column
        return payload


@dataclass(slots=True)
class DeviceRecord:
    """Normalized row from a device/testing sheet."""

    brand: Optional[str] = None
    device: Optional[str] = None
    device_type: Optional[str] = None
    project: Optional[str] = None
    model: Optional[str] = None
    build: Optional[str] = None
    tac: Optional[str] = None
    approved_date: Optional[str] = None
    dual_sim: Optional[bool] = None
    target_region: Optional[str] = None
    target_customer: Optional[str] = None
    android_version: Optional[str] = None
    volume_forecast: Optional[str] = None
    target_solution: Optional[str] = None
    integration_requirement: Optional[str] = None
    initial_sw_schedule: Optional[str] = None
    commercial_schedule: Optional[str] = None
    sw_freeze_date: Optional[str] = None
    initial_shipment_date: Optional[str] = None
    initial_selling_date: Optional[str] = None
    launch_date: Optional[str] = None
    sample_shipped: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[DeviceStatus] = None
    comments: Optional[str] = None
    tester: Optional[str] = None
    contact: Optional[str] = None
    sheet_name: Optional[str] = None
    row_index: Optional[int] = None
    source_file_id: Optional[str] = None
    fingerprint: str = ""

    @classmethod
    def from_fields(cls, values: Mapping[str, Any]) -> "DeviceRecord":
        """Build a record from canonical field values, ignoring unknown keys."""

        known = {name: values[name] for name in DEVICE_FIELDS if name in values}
        return cls(**known)

    def to_dict(self) -> MutableMapping[str, object]:
        payload: MutableMapping[str, object] = {name: getattr(self, name) for name in DEVICE_FIELDS}
        if isinstance(self.status, DeviceStatus):
            payload["status"] = self.status.value
        return payload


@dataclass(slots=True)
class InventoryRecord:
    """Normalized row from an inventory sheet.

    Resolved columns without a dedicated attribute land in ``metadata``.
    """

    brand: Optional[str] = None
    marketing_name: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    imei1: Optional[str] = None
    imei2: Optional[str] = None
    received_on: Optional[str] = None
    returned_on: Optional[str] = None
    remark: Optional[str] = None
    solution_type: Optional[str] = None
    target_customer: Optional[str] = None
    comments: Optional[str] = None
    in_inventory: bool = False
    nm_flow: Optional[str] = None
    tac: Optional[str] = None
    device_name: Optional[str] = None
    metadata: Dict[str, object] = field(default_factory=dict)
    sheet_name: Optional[str] = None
    row_index: Optional[int] = None
    source_file_id: Optional[str] = None
    fingerprint: str = ""

    def has_identity(self) -> bool:
        """Return True when at least one identifying attribute is present."""

        return any(
            _present(value)
            for value in (self.model, self.tac, self.device_name, self.serial_number, self.imei1)
        )

    def to_dict(self) -> MutableMapping[str, object]:
        payload: MutableMapping[str, object] = {name: getattr(self, name) for name in INVENTORY_FIELDS}
        payload["metadata"] = dict(self.metadata)
        return payload


@dataclass(slots=True)
class UpsertCounts:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.skipped

    def to_dict(self) -> Dict[str, int]:
        return {"inserted": self.inserted, "updated": self.updated, "skipped": self.skipped}


@dataclass(slots=True)
class SheetExtraction:
    """Outcome of extracting a single worksheet."""

    sheet_name: str
    header_row: Optional[int]
    records: List[Any] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    review: List[ParseError] = field(default_factory=list)


@dataclass(slots=True)
class WorkbookExtraction:
    """Outcome of extracting every worksheet of a workbook."""

    devices: List[DeviceRecord] = field(default_factory=list)
    inventory: List[InventoryRecord] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    review: List[ParseError] = field(default_factory=list)
    sheet_count: int = 0


def _present(value: object) -> bool:
    return value is not None and str(value).strip() != ""


DEVICE_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(DeviceRecord))
INVENTORY_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(InventoryRecord))


__all__ = [
    "AutomationAction",
    "DEVICE_FIELDS",
    "DeviceRecord",
    "DeviceStatus",
    "INVENTORY_FIELDS",
    "InventoryRecord",
    "ParseError",
    "RunStatus",
    "SheetExtraction",
    "UpsertCounts",
    "WorkbookExtraction",
]
