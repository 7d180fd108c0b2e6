"""Column alias resolution for device and inventory workbooks.

Spreadsheets arrive from many authors with different header spellings and
column orders. Every header is matched against ``COLUMN_ALIASES`` (exact,
case-insensitive) and mapped onto a canonical field name; the first field in
table order whose alias list contains the header wins.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from .models import DeviceStatus

ColumnMap = Dict[int, str]

COLUMN_ALIASES: Dict[str, List[str]] = {
    # Core identification
    "brand": ["Brand", "Marca", "OEM"],
    "device": ["Market Name", "Device Name", "Dispositivo", "Nombre Comercial"],
    "device_type": ["Device", "Type", "Tipo", "Tipo de Dispositivo"],
    "project": ["Project", "Proyecto", "Project Name"],
    "model": ["Model", "Modelo", "Model Name", "Model_Name"],
    "build": ["Build", "Build Number", "Version"],
    "tac": ["TAC", "Type Allocation Code"],
    "approved_date": ["Approved Dated", "Approved Date", "Fecha Aprobación", "Approval Date"],
    "dual_sim": ["Dual SIM (Y/N)", "Dual SIM", "DualSIM", "Dual_SIM"],
    "target_region": ["Target Region", "Region", "Región", "Target_Region"],
    "target_customer": [
        "Target Customer",
        "Customer",
        "Cliente",
        "Target_Customer",
        "Costumer",
        "Costumer Name",
    ],
    "android_version": ["Android version", "Android Version", "Android", "OS Version"],
    "volume_forecast": ["Volume Forecast", "Forecast", "Volume", "Volume_Forecast"],
    "target_solution": ["Target Solution (DPC/DLC)", "Target Solution", "Solution", "DPC/DLC"],
    # Planning
    "integration_requirement": ["Integration Requirement", "Integration Requirements", "Requirements"],
    "initial_sw_schedule": ["initial SW build schedule", "Initial SW Schedule", "SW Build Schedule"],
    "commercial_schedule": [
        "Commercial build schedule for Massive",
        "Commercial Schedule",
        "Mass Production Schedule",
    ],
    "sw_freeze_date": ["SW Freeze date", "SW Freeze Date", "Freeze Date"],
    "initial_shipment_date": ["Initial Shipment date", "Initial Shipment Date", "First Shipment"],
    "initial_selling_date": ["Initial Selling date", "Initial Selling Date", "Selling Date"],
    "launch_date": ["Launch date", "Launch Date", "Launch"],
    "sample_shipped": ["Sample Shipped", "Samples Shipped", "Sample Status"],
    "priority": ["Priority", "Prioridad"],
    # Tracking
    "status": ["Status", "Estado", "Validation Status"],
    "comments": ["Comments", "Comentarios", "Notes", "Notas", "Comment", "Observaciones"],
    "tester": ["Tester", "QA", "Test Engineer"],
    "contact": ["Contact", "Contacto", "Contact Person"],
    # Inventory
    "in_inventory": ["In inventory", "En Inventario", "Inventory", "Stock", "In Inventory (Yes/No)"],
    "nm_flow": ["NM-Flow", "Flow", "Network Manager Flow", "NM Flow"],
    "solution_type": [
        "DPC/DLC",
        "DPC-DLC",
        "DPC DLC",
        "Solution Type",
        "Tipo de Solución",
        "Solution_Type",
        "DPC_DLC",
    ],
    "device_name": ["Device Name Inventory", "Device Name", "Nombre del Dispositivo"],
    "marketing_name": ["Marketing Name", "Nombre Comercial"],
    "serial_number": ["Serial Number", "S/N", "Número de Serie", "Serial_Number"],
    "imei1": ["IMEI 1", "IMEI_1", "Imei 1"],
    "imei2": ["IMEI 2", "IMEI_2", "Imei 2"],
    "received_on": ["Received On", "Fecha de Recibido", "Received"],
    "returned_on": ["Returned On", "Fecha de Devolución", "Returned"],
    "remark": ["Remark", "Observación", "Comentario Inventario", "Remarks"],
    "inventory_comments": ["Comments", "Comentarios", "Notes", "Inventory Comments"],
}

# Headers containing any of these (case-insensitive) are dropped outright.
IGNORED_COLUMNS: List[str] = ["Status Options", "Unnamed"]

_ALIAS_LOOKUP: List[tuple[str, frozenset[str]]] = [
    (canonical, frozenset(alias.lower() for alias in aliases))
    for canonical, aliases in COLUMN_ALIASES.items()
]
_IGNORED_LOWER: tuple[str, ...] = tuple(item.lower() for item in IGNORED_COLUMNS)


def resolve_field(header: str) -> Optional[str]:
    """Return the canonical field for a raw header, or None when unmapped."""

    normalized = header.strip().lower()
    if not normalized:
        return None
    if any(ignored in normalized for ignored in _IGNORED_LOWER):
        return None
    for canonical, aliases in _ALIAS_LOOKUP:
        if normalized in aliases:
            return canonical
    return None


def build_column_map(headers: Sequence[object]) -> ColumnMap:
    """Map 0-based column positions to canonical fields, skipping unresolved ones."""

    column_map: ColumnMap = {}
    for index, header in enumerate(headers):
        if not isinstance(header, str) or not header:
            continue
        canonical = resolve_field(header)
        if canonical:
            column_map[index] = canonical
    return column_map


def is_valid_device_record(values: Mapping[str, object]) -> bool:
    """A device row needs a device name or a model."""

    for name in ("device", "model"):
        value = values.get(name)
        if value is not None and str(value).strip():
            return True
    return False


def normalize_status(value: object) -> Optional[DeviceStatus]:
    """Match a status cell against the closed status set; unknown values become None."""

    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    for status in DeviceStatus:
        if status.value.lower() == normalized:
            return status
    return None


__all__ = [
    "COLUMN_ALIASES",
    "ColumnMap",
    "IGNORED_COLUMNS",
    "build_column_map",
    "is_valid_device_record",
    "normalize_status",
    "resolve_field",
]
