"""Worksheet routing by display name."""

from __future__ import annotations

from enum import Enum

INVENTORY_SHEET_MARKERS: tuple[str, ...] = ("inventory", "inventario")


class SheetKind(str, Enum):
    DEVICE = "device"
    INVENTORY = "inventory"


def classify_sheet(sheet_name: str) -> SheetKind:
    """Inventory when the name mentions inventory; every other sheet holds devices."""

    lowered = (sheet_name or "").lower()
    if any(marker in lowered for marker in INVENTORY_SHEET_MARKERS):
        return SheetKind.INVENTORY
    return SheetKind.DEVICE
