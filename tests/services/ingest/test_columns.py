from __future__ import annotations

import pytest

from devicetrack.services.ingest.columns import (
    build_column_map,
    is_valid_device_record,
    normalize_status,
    resolve_field,
)
from devicetrack.services.ingest.models import DeviceStatus


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Brand", "brand"),
        ("  MODEL  ", "model"),
        ("Market Name", "device"),
        ("Costumer", "target_customer"),
        ("Dual SIM (Y/N)", "dual_sim"),
        ("initial SW build schedule", "initial_sw_schedule"),
        ("IMEI 1", "imei1"),
    ],
)
def test_resolve_field_matches_aliases_case_insensitively(header: str, expected: str) -> None:
    assert resolve_field(header) == expected


def test_resolve_field_first_alias_in_table_order_wins() -> None:
    # Shared by several canonical fields; the earliest entry in the table is used.
    assert resolve_field("Device Name") == "device"
    assert resolve_field("DPC/DLC") == "target_solution"
    assert resolve_field("Comments") == "comments"
    assert resolve_field("Nombre Comercial") == "device"


@pytest.mark.parametrize("header", ["Status Options", "status options (do not edit)", "Unnamed: 7", "", "   ", "Owner"])
def test_resolve_field_rejects_noise_and_unknown_headers(header: str) -> None:
    assert resolve_field(header) is None


def test_build_column_map_skips_unresolved_and_non_text_headers() -> None:
    headers = ["Brand", None, "Model", 2024, "Random", "TAC", "Unnamed: 6"]
    assert build_column_map(headers) == {0: "brand", 2: "model", 5: "tac"}


def test_is_valid_device_record_requires_device_or_model() -> None:
    assert is_valid_device_record({"device": "Moto G84"})
    assert is_valid_device_record({"model": "XT2347"})
    assert not is_valid_device_record({"device": "   ", "model": None, "brand": "Moto"})
    assert not is_valid_device_record({})


def test_normalize_status_maps_closed_set_and_drops_unknown() -> None:
    assert normalize_status("testing") is DeviceStatus.TESTING
    assert normalize_status("  Not Started ") is DeviceStatus.NOT_STARTED
    assert normalize_status("CANCELLED") is DeviceStatus.CANCELLED
    assert normalize_status("On hold") is None
    assert normalize_status("") is None
    assert normalize_status(None) is None
