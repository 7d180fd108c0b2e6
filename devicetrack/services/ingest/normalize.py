"""Per-field value normalization for spreadsheet cells."""

from __future__ import annotations

import re
import warnings
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

import pandas as pd

MULTI_VALUE_FIELDS = frozenset({"target_region", "target_customer"})
SOLUTION_FIELDS = frozenset({"target_solution", "solution_type"})
BOOLEAN_FIELDS = frozenset({"dual_sim", "in_inventory"})

TRUTHY_VALUES = frozenset({"y", "yes", "si", "s", "true", "1"})

# Keys are lowercase; lookups are exact after trimming.
TYPO_CORRECTIONS: Dict[str, str] = {
    "bhamas": "Bahamas",
    "bhahamas": "Bahamas",
    "peru": "Peru",
    "mxico": "Mexico",
    "mexico": "Mexico",
    "panam": "Panama",
    "panama": "Panama",
    "colomiba": "Colombia",
    "dominicana": "República Dominicana",
    "om": "Latam Om",
    "latam": "Latam Om",
    "latam om": "Latam Om",
}

_MULTI_VALUE_SPLIT_RE = re.compile(r",|\s+and\s+|&|/|\n", re.IGNORECASE)
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DMY_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_YEAR_TOKEN_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")


def _title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


def normalize_region_customer(value: str) -> str:
    """Split a multi-value region/customer cell, fix known typos and sort.

    The output is sorted, so the author's ordering never changes a fingerprint.
    """

    if not value:
        return value
    cleaned: List[str] = []
    for segment in _MULTI_VALUE_SPLIT_RE.split(value):
        part = segment.strip()
        if len(part) < 2:
            continue
        corrected = TYPO_CORRECTIONS.get(part.lower())
        cleaned.append(corrected if corrected is not None else _title_case(part))
    return ", ".join(sorted(item for item in cleaned if item))


def normalize_solution(value: str) -> str:
    """Fix the ``1.o`` version typo in each comma-separated solution, keeping order."""

    parts = (
        segment.replace("1.o", "1.0").replace("1.O", "1.0").strip()
        for segment in value.split(",")
    )
    return ", ".join(part for part in parts if part)


def is_date_field(field_name: str) -> bool:
    return "date" in field_name or "schedule" in field_name


def is_explicit_date(text: str) -> bool:
    """True when *text* matches one of the two unambiguous layouts."""

    text = text.strip()
    return bool(_ISO_DATE_RE.match(text) or _DMY_DATE_RE.match(text))


def _calendar_iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _fallback_parse(text: str) -> Optional[str]:
    # Only values carrying a four digit year reach the generic parser.
    if not _YEAR_TOKEN_RE.search(text):
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC")
    return f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"


def parse_date_detailed(value: object) -> Tuple[Optional[str], bool]:
    """Parse a date cell into ``YYYY-MM-DD``.

    Returns ``(iso_date, used_fallback)``. ``used_fallback`` is True when only
    the generic parser understood the value, which callers surface for manual
    review.
    """

    if value is None:
        return None, False
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return _calendar_iso(value.year, value.month, value.day), False
    if isinstance(value, date):
        return value.isoformat(), False

    text = str(value).strip()
    if not text:
        return None, False
    if _ISO_DATE_RE.match(text):
        return text, False
    match = _DMY_DATE_RE.match(text)
    if match:
        day, month, year = (int(group) for group in match.groups())
        return _calendar_iso(year, month, day), False

    parsed = _fallback_parse(text)
    return parsed, parsed is not None


def parse_date(value: object) -> Optional[str]:
    return parse_date_detailed(value)[0]


def parse_bool(value: object) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


def convert_value(field_name: str, value: object) -> object:
    """Convert a raw cell value according to its canonical field."""

    trimmed = str(value).strip()
    if field_name in MULTI_VALUE_FIELDS:
        return normalize_region_customer(trimmed)
    if field_name in SOLUTION_FIELDS:
        return normalize_solution(trimmed)
    if is_date_field(field_name):
        return parse_date(trimmed)
    if field_name in BOOLEAN_FIELDS:
        return parse_bool(trimmed)
    return trimmed


def convert_inventory_value(field_name: str, value: object) -> object:
    """Inventory cells stay as written apart from the customer list and the in-inventory flag."""

    trimmed = str(value).strip()
    if field_name == "target_customer":
        return normalize_region_customer(trimmed)
    if field_name == "in_inventory":
        return parse_bool(trimmed)
    return trimmed


__all__ = [
    "BOOLEAN_FIELDS",
    "MULTI_VALUE_FIELDS",
    "SOLUTION_FIELDS",
    "TRUTHY_VALUES",
    "TYPO_CORRECTIONS",
    "convert_inventory_value",
    "convert_value",
    "is_date_field",
    "is_explicit_date",
    "normalize_region_customer",
    "normalize_solution",
    "parse_bool",
    "parse_date",
    "parse_date_detailed",
]
