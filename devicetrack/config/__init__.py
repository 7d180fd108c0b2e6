"""Configuration helpers for DeviceTrack runtime files.

Loads ``settings.yaml`` and validates its structure so that a malformed file
fails fast with a :class:`ConfigError` instead of surfacing later as an
obscure attribute error inside the pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from devicetrack.core.errors import ConfigError


CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

_KNOWN_KEYS = {"root", "watch_dir", "log_dir", "log_level", "workbook_extensions"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class SettingsValidationError(ConfigError):
    """Raised when settings.yaml fails validation."""


def load_settings_file(path: str | Path | None = None) -> Dict[str, Any]:
    """Load and validate the ``settings`` node of a settings YAML file."""

    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    raw = _load_yaml(settings_path)
    node = raw.get("settings", {})
    if node is None:
        return {}
    if not isinstance(node, Mapping):
        raise SettingsValidationError("settings node must be a mapping")
    return _validate(node)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"settings file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError("settings file must contain a mapping at the top level")
    return data


def _validate(node: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(node) - _KNOWN_KEYS)
    if unknown:
        raise SettingsValidationError(f"unknown settings keys: {', '.join(unknown)}")
    result: Dict[str, Any] = {}
    for key in ("root", "watch_dir", "log_dir"):
        value = node.get(key)
        if value in (None, ""):
            continue
        if not isinstance(value, str):
            raise SettingsValidationError(f"{key} must be a string path")
        result[key] = value
    level = node.get("log_level")
    if level is not None:
        if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
            raise SettingsValidationError(f"log_level must be one of {', '.join(sorted(_LOG_LEVELS))}")
        result["log_level"] = level.upper()
    extensions = node.get("workbook_extensions")
    if extensions is not None:
        if not isinstance(extensions, list) or not extensions:
            raise SettingsValidationError("workbook_extensions must be a non-empty list")
        normalized = []
        for idx, ext in enumerate(extensions):
            if not isinstance(ext, str) or not ext.strip():
                raise SettingsValidationError(f"workbook_extensions[{idx}] must be a non-empty string")
            ext = ext.strip().lower()
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        result["workbook_extensions"] = tuple(normalized)
    return result


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "SettingsValidationError",
    "load_settings_file",
]
