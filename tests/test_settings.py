from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import pytest

from devicetrack.config import DEFAULT_SETTINGS_PATH, SettingsValidationError, load_settings_file
from devicetrack.core.errors import ConfigError
from devicetrack.core.logger import get_logger
from devicetrack.core.settings import load_settings


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_packaged_settings_file_is_valid() -> None:
    values = load_settings_file(DEFAULT_SETTINGS_PATH)
    assert values["log_level"] == "INFO"
    assert values["workbook_extensions"] == (".xlsx", ".xlsm")


def test_settings_file_normalizes_values(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "settings:\n"
        "  root: ~/tracker\n"
        "  log_level: debug\n"
        "  workbook_extensions: [XLSX, .xlsm]\n",
    )
    values = load_settings_file(path)
    assert values == {"root": "~/tracker", "log_level": "DEBUG", "workbook_extensions": (".xlsx", ".xlsm")}


@pytest.mark.parametrize(
    "body",
    [
        "settings:\n  colour: blue\n",
        "settings:\n  log_level: LOUD\n",
        "settings:\n  root: 42\n",
        "settings:\n  workbook_extensions: []\n",
        "settings: [1, 2]\n",
    ],
)
def test_invalid_settings_raise(tmp_path: Path, body: str) -> None:
    with pytest.raises(SettingsValidationError):
        load_settings_file(_write(tmp_path, body))


def test_missing_settings_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings_file(tmp_path / "absent.yaml")


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVICETRACK_ROOT", str(tmp_path / "root"))
    monkeypatch.setenv("DEVICETRACK_WATCH_DIR", str(tmp_path / "inbox"))
    monkeypatch.setenv("DEVICETRACK_LOG_LEVEL", "warning")

    settings = load_settings()

    assert settings.root == (tmp_path / "root").resolve()
    assert settings.store_dir == settings.root / "store"
    assert settings.log_dir == settings.root / "logs"
    assert settings.watch_dir == (tmp_path / "inbox").resolve()
    assert settings.log_level == "WARNING"


def test_logger_writes_rotating_file(tmp_path: Path) -> None:
    logger = get_logger(tmp_path / "logs")
    logger.info("hello from tests")
    for handler in logger.handlers:
        handler.flush()

    assert logger is get_logger()
    assert logger.name == "devicetrack"
    assert any(isinstance(handler, logging.handlers.RotatingFileHandler) for handler in logger.handlers)
    assert "hello from tests" in (tmp_path / "logs" / "devicetrack.log").read_text(encoding="utf-8")
