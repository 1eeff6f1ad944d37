"""Tests for logging setup (package logger level, dependency loggers, naming)."""

import logging

import pytest
from pydantic import ValidationError

from fieldservice.core.config import Settings, get_settings
from fieldservice.shared.telemetry.logging import ROOT_LOGGER, get_logger, setup_logging


@pytest.fixture
def settings_env(monkeypatch):
    """Apply env overrides to a fresh settings instance; restore levels afterwards."""
    names = (ROOT_LOGGER, "httpx", "httpcore", "google.auth")
    levels = {name: logging.getLogger(name).level for name in names}

    def _apply(**env: str) -> None:
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        get_settings.cache_clear()

    yield _apply
    monkeypatch.undo()
    get_settings.cache_clear()
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


def test_get_logger_nests_modules_under_package() -> None:
    assert get_logger("fieldservice.core.lifespan").name == "fieldservice.core.lifespan"
    assert get_logger(ROOT_LOGGER).name == ROOT_LOGGER
    assert get_logger("__main__").name == "fieldservice.__main__"
    assert get_logger("fieldservicex").name == "fieldservice.fieldservicex"


def test_setup_logging_applies_configured_levels(settings_env) -> None:
    settings_env(LOG_LEVEL="warning", DEPENDENCY_LOG_LEVEL="ERROR")
    setup_logging()

    assert logging.getLogger(ROOT_LOGGER).level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.ERROR
    assert get_logger("fieldservice.application").getEffectiveLevel() == logging.WARNING


def test_debug_flag_lowers_package_level_when_no_level_set(settings_env) -> None:
    settings_env(DEBUG="true")
    setup_logging()

    assert logging.getLogger(ROOT_LOGGER).level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_log_level_is_rejected(settings_env) -> None:
    settings_env(LOG_LEVEL="chatty")
    with pytest.raises(ValidationError, match="LOG_LEVEL"):
        Settings()
