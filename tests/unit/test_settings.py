from __future__ import annotations

import logging

import pytest

from toolbridge.api.deps import build_mcp_service
from toolbridge.logging_config import setup_logging
from toolbridge.settings import Settings


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOOLBRIDGE_CONNECT_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("TOOLBRIDGE_PROBE_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("TOOLBRIDGE_LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.connect_timeout_seconds == 2.5
    assert settings.probe_interval_seconds == 30.0
    assert settings.execute_timeout_seconds == 60.0
    assert settings.log_level == "debug"


def test_settings_reject_non_positive_timeouts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOOLBRIDGE_EXECUTE_TIMEOUT_SECONDS", "0")
    with pytest.raises(ValueError):
        Settings()


def test_build_mcp_service_starts_empty() -> None:
    service = build_mcp_service(Settings(connect_timeout_seconds=1.0))
    assert service.list_servers() == []
    assert len(service.namespace) == 0


def test_setup_logging_attaches_one_handler() -> None:
    logger = logging.getLogger("toolbridge")
    before = len(logger.handlers)
    setup_logging("debug")
    setup_logging("warning")
    assert len(logger.handlers) <= before + 1
    assert logger.level == logging.WARNING
    logger.setLevel(logging.NOTSET)
