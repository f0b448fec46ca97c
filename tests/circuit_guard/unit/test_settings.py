from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from datetime import timedelta

import pytest
import structlog
from pydantic import ValidationError

from circuit_guard.circuit_breaker import Circuit
from circuit_guard.settings import CircuitSettings, prefixed_settings_config


@pytest.fixture(autouse=True)
def _clear_circuit_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CIRCUIT_THRESHOLD", "CIRCUIT_TIMEOUT_SECONDS", "CIRCUIT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_circuit_settings_reads_prefixed_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("CIRCUIT_THRESHOLD", "3")
    monkeypatch.setenv("circuit_timeout_seconds", "2.5")
    monkeypatch.setenv("CIRCUIT_LOG_LEVEL", " debug ")

    settings = CircuitSettings()

    assert settings.threshold == 3
    assert settings.timeout_seconds == 2.5
    assert settings.timeout == timedelta(seconds=2.5)
    assert settings.log_level == "DEBUG"


def test_circuit_settings_defaults() -> None:
    settings = CircuitSettings(threshold=1)

    assert settings.timeout == timedelta(seconds=10)
    assert settings.log_level == "INFO"


def test_circuit_settings_requires_threshold() -> None:
    with pytest.raises(ValidationError):
        CircuitSettings()


@pytest.mark.parametrize(
    "overrides",
    [
        {"threshold": 0},
        {"threshold": 1, "timeout_seconds": -0.1},
        {"threshold": 1, "log_level": "TRACE"},
    ],
)
def test_circuit_settings_rejects_invalid_values(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        CircuitSettings(**overrides)  # type: ignore[arg-type]


def test_prefixed_settings_config_is_case_insensitive() -> None:
    config = prefixed_settings_config("PAYMENTS_CIRCUIT_")

    assert config["env_prefix"] == "PAYMENTS_CIRCUIT_"
    assert config["case_sensitive"] is False


@pytest.fixture
def _restore_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)
    root_level = logging.getLogger().level
    yield
    structlog.reset_defaults()
    logging.getLogger().setLevel(root_level)


@pytest.mark.usefixtures("_restore_logging")
def test_configure_logging_applies_log_level() -> None:
    settings = CircuitSettings(threshold=1, log_level="debug")

    logger = settings.configure_logging()

    assert logger is not None
    assert logging.getLogger().level == logging.DEBUG
    assert structlog.is_configured()


@pytest.mark.usefixtures("_restore_logging")
def test_from_settings_can_configure_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CIRCUIT_THRESHOLD", "2")
    monkeypatch.setenv("CIRCUIT_LOG_LEVEL", "warning")

    circuit = Circuit.from_settings(CircuitSettings(), configure_logging=True)

    assert circuit.threshold == 2
    assert logging.getLogger().level == logging.WARNING
    assert structlog.is_configured()


def test_from_settings_leaves_logging_alone_by_default() -> None:
    structlog.reset_defaults()

    Circuit.from_settings(CircuitSettings(threshold=1, log_level="DEBUG"))

    assert not structlog.is_configured()
