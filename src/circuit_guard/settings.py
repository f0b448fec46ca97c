from __future__ import annotations

from datetime import timedelta

import structlog
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from circuit_guard.logging import configure_structlog, get_log_level_value


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class CircuitSettings(BaseSettings):
    """Circuit configuration read from ``CIRCUIT_*`` environment variables."""

    model_config = prefixed_settings_config("CIRCUIT_")

    threshold: int
    timeout_seconds: float = 10.0
    log_level: str = "INFO"

    @field_validator("threshold")
    @classmethod
    def _validate_threshold(cls, value: int) -> int:
        if value < 1:
            raise ValueError("threshold must be >= 1")
        return value

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout_seconds(cls, value: float) -> float:
        if value < 0:
            raise ValueError("timeout_seconds must be >= 0")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        get_log_level_value(value)
        return value.strip().upper()

    @property
    def timeout(self) -> timedelta:
        return timedelta(seconds=self.timeout_seconds)

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Configure structlog + stdlib logging at ``log_level``."""
        return configure_structlog(log_level=self.log_level)
