"""Injectable time source for breaker deadlines."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


def utc_now() -> datetime:
    return datetime.now(UTC)


class Clock(Protocol):
    """Anything able to report the current timezone-aware UTC time."""

    def now(self) -> datetime:
        """Return the current time."""


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return utc_now()
