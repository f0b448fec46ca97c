"""Circuit breaker state primitives.

Only ``CLOSED`` and ``OPEN`` are ever stored. ``HALF_OPEN`` is derived when
``position`` is read: an open circuit whose reset time has passed reports
``HALF_OPEN`` without any timer or mutation.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from circuit_guard.clock import Clock, SystemClock


class CircuitPosition(StrEnum):
    """Circuit breaker position values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of a circuit state useful for logging/assertions.

    Attributes:
        position: Position as it reads at snapshot time (may be ``HALF_OPEN``).
        current_iteration: Consecutive counted failures since the last reset.
        reset_time: When an open circuit becomes eligible for a trial call.
    """

    position: CircuitPosition
    current_iteration: int
    reset_time: datetime | None


class CircuitState:
    """Mutable breaker state, shareable between circuits guarding one resource."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self.clock: Clock = SystemClock() if clock is None else clock
        self._lock = threading.Lock()
        self._position = CircuitPosition.CLOSED
        self._current_iteration = 0
        self.reset_time: datetime | None = None

    @property
    def position(self) -> CircuitPosition:
        position = self._position
        reset_time = self.reset_time
        if (
            position == CircuitPosition.OPEN
            and reset_time is not None
            and self.clock.now() > reset_time
        ):
            return CircuitPosition.HALF_OPEN
        return position

    @position.setter
    def position(self, value: CircuitPosition) -> None:
        if value == CircuitPosition.HALF_OPEN:
            raise ValueError("half_open is derived and cannot be stored")
        self._position = value

    @property
    def stored_position(self) -> CircuitPosition:
        """Return the persisted position, ignoring the reset deadline."""
        return self._position

    @property
    def current_iteration(self) -> int:
        return self._current_iteration

    def increment(self) -> int:
        """Atomically count one more failure and return the new total."""
        with self._lock:
            self._current_iteration += 1
            return self._current_iteration

    def reset(self) -> None:
        """Close the circuit and forget counted failures."""
        with self._lock:
            self._current_iteration = 0
            self._position = CircuitPosition.CLOSED

    def snapshot(self) -> CircuitSnapshot:
        return CircuitSnapshot(
            position=self.position,
            current_iteration=self._current_iteration,
            reset_time=self.reset_time,
        )

    def __repr__(self) -> str:
        return (
            f"CircuitState(position={self.position.value!r}, "
            f"current_iteration={self._current_iteration})"
        )
