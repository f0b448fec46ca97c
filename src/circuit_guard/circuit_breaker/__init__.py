"""Process-local circuit breaker for blocking and async callables.

This package implements the circuit breaker pattern from *Release It!*.

Key behavior notes:
  - State stores only ``CLOSED`` and ``OPEN``. ``HALF_OPEN`` is derived when the
    position is read after the reset deadline passes; there is no timer.
  - A half-open circuit admits calls until one of them records an outcome.
    Several concurrent trial calls may be admitted in that window.
  - Filtered or excluded failures leave the state untouched and propagate
    unchanged. Exception groups are classified leaf by leaf.
"""

from circuit_guard.circuit_breaker.breaker import (
    DEFAULT_TIMEOUT,
    Circuit,
    CircuitConfig,
)
from circuit_guard.circuit_breaker.classifier import (
    Classification,
    FailureClassifier,
    flatten_failures,
)
from circuit_guard.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
)
from circuit_guard.circuit_breaker.state import (
    CircuitPosition,
    CircuitSnapshot,
    CircuitState,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "Circuit",
    "CircuitBreakerError",
    "CircuitConfig",
    "CircuitOpenError",
    "CircuitPosition",
    "CircuitSnapshot",
    "CircuitState",
    "Classification",
    "FailureClassifier",
    "flatten_failures",
]
