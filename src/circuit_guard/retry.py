"""Retry policies layered outside a circuit.

The circuit never retries on its own. These helpers build tenacity retry
controllers that only retry failures the circuit would count, so rejected
calls and ignored failures surface immediately.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
    wait_exponential_jitter,
)
from tenacity.retry import retry_base

from circuit_guard.circuit_breaker import Circuit, CircuitOpenError


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for retry attempt count and backoff boundaries."""

    attempts: int | None
    min_seconds: float
    max_seconds: float

    def __post_init__(self) -> None:
        if self.attempts is not None and self.attempts < 1:
            raise ValueError("attempts must be >= 1 when provided")
        if self.min_seconds < 0:
            raise ValueError("min_seconds must be >= 0")
        if self.max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")
        if self.max_seconds < self.min_seconds:
            raise ValueError("max_seconds must be >= min_seconds")


def retry_if_counted_failure(circuit: Circuit) -> retry_base:
    """Retry when the attempt failed in a way ``circuit`` would count."""

    def _counts(exc: BaseException) -> bool:
        if isinstance(exc, CircuitOpenError):
            return False
        return circuit.counts_failure(exc)

    return retry_if_exception(_counts)


def _retrying_kwargs(
    circuit: Circuit,
    policy: RetryBackoffPolicy,
    before_sleep: Callable[[RetryCallState], None] | None,
    reraise: bool,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "retry": retry_if_counted_failure(circuit),
        "wait": wait_exponential_jitter(
            initial=policy.min_seconds,
            max=policy.max_seconds,
        ),
        "stop": (
            stop_never
            if policy.attempts is None
            else stop_after_attempt(policy.attempts)
        ),
        "reraise": reraise,
    }
    if before_sleep is not None:
        kwargs["before_sleep"] = before_sleep
    return kwargs


def build_retrying(
    circuit: Circuit,
    *,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], None] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> Retrying:
    """Build a blocking ``Retrying`` for calls made through ``circuit``."""
    kwargs = _retrying_kwargs(circuit, policy, before_sleep, reraise)
    if sleep is not None:
        kwargs["sleep"] = sleep
    return Retrying(**kwargs)


def build_async_retrying(
    circuit: Circuit,
    *,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` for awaited calls made through ``circuit``."""
    kwargs = _retrying_kwargs(circuit, policy, before_sleep, reraise)
    if sleep is not None:
        kwargs["sleep"] = sleep
    return AsyncRetrying(**kwargs)
