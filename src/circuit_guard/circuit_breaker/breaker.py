"""Core circuit implementation."""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Awaitable, Callable, Hashable, Iterable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, ParamSpec, TypeVar, cast

import structlog

from circuit_guard.circuit_breaker.classifier import (
    FailureClassifier,
    FailureFilter,
    FailureKind,
    flatten_failures,
)
from circuit_guard.circuit_breaker.exceptions import CircuitOpenError
from circuit_guard.circuit_breaker.state import CircuitPosition, CircuitState
from circuit_guard.clock import Clock
from circuit_guard.logging import log_exception, log_info, log_warning
from circuit_guard.settings import CircuitSettings

T = TypeVar("T")
P = ParamSpec("P")

DEFAULT_TIMEOUT = timedelta(seconds=10)

_logger = structlog.stdlib.get_logger(__name__)


def _as_timedelta(value: timedelta | float) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


@dataclass(slots=True, frozen=True)
class CircuitConfig:
    """Circuit configuration values.

    Attributes:
        threshold: Counted failures required while ``CLOSED`` before opening.
        timeout: Time to stay ``OPEN`` before a trial call is admitted.
    """

    threshold: int
    timeout: timedelta = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError("threshold must be >= 1")
        if self.timeout < timedelta(0):
            raise ValueError("timeout must be >= 0")


class Circuit:
    """Fail-fast proxy around an unreliable operation.

    Every call first reads ``state.position``. An ``OPEN`` circuit rejects the
    call with ``CircuitOpenError`` and never invokes the operation. Otherwise
    the operation runs: a success resets the state, a counted failure pushes
    the reset deadline forward, increments the failure count and opens the
    circuit once the threshold is reached (or immediately on a half-open
    trial). The operation's own exception is always re-raised as-is.
    """

    def __init__(
        self,
        threshold: int,
        timeout: timedelta | float = DEFAULT_TIMEOUT,
        *,
        state: CircuitState | None = None,
        excluded_types: Iterable[Hashable] = (),
        failure_kind: FailureKind = type,
        clock: Clock | None = None,
        name: str = "circuit",
    ) -> None:
        """Build a circuit with optional shared state.

        Args:
            threshold: Counted failures that open a closed circuit.
            timeout: Cool-down before an open circuit admits a trial call,
                as a ``timedelta`` or in seconds.
            state: Existing state to share with other circuits guarding the
                same resource. A fresh closed state is created when omitted.
            excluded_types: Failure kinds that never count.
            failure_kind: Maps a failure to the kind looked up in
                ``excluded_types``. Defaults to the exact exception type.
            clock: Time source for a newly created state. A shared state
                brings its own clock.
            name: Label used in log events and ``CircuitOpenError``.
        """
        if state is not None and clock is not None:
            raise ValueError("clock must be set on the shared CircuitState")
        self.name = name
        self.config = CircuitConfig(threshold=threshold, timeout=_as_timedelta(timeout))
        self.state = CircuitState(clock=clock) if state is None else state
        self.classifier = FailureClassifier(
            excluded_kinds=excluded_types,
            failure_kind=failure_kind,
        )
        self.logger: Callable[[str], None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: CircuitSettings,
        *,
        configure_logging: bool = False,
        **kwargs: Any,
    ) -> Circuit:
        """Build a circuit from environment-backed settings.

        With ``configure_logging`` the process-wide structlog setup is also
        applied at ``settings.log_level``.
        """
        if configure_logging:
            settings.configure_logging()
        return cls(settings.threshold, settings.timeout, **kwargs)

    @property
    def threshold(self) -> int:
        return self.config.threshold

    @property
    def timeout(self) -> timedelta:
        return self.config.timeout

    @property
    def filters(self) -> list[FailureFilter]:
        """Ordered predicates; append to ignore matching failures."""
        return self.classifier.filters

    @property
    def excluded_types(self) -> frozenset[Hashable]:
        return self.classifier.excluded_kinds

    @excluded_types.setter
    def excluded_types(self, value: Iterable[Hashable]) -> None:
        self.classifier.excluded_kinds = frozenset(value)

    def execute(self, func: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs) -> T:
        """Invoke a blocking callable under circuit protection.

        Raises:
            CircuitOpenError: When the circuit is open and the call is rejected.
            Exception: The original exception raised by ``func``.
            TypeError: When ``func`` returns an awaitable; such callables
                belong in ``execute_async``. The state is left untouched.
        """
        admitted = self._admit()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            self._record_failure(exc, admitted)
            raise
        else:
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(
                    f"{func!r} returned an awaitable; use execute_async instead"
                )
            self._record_success()
            return result

    async def execute_async(
        self,
        func: Callable[P, Awaitable[T]],
        /,
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Await an async callable under circuit protection.

        The admission check happens before ``func`` is called, so a rejected
        call never creates the coroutine.

        Raises:
            CircuitOpenError: When the circuit is open and the call is rejected.
            Exception: The original exception raised by ``func``.
        """
        admitted = self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            self._record_failure(exc, admitted)
            raise
        else:
            self._record_success()
            return result

    async def execute_in_thread(
        self,
        func: Callable[P, T],
        /,
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Run a blocking callable in a worker thread under circuit protection."""
        call = functools.partial(func, *args, **kwargs)
        return await self.execute_async(asyncio.to_thread, call)

    def protect(self, func: Callable[P, T]) -> Callable[P, T]:
        """Decorate ``func`` so each invocation goes through this circuit.

        Coroutine functions, and instances whose ``__call__`` is a coroutine
        function, are routed through ``execute_async``; anything else through
        ``execute``.
        """
        if inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
            getattr(type(func), "__call__", None)
        ):
            async_func = cast(Callable[P, Awaitable[Any]], func)

            @functools.wraps(func)
            async def _async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                return await self.execute_async(async_func, *args, **kwargs)

            return cast(Callable[P, T], _async_wrapper)

        @functools.wraps(func)
        def _wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return self.execute(func, *args, **kwargs)

        return _wrapper

    def _retry_after(self) -> float:
        reset_time = self.state.reset_time
        if reset_time is None:
            return 0.0
        remaining = (reset_time - self.state.clock.now()).total_seconds()
        return max(remaining, 0.0)

    def _admit(self) -> CircuitPosition:
        position = self.state.position
        if position == CircuitPosition.OPEN:
            retry_after = self._retry_after()
            log_info(_logger, "circuit.rejected", circuit=self.name, retry_after=retry_after)
            raise CircuitOpenError(self.name, retry_after=retry_after)
        return position

    def _record_success(self) -> None:
        if self.state.stored_position != CircuitPosition.CLOSED:
            log_info(_logger, "circuit.closed", circuit=self.name)
        self.state.reset()

    def counts_failure(self, failure: BaseException) -> bool:
        """Return whether ``failure`` would change this circuit's state.

        Mirrors the failure path: only ``Exception`` instances are
        considered, and an exception group counts when any leaf counts.
        """
        if not isinstance(failure, Exception):
            return False
        return any(self._counts(leaf) for leaf in flatten_failures(failure))

    def _counts(self, failure: BaseException) -> bool:
        # A broken filter or kind function must not replace the operation's
        # failure; the failure is counted instead.
        try:
            return self.classifier.counts(failure)
        except Exception:
            log_exception(
                _logger,
                "circuit.classification_failed",
                circuit=self.name,
                failure_type=type(failure).__name__,
            )
            return True

    def _record_failure(self, failure: Exception, admitted: CircuitPosition) -> None:
        for leaf in flatten_failures(failure):
            if self._counts(leaf):
                self._count_failure(leaf, admitted)

    def _count_failure(self, failure: BaseException, admitted: CircuitPosition) -> None:
        state = self.state
        reset_time = state.clock.now() + self.config.timeout
        state.reset_time = reset_time
        failures = state.increment()

        if admitted == CircuitPosition.HALF_OPEN or failures >= self.config.threshold:
            previous = state.stored_position
            state.position = CircuitPosition.OPEN
            if previous == CircuitPosition.CLOSED or admitted == CircuitPosition.HALF_OPEN:
                log_warning(
                    _logger,
                    "circuit.opened",
                    circuit=self.name,
                    failures=failures,
                    trial=admitted == CircuitPosition.HALF_OPEN,
                    reset_time=reset_time.isoformat(),
                )

        sink = self.logger
        if sink is None:
            return
        try:
            sink(str(failure))
        except Exception:
            log_exception(_logger, "circuit.logger_failed", circuit=self.name)

    def __repr__(self) -> str:
        return (
            f"Circuit(name={self.name!r}, threshold={self.config.threshold}, "
            f"timeout={self.config.timeout!r}, state={self.state!r})"
        )
