"""Circuit breaker exceptions.

Only the admission check raises these. Failures raised by a protected
operation are never wrapped: callers observe either the original exception
or ``CircuitOpenError``.
"""


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected because the circuit is open.

    Attributes:
        breaker_name: Name of the circuit rejecting the call.
        retry_after: Seconds until a half-open trial call may be attempted.
    """

    def __init__(self, breaker_name: str, retry_after: float) -> None:
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(f"circuit_open: {breaker_name} retry_after={retry_after:g}s")
