"""
Circuit Breaker Exceptions
==========================
Exception classes raised by circuit breakers.
"""

from .models import CircuitState


class CircuitGuardError(Exception):
    """Base class for all circuit_guard errors."""
    pass


class CircuitBreakerError(CircuitGuardError):
    """Raised when circuit is open and request is rejected."""

    def __init__(self, name: str, state: CircuitState, retry_after: float = 0.0):
        self.name = name
        self.state = state
        self.retry_after = retry_after
        super().__init__(f'Circuit breaker "{name}" is {state.value}')


class CircuitTimeoutError(CircuitGuardError, TimeoutError):
    """Raised when a protected call does not finish within its timeout."""

    def __init__(self, name: str, timeout: int):
        self.name = name
        self.timeout = timeout
        super().__init__(f"Request timeout after {timeout}ms")
