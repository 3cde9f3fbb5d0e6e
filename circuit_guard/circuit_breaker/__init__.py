"""
Circuit Guard - Circuit Breaker
===============================
Async circuit breaker for calls to unreliable dependencies.

Circuit breaker pattern prevents cascade failures when downstream services
are unavailable. States:

1. CLOSED: Normal operation, requests flow through
2. OPEN: Service is failing, requests are immediately rejected
3. HALF-OPEN: Testing if service has recovered

Usage:
    from circuit_guard.circuit_breaker import (
        CircuitBreakerRegistry,
        CircuitBreakerError,
        circuit_breaker,
    )

    breakers = CircuitBreakerRegistry()

    @circuit_breaker(breakers, "identity-service")
    async def call_identity_service():
        return await client.get("/v1/validate")

    # Or directly through the registry
    response = await breakers.execute("identity-service", client.get, "/v1/validate")
"""

from .models import (
    CircuitState,
    CircuitBreakerConfig,
    CircuitBreakerStats,
)

from .exceptions import (
    CircuitGuardError,
    CircuitBreakerError,
    CircuitTimeoutError,
)

from .breaker import CircuitBreaker

from .registry import CircuitBreakerRegistry

from .decorators import circuit_breaker

__all__ = [
    # Models
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitBreakerStats",
    # Exceptions
    "CircuitGuardError",
    "CircuitBreakerError",
    "CircuitTimeoutError",
    # Breaker
    "CircuitBreaker",
    # Registry
    "CircuitBreakerRegistry",
    # Decorator
    "circuit_breaker",
]
