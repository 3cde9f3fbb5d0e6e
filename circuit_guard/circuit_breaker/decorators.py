"""
Circuit Breaker Decorator
=========================
Decorator for wrapping async functions with circuit breaker protection.
"""

from functools import wraps
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import ConfigLike
from .exceptions import CircuitBreakerError
from .registry import CircuitBreakerRegistry

T = TypeVar("T")


def circuit_breaker(
    registry: CircuitBreakerRegistry,
    name: str,
    config: Optional[ConfigLike] = None,
    fallback: Optional[Callable[[], Awaitable[T]]] = None,
):
    """
    Decorator to wrap async functions with a registry-managed breaker.

    The breaker is looked up on every call, so removing it from the
    registry gives the function a fresh one on its next invocation.
    ``fallback`` only runs when the call is rejected by an open circuit;
    failures of the function itself always propagate.

    Example:
        breakers = CircuitBreakerRegistry()

        @circuit_breaker(breakers, "identity-service")
        async def validate_token(token: str):
            return await identity_client.validate(token)

        @circuit_breaker(breakers, "sms-service", fallback=queue_for_later)
        async def send_sms(to: str, body: str):
            return await sms_client.send(to=to, body=body)
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await registry.execute(name, func, *args, config=config, **kwargs)
            except CircuitBreakerError:
                if fallback is None:
                    raise
                return await fallback()

        return wrapper

    return decorator
