"""
Circuit Breaker Registry
========================
Name-keyed registry for managing circuit breaker instances.

A breaker is created on the first reference to its name and the config given
then is the one it keeps. Configs supplied later for the same name are
ignored; they are not merged into the existing breaker.
"""

import threading
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

import structlog

from .. import metrics
from ..config import ConfigLike
from .breaker import CircuitBreaker
from .models import CircuitBreakerStats

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitBreakerRegistry:
    """
    Registry of named circuit breakers.

    Example:
        registry = CircuitBreakerRegistry()

        user = await registry.execute(
            "identity-service",
            client.get_user,
            user_id,
            config={"failure_threshold": 3},
        )
    """

    def __init__(self, namespace: str = metrics.DEFAULT_NAMESPACE):
        self.namespace = namespace
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def __len__(self) -> int:
        return len(self._breakers)

    def get(
        self,
        name: str,
        config: Optional[ConfigLike] = None,
    ) -> CircuitBreaker:
        """
        Get or create a circuit breaker.

        Args:
            name: Name of the protected dependency
            config: Optional configuration (only used if creating new breaker)

        Returns:
            CircuitBreaker instance
        """
        breaker = self._breakers.get(name)
        if breaker is None:
            with self._lock:
                breaker = self._breakers.get(name)
                if breaker is None:
                    breaker = CircuitBreaker(
                        name=name, config=config, namespace=self.namespace
                    )
                    self._breakers[name] = breaker
                    logger.debug("circuit_registered", breaker=name)
                    return breaker

        # Not validated: a config for an existing name is dropped unread.
        if config is not None:
            logger.debug("circuit_config_ignored", breaker=name)
        return breaker

    async def execute(
        self,
        name: str,
        operation: Callable[..., Awaitable[T]],
        *args,
        config: Optional[ConfigLike] = None,
        **kwargs,
    ) -> T:
        """Execute an async callable through the breaker registered as ``name``."""
        breaker = self.get(name, config)
        return await breaker.execute(operation, *args, **kwargs)

    def get_stats(self, name: str) -> Optional[CircuitBreakerStats]:
        breaker = self._breakers.get(name)
        if breaker is None:
            return None
        return breaker.get_stats()

    def get_all_stats(self) -> Dict[str, CircuitBreakerStats]:
        """Get stats for all registered circuit breakers."""
        return {
            name: breaker.get_stats()
            for name, breaker in self._snapshot().items()
        }

    def reset(self, name: str) -> None:
        """Reset a circuit breaker to closed state (for testing/admin)."""
        breaker = self._breakers.get(name)
        if breaker is not None:
            breaker.reset()

    def reset_all(self) -> None:
        """Reset all circuit breakers to closed state."""
        for breaker in self._snapshot().values():
            breaker.reset()

    def remove(self, name: str) -> bool:
        """Remove a breaker and cancel its pending reset timer."""
        with self._lock:
            breaker = self._breakers.pop(name, None)
        if breaker is None:
            return False
        breaker.dispose()
        logger.debug("circuit_removed", breaker=name)
        return True

    def clear(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
            self._breakers.clear()
        for breaker in breakers:
            breaker.dispose()

    def has(self, name: str) -> bool:
        return name in self._breakers

    def names(self) -> List[str]:
        return list(self._snapshot())

    def _snapshot(self) -> Dict[str, CircuitBreaker]:
        with self._lock:
            return dict(self._breakers)


__all__ = ["CircuitBreakerRegistry"]
