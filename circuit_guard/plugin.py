"""
Circuit Guard - Plugin
======================
Factory for the breaker object handed to a request-handling layer.

One plugin owns one registry. Every request of the service should be given
the same plugin instance, never a fresh one per request.

Usage:
    breakers = create_breaker_plugin({
        "defaultConfig": {"timeout": 5000},
        "breakers": {"payments": {"failureThreshold": 2}},
    })

    result = await breakers.execute("payments", charge_card, order_id)
    breakers.get_stats("payments").to_dict()
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar, Union

import structlog

from .circuit_breaker.breaker import CircuitBreaker
from .circuit_breaker.models import CircuitBreakerStats
from .circuit_breaker.registry import CircuitBreakerRegistry
from .config import BreakerPluginConfig, ConfigLike, resolve_config

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PluginConfigLike = Union[BreakerPluginConfig, Mapping[str, Any]]


class BreakerPlugin:
    """Registry facade that applies the plugin's default config."""

    def __init__(
        self,
        config: Optional[PluginConfigLike] = None,
        registry: Optional[CircuitBreakerRegistry] = None,
    ):
        if config is None:
            config = BreakerPluginConfig()
        elif not isinstance(config, BreakerPluginConfig):
            config = BreakerPluginConfig.model_validate(config)
        self.config = config
        if registry is None:
            registry = CircuitBreakerRegistry(namespace=config.namespace)
        self.registry = registry

        for name, preset in config.breakers.items():
            self.registry.get(name, resolve_config(config.default_config, preset))

        logger.info("breaker_plugin_ready", presets=sorted(config.breakers))

    async def execute(
        self,
        name: str,
        operation: Callable[..., Awaitable[T]],
        *args,
        config: Optional[ConfigLike] = None,
        **kwargs,
    ) -> T:
        breaker = self.get(name, config)
        return await breaker.execute(operation, *args, **kwargs)

    def get(self, name: str, config: Optional[ConfigLike] = None) -> CircuitBreaker:
        # Defaults are merged in only when the breaker is about to be created.
        if self.registry.has(name):
            return self.registry.get(name, config)
        return self.registry.get(name, self._with_defaults(config))

    def get_stats(self, name: str) -> Optional[CircuitBreakerStats]:
        return self.registry.get_stats(name)

    def get_all_stats(self) -> Dict[str, CircuitBreakerStats]:
        return self.registry.get_all_stats()

    def reset(self, name: str) -> None:
        self.registry.reset(name)

    def reset_all(self) -> None:
        self.registry.reset_all()

    def has(self, name: str) -> bool:
        return self.registry.has(name)

    def remove(self, name: str) -> bool:
        return self.registry.remove(name)

    def _with_defaults(self, config: Optional[ConfigLike]):
        return resolve_config(self.config.default_config, config)


def create_breaker_plugin(
    config: Optional[PluginConfigLike] = None,
    registry: Optional[CircuitBreakerRegistry] = None,
) -> BreakerPlugin:
    """
    Create the shared breaker object for a service.

    Args:
        config: Plugin config with ``default_config`` and named ``breakers``
            presets. Presets are merged over the default and created eagerly.
        registry: Existing registry to use instead of a new one

    Returns:
        BreakerPlugin backed by a single registry
    """
    return BreakerPlugin(config=config, registry=registry)
