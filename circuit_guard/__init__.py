"""
Circuit Guard
=============
Per-process circuit breakers for calls to unreliable dependencies.
"""

__version__ = "0.1.0"

# Circuit Breaker
from circuit_guard.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    CircuitGuardError,
    CircuitState,
    CircuitTimeoutError,
    circuit_breaker,
)

# Configuration
from circuit_guard.config import (
    BreakerPluginConfig,
    resolve_config,
)

# Plugin
from circuit_guard.plugin import (
    BreakerPlugin,
    create_breaker_plugin,
)

# Metrics
from circuit_guard.metrics import get_metrics_text

__all__ = [
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerRegistry",
    "CircuitBreakerStats",
    "CircuitGuardError",
    "CircuitState",
    "CircuitTimeoutError",
    "circuit_breaker",
    # Configuration
    "BreakerPluginConfig",
    "resolve_config",
    # Plugin
    "BreakerPlugin",
    "create_breaker_plugin",
    # Metrics
    "get_metrics_text",
]
