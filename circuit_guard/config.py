"""
Circuit Guard - Configuration
=============================
Layered configuration for circuit breakers.

Precedence, outermost wins:
    per-call override > named preset > plugin default > built-in default

Only fields that were set explicitly on a layer take part in the merge.
The resolved config is used once, when a name's breaker is first created;
configs passed for an already registered name are ignored.
"""

import os
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .circuit_breaker.models import CircuitBreakerConfig

ConfigLike = Union[CircuitBreakerConfig, Mapping[str, Any]]

ENV_PREFIX = "CIRCUIT_BREAKER_"
_ENV_FIELDS = ("failure_threshold", "reset_timeout", "timeout")


def coerce_config(config: ConfigLike) -> CircuitBreakerConfig:
    """Validate a mapping into a config, passing config instances through."""
    if isinstance(config, CircuitBreakerConfig):
        return config
    return CircuitBreakerConfig.model_validate(config)


def resolve_config(*layers: Optional[ConfigLike]) -> CircuitBreakerConfig:
    """
    Merge config layers into one effective config.

    Args:
        *layers: Partial configs, innermost first. ``None`` layers are skipped.

    Returns:
        CircuitBreakerConfig with built-in defaults for fields no layer set
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        partial = coerce_config(layer)
        for field in partial.model_fields_set:
            merged[field] = getattr(partial, field)
    return CircuitBreakerConfig(**merged)


class BreakerPluginConfig(BaseModel):
    """Setup-time configuration for a breaker plugin."""
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    default_config: Optional[CircuitBreakerConfig] = None
    breakers: Dict[str, CircuitBreakerConfig] = Field(default_factory=dict)
    # Metrics label; must differ between plugins sharing breaker names.
    namespace: str = Field(default="default", min_length=1)

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "BreakerPluginConfig":
        """
        Build a plugin config whose defaults come from the environment.

        Reads ``<prefix>FAILURE_THRESHOLD``, ``<prefix>RESET_TIMEOUT`` and
        ``<prefix>TIMEOUT``, plus ``<prefix>NAMESPACE`` for the metrics
        namespace. Unset variables fall through to built-in defaults.
        """
        environ = os.environ if environ is None else environ
        defaults = {}
        for field in _ENV_FIELDS:
            value = environ.get(f"{prefix}{field.upper()}")
            if value:
                defaults[field] = value
        extra = {}
        namespace = environ.get(f"{prefix}NAMESPACE")
        if namespace:
            extra["namespace"] = namespace
        return cls(
            default_config=CircuitBreakerConfig(**defaults) if defaults else None,
            **extra,
        )
