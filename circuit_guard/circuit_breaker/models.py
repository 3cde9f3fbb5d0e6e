"""
Circuit Breaker Models
======================
Data models and enums for the circuit breaker pattern.

Configs accept snake_case field names or their camelCase aliases, so both
``{"failure_threshold": 3}`` and ``{"failureThreshold": 3}`` validate.
Durations are in milliseconds.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, reject requests
    HALF_OPEN = "half-open"  # Testing recovery


StateCallback = Callable[[str], Any]


class CircuitBreakerConfig(BaseModel):
    """
    Configuration for a circuit breaker.

    Only the fields passed explicitly are recorded in ``model_fields_set``;
    layered merging relies on that to tell an override from a default.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    failure_threshold: int = Field(default=5, gt=0)   # Failures before opening
    reset_timeout: int = Field(default=60_000, gt=0)  # Cooldown before half-open
    timeout: int = Field(default=30_000, gt=0)        # Deadline for one call
    on_open: Optional[StateCallback] = None
    on_close: Optional[StateCallback] = None
    on_half_open: Optional[StateCallback] = None


class CircuitBreakerStats(BaseModel):
    """Point-in-time snapshot of a breaker's counters."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    state: CircuitState
    failures: int = 0
    successes: int = 0
    total_calls: int = 0
    last_failure_time: Optional[int] = None  # epoch milliseconds
    last_success_time: Optional[int] = None  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        """Render the external camelCase shape, omitting absent timestamps."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
