"""
Circuit Guard - Metrics
=======================
Prometheus metrics for circuit breaker state and call outcomes.

Tracks:
- Current state per breaker (gauge)
- Calls per breaker by outcome (counter)

Series are labelled by registry namespace and breaker name. The pair must be
unique within a process; two live breakers sharing both would overwrite each
other's gauge.

Usage:
    from circuit_guard.metrics import get_metrics_text, CONTENT_TYPE_LATEST

    body = get_metrics_text()
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from .circuit_breaker.models import CircuitState

# Separate from prometheus_client.REGISTRY
BREAKER_METRICS_REGISTRY = CollectorRegistry()

CIRCUIT_BREAKER_STATE = Gauge(
    name="circuit_breaker_state",
    documentation="Circuit breaker state (0=closed, 1=half-open, 2=open)",
    labelnames=["namespace", "breaker"],
    registry=BREAKER_METRICS_REGISTRY,
)

CIRCUIT_BREAKER_CALLS = Counter(
    name="circuit_breaker_calls_total",
    documentation="Calls made through a circuit breaker, by outcome",
    labelnames=["namespace", "breaker", "outcome"],
    registry=BREAKER_METRICS_REGISTRY,
)

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"
OUTCOME_TIMEOUT = "timeout"
OUTCOME_REJECTED = "rejected"

OUTCOMES = (OUTCOME_SUCCESS, OUTCOME_FAILURE, OUTCOME_TIMEOUT, OUTCOME_REJECTED)

DEFAULT_NAMESPACE = "default"

_STATE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


def record_circuit_state(namespace: str, breaker: str, state: CircuitState):
    """
    Record circuit breaker state change.

    Args:
        namespace: Namespace of the owning registry
        breaker: Breaker name
        state: New state
    """
    CIRCUIT_BREAKER_STATE.labels(namespace=namespace, breaker=breaker).set(
        _STATE_VALUES[state]
    )


def record_call(namespace: str, breaker: str, outcome: str):
    """Count one call through a breaker."""
    CIRCUIT_BREAKER_CALLS.labels(
        namespace=namespace, breaker=breaker, outcome=outcome
    ).inc()


def forget_breaker(namespace: str, breaker: str):
    """Drop every series of a disposed breaker."""
    try:
        CIRCUIT_BREAKER_STATE.remove(namespace, breaker)
    except KeyError:
        pass
    for outcome in OUTCOMES:
        try:
            CIRCUIT_BREAKER_CALLS.remove(namespace, breaker, outcome)
        except KeyError:
            pass


def get_metrics_text() -> bytes:
    """Render breaker metrics in the Prometheus exposition format."""
    return generate_latest(BREAKER_METRICS_REGISTRY)


__all__ = [
    "BREAKER_METRICS_REGISTRY",
    "CIRCUIT_BREAKER_STATE",
    "CIRCUIT_BREAKER_CALLS",
    "CONTENT_TYPE_LATEST",
    "OUTCOME_SUCCESS",
    "OUTCOME_FAILURE",
    "OUTCOME_TIMEOUT",
    "OUTCOME_REJECTED",
    "OUTCOMES",
    "DEFAULT_NAMESPACE",
    "record_circuit_state",
    "record_call",
    "forget_breaker",
    "get_metrics_text",
]
