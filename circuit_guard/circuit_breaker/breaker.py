"""
Circuit Breaker Core
====================
The main CircuitBreaker class for async-compatible circuit breaker pattern.

State changes happen under a per-breaker ``threading.Lock`` that is never
held across an ``await``; state-change callbacks run after it is released.
"""

import asyncio
import threading
import time
import weakref
from functools import partial
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from .. import metrics
from ..config import ConfigLike, resolve_config
from .exceptions import CircuitBreakerError, CircuitTimeoutError
from .models import CircuitBreakerStats, CircuitState, StateCallback

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _reset_timer_fired(ref: "weakref.ref[CircuitBreaker]", generation: int) -> None:
    breaker = ref()
    if breaker is not None:
        breaker._on_reset_timer(generation)


def _discard_abandoned(name: str, task: "asyncio.Future[Any]") -> None:
    # Outcome of a call that already timed out; counters were settled then.
    if task.cancelled():
        return
    exc = task.exception()
    logger.debug(
        "abandoned_call_finished",
        breaker=name,
        error=repr(exc) if exc is not None else None,
    )


class CircuitBreaker:
    """
    Async-compatible circuit breaker.

    Example:
        breaker = CircuitBreaker("identity-service", {"failure_threshold": 3})

        try:
            result = await breaker.execute(client.get, "/v1/validate")
        except CircuitBreakerError:
            return fallback_value
    """

    def __init__(
        self,
        name: str,
        config: Optional[ConfigLike] = None,
        namespace: str = metrics.DEFAULT_NAMESPACE,
    ):
        self._name = name
        self._namespace = namespace
        self.config = resolve_config(config)
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._total_calls = 0
        self._last_failure_time: Optional[int] = None
        self._last_success_time: Optional[int] = None
        self._last_failure_at: Optional[float] = None  # monotonic, drives cooldown
        self._reset_timer: Optional[asyncio.TimerHandle] = None
        self._timer_loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_generation = 0
        self._lock = threading.Lock()
        metrics.record_circuit_state(namespace, name, self._state)

    def __repr__(self) -> str:
        return f"<CircuitBreaker name={self._name!r} state={self._state.value}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    def get_state(self) -> CircuitState:
        return self._state

    def get_stats(self) -> CircuitBreakerStats:
        """Get a snapshot of the breaker's counters."""
        with self._lock:
            return CircuitBreakerStats(
                state=self._state,
                failures=self._failures,
                successes=self._successes,
                total_calls=self._total_calls,
                last_failure_time=self._last_failure_time,
                last_success_time=self._last_success_time,
            )

    async def execute(
        self,
        operation: Callable[..., Awaitable[T]],
        *args,
        **kwargs,
    ) -> T:
        """
        Execute an async callable through the circuit breaker.

        Args:
            operation: Async function to execute
            *args: Positional arguments for operation
            **kwargs: Keyword arguments for operation

        Returns:
            Result of operation

        Raises:
            CircuitBreakerError: If circuit is open and still cooling down
            CircuitTimeoutError: If operation exceeds the configured timeout
        """
        self._before_call()

        try:
            result = await self._execute_with_timeout(operation, *args, **kwargs)
        except Exception as e:
            self._record_failure(e)
            raise

        self._record_success()
        return result

    def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._clear_reset_timer()
        self._record_state(CircuitState.CLOSED)
        logger.info("circuit_reset", breaker=self._name)

    def dispose(self) -> None:
        """Cancel any pending reset timer and drop this breaker's metric series."""
        with self._lock:
            self._clear_reset_timer()
        metrics.forget_breaker(self._namespace, self._name)

    async def _execute_with_timeout(self, operation, *args, **kwargs):
        task = asyncio.ensure_future(operation(*args, **kwargs))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.config.timeout / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        # The call keeps running; its eventual outcome is dropped.
        task.add_done_callback(partial(_discard_abandoned, self._name))
        raise CircuitTimeoutError(self._name, self.config.timeout)

    def _before_call(self) -> None:
        callback = None
        with self._lock:
            self._total_calls += 1

            if self._state == CircuitState.OPEN:
                if not self._should_attempt_reset():
                    error = CircuitBreakerError(self._name, self._state, self._retry_after())
                    self._record_call(metrics.OUTCOME_REJECTED)
                    raise error
                callback = self._transition_to_half_open()

        self._notify(callback)

    def _record_success(self) -> None:
        callback = None
        with self._lock:
            self._successes += 1
            self._last_success_time = _now_ms()

            if self._state == CircuitState.HALF_OPEN:
                callback = self._transition_to_closed()

            self._failures = 0

        self._record_call(metrics.OUTCOME_SUCCESS)
        self._notify(callback)

    def _record_failure(self, exc: Exception) -> None:
        callback = None
        with self._lock:
            self._failures += 1
            self._last_failure_time = _now_ms()
            self._last_failure_at = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                callback = self._transition_to_open()
            elif (
                self._state == CircuitState.CLOSED
                and self._failures >= self.config.failure_threshold
            ):
                callback = self._transition_to_open()

        if isinstance(exc, CircuitTimeoutError):
            self._record_call(metrics.OUTCOME_TIMEOUT)
        else:
            self._record_call(metrics.OUTCOME_FAILURE)
        self._notify(callback)

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_at is None:
            return False
        elapsed_ms = (time.monotonic() - self._last_failure_at) * 1000
        return elapsed_ms >= self.config.reset_timeout

    def _retry_after(self) -> float:
        if self._last_failure_at is None:
            return 0.0
        elapsed = time.monotonic() - self._last_failure_at
        return max(0.0, self.config.reset_timeout / 1000 - elapsed)

    # Transitions below expect the lock to be held and return the callback
    # to run once it is released.

    def _transition_to_open(self) -> Optional[StateCallback]:
        self._state = CircuitState.OPEN
        self._schedule_reset()
        self._record_state(CircuitState.OPEN)
        logger.warning("circuit_opened", breaker=self._name, failures=self._failures)
        return self.config.on_open

    def _transition_to_closed(self) -> Optional[StateCallback]:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._clear_reset_timer()
        self._record_state(CircuitState.CLOSED)
        logger.info("circuit_closed", breaker=self._name)
        return self.config.on_close

    def _transition_to_half_open(self) -> Optional[StateCallback]:
        self._state = CircuitState.HALF_OPEN
        self._clear_reset_timer()
        self._record_state(CircuitState.HALF_OPEN)
        logger.info("circuit_half_open", breaker=self._name)
        return self.config.on_half_open

    def _schedule_reset(self) -> None:
        self._clear_reset_timer()
        loop = asyncio.get_running_loop()
        self._timer_loop = loop
        self._reset_timer = loop.call_later(
            self.config.reset_timeout / 1000,
            _reset_timer_fired,
            weakref.ref(self),
            self._timer_generation,
        )

    def _clear_reset_timer(self) -> None:
        # Bumping the generation invalidates a timer that already fired
        # but has not yet taken the lock.
        self._timer_generation += 1
        handle, self._reset_timer = self._reset_timer, None
        loop = self._timer_loop
        if handle is None or loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        # TimerHandle.cancel is only safe on the loop that owns the handle.
        if running is loop:
            handle.cancel()
        else:
            try:
                loop.call_soon_threadsafe(handle.cancel)
            except RuntimeError:
                # Loop closed meanwhile; the generation bump already disarmed it.
                pass

    def _on_reset_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation:
                return
            self._reset_timer = None
            if self._state != CircuitState.OPEN:
                return
            callback = self._transition_to_half_open()

        self._notify(callback)

    def _record_state(self, state: CircuitState) -> None:
        metrics.record_circuit_state(self._namespace, self._name, state)

    def _record_call(self, outcome: str) -> None:
        metrics.record_call(self._namespace, self._name, outcome)

    def _notify(self, callback: Optional[StateCallback]) -> None:
        if callback is None:
            return
        try:
            callback(self._name)
        except Exception:
            logger.exception("circuit_callback_failed", breaker=self._name)
