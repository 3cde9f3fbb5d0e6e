"""
Unit Tests for CircuitBreakerRegistry
=====================================
Lookup, fan-out and lifecycle of named breakers.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from circuit_guard.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from circuit_guard.metrics import BREAKER_METRICS_REGISTRY


async def succeed():
    return "success"


async def fail():
    raise ValueError("fail")


def state_value(namespace, name):
    return BREAKER_METRICS_REGISTRY.get_sample_value(
        "circuit_breaker_state", {"namespace": namespace, "breaker": name}
    )


def call_count(namespace, name, outcome):
    return BREAKER_METRICS_REGISTRY.get_sample_value(
        "circuit_breaker_calls_total",
        {"namespace": namespace, "breaker": name, "outcome": outcome},
    )


@pytest.fixture
def registry():
    return CircuitBreakerRegistry()


async def open_named(registry, name, threshold=3):
    for _ in range(threshold):
        with pytest.raises(ValueError):
            await registry.execute(name, fail, config={"failure_threshold": threshold})


class TestGet:
    """Tests for find-or-create."""

    def test_creates_breaker(self, registry):
        """Should create a closed breaker on first reference."""
        breaker = registry.get("test-breaker")

        assert breaker.name == "test-breaker"
        assert breaker.get_state() == CircuitState.CLOSED

    def test_returns_existing(self, registry):
        """Should return the same instance for the same name."""
        assert registry.get("test-breaker") is registry.get("test-breaker")

    def test_uses_config_on_creation(self, registry):
        """Should honour the config given at creation."""
        breaker = registry.get("test-breaker", CircuitBreakerConfig(failure_threshold=10))

        assert breaker.config.failure_threshold == 10
        assert breaker.config.timeout == 30000

    def test_ignores_later_config(self, registry):
        """Config for an existing name should be ignored."""
        registry.get("test-breaker", {"failure_threshold": 2})

        breaker = registry.get("test-breaker", {"failure_threshold": 9})

        assert breaker.config.failure_threshold == 2

    def test_invalid_later_config_not_validated(self, registry):
        """An invalid config for an existing name should be ignored, not rejected."""
        existing = registry.get("x", {"failure_threshold": 3})

        breaker = registry.get("x", {"failure_threshold": 0})

        assert breaker is existing
        assert breaker.config.failure_threshold == 3

    def test_concurrent_first_access(self, registry):
        """Threads racing on a new name should share one breaker."""
        with ThreadPoolExecutor(max_workers=16) as pool:
            breakers = list(pool.map(lambda _: registry.get("shared"), range(64)))

        assert all(b is breakers[0] for b in breakers)
        assert len(registry) == 1


class TestExecute:
    """Tests for execute through the registry."""

    @pytest.mark.asyncio
    async def test_execute(self, registry):
        """Should return the operation's result."""
        assert await registry.execute("test-breaker", succeed) == "success"

    @pytest.mark.asyncio
    async def test_creates_on_first_execute(self, registry):
        """Should register the breaker on first execute."""
        assert registry.has("test-breaker") is False

        await registry.execute("test-breaker", succeed)

        assert registry.has("test-breaker") is True

    @pytest.mark.asyncio
    async def test_custom_config(self, registry):
        """Should open after the per-call threshold."""
        await open_named(registry, "test-breaker", threshold=2)

        assert registry.get_stats("test-breaker").state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_passes_arguments(self, registry):
        """Should forward operation arguments."""
        async def echo(value, suffix=""):
            return f"{value}{suffix}"

        result = await registry.execute("echo", echo, "a", suffix="b")

        assert result == "ab"


class TestStats:
    """Tests for stats lookup."""

    @pytest.mark.asyncio
    async def test_stats_for_existing(self, registry):
        """Should return a snapshot for a known name."""
        await registry.execute("test-breaker", succeed)

        assert registry.get_stats("test-breaker").successes == 1

    def test_stats_for_unknown(self, registry):
        """Should return None for an unknown name."""
        assert registry.get_stats("non-existing") is None

    @pytest.mark.asyncio
    async def test_all_stats(self, registry):
        """Should map every name to its snapshot."""
        await registry.execute("breaker1", succeed)
        await registry.execute("breaker2", succeed)

        all_stats = registry.get_all_stats()

        assert set(all_stats) == {"breaker1", "breaker2"}
        assert all_stats["breaker1"].total_calls == 1

    def test_all_stats_empty(self, registry):
        """Should return an empty mapping when nothing is registered."""
        assert registry.get_all_stats() == {}


class TestReset:
    """Tests for reset and reset_all."""

    @pytest.mark.asyncio
    async def test_reset(self, registry):
        """Should reset one breaker."""
        await open_named(registry, "test-breaker")
        breaker = registry.get("test-breaker")
        assert breaker.get_state() == CircuitState.OPEN

        registry.reset("test-breaker")

        assert breaker.get_state() == CircuitState.CLOSED

    def test_reset_unknown(self, registry):
        """Resetting an unknown name should do nothing."""
        registry.reset("non-existing")

        assert registry.has("non-existing") is False

    @pytest.mark.asyncio
    async def test_reset_all(self, registry):
        """Should reset every breaker."""
        await open_named(registry, "breaker1")
        await open_named(registry, "breaker2")

        registry.reset_all()

        for name in ("breaker1", "breaker2"):
            stats = registry.get_stats(name)
            assert stats.state == CircuitState.CLOSED
            assert stats.failures == 0


class TestRemove:
    """Tests for remove and clear."""

    @pytest.mark.asyncio
    async def test_remove(self, registry):
        """Should remove an existing breaker."""
        await registry.execute("test-breaker", succeed)

        assert registry.remove("test-breaker") is True
        assert registry.has("test-breaker") is False

    def test_remove_unknown(self, registry):
        """Should report False for an unknown name."""
        assert registry.remove("non-existing") is False

    @pytest.mark.asyncio
    async def test_remove_cancels_timer(self, registry):
        """A removed breaker's reset timer should not fire."""
        for _ in range(2):
            with pytest.raises(ValueError):
                await registry.execute(
                    "test-breaker",
                    fail,
                    config={"failure_threshold": 2, "reset_timeout": 50},
                )
        breaker = registry.get("test-breaker")

        registry.remove("test-breaker")
        await asyncio.sleep(0.1)

        assert breaker.get_state() == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_remove_drops_metric_series(self):
        """A removed breaker should no longer be exported."""
        registry = CircuitBreakerRegistry(namespace="registry-remove")
        await open_named(registry, "gone")
        assert state_value("registry-remove", "gone") == 2
        assert call_count("registry-remove", "gone", "failure") == 3

        registry.remove("gone")

        assert state_value("registry-remove", "gone") is None
        assert call_count("registry-remove", "gone", "failure") is None

    @pytest.mark.asyncio
    async def test_clear_drops_metric_series(self):
        """Clearing should drop the series of every breaker."""
        registry = CircuitBreakerRegistry(namespace="registry-clear")
        await registry.execute("breaker1", succeed)
        await registry.execute("breaker2", succeed)

        registry.clear()

        assert state_value("registry-clear", "breaker1") is None
        assert call_count("registry-clear", "breaker2", "success") is None

    @pytest.mark.asyncio
    async def test_removed_name_gets_new_breaker(self, registry):
        """A later reference should create a fresh breaker."""
        await open_named(registry, "test-breaker")
        old = registry.get("test-breaker")

        registry.remove("test-breaker")
        new = registry.get("test-breaker")

        assert new is not old
        assert new.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_clear(self, registry):
        """Should remove all breakers."""
        await registry.execute("breaker1", succeed)
        await registry.execute("breaker2", succeed)

        registry.clear()

        assert registry.has("breaker1") is False
        assert registry.has("breaker2") is False
        assert len(registry) == 0

    def test_names_and_contains(self, registry):
        """Should list names and support membership checks."""
        registry.get("a")
        registry.get("b")

        assert sorted(registry.names()) == ["a", "b"]
        assert "a" in registry
        assert "c" not in registry
