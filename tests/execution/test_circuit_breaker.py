"""Tests for CircuitBreaker and BreakerRegistry."""

from __future__ import annotations

import pytest

from courier.core.errors import InvalidConfigError
from courier.execution.circuit_breaker import BreakerRegistry, CircuitBreaker


class TestCircuitBreaker:
    """Threshold, cooldown and the sticky failure count."""

    def test_starts_closed(self, fake_clock):
        breaker = CircuitBreaker("primary", clock=fake_clock)
        assert breaker.is_open() is False
        assert breaker.failure_count == 0
        assert breaker.last_failure_time is None

    def test_below_threshold_stays_closed(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=3, clock=fake_clock)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.is_open() is False

    def test_opens_at_threshold(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=3, cooldown=10.0, clock=fake_clock)
        for _ in range(3):
            breaker.record_failure()
        assert breaker.is_open() is True

    def test_closes_after_cooldown(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=3, cooldown=10.0, clock=fake_clock)
        for _ in range(3):
            breaker.record_failure()

        fake_clock.set(9.999)
        assert breaker.is_open() is True

        fake_clock.set(10.0)
        assert breaker.is_open() is False

    def test_count_is_sticky_after_cooldown(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=3, cooldown=10.0, clock=fake_clock)
        for _ in range(3):
            breaker.record_failure()
        fake_clock.set(10.0)
        assert breaker.is_open() is False
        assert breaker.failure_count == 3

        # one more failure reopens straight away
        breaker.record_failure()
        assert breaker.failure_count == 4
        assert breaker.last_failure_time == 10.0
        assert breaker.is_open() is True

    def test_success_clears_count_only(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=1, clock=fake_clock)
        fake_clock.set(5.0)
        breaker.record_failure()
        assert breaker.is_open() is True

        breaker.record_success()
        assert breaker.failure_count == 0
        assert breaker.last_failure_time == 5.0
        assert breaker.is_open() is False

    def test_reset(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=1, clock=fake_clock)
        breaker.record_failure()
        breaker.reset()
        assert breaker.failure_count == 0
        assert breaker.last_failure_time is None

    def test_snapshot(self, fake_clock):
        breaker = CircuitBreaker("primary", failure_threshold=2, clock=fake_clock)
        breaker.record_failure()
        assert breaker.snapshot().to_dict() == {
            "name": "primary",
            "failure_count": 1,
            "failure_threshold": 2,
            "last_failure_time": 0.0,
            "open": False,
        }

    @pytest.mark.parametrize("kwargs", [{"failure_threshold": 0}, {"cooldown": -1.0}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(InvalidConfigError):
            CircuitBreaker("primary", **kwargs)


class TestBreakerRegistry:
    def test_get_or_create_returns_same_instance(self):
        registry = BreakerRegistry()
        assert registry.get_or_create("a") is registry.get_or_create("a")

    def test_get_unknown(self):
        assert BreakerRegistry().get("missing") is None

    def test_settings_propagate(self, fake_clock):
        registry = BreakerRegistry(failure_threshold=5, cooldown=2.5, clock=fake_clock)
        breaker = registry.get_or_create("a")
        assert breaker.failure_threshold == 5
        assert breaker.cooldown == 2.5
        assert breaker.clock is fake_clock

    def test_list_all_in_creation_order(self):
        registry = BreakerRegistry()
        registry.get_or_create("b")
        registry.get_or_create("a")
        assert registry.list_all() == ["b", "a"]
        assert [s.name for s in registry.snapshots()] == ["b", "a"]

    def test_reset_all(self):
        registry = BreakerRegistry(failure_threshold=1)
        registry.get_or_create("a").record_failure()
        registry.get_or_create("b").record_failure()
        registry.reset_all()
        assert all(s.failure_count == 0 for s in registry.snapshots())
