"""
Shared pytest fixtures for courier tests.

This module provides:
- A controllable clock for breaker / rate-limit tests
- A polling helper for tests that wait on the scheduler's real timers
- Quiet logging for the whole session

Usage:
    async def test_something(fake_clock, wait_until):
        store = InMemoryStore(clock=fake_clock)
        fake_clock.advance(12.0)
        await wait_until(lambda: scheduler.length == 0)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import pytest

from courier.core.logging import clear_context, configure_logging


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, value: float) -> None:
        self.now = value


@pytest.fixture(scope="session", autouse=True)
def _quiet_logging():
    configure_logging(level="WARNING", json_format=False, service="courier-tests")
    yield


@pytest.fixture(autouse=True)
def _clean_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"condition not met within {timeout}s")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_until():
    """Async poller: ``await wait_until(lambda: cond, timeout=2.0)``."""
    return _wait_until
