"""Tests for FailoverDispatcher: ordered backends guarded by breakers."""

from __future__ import annotations

import time

import pytest

from courier.backends import RecordingBackend
from courier.core.errors import AllBackendsExhaustedError
from courier.execution.circuit_breaker import CircuitBreaker
from courier.execution.failover import ALL_BACKENDS_EXHAUSTED, BackendSlot, FailoverDispatcher
from courier.execution.retry import RetryPolicy


# ── Helpers ──────────────────────────────────────────────────────────────


async def _no_sleep(delay: float) -> None:
    return None


def _dispatcher(*backends, clock=time.monotonic, threshold=3, attempts=3):
    slots = [
        BackendSlot(b, CircuitBreaker(b.name, failure_threshold=threshold, cooldown=10.0, clock=clock))
        for b in backends
    ]
    return FailoverDispatcher(slots, retry_policy=RetryPolicy(attempts, 0.1, sleep=_no_sleep)), slots


# ── Dispatch ─────────────────────────────────────────────────────────────


class TestDispatch:
    @pytest.mark.asyncio
    async def test_first_backend_delivers(self, fake_clock):
        first, second = RecordingBackend("first"), RecordingBackend("second")
        dispatcher, _ = _dispatcher(first, second, clock=fake_clock)

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.success is True
        assert outcome.backend == "first"
        assert first.call_count == 1
        assert second.call_count == 0

    @pytest.mark.asyncio
    async def test_fails_over_after_retries(self, fake_clock):
        first = RecordingBackend.always_failing("first")
        second = RecordingBackend("second")
        dispatcher, slots = _dispatcher(first, second, clock=fake_clock)

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.success is True
        assert outcome.backend == "second"
        assert outcome.failed == ["first"]
        assert first.call_count == 3
        assert slots[0].breaker.failure_count == 1
        assert slots[1].breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_falsy_send_counts_as_failure(self, fake_clock):
        first = RecordingBackend("first", default=False)
        second = RecordingBackend("second")
        dispatcher, slots = _dispatcher(first, second, clock=fake_clock)

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.backend == "second"
        assert first.call_count == 3
        assert slots[0].breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_recovers_within_slot(self, fake_clock):
        first = RecordingBackend.scripted("first", [False, True])
        dispatcher, slots = _dispatcher(first, clock=fake_clock)

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.backend == "first"
        assert first.call_count == 2
        assert slots[0].breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_success_resets_breaker_count(self, fake_clock):
        first = RecordingBackend("first")
        dispatcher, slots = _dispatcher(first, clock=fake_clock)
        slots[0].breaker.record_failure()
        slots[0].breaker.record_failure()

        await dispatcher.dispatch("r@example.com", "s", "b")

        assert slots[0].breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_open_breaker_is_skipped(self, fake_clock):
        first, second = RecordingBackend("first"), RecordingBackend("second")
        dispatcher, slots = _dispatcher(first, second, clock=fake_clock, threshold=1)
        slots[0].breaker.record_failure()

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.backend == "second"
        assert outcome.skipped == ["first"]
        assert first.call_count == 0

    @pytest.mark.asyncio
    async def test_skipped_backend_returns_after_cooldown(self, fake_clock):
        first = RecordingBackend("first")
        dispatcher, slots = _dispatcher(first, RecordingBackend("second"), clock=fake_clock, threshold=1)
        slots[0].breaker.record_failure()
        fake_clock.advance(10.0)

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.backend == "first"
        assert outcome.skipped == []

    @pytest.mark.asyncio
    async def test_all_backends_exhausted(self, fake_clock):
        first = RecordingBackend.always_failing("first")
        second = RecordingBackend.always_failing("second")
        dispatcher, slots = _dispatcher(first, second, clock=fake_clock)

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.success is False
        assert outcome.backend is None
        assert outcome.error == ALL_BACKENDS_EXHAUSTED
        assert outcome.failed == ["first", "second"]
        assert [s.breaker.failure_count for s in slots] == [1, 1]

    @pytest.mark.asyncio
    async def test_all_breakers_open(self, fake_clock):
        first, second = RecordingBackend("first"), RecordingBackend("second")
        dispatcher, slots = _dispatcher(first, second, clock=fake_clock, threshold=1)
        for slot in slots:
            slot.breaker.record_failure()

        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        assert outcome.success is False
        assert outcome.skipped == ["first", "second"]
        assert first.call_count == second.call_count == 0


class TestDispatchOutcome:
    @pytest.mark.asyncio
    async def test_raise_for_outcome(self, fake_clock):
        dispatcher, _ = _dispatcher(RecordingBackend.always_failing("only"), clock=fake_clock)
        outcome = await dispatcher.dispatch("r@example.com", "s", "b")

        with pytest.raises(AllBackendsExhaustedError) as exc_info:
            outcome.raise_for_outcome()

        assert exc_info.value.failed == ["only"]
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_success_does_not_raise(self, fake_clock):
        dispatcher, _ = _dispatcher(RecordingBackend("only"), clock=fake_clock)
        outcome = await dispatcher.dispatch("r@example.com", "s", "b")
        outcome.raise_for_outcome()
        assert outcome.to_dict()["backend"] == "only"

    def test_slots_property_is_a_copy(self):
        dispatcher, slots = _dispatcher(RecordingBackend("only"))
        dispatcher.slots.clear()
        assert [s.name for s in dispatcher.slots] == ["only"]
