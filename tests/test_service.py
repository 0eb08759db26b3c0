"""End-to-end tests for DispatchService with scripted backends."""

from __future__ import annotations

import pytest

from courier.backends import RecordingBackend
from courier.core.errors import ValidationError
from courier.core.settings import BackendConfig, CourierSettings
from courier.execution.circuit_breaker import BreakerRegistry
from courier.execution.models import Priority, SchedulerConfig, SchedulerState
from courier.execution.retry import RetryPolicy
from courier.service import (
    STATUS_ALL_FAILED,
    STATUS_FAILED_IN_QUEUE,
    STATUS_QUEUED,
    DispatchService,
    SubmitResult,
    sent_via,
)
from courier.store import InMemoryStore


def _service(*backends, fake_clock=None, max_retries=2) -> DispatchService:
    store = InMemoryStore(clock=fake_clock) if fake_clock else InMemoryStore()
    return DispatchService(
        backends,
        store=store,
        breakers=BreakerRegistry(failure_threshold=3, cooldown=10.0),
        retry_policy=RetryPolicy(3, 0.0),
        scheduler_config=SchedulerConfig(
            max_retries=max_retries,
            retry_delay=0.01,
            processing_interval=0.01,
            max_concurrent=5,
        ),
    )


def _is_terminal(status):
    return status is not None and (status.startswith("Sent via") or status == STATUS_FAILED_IN_QUEUE)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_queued(self):
        service = _service(RecordingBackend("primary"))

        result = service.submit("m1", "r@example.com", "Hi", "Hello")

        assert result is SubmitResult.QUEUED
        assert service.get_status("m1") == STATUS_QUEUED
        assert service.get_queue_stats().length == 1
        await service.aclose()

    @pytest.mark.asyncio
    async def test_duplicate(self):
        service = _service(RecordingBackend("primary"))
        service.submit("m1", "a@example.com", "Hi", "Hello")

        assert service.submit("m1", "b@example.com", "Hi", "Hello") is SubmitResult.DUPLICATE
        assert service.get_queue_stats().length == 1
        await service.aclose()

    @pytest.mark.asyncio
    async def test_duplicate_does_not_touch_rate_limit(self, fake_clock):
        service = _service(RecordingBackend("primary"), fake_clock=fake_clock)
        service.submit("m1", "a@example.com", "Hi", "Hello")
        fake_clock.advance(12.0)

        service.submit("m1", "a@example.com", "Hi", "Hello")

        assert service.submit("m2", "a@example.com", "Hi", "Hello") is SubmitResult.QUEUED
        await service.aclose()

    @pytest.mark.asyncio
    async def test_rate_limited(self, fake_clock):
        service = _service(RecordingBackend("primary"), fake_clock=fake_clock)
        service.submit("m1", "r@example.com", "Hi", "Hello")

        assert service.submit("m2", "r@example.com", "Hi", "Hello") is SubmitResult.RATE_LIMITED
        assert service.get_status("m2") is None

        # a rate-limited id was never recorded, so it can be retried later
        fake_clock.advance(12.0)
        assert service.submit("m2", "r@example.com", "Hi", "Hello") is SubmitResult.QUEUED
        await service.aclose()

    @pytest.mark.parametrize("missing", ["id", "recipient", "subject", "body"])
    def test_empty_fields_rejected(self, missing):
        service = _service(RecordingBackend("primary"))
        fields = {"id": "m1", "recipient": "r@example.com", "subject": "Hi", "body": "Hello"}
        fields[missing] = ""

        with pytest.raises(ValidationError):
            service.submit(**fields)

    def test_requires_backends(self):
        with pytest.raises(ValidationError) as exc_info:
            DispatchService([])
        assert exc_info.value.field == "backends"

    def test_duplicate_backend_names_rejected(self):
        with pytest.raises(ValidationError, match="primary") as exc_info:
            DispatchService([RecordingBackend("primary"), RecordingBackend("primary"), RecordingBackend("other")])
        assert exc_info.value.field == "backends"

    def test_submit_outside_event_loop_records_nothing(self):
        service = _service(RecordingBackend("primary"))

        with pytest.raises(RuntimeError):
            service.submit("m1", "r@example.com", "Hi", "Hello")

        assert service.get_status("m1") is None
        assert service.store.is_duplicate("m1") is False
        assert service.get_queue_stats().length == 0
        assert service.scheduler.state is SchedulerState.IDLE


class TestDelivery:
    @pytest.mark.asyncio
    async def test_delivered_by_first_backend(self, wait_until):
        primary = RecordingBackend("primary")
        service = _service(primary)

        service.submit("m1", "r@example.com", "Hi", "Hello", priority=Priority.HIGH)
        await wait_until(lambda: _is_terminal(service.get_status("m1")))

        assert service.get_status("m1") == sent_via("primary")
        assert [m.to for m in primary.calls] == ["r@example.com"]
        await service.aclose()

    @pytest.mark.asyncio
    async def test_failover_to_second_backend(self, wait_until):
        first = RecordingBackend.always_failing("first")
        second = RecordingBackend("second")
        service = _service(first, second)
        # an earlier failure on the second backend is cleared by its success
        service.breakers.get("second").record_failure()

        service.submit("m1", "r@example.com", "Hi", "Hello")
        await wait_until(lambda: _is_terminal(service.get_status("m1")))

        assert service.get_status("m1") == "Sent via second"
        assert first.call_count == 3
        breakers = {b.name: b for b in service.breaker_stats()}
        assert breakers["first"].failure_count == 1
        assert breakers["second"].failure_count == 0
        await service.aclose()

    @pytest.mark.asyncio
    async def test_status_updates_are_pushed(self, wait_until):
        service = _service(RecordingBackend.always_failing("first"), RecordingBackend("second"))
        sub = service.hub.subscribe("m1")

        service.submit("m1", "r@example.com", "Hi", "Hello")
        # the PROCESSED event re-publishes the final status
        await wait_until(lambda: sub.pending == 3)

        statuses = [sub.get_nowait().status for _ in range(3)]
        assert statuses == [STATUS_QUEUED, "Sent via second", "Sent via second"]
        await service.aclose()

    @pytest.mark.asyncio
    async def test_failed_in_queue(self, wait_until):
        service = _service(
            RecordingBackend.always_failing("first"),
            RecordingBackend.always_failing("second"),
            max_retries=1,
        )
        sub = service.hub.subscribe("m1")

        service.submit("m1", "r@example.com", "Hi", "Hello")
        await wait_until(lambda: service.get_status("m1") == STATUS_FAILED_IN_QUEUE)

        statuses = [sub.get_nowait().status for _ in range(sub.pending)]
        assert statuses == [STATUS_QUEUED, STATUS_ALL_FAILED, STATUS_ALL_FAILED, STATUS_FAILED_IN_QUEUE]
        await service.aclose()

    @pytest.mark.asyncio
    async def test_breaker_opens_across_jobs(self, wait_until):
        first = RecordingBackend.always_failing("first")
        second = RecordingBackend("second")
        service = _service(first, second)

        for i in range(4):
            service.submit(f"m{i}", f"r{i}@example.com", "Hi", "Hello")
        await wait_until(lambda: all(_is_terminal(service.get_status(f"m{i}")) for i in range(4)))

        # every job ends up on the second backend; once the first breaker
        # reaches the threshold later jobs skip it entirely
        assert all(service.get_status(f"m{i}") == "Sent via second" for i in range(4))
        assert first.call_count <= 4 * 3
        assert service.breakers.get("first").failure_count >= 3
        await service.aclose()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_describe(self):
        service = _service(RecordingBackend("primary"))
        service.submit("m1", "r@example.com", "Hi", "Hello")

        snapshot = service.describe()

        assert snapshot["queue"] == {"length": 1, "active": 0}
        assert snapshot["state"] == SchedulerState.PROCESSING.value
        assert snapshot["pending_retries"] == 0
        assert [b["name"] for b in snapshot["breakers"]] == ["primary"]
        await service.aclose()

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self):
        service = _service(RecordingBackend("primary"))
        service.submit("m1", "r@example.com", "Hi", "Hello")

        await service.aclose()
        await service.aclose()

        assert service.scheduler.stopped
        assert service.get_queue_stats().length == 0

    def test_from_settings(self, fake_clock):
        settings = CourierSettings(
            backends=[BackendConfig(name="alpha"), BackendConfig(name="beta", failure_rate=0.2)],
            max_concurrent=2,
            breaker_failure_threshold=4,
            rate_limit_per_minute=30,
            send_attempts=5,
        )

        service = DispatchService.from_settings(settings, clock=fake_clock)

        assert service.breakers.list_all() == ["alpha", "beta"]
        assert service.breakers.get("alpha").failure_threshold == 4
        assert service.scheduler.config.max_concurrent == 2
        assert service.store.min_interval == 2.0
        assert service.failover._retry_policy.max_attempts == 5

    def test_from_settings_with_explicit_backends(self):
        service = DispatchService.from_settings(CourierSettings(), backends=[RecordingBackend("only")])
        assert [slot.name for slot in service.failover.slots] == ["only"]
