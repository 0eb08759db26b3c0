"""
Dispatch service — the composition root of the delivery pipeline.

ARCHITECTURE
────────────
::

    submit(id, to, subject, body, priority)
      ├── store.is_duplicate(id)        → DUPLICATE
      ├── store.is_rate_limited(to)     → RATE_LIMITED   (consumes the slot)
      └── status "Queued", notify, scheduler.enqueue → QUEUED

    scheduler tick → _process(job)
      ├── status "Processing"
      ├── failover.dispatch(...)
      │     ├── delivered → "Sent via <backend>", notify, True
      │     └── exhausted → "All providers failed", notify, False
      └── scheduler applies queue-level requeue on False

    scheduler FAILED    → "Failed in queue", notify
    scheduler PROCESSED → re-publish current status

Two retry layers stay independent: RetryPolicy inside each backend slot,
requeue-with-backoff inside the scheduler. They only meet at the
``Processor`` boundary (``async (Job) -> bool``).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from courier.backends.base import Backend
from courier.backends.simulated import SimulatedBackend
from courier.core.errors import ValidationError
from courier.core.logging import LogContext, get_logger
from courier.core.settings import CourierSettings
from courier.execution.circuit_breaker import BreakerRegistry, BreakerSnapshot
from courier.execution.failover import BackendSlot, FailoverDispatcher
from courier.execution.models import Job, JobSpec, Priority, QueueEventType, SchedulerConfig
from courier.execution.retry import RetryPolicy
from courier.execution.scheduler import PriorityScheduler
from courier.notifier import StatusHub
from courier.store.memory import InMemoryStore

logger = get_logger(__name__)

STATUS_QUEUED = "Queued"
STATUS_PROCESSING = "Processing"
STATUS_ALL_FAILED = "All providers failed"
STATUS_FAILED_IN_QUEUE = "Failed in queue"


def sent_via(backend_name: str) -> str:
    return f"Sent via {backend_name}"


class SubmitResult(str, Enum):
    """Synchronous outcome of a submission."""

    QUEUED = "Queued"
    DUPLICATE = "Duplicate"
    RATE_LIMITED = "Rate limited"


@dataclass(frozen=True)
class QueueStats:
    length: int
    active: int

    def to_dict(self) -> dict[str, int]:
        return {"length": self.length, "active": self.active}


class DispatchService:
    """Validates submissions, queues them and relays delivery outcomes.

    Parameters
    ----------
    backends : Sequence[Backend]
        Delivery backends in failover order.
    store : InMemoryStore | None
        Status / dedup / rate-limit store.
    hub : StatusHub | None
        Push channel for status updates. Built on ``store`` if omitted.
    breakers : BreakerRegistry | None
        One breaker per backend name is taken (or created) from here.
    retry_policy : RetryPolicy | None
        Per-attempt retry inside each backend slot.
    scheduler_config : SchedulerConfig | None
        Queue-level retry and concurrency settings.
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        *,
        store: InMemoryStore | None = None,
        hub: StatusHub | None = None,
        breakers: BreakerRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        scheduler_config: SchedulerConfig | None = None,
    ) -> None:
        if not backends:
            raise ValidationError("at least one backend is required", field="backends")
        names = [backend.name for backend in backends]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValidationError(f"duplicate backend names: {', '.join(duplicates)}", field="backends")

        self.store = store or InMemoryStore()
        self.hub = hub or StatusHub(status_lookup=self.store.get_status)
        self.breakers = breakers or BreakerRegistry()

        slots = [BackendSlot(backend, self.breakers.get_or_create(backend.name)) for backend in backends]
        self.failover = FailoverDispatcher(slots, retry_policy=retry_policy)

        self.scheduler = PriorityScheduler(self._process, scheduler_config)
        self.scheduler.on(QueueEventType.PROCESSED, self._on_processed)
        self.scheduler.on(QueueEventType.FAILED, self._on_failed)

    @classmethod
    def from_settings(
        cls,
        settings: CourierSettings,
        *,
        backends: Sequence[Backend] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> DispatchService:
        """Build the full object graph from settings.

        Without explicit ``backends``, simulated backends are created from
        ``settings.backends``.
        """
        if backends is None:
            backends = [
                SimulatedBackend(cfg.name, failure_rate=cfg.failure_rate, latency=cfg.latency)
                for cfg in settings.backends
            ]

        return cls(
            backends,
            store=InMemoryStore(settings.rate_limit_per_minute, clock=clock),
            breakers=BreakerRegistry(
                failure_threshold=settings.breaker_failure_threshold,
                cooldown=settings.breaker_cooldown,
                clock=clock,
            ),
            retry_policy=RetryPolicy(settings.send_attempts, settings.send_base_delay),
            scheduler_config=SchedulerConfig(
                max_retries=settings.max_retries,
                retry_delay=settings.retry_delay,
                processing_interval=settings.processing_interval,
                max_concurrent=settings.max_concurrent,
            ),
        )

    # ── Submission ───────────────────────────────────────────────────

    def submit(
        self,
        id: str,
        recipient: str,
        subject: str,
        body: str,
        priority: Priority = Priority.NORMAL,
    ) -> SubmitResult:
        """Accept a message for delivery, or reject it synchronously."""
        for name, value in (("id", id), ("to", recipient), ("subject", subject), ("body", body)):
            if not value:
                raise ValidationError(f"{name} is required", field=name)

        if self.store.is_duplicate(id):
            logger.info("service.rejected", job_id=id, reason=SubmitResult.DUPLICATE.value)
            return SubmitResult.DUPLICATE

        if self.store.is_rate_limited(recipient):
            logger.info("service.rejected", job_id=id, recipient=recipient, reason=SubmitResult.RATE_LIMITED.value)
            return SubmitResult.RATE_LIMITED

        # enqueue first so a failure leaves no status behind to count as a duplicate
        waiting = self.scheduler.enqueue(
            JobSpec(id=id, recipient=recipient, subject=subject, body=body, priority=Priority(priority))
        )
        self._set_status(id, STATUS_QUEUED)
        logger.info("service.queued", job_id=id, priority=Priority(priority).name, waiting=waiting)
        return SubmitResult.QUEUED

    # ── Processing ───────────────────────────────────────────────────

    async def _process(self, job: Job) -> bool:
        async with LogContext(job_id=job.id):
            self.store.mark_sent(job.id, STATUS_PROCESSING)

            outcome = await self.failover.dispatch(job.recipient, job.subject, job.body)

            if outcome.success:
                self._set_status(job.id, sent_via(outcome.backend))
                return True

            self._set_status(job.id, STATUS_ALL_FAILED)
            return False

    def _on_processed(self, job: Job) -> None:
        status = self.store.get_status(job.id)
        if status is not None:
            self.hub.publish(job.id, status)

    def _on_failed(self, job: Job) -> None:
        logger.error("service.failed_in_queue", job_id=job.id, retry_count=job.retry_count)
        self._set_status(job.id, STATUS_FAILED_IN_QUEUE)

    def _set_status(self, id: str, status: str) -> None:
        self.store.mark_sent(id, status)
        self.hub.publish(id, status)

    # ── Queries ──────────────────────────────────────────────────────

    def get_status(self, id: str) -> str | None:
        return self.store.get_status(id)

    def get_queue_stats(self) -> QueueStats:
        return QueueStats(length=self.scheduler.length, active=self.scheduler.active)

    def breaker_stats(self) -> list[BreakerSnapshot]:
        return self.breakers.snapshots()

    def describe(self) -> dict[str, Any]:
        """Snapshot for the stats endpoint and the CLI."""
        return {
            "queue": self.get_queue_stats().to_dict(),
            "state": self.scheduler.state.value,
            "pending_retries": self.scheduler.pending_retries,
            "breakers": [snapshot.to_dict() for snapshot in self.breaker_stats()],
        }

    # ── Shutdown ─────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """Stop the scheduler. Idempotent."""
        if not self.scheduler.stopped:
            self.scheduler.stop()
            logger.info("service.shutdown")

    async def aclose(self) -> None:
        """Shut down and wait for in-flight deliveries to settle."""
        self.shutdown()
        await self.scheduler.join()
        self.hub.close()
