"""Priority Scheduler — in-process wait list with a periodic processing tick.

WHY
───
Submissions arrive faster than backends deliver, and some of them matter
more than others. The scheduler holds jobs in priority order, releases a
bounded batch to the processor on every tick, and puts failed jobs back
after an exponentially growing delay until they run out of retries.

ARCHITECTURE
────────────
::

    enqueue(spec) ──► wait list (priority asc, FIFO within a priority)
                           │
          tick every processing_interval
                           │  take min(max_concurrent - active, len(wait list))
                           ▼
                   processor(job) task ─── truthy ──► PROCESSED
                           │
                     falsy / raises
                           ▼
                retry_count += 1
                  ├── <= max_retries → timer(retry_delay * 2**(n-1)) ──► REQUEUED
                  └──  > max_retries → FAILED (job dropped)

    All mutation happens on the event loop thread: the tick callback, the
    retry timer callback and the task completion path. No locks needed.

    stop() is terminal: tick and retry timers are cancelled, the wait
    list is cleared, the in-flight gauge is reset and outcomes of jobs
    still settling are ignored.

Related modules:
    models.py   — Job, JobSpec, SchedulerConfig, QueueEventType
    failover.py — the processor the service plugs in

Example::

    scheduler = PriorityScheduler(processor, SchedulerConfig(max_concurrent=2))
    scheduler.on(QueueEventType.FAILED, lambda job: print("gave up on", job.id))
    scheduler.enqueue(JobSpec(id="A", recipient="r@example.com", subject="s", body="b"))
"""

from __future__ import annotations

import asyncio
import bisect
from operator import attrgetter

from courier.core.errors import RetriesExhaustedError
from courier.core.logging import get_logger
from courier.execution.models import (
    EventCallback,
    Job,
    JobSpec,
    Processor,
    QueueEventType,
    SchedulerConfig,
    SchedulerState,
    utcnow,
)

logger = get_logger(__name__)

_by_priority = attrgetter("priority")


class PriorityScheduler:
    """Priority-ordered job queue with bounded concurrency and requeue backoff.

    Must be driven from inside a running asyncio event loop; the loop is
    captured on the first ``enqueue``.

    Parameters
    ----------
    processor : Processor
        ``async (Job) -> bool`` invoked once per dispatch.
    config : SchedulerConfig | None
        Retry ceiling, delays and concurrency cap.
    """

    def __init__(self, processor: Processor, config: SchedulerConfig | None = None) -> None:
        self._processor = processor
        self.config = config or SchedulerConfig()
        self._waiting: list[Job] = []
        self._state = SchedulerState.IDLE
        self._active = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tick_handle: asyncio.TimerHandle | None = None
        self._retry_timers: set[asyncio.TimerHandle] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: dict[QueueEventType, list[EventCallback]] = {t: [] for t in QueueEventType}

    # ── Events ───────────────────────────────────────────────────────

    def on(self, event_type: QueueEventType, callback: EventCallback) -> None:
        """Register ``callback(job)`` for ``event_type``."""
        self._listeners[QueueEventType(event_type)].append(callback)

    def off(self, event_type: QueueEventType, callback: EventCallback) -> None:
        """Remove a previously registered callback (no-op if absent)."""
        listeners = self._listeners[QueueEventType(event_type)]
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event_type: QueueEventType, job: Job) -> None:
        for callback in list(self._listeners[event_type]):
            try:
                callback(job)
            except Exception:
                logger.exception("scheduler.listener_error", event=event_type.value, job_id=job.id)

    # ── Submission ───────────────────────────────────────────────────

    def enqueue(self, spec: JobSpec) -> int:
        """Add a job and return how many jobs are waiting (0 once stopped)."""
        if self._state is SchedulerState.STOPPED:
            logger.warning("scheduler.enqueue_rejected", job_id=spec.id, reason="stopped")
            return 0

        if self._state is SchedulerState.IDLE:
            # raises RuntimeError outside a running loop, before any mutation
            self._loop = asyncio.get_running_loop()

        job = Job.from_spec(spec)
        self._insert(job)
        logger.info(
            "scheduler.enqueued",
            job_id=job.id,
            priority=job.priority.name,
            waiting=len(self._waiting),
        )
        self._emit(QueueEventType.ENQUEUED, job)

        if self._state is SchedulerState.IDLE:
            self._start()

        return len(self._waiting)

    def _insert(self, job: Job) -> None:
        # insort_right keeps FIFO order among equal priorities
        bisect.insort_right(self._waiting, job, key=_by_priority)

    def _start(self) -> None:
        self._state = SchedulerState.PROCESSING
        self._tick_handle = self._loop.call_later(self.config.processing_interval, self._tick)
        logger.debug("scheduler.started", interval=self.config.processing_interval)

    # ── Processing ───────────────────────────────────────────────────

    def _tick(self) -> None:
        self._tick_handle = None
        if self._state is not SchedulerState.PROCESSING:
            return

        # next tick is armed before selection so ticking never lapses
        self._tick_handle = self._loop.call_later(self.config.processing_interval, self._tick)

        # priorities may have been changed on waiting jobs
        self._waiting.sort(key=_by_priority)

        free_slots = self.config.max_concurrent - self._active
        batch_size = min(free_slots, len(self._waiting))
        if batch_size <= 0:
            return

        batch = self._waiting[:batch_size]
        del self._waiting[:batch_size]

        logger.debug(
            "scheduler.tick",
            dispatched=[job.id for job in batch],
            waiting=len(self._waiting),
            active=self._active + batch_size,
        )

        for job in batch:
            self._dispatch(job)

    def _dispatch(self, job: Job) -> None:
        self._active += 1
        task = self._loop.create_task(self._run(job), name=f"courier-job-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job: Job) -> None:
        try:
            # stop() may land between selection and the task starting
            if self.stopped:
                return

            job.last_attempt_at = utcnow()
            try:
                delivered = await self._processor(job)
            except Exception as e:
                if self.stopped:
                    return
                logger.error("scheduler.processor_error", job_id=job.id, error=str(e))
                self._handle_failure(job)
                return

            if self.stopped:
                return

            if delivered:
                logger.info("scheduler.processed", job_id=job.id, retry_count=job.retry_count)
                self._emit(QueueEventType.PROCESSED, job)
            else:
                self._handle_failure(job)
        finally:
            # stop() already zeroed the gauge
            if not self.stopped:
                self._active -= 1

    def _handle_failure(self, job: Job) -> None:
        job.retry_count += 1

        if job.retry_count > self.config.max_retries:
            error = RetriesExhaustedError(job.id, job.retry_count, self.config.max_retries)
            logger.error("scheduler.failed", **error.to_dict())
            self._emit(QueueEventType.FAILED, job)
            return

        delay = self.config.requeue_delay(job.retry_count)
        logger.warning(
            "scheduler.retry_scheduled",
            job_id=job.id,
            retry_count=job.retry_count,
            max_retries=self.config.max_retries,
            delay=delay,
        )

        def fire() -> None:
            self._retry_timers.discard(handle)
            self._requeue(job)

        handle = self._loop.call_later(delay, fire)
        self._retry_timers.add(handle)

    def _requeue(self, job: Job) -> None:
        if self._state is not SchedulerState.PROCESSING:
            return
        self._insert(job)
        logger.info("scheduler.requeued", job_id=job.id, retry_count=job.retry_count)
        self._emit(QueueEventType.REQUEUED, job)

    # ── Shutdown ─────────────────────────────────────────────────────

    def stop(self) -> None:
        """Stop for good. Idempotent."""
        if self._state is SchedulerState.STOPPED:
            return

        self._state = SchedulerState.STOPPED

        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

        for handle in self._retry_timers:
            handle.cancel()
        cancelled_retries = len(self._retry_timers)
        self._retry_timers.clear()

        dropped = len(self._waiting)
        self._waiting.clear()
        self._active = 0

        logger.info("scheduler.stopped", dropped=dropped, cancelled_retries=cancelled_retries)

    async def join(self) -> None:
        """Wait for processor tasks that are still settling."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def length(self) -> int:
        """Jobs waiting to be dispatched."""
        return len(self._waiting)

    @property
    def active(self) -> int:
        """Jobs currently in flight."""
        return self._active

    @property
    def pending_retries(self) -> int:
        """Failed jobs waiting on their requeue timer."""
        return len(self._retry_timers)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._state is SchedulerState.STOPPED

    def waiting_ids(self) -> list[str]:
        """Ids of waiting jobs in dispatch order."""
        return [job.id for job in sorted(self._waiting, key=_by_priority)]
