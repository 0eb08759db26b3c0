"""Queue models — jobs, priorities, scheduler states and events.

ARCHITECTURE
────────────
::

    JobSpec ──enqueue──► Job (retry_count=0, created_at=now)
                           │
                           ├── waiting   (in the scheduler's wait list)
                           ├── in flight (handed to the processor)
                           └── dropped   (processed, or retries exhausted)

    SchedulerState:  IDLE ──enqueue──► PROCESSING ──stop()──► STOPPED
                       └───────────────stop()──────────────────┘

Related modules:
    scheduler.py — PriorityScheduler that owns the wait list
    failover.py  — processor that delivers a job's message
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum

from courier.core.errors import InvalidConfigError


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Priority(IntEnum):
    """Job priority. Lower value is dispatched first."""

    HIGH = 0
    NORMAL = 1
    LOW = 2


class SchedulerState(str, Enum):
    """Lifecycle of a PriorityScheduler."""

    IDLE = "idle"
    PROCESSING = "processing"
    STOPPED = "stopped"  # terminal


class QueueEventType(str, Enum):
    """Observable scheduler events."""

    ENQUEUED = "enqueued"
    PROCESSED = "processed"
    REQUEUED = "requeued"
    FAILED = "failed"  # retries exhausted, terminal


@dataclass(frozen=True)
class JobSpec:
    """Caller-supplied part of a job."""

    id: str
    recipient: str
    subject: str
    body: str
    priority: Priority = Priority.NORMAL


@dataclass
class Job:
    """A message waiting for, or undergoing, delivery.

    ``retry_count`` is only ever incremented by the scheduler's failure
    handler and never exceeds ``max_retries`` while the job is alive.
    """

    id: str
    recipient: str
    subject: str
    body: str
    priority: Priority = Priority.NORMAL
    retry_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    last_attempt_at: datetime | None = None

    @classmethod
    def from_spec(cls, spec: JobSpec) -> Job:
        return cls(
            id=spec.id,
            recipient=spec.recipient,
            subject=spec.subject,
            body=spec.body,
            priority=Priority(spec.priority),
        )

    def to_dict(self) -> dict[str, object]:
        """Serialise for logging / API responses."""
        return {
            "id": self.id,
            "recipient": self.recipient,
            "priority": self.priority.name,
            "retry_count": self.retry_count,
            "created_at": self.created_at.isoformat(),
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
        }


Processor = Callable[[Job], Awaitable[bool]]
"""Processes one job; truthy result means delivered, falsy or raising means failed."""

EventCallback = Callable[[Job], None]


@dataclass
class SchedulerConfig:
    """Scheduler tuning.

    Attributes:
        max_retries: Queue-level retries before a job is failed for good
        retry_delay: Base requeue delay in seconds, doubled per retry
        processing_interval: Seconds between processing ticks
        max_concurrent: Ceiling on jobs in flight at once
    """

    max_retries: int = 3
    retry_delay: float = 1.0
    processing_interval: float = 0.1
    max_concurrent: int = 5

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise InvalidConfigError("max_retries", self.max_retries, "must be >= 0")
        if self.retry_delay < 0:
            raise InvalidConfigError("retry_delay", self.retry_delay, "must be >= 0")
        if self.processing_interval <= 0:
            raise InvalidConfigError("processing_interval", self.processing_interval, "must be > 0")
        if self.max_concurrent < 1:
            raise InvalidConfigError("max_concurrent", self.max_concurrent, "must be >= 1")

    def requeue_delay(self, retry_count: int) -> float:
        """Delay before a job with ``retry_count`` failures re-enters the wait list."""
        return self.retry_delay * (2 ** (retry_count - 1))
