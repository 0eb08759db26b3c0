"""Execution layer: retry, circuit breakers, failover and the priority scheduler.

Modules
-------
models           Job, JobSpec, Priority, SchedulerConfig, queue events
retry            RetryPolicy -- per-attempt exponential backoff
circuit_breaker  CircuitBreaker, BreakerRegistry -- per-backend fail-fast
failover         FailoverDispatcher -- ordered backends with breaker gating
scheduler        PriorityScheduler -- wait list, processing tick, requeue
"""

from courier.execution.circuit_breaker import BreakerRegistry, BreakerSnapshot, CircuitBreaker
from courier.execution.failover import BackendSlot, DispatchOutcome, FailoverDispatcher
from courier.execution.models import (
    Job,
    JobSpec,
    Priority,
    Processor,
    QueueEventType,
    SchedulerConfig,
    SchedulerState,
)
from courier.execution.retry import ExponentialBackoff, RetryContext, RetryPolicy, retry
from courier.execution.scheduler import PriorityScheduler

__all__ = [
    "BackendSlot",
    "BreakerRegistry",
    "BreakerSnapshot",
    "CircuitBreaker",
    "DispatchOutcome",
    "ExponentialBackoff",
    "FailoverDispatcher",
    "Job",
    "JobSpec",
    "Priority",
    "PriorityScheduler",
    "Processor",
    "QueueEventType",
    "RetryContext",
    "RetryPolicy",
    "SchedulerConfig",
    "SchedulerState",
    "retry",
]
