"""Per-attempt retry with exponential backoff.

Wraps a single backend ``send`` (or any async fallible operation) in a
bounded number of attempts. Waits double after every failure and carry no
jitter, so the schedule is deterministic:

    attempt 1 fails → sleep base_delay * 2**0
    attempt 2 fails → sleep base_delay * 2**1
    ...
    attempt N fails → the last exception propagates unchanged

Example:
    >>> policy = RetryPolicy(max_attempts=3, base_delay=0.1)
    >>> await policy.run(lambda: backend.send(to, subject, body))

Related modules:
    failover.py — runs one RetryPolicy per backend attempt
    scheduler.py — the separate queue-level retry layer
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from courier.core.errors import InvalidConfigError
from courier.core.logging import get_logger
from courier.execution.models import utcnow

T = TypeVar("T")

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]
RetryCallback = Callable[[int, Exception, float], None]


@dataclass
class ExponentialBackoff:
    """Exponential backoff without jitter.

    Delay = base_delay * (multiplier ** attempt)

    Attributes:
        max_attempts: Total attempts, including the first
        base_delay: Delay in seconds after the first failure
        multiplier: Exponential multiplier (default: 2)
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidConfigError("max_attempts", self.max_attempts, "must be >= 1")
        if self.base_delay < 0:
            raise InvalidConfigError("base_delay", self.base_delay, "must be >= 0")

    def next_delay(self, attempt: int) -> float:
        """Delay after the failure of zero-based ``attempt``."""
        return self.base_delay * (self.multiplier ** attempt)

    def should_retry(self, attempt: int) -> bool:
        """True if another attempt follows ``attempt`` (1-based count made so far)."""
        return attempt < self.max_attempts


@dataclass
class RetryContext:
    """Tracks one retry run.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_attempts=3))
        >>> result = await ctx.run_async(call_backend)
        >>> ctx.attempts
        1
    """

    strategy: ExponentialBackoff
    on_retry: RetryCallback | None = None
    sleep: SleepFunc = asyncio.sleep
    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    async def run_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` with retry logic.

        Raises:
            The last exception if all attempts are exhausted
        """
        while True:
            self.attempt += 1
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utcnow()))

                if not self.strategy.should_retry(self.attempt):
                    raise

                delay = self.strategy.next_delay(self.attempt - 1)

                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)

                await self.sleep(delay)


class RetryPolicy:
    """Reusable retry configuration for async operations.

    Each :meth:`run` gets a fresh :class:`RetryContext`, so one policy can
    be shared by every backend slot and every concurrent job.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.1,
        *,
        on_retry: RetryCallback | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.strategy = ExponentialBackoff(max_attempts=max_attempts, base_delay=base_delay)
        self._on_retry = on_retry
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return self.strategy.max_attempts

    @property
    def base_delay(self) -> float:
        return self.strategy.base_delay

    def _log_retry(self, attempt: int, error: Exception, delay: float) -> None:
        logger.debug("retry.scheduled", attempt=attempt, delay=delay, error=str(error))
        if self._on_retry:
            self._on_retry(attempt, error, delay)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds or attempts run out."""
        ctx = RetryContext(strategy=self.strategy, on_retry=self._log_retry, sleep=self._sleep)
        return await ctx.run_async(operation)

    def __repr__(self) -> str:
        return f"RetryPolicy(max_attempts={self.max_attempts}, base_delay={self.base_delay})"


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.1,
) -> T:
    """Convenience wrapper: ``await retry(op, 3, 0.1)``."""
    return await RetryPolicy(max_attempts=max_attempts, base_delay=base_delay).run(operation)
