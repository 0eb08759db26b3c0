"""Circuit breaker for delivery backends.

One breaker guards each backend. The failover dispatcher asks
``is_open()`` before attempting a backend and skips it while open.

There is no stored CLOSED/OPEN state; openness is computed on every call::

    open = failure_count >= failure_threshold
           and now - last_failure_time < cooldown

The failure count is sticky: the cooldown elapsing makes ``is_open()``
false again, but the count stays at or above the threshold, so a single
further failure reopens the breaker immediately. Only ``record_success()``
clears it.

Example:
    >>> breaker = CircuitBreaker(name="ProviderA")
    >>> if not breaker.is_open():
    ...     try:
    ...         await backend.send(to, subject, body)
    ...         breaker.record_success()
    ...     except Exception:
    ...         breaker.record_failure()
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from courier.core.errors import InvalidConfigError

Clock = Callable[[], float]


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of a breaker for stats endpoints."""

    name: str
    failure_count: int
    failure_threshold: int
    last_failure_time: float | None
    open: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time,
            "open": self.open,
        }


@dataclass
class CircuitBreaker:
    """Failure counter with threshold and cooldown.

    Attributes:
        name: Identifier, normally the backend name
        failure_threshold: Failures before the breaker opens
        cooldown: Seconds the breaker stays open after the last failure
        clock: Monotonic time source in seconds
    """

    name: str = "default"
    failure_threshold: int = 3
    cooldown: float = 10.0
    clock: Clock = field(default=time.monotonic, repr=False)

    _failure_count: int = field(default=0, init=False)
    _last_failure_time: float | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise InvalidConfigError("failure_threshold", self.failure_threshold, "must be >= 1")
        if self.cooldown < 0:
            raise InvalidConfigError("cooldown", self.cooldown, "must be >= 0")

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    def is_open(self) -> bool:
        """True while the threshold is reached and the cooldown has not elapsed."""
        if self._failure_count < self.failure_threshold or self._last_failure_time is None:
            return False
        return self.clock() - self._last_failure_time < self.cooldown

    def record_failure(self) -> None:
        """Count a failed attempt and restart the cooldown."""
        self._failure_count += 1
        self._last_failure_time = self.clock()

    def record_success(self) -> None:
        """Clear the failure count. The last failure time is left alone."""
        self._failure_count = 0

    def reset(self) -> None:
        """Forget all history (maintenance / tests)."""
        self._failure_count = 0
        self._last_failure_time = None

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            name=self.name,
            failure_count=self._failure_count,
            failure_threshold=self.failure_threshold,
            last_failure_time=self._last_failure_time,
            open=self.is_open(),
        )


class BreakerRegistry:
    """Named breakers, one per backend, created at startup and never removed."""

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown: float = 10.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self._breakers: dict[str, CircuitBreaker] = {}
        self._failure_threshold = failure_threshold
        self._cooldown = cooldown
        self._clock = clock

    def get(self, name: str) -> CircuitBreaker | None:
        """Get a breaker by name, None if not registered."""
        return self._breakers.get(name)

    def get_or_create(self, name: str) -> CircuitBreaker:
        """Get or create the breaker for ``name``."""
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name=name,
                failure_threshold=self._failure_threshold,
                cooldown=self._cooldown,
                clock=self._clock,
            )
        return self._breakers[name]

    def list_all(self) -> list[str]:
        """Registered breaker names in creation order."""
        return list(self._breakers.keys())

    def snapshots(self) -> list[BreakerSnapshot]:
        return [breaker.snapshot() for breaker in self._breakers.values()]

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()
