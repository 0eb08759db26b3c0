"""
In-process backends for demos and tests.

``SimulatedBackend`` fails at a configured random rate, standing in for a
real provider during local runs. ``RecordingBackend`` follows a fixed
script of outcomes and records every call, which makes failover paths
deterministic in tests.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Iterable
from dataclasses import dataclass, field

from courier.core.errors import BackendSendError
from courier.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SentMessage:
    to: str
    subject: str
    body: str


class SimulatedBackend:
    """Backend that fails with probability ``failure_rate``."""

    def __init__(
        self,
        name: str,
        failure_rate: float = 0.0,
        latency: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self.name = name
        self.failure_rate = failure_rate
        self.latency = latency
        self._rng = rng or random.Random()
        self.sent: list[SentMessage] = []

    async def send(self, to: str, subject: str, body: str) -> bool:
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._rng.random() < self.failure_rate:
            raise BackendSendError(f"{self.name} failed").with_context(backend=self.name, recipient=to)
        self.sent.append(SentMessage(to, subject, body))
        logger.debug("backend.sent", backend=self.name, to=to)
        return True

    def __repr__(self) -> str:
        return f"SimulatedBackend({self.name!r}, failure_rate={self.failure_rate})"


@dataclass
class RecordingBackend:
    """Scripted backend.

    ``outcomes`` is consumed one entry per call: ``True`` delivers,
    ``False`` returns a falsy result, an exception instance is raised.
    When the script runs out, ``default`` decides.
    """

    name: str
    outcomes: list[bool | Exception] = field(default_factory=list)
    default: bool | Exception = True
    calls: list[SentMessage] = field(default_factory=list, init=False)

    @classmethod
    def always_failing(cls, name: str) -> RecordingBackend:
        return cls(name=name, default=BackendSendError(f"{name} is down"))

    @classmethod
    def scripted(cls, name: str, outcomes: Iterable[bool | Exception]) -> RecordingBackend:
        return cls(name=name, outcomes=list(outcomes))

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def send(self, to: str, subject: str, body: str) -> bool:
        self.calls.append(SentMessage(to, subject, body))
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
