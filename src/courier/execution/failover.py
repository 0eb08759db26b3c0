"""Failover dispatch across an ordered list of backends.

ARCHITECTURE
────────────
::

    FailoverDispatcher.dispatch(to, subject, body)
      for slot in slots:                       (configured order)
        ├── breaker open?  → skip, no attempt
        ├── RetryPolicy.run(backend.send)
        │     ├── success  → breaker.record_success(), return outcome
        │     └── exhausted → breaker.record_failure(), next slot
      all slots skipped or failed → DispatchOutcome(success=False)

The dispatcher knows nothing about queue-level retry counts; it is
wrapped into a scheduler ``Processor`` by the service.

Related modules:
    retry.py           — per-attempt retry inside one slot
    circuit_breaker.py — decides when a slot is skipped
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from courier.backends.base import Backend
from courier.core.errors import AllBackendsExhaustedError, BackendSendError
from courier.core.logging import get_logger
from courier.execution.circuit_breaker import CircuitBreaker
from courier.execution.retry import RetryPolicy

logger = get_logger(__name__)

ALL_BACKENDS_EXHAUSTED = "all backends exhausted"


@dataclass(frozen=True)
class BackendSlot:
    """A backend paired with the breaker that guards it."""

    backend: Backend
    breaker: CircuitBreaker

    @property
    def name(self) -> str:
        return self.backend.name


@dataclass
class DispatchOutcome:
    """Result of one failover pass."""

    success: bool
    backend: str | None = None
    error: str | None = None
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def raise_for_outcome(self) -> None:
        """Raise :class:`AllBackendsExhaustedError` if no backend delivered."""
        if not self.success:
            raise AllBackendsExhaustedError(
                self.error or ALL_BACKENDS_EXHAUSTED,
                skipped=self.skipped,
                failed=self.failed,
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "backend": self.backend,
            "error": self.error,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class FailoverDispatcher:
    """Try backends in order until one delivers.

    Parameters
    ----------
    slots : list[BackendSlot]
        Backends in preference order.
    retry_policy : RetryPolicy | None
        Per-slot retry; defaults to 3 attempts with a 0.1s base delay.
    """

    def __init__(self, slots: list[BackendSlot], retry_policy: RetryPolicy | None = None) -> None:
        self._slots = list(slots)
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def slots(self) -> list[BackendSlot]:
        return list(self._slots)

    async def _attempt(self, slot: BackendSlot, recipient: str, subject: str, body: str) -> None:
        async def send_once() -> None:
            if not await slot.backend.send(recipient, subject, body):
                raise BackendSendError(f"{slot.name} rejected the message").with_context(
                    backend=slot.name, recipient=recipient
                )

        await self._retry_policy.run(send_once)

    async def dispatch(self, recipient: str, subject: str, body: str) -> DispatchOutcome:
        """Deliver one message, failing over between backends."""
        skipped: list[str] = []
        failed: list[str] = []

        for slot in self._slots:
            if slot.breaker.is_open():
                logger.warning("failover.backend_skipped", backend=slot.name, reason="breaker_open")
                skipped.append(slot.name)
                continue

            try:
                await self._attempt(slot, recipient, subject, body)
            except Exception as e:
                slot.breaker.record_failure()
                failed.append(slot.name)
                logger.error(
                    "failover.backend_failed",
                    backend=slot.name,
                    attempts=self._retry_policy.max_attempts,
                    failure_count=slot.breaker.failure_count,
                    error=str(e),
                )
                continue

            slot.breaker.record_success()
            logger.info("failover.delivered", backend=slot.name, recipient=recipient)
            return DispatchOutcome(success=True, backend=slot.name, skipped=skipped, failed=failed)

        logger.error("failover.exhausted", skipped=skipped, failed=failed)
        return DispatchOutcome(
            success=False,
            error=ALL_BACKENDS_EXHAUSTED,
            skipped=skipped,
            failed=failed,
        )
