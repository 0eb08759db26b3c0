"""
Delivery backend protocol.

A backend is anything with a ``name`` and an async ``send``. ``send``
returns truthy on delivery and raises (or returns falsy) on failure.
Backends are assumed unreliable; intermittent failure is expected and
absorbed by the retry and failover layers.

Guardrails:
    ❌ DON'T: Retry inside a backend
    ✅ DO: Fail fast and let RetryPolicy / FailoverDispatcher decide

Tags:
    courier, backends, protocol
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Backend(Protocol):
    """Delivery capability: ``send(to, subject, body) -> bool``."""

    name: str

    async def send(self, to: str, subject: str, body: str) -> bool:
        """Deliver one message. Raise or return False on failure."""
        ...
