"""
Status push channel.

Subscribers follow one message id and receive a ``StatusUpdate`` every
time that id's status changes. On subscribe, the current status (if any)
is replayed immediately so late subscribers do not miss the state they
joined in.

Publishing is synchronous and never blocks: every subscription owns an
unbounded ``asyncio.Queue`` that the consumer drains at its own pace.

Usage::

    hub = StatusHub(status_lookup=store.get_status)
    sub = hub.subscribe("msg-1")
    async for update in sub:
        print(update.status)

Tags:
    courier, notifications, pubsub, asyncio
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from courier.core.logging import get_logger

logger = get_logger(__name__)

__all__ = ["StatusHub", "StatusUpdate", "Subscription"]


@dataclass(frozen=True)
class StatusUpdate:
    """A status change for one message id."""

    id: str
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "status": self.status}


class Subscription:
    """One subscriber's view of one message id."""

    def __init__(self, hub: StatusHub, message_id: str) -> None:
        self.id = f"sub_{uuid.uuid4().hex[:12]}"
        self.message_id = message_id
        self._hub = hub
        self._queue: asyncio.Queue[StatusUpdate] = asyncio.Queue()
        self._closed = False

    def _deliver(self, update: StatusUpdate) -> None:
        if not self._closed:
            self._queue.put_nowait(update)

    @property
    def pending(self) -> int:
        """Updates delivered but not yet consumed."""
        return self._queue.qsize()

    async def get(self) -> StatusUpdate:
        """Wait for the next update."""
        return await self._queue.get()

    def get_nowait(self) -> StatusUpdate:
        """Next update, raising ``asyncio.QueueEmpty`` if none is pending."""
        return self._queue.get_nowait()

    def close(self) -> None:
        """Stop receiving updates."""
        if not self._closed:
            self._closed = True
            self._hub.unsubscribe(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> StatusUpdate:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        return await self._queue.get()


class StatusHub:
    """In-process fan-out of status updates keyed by message id.

    Parameters
    ----------
    status_lookup : Callable[[str], str | None] | None
        Source of the current status used for replay on subscribe.
    """

    def __init__(self, status_lookup: Callable[[str], str | None] | None = None) -> None:
        self._status_lookup = status_lookup
        self._subscriptions: dict[str, dict[str, Subscription]] = {}

    def subscribe(self, message_id: str) -> Subscription:
        """Follow ``message_id``; replays its current status if it has one."""
        sub = Subscription(self, message_id)
        self._subscriptions.setdefault(message_id, {})[sub.id] = sub
        logger.debug("notifier.subscribed", message_id=message_id, subscription_id=sub.id)

        if self._status_lookup is not None:
            current = self._status_lookup(message_id)
            if current is not None:
                sub._deliver(StatusUpdate(message_id, current))

        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.message_id)
        if subs is None:
            return
        subs.pop(sub.id, None)
        if not subs:
            del self._subscriptions[sub.message_id]

    def publish(self, message_id: str, status: str) -> int:
        """Push a status to every subscriber of ``message_id``.

        Returns:
            Number of subscriptions the update was delivered to.
        """
        subs = list(self._subscriptions.get(message_id, {}).values())
        update = StatusUpdate(message_id, status)
        for sub in subs:
            sub._deliver(update)
        logger.debug("notifier.published", message_id=message_id, status=status, delivered=len(subs))
        return len(subs)

    def subscriber_count(self, message_id: str | None = None) -> int:
        if message_id is not None:
            return len(self._subscriptions.get(message_id, {}))
        return sum(len(subs) for subs in self._subscriptions.values())

    def close(self) -> None:
        """Close every subscription."""
        for subs in list(self._subscriptions.values()):
            for sub in list(subs.values()):
                sub.close()
        self._subscriptions.clear()
