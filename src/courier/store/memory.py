"""In-memory status store with dedup and per-recipient rate limiting.

Process-local and lost on restart. Holds three maps:

    sent_ids      ids ever given a status (dedup)
    status_of     id → latest status string
    last_sent_at  recipient → time of the last admitted check

Rate-limit contract
───────────────────
``is_rate_limited`` is NOT a pure predicate. A check that admits the
recipient also consumes the slot by stamping the current time:

    never seen               → record now, return False
    now - last < interval    → return True, timestamp untouched
    otherwise                → record now, return False

with ``interval = 60 / rate_per_minute`` seconds. Callers that probe the
limit without intending to send will still use up the recipient's slot.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from courier.core.errors import InvalidConfigError
from courier.core.logging import get_logger

logger = get_logger(__name__)


class InMemoryStore:
    """Status, dedup and rate-limit bookkeeping for submitted messages."""

    def __init__(
        self,
        rate_limit_per_minute: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate_limit_per_minute <= 0:
            raise InvalidConfigError("rate_limit_per_minute", rate_limit_per_minute, "must be > 0")
        self.rate_limit_per_minute = rate_limit_per_minute
        self._clock = clock
        self._sent_ids: set[str] = set()
        self._status: dict[str, str] = {}
        self._last_sent_at: dict[str, float] = {}

    @property
    def min_interval(self) -> float:
        """Seconds required between two admitted sends to one recipient."""
        return 60.0 / self.rate_limit_per_minute

    def is_rate_limited(self, recipient: str) -> bool:
        """Check the recipient's limit; an admitted check records the send time."""
        now = self._clock()
        last = self._last_sent_at.get(recipient)

        if last is None:
            self._last_sent_at[recipient] = now
            return False

        if now - last < self.min_interval:
            logger.info("store.rate_limited", recipient=recipient, retry_after=self.min_interval - (now - last))
            return True

        self._last_sent_at[recipient] = now
        return False

    def is_duplicate(self, id: str) -> bool:
        return id in self._sent_ids

    def mark_sent(self, id: str, status: str) -> None:
        """Record ``status`` for ``id``; also marks the id as seen."""
        self._sent_ids.add(id)
        self._status[id] = status

    def get_status(self, id: str) -> str | None:
        return self._status.get(id)

    def __len__(self) -> int:
        return len(self._status)
