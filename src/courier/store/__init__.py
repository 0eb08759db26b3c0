"""Status store, dedup and rate limiting."""

from courier.store.memory import InMemoryStore

__all__ = ["InMemoryStore"]
