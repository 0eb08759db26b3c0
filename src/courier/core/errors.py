"""
Typed failures for the delivery pipeline.

Every error courier raises on purpose is a :class:`CourierError`. The
class decides the category and whether retrying can help; instances carry
structured context (job, recipient, backend, attempt) that goes straight
into log lines and API problem responses.

Hierarchy::

    CourierError                      INTERNAL
    ├── BackendError                  BACKEND
    │   └── BackendSendError          BACKEND   retryable
    ├── DispatchError                 DISPATCH
    │   ├── AllBackendsExhaustedError DISPATCH  retryable (at queue level)
    │   └── RetriesExhaustedError     DISPATCH  terminal
    ├── ValidationError               VALIDATION
    └── ConfigError                   CONFIG
        └── InvalidConfigError        CONFIG

A backend skipped because its breaker is open is not an error and
raises nothing.

Examples:
    >>> error = BackendSendError("smtp timeout").with_context(backend="primary")
    >>> error.retryable
    True
    >>> error.to_dict()["backend"]
    'primary'
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used for HTTP status mapping and log filtering."""

    BACKEND = "BACKEND"
    DISPATCH = "DISPATCH"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Where an error happened.

    Attributes:
        job_id: Message / job id
        recipient: Recipient address
        backend: Backend that raised
        attempt: 1-based attempt number
        metadata: Anything else passed to ``with_context``
    """

    job_id: str | None = None
    recipient: str | None = None
    backend: str | None = None
    attempt: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def known_keys(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls) if f.name != "metadata")

    def to_dict(self) -> dict[str, Any]:
        """Non-empty fields, with metadata flattened in."""
        data = {key: getattr(self, key) for key in ("job_id", "recipient", "backend", "attempt")}
        data = {key: value for key, value in data.items() if value is not None}
        return {**data, **self.metadata}


class CourierError(Exception):
    """Root of the courier error hierarchy.

    Subclasses pick their defaults through ``default_category`` and
    ``default_retryable``; callers may override both per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category if category is not None else self.default_category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.retry_after = retry_after
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **values: Any) -> CourierError:
        """Attach context and return ``self``, for ``raise X(...).with_context(...)``."""
        known = ErrorContext.known_keys()
        for key, value in values.items():
            if key in known:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def _details(self) -> dict[str, Any]:
        """Extra, subclass-specific fields for :meth:`to_dict`."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Flat dict for ``logger.error(..., **err.to_dict())`` and API bodies."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        data.update(self.context.to_dict())
        data.update(self._details())
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# ── Backend ──────────────────────────────────────────────────────────────


class BackendError(CourierError):
    default_category = ErrorCategory.BACKEND


class BackendSendError(BackendError):
    """One ``send`` call failed or returned a falsy result."""

    default_retryable = True


# ── Dispatch ─────────────────────────────────────────────────────────────


class DispatchError(CourierError):
    default_category = ErrorCategory.DISPATCH


class AllBackendsExhaustedError(DispatchError):
    """No backend delivered: each was skipped (breaker open) or ran out of attempts.

    Retryable because the scheduler requeues the job.
    """

    default_retryable = True

    def __init__(
        self,
        message: str = "all backends exhausted",
        *,
        skipped: list[str] | None = None,
        failed: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.skipped = list(skipped) if skipped else []
        self.failed = list(failed) if failed else []

    def _details(self) -> dict[str, Any]:
        return {"skipped": self.skipped, "failed": self.failed}


class RetriesExhaustedError(DispatchError):
    """The scheduler gave up on a job after ``max_retries`` requeues."""

    def __init__(self, job_id: str, retry_count: int, max_retries: int):
        self.retry_count = retry_count
        self.max_retries = max_retries
        super().__init__(
            f"job {job_id} failed after {retry_count} attempts (max_retries={max_retries})",
            context=ErrorContext(job_id=job_id, attempt=retry_count),
        )

    def _details(self) -> dict[str, Any]:
        return {"max_retries": self.max_retries}


# ── Input / configuration ────────────────────────────────────────────────


class ValidationError(CourierError):
    """Submitted data is unusable; ``field`` names the offending input."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field

    def _details(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class ConfigError(CourierError):
    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """A tunable is out of range, e.g. ``max_concurrent=0``."""

    def __init__(self, key: str, value: Any, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid configuration {key}={value!r}: {reason}")


__all__ = [
    "AllBackendsExhaustedError",
    "BackendError",
    "BackendSendError",
    "ConfigError",
    "CourierError",
    "DispatchError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "RetriesExhaustedError",
    "ValidationError",
]
