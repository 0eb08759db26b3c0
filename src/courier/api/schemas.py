"""
API schemas — request bodies, success envelope and RFC 7807 errors.

Every 2xx response is wrapped in :class:`SuccessResponse`; every 4xx/5xx
response is a :class:`ProblemDetail`.
"""

from __future__ import annotations

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

PriorityName = Literal["HIGH", "NORMAL", "LOW"]


# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Field-level error detail."""

    code: str = Field(description="Machine-readable error code (e.g., 'REQUIRED')")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs»."""

    type: str = Field(default="about:blank", description="Error type URI")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    errors: list[ErrorDetail] = Field(default_factory=list)


# ── Success Envelope ─────────────────────────────────────────────────────


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope."""

    data: T = Field(description="Response payload (type varies by endpoint)")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")
    warnings: list[str] = Field(default_factory=list)


# ── Messages ─────────────────────────────────────────────────────────────


class SendMessageRequest(BaseModel):
    """Body of ``POST /messages``."""

    id: str = Field(min_length=1, description="Caller-assigned unique message id")
    to: str = Field(min_length=1, description="Recipient address")
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)
    priority: PriorityName = Field(default="NORMAL")


class SubmitData(BaseModel):
    id: str
    result: str = Field(description="Queued, Duplicate or Rate limited")
    message: str


class MessageStatus(BaseModel):
    id: str
    status: str


class QueueStatsSchema(BaseModel):
    length: int = Field(description="Jobs waiting to be dispatched")
    active: int = Field(description="Jobs currently in flight")


class BreakerSchema(BaseModel):
    name: str
    failure_count: int
    failure_threshold: int
    last_failure_time: float | None
    open: bool


class ServiceStats(BaseModel):
    queue: QueueStatsSchema
    state: str
    pending_retries: int
    breakers: list[BreakerSchema]
