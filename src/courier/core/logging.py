"""
Courier Logging - structlog setup shared by every pipeline component.

The scheduler, failover dispatcher, service and API all log through
:func:`get_logger`, using dotted event names plus keyword fields::

    logger = get_logger(__name__)
    logger.info("scheduler.enqueued", job_id="A", priority="HIGH", waiting=3)

Processor chain built by :func:`configure_logging`::

    TimeStamper(iso)
      → merge_contextvars          (job_id / request_id bound per task)
      → add_log_level, add_logger_name
      → StackInfoRenderer, set_exc_info
      → ServiceTag                 (service.name)
      → ECS field names            (JSON only: @timestamp, log.level)
      → JSONRenderer | ConsoleRenderer

Rendered lines are handed to the stdlib ``logging`` module so uvicorn,
pytest's caplog and courier share one output stream.

Tags:
    logging, structlog, observability, courier
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# JSON output uses Elastic Common Schema names
_ECS_RENAMES: Mapping[str, str] = {
    "timestamp": "@timestamp",
    "level": "log.level",
}


class ServiceTag:
    """Processor stamping ``service.name`` on every event."""

    def __init__(self, service: str) -> None:
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def _rename_ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for old, new in _ECS_RENAMES.items():
        if old in event_dict:
            event_dict[new] = event_dict.pop(old)
    return event_dict


def _build_processors(service: str, json_format: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        ServiceTag(service),
    ]
    if json_format:
        processors.append(_rename_ecs_fields)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: str | int = "INFO",
    json_format: bool | None = None,
    service: str = "courier",
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Minimum level, name (``"debug"``) or number
        json_format: JSON lines when True, console when False, JSON when
            stdout is not a tty if None
        service: Value of the ``service.name`` field

    Safe to call again; later calls replace the earlier configuration.
    """
    numeric_level = _resolve_level(level)
    if json_format is None:
        json_format = not sys.stdout.isatty()

    structlog.configure(
        processors=_build_processors(service, json_format),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(numeric_level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)


def get_logger(name: str | None = None) -> Any:
    """Structured logger for ``name`` (normally ``__name__``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Mapping[str, Token[Any]]:
    """Bind fields into every subsequent log line of the current task."""
    return structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scoped ``bind_context`` usable with ``with`` and ``async with``.

    On exit the bound keys go back to whatever they were before entry, so
    nested scopes (request → job) unwind cleanly. Values live in
    contextvars and are therefore task-local.

    Example:
        async with LogContext(job_id="A"):
            logger.info("failover.delivered", backend="primary")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._tokens: Mapping[str, Token[Any]] = {}

    def _enter(self) -> LogContext:
        self._tokens = bind_context(**self.fields)
        return self

    def _exit(self) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}

    def __enter__(self) -> LogContext:
        return self._enter()

    def __exit__(self, *exc_info: object) -> None:
        self._exit()

    async def __aenter__(self) -> LogContext:
        return self._enter()

    async def __aexit__(self, *exc_info: object) -> None:
        self._exit()


__all__ = [
    "LogContext",
    "ServiceTag",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
