"""Core primitives shared by every courier module: logging, errors, settings."""

from courier.core.errors import (
    AllBackendsExhaustedError,
    BackendError,
    BackendSendError,
    ConfigError,
    CourierError,
    DispatchError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    RetriesExhaustedError,
    ValidationError,
)
from courier.core.logging import configure_logging, get_logger

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
    "configure_logging",
    "get_logger",
]
