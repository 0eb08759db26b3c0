"""Courier settings.

``CourierSettings`` collects every tunable of the pipeline (server bind,
logging, rate limit, breaker, per-attempt retry, scheduler) in one
pydantic-settings model so the service, API and CLI all read the same
values.

Order of precedence (highest → lowest):
    1. Environment variables (``COURIER_MAX_CONCURRENT``, etc.)
    2. ``.env`` file
    3. Defaults below

Nested values use ``__`` as delimiter, and the backend list is read as
JSON::

    COURIER_BACKENDS='[{"name": "primary", "failure_rate": 0.5}]'

Tags:
    settings, configuration, pydantic, environment, courier
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendConfig(BaseModel):
    """A configured delivery backend.

    ``failure_rate`` only applies to the simulated backends shipped with
    courier; real backends ignore it.
    """

    name: str = Field(min_length=1)
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    latency: float = Field(default=0.0, ge=0.0, description="Simulated send latency in seconds")


def _default_backends() -> list[BackendConfig]:
    return [
        BackendConfig(name="ProviderA", failure_rate=0.5),
        BackendConfig(name="ProviderB", failure_rate=0.3),
    ]


class CourierSettings(BaseSettings):
    """Settings for the courier service."""

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ── Server ───────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    api_prefix: str = Field(default="", description="URL prefix for all endpoints")
    api_title: str = Field(default="courier", description="OpenAPI title")

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool | None = Field(default=None, description="None = auto-detect from TTY")

    # ── Store ────────────────────────────────────────────────────
    rate_limit_per_minute: float = Field(default=5.0, gt=0)

    # ── Circuit breaker ──────────────────────────────────────────
    breaker_failure_threshold: int = Field(default=3, ge=1)
    breaker_cooldown: float = Field(default=10.0, ge=0, description="Seconds")

    # ── Per-attempt retry ────────────────────────────────────────
    send_attempts: int = Field(default=3, ge=1)
    send_base_delay: float = Field(default=0.1, ge=0, description="Seconds")

    # ── Scheduler ────────────────────────────────────────────────
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0, description="Seconds")
    processing_interval: float = Field(default=0.1, gt=0, description="Seconds")
    max_concurrent: int = Field(default=5, ge=1)

    # ── Backends ─────────────────────────────────────────────────
    backends: list[BackendConfig] = Field(default_factory=_default_backends)

    @field_validator("backends")
    @classmethod
    def validate_unique_names(cls, v: list[BackendConfig]) -> list[BackendConfig]:
        """Each backend owns one circuit breaker, keyed by name."""
        names = [backend.name for backend in v]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate backend names: {duplicates}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> CourierSettings:
    """Cached settings, loaded once per process."""
    return CourierSettings()
