"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers and the
lifespan that owns the DispatchService: the service is built on startup
and shut down (scheduler stopped, in-flight deliveries awaited) on exit.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from courier import __version__
from courier.api.errors import courier_error_handler, unhandled_exception_handler
from courier.api.middleware import RequestIDMiddleware
from courier.core.errors import CourierError
from courier.core.logging import get_logger
from courier.core.settings import CourierSettings, get_settings
from courier.service import DispatchService

log = get_logger("courier.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the service on startup, drain it on shutdown."""
    if getattr(app.state, "service", None) is None:
        app.state.service = DispatchService.from_settings(app.state.settings)
    service: DispatchService = app.state.service

    log.info(
        "courier API starting",
        version=app.version,
        backends=[slot.name for slot in service.failover.slots],
    )

    yield

    await service.aclose()
    log.info("courier API shut down")


def create_app(
    *,
    settings: CourierSettings | None = None,
    service: DispatchService | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : CourierSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    service : DispatchService | None
        Pre-built service (tests inject scripted backends this way). When
        ``None`` one is built from settings on startup.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.state.settings = settings
    app.state.service = service

    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(CourierError, courier_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    from courier.api.routers import messages, stats, stream

    prefix = settings.api_prefix
    app.include_router(messages.router, prefix=prefix)
    app.include_router(stats.router, prefix=prefix)
    app.include_router(stream.router, prefix=prefix)

    return app
