"""
CLI: ``courier serve`` — start the API server.
"""

from __future__ import annotations

import typer
import uvicorn

from courier.cli.utils import console
from courier.core.logging import configure_logging
from courier.core.settings import get_settings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Start the courier REST / websocket API."""
    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    level = (log_level or settings.log_level).lower()

    configure_logging(level=level, json_format=settings.log_json, service="courier-api")

    console.print(f"[bold green]Starting courier API[/bold green] on {host}:{port}")
    # single worker: the queue lives in process memory
    uvicorn.run(
        "courier.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=1,
        log_level=level,
    )
