"""
CLI: ``courier config`` — show the effective configuration.
"""

from __future__ import annotations

import typer

from courier.cli.utils import console, print_table
from courier.core.settings import get_settings


def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show current configuration."""
    settings = get_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump(mode="json").items()):
            console.print(f"COURIER_{key.upper()}={value}")
        return

    rows = [(key, value) for key, value in settings.model_dump(exclude={"backends"}).items()]
    print_table(rows, ["Setting", "Value"], title="Settings")
    print_table(
        [(b.name, b.failure_rate, b.latency) for b in settings.backends],
        ["Backend", "Failure rate", "Latency (s)"],
        title="Backends (failover order)",
    )
