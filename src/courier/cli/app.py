"""
Root Typer application for the courier CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from courier import __version__
from courier.cli.config import show_config
from courier.cli.demo import demo
from courier.cli.serve import serve

app = Typer(
    name="courier",
    help="Resilient message delivery with priority queueing and failover.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"courier {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run the API, try the pipeline, inspect settings."""


app.command("serve", help="Start the API server.")(serve)
app.command("demo", help="Run sample messages through simulated backends.")(demo)
app.command("config", help="Show the effective configuration.")(show_config)
