"""courier command-line interface."""

from courier.cli.app import app

__all__ = ["app"]
