"""
Shared rich console and table rendering for CLI commands.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console()


def print_table(rows: Iterable[Sequence[Any]], columns: Sequence[str], *, title: str = "") -> None:
    """Render rows as a Rich table."""
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*[str(v) if v is not None else "" for v in row])
    console.print(table)
