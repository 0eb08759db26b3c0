"""
CLI: ``courier demo`` — push sample messages through simulated backends.

Builds a DispatchService from settings (simulated backends with their
configured failure rates), submits a mix of priorities, waits until every
message reaches a terminal status and prints the outcome together with
the breaker state.
"""

from __future__ import annotations

import asyncio
import time

import typer

from courier.cli.utils import console, print_table
from courier.core.logging import configure_logging
from courier.core.settings import get_settings
from courier.execution.models import Priority
from courier.service import STATUS_FAILED_IN_QUEUE, DispatchService

_PRIORITIES = [Priority.LOW, Priority.NORMAL, Priority.HIGH]


def _is_terminal(status: str | None) -> bool:
    return status is not None and (status.startswith("Sent via") or status == STATUS_FAILED_IN_QUEUE)


async def _run_demo(count: int, timeout: float) -> tuple[list[tuple[str, str, str | None]], DispatchService]:
    service = DispatchService.from_settings(get_settings())

    submitted: list[tuple[str, Priority]] = []
    for i in range(count):
        message_id = f"demo-{i + 1}"
        priority = _PRIORITIES[i % len(_PRIORITIES)]
        result = service.submit(
            message_id,
            f"user{i + 1}@example.com",
            f"Demo message {i + 1}",
            "Sent by courier demo.",
            priority=priority,
        )
        console.print(f"[dim]{message_id}[/dim] ({priority.name}) → {result.value}")
        submitted.append((message_id, priority))

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if all(_is_terminal(service.get_status(mid)) for mid, _ in submitted):
            break
        await asyncio.sleep(0.1)

    await service.aclose()
    return [(mid, p.name, service.get_status(mid)) for mid, p in submitted], service


def demo(
    count: int = typer.Option(6, "--count", "-n", min=1, help="Messages to submit"),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait for delivery"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show pipeline logs"),
) -> None:
    """Submit sample messages and report how they were delivered."""
    configure_logging(level="DEBUG" if verbose else "WARNING", json_format=False, service="courier-demo")

    rows, service = asyncio.run(_run_demo(count, timeout))

    print_table(rows, ["Id", "Priority", "Status"], title="Delivery results")
    print_table(
        [(b.name, b.failure_count, "open" if b.open else "closed") for b in service.breaker_stats()],
        ["Backend", "Failures", "Breaker"],
        title="Circuit breakers",
    )
