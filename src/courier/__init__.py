"""
Courier - resilient in-process message delivery.

A priority job queue drives concurrent delivery attempts against a pool of
interchangeable backends, each guarded by its own circuit breaker, with
per-attempt retry and automatic failover.

Subpackages:
- courier.core: logging, errors, settings
- courier.execution: retry, circuit breakers, failover, priority scheduler
- courier.store: status, dedup and rate limiting
- courier.backends: backend protocol and simulated backends
- courier.api: FastAPI front end
- courier.cli: Typer CLI
"""

__version__ = "0.1.0"
