"""
FastAPI dependency injection.

The DispatchService is a process-wide singleton created in the app
lifespan and kept on ``app.state``; routers receive it through
:data:`Service`.

Usage in routers::

    @router.get("/things")
    async def list_things(service: Service):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException
from starlette.requests import HTTPConnection

from courier.service import DispatchService


def get_service(conn: HTTPConnection) -> DispatchService:
    """Works for both HTTP requests and websocket connections."""
    service = getattr(conn.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="dispatch service not started")
    return service


Service = Annotated[DispatchService, Depends(get_service)]
