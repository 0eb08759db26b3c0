"""
Stats router — queue gauges and breaker state.

Endpoints:
    GET /health   Liveness plus scheduler state
    GET /stats    Queue length / in-flight count and per-backend breakers
"""

from __future__ import annotations

from fastapi import APIRouter

from courier.api.deps import Service
from courier.api.schemas import ServiceStats, SuccessResponse

router = APIRouter(tags=["stats"])


@router.get("/health", response_model=SuccessResponse[dict])
async def health(service: Service):
    return SuccessResponse(data={"status": "ok", "scheduler": service.scheduler.state.value})


@router.get("/stats", response_model=SuccessResponse[ServiceStats])
async def stats(service: Service):
    return SuccessResponse(data=ServiceStats(**service.describe()))
