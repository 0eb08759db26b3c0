"""
Status stream — websocket push of status updates.

Protocol (JSON text frames)::

    client → {"subscribe": "<message id>"}
    server → {"id": "<message id>", "status": "<status>"}

A client may subscribe to several ids on one connection. The current
status of an id is sent immediately on subscribe if it has one.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from courier.api.deps import Service
from courier.core.logging import get_logger
from courier.notifier import Subscription

logger = get_logger(__name__)

router = APIRouter(tags=["stream"])


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    async for update in sub:
        await websocket.send_json(update.to_dict())


@router.websocket("/ws")
async def status_stream(websocket: WebSocket, service: Service):
    await websocket.accept()
    logger.info("stream.connected")

    subscriptions: list[Subscription] = []
    forwarders: list[asyncio.Task[None]] = []
    try:
        while True:
            message = await websocket.receive_json()
            message_id = message.get("subscribe") if isinstance(message, dict) else None
            if not message_id:
                await websocket.send_json({"error": "expected {\"subscribe\": \"<id>\"}"})
                continue

            sub = service.hub.subscribe(str(message_id))
            subscriptions.append(sub)
            forwarders.append(asyncio.create_task(_forward(websocket, sub)))
            logger.info("stream.subscribed", message_id=message_id)
    except WebSocketDisconnect:
        logger.info("stream.disconnected", subscriptions=len(subscriptions))
    finally:
        for sub in subscriptions:
            sub.close()
        for task in forwarders:
            task.cancel()
        await asyncio.gather(*forwarders, return_exceptions=True)
