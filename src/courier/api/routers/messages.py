"""
Messages router — submit messages and look up their delivery status.

Endpoints:
    POST /messages        Submit a message (Queued / Duplicate / Rate limited)
    GET  /messages/{id}   Current delivery status

Submission is answered synchronously; delivery happens later on the
scheduler. Follow progress with ``GET /messages/{id}`` or the ``/ws``
websocket.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, HTTPException, Path

from courier.api.deps import Service
from courier.api.schemas import MessageStatus, SendMessageRequest, SubmitData, SuccessResponse
from courier.execution.models import Priority
from courier.service import SubmitResult

router = APIRouter(prefix="/messages", tags=["messages"])

QUEUED_HINT = "You will be notified when the message is sent. Subscribe on /ws for real-time updates."


# Handlers are async: enqueue arms timers on the running event loop.
@router.post("", response_model=SuccessResponse[SubmitData])
async def send_message(body: SendMessageRequest, service: Service):
    """Submit a message for delivery.

    Example:
        POST /messages
        {"id": "welcome-42", "to": "user@example.com", "subject": "Hi", "body": "..."}

        Response:
        {"data": {"id": "welcome-42", "result": "Queued", "message": "..."}}
    """
    started = time.perf_counter()
    result = service.submit(
        body.id,
        body.to,
        body.subject,
        body.body,
        priority=Priority[body.priority],
    )
    data = SubmitData(id=body.id, result=result.value, message=QUEUED_HINT if result is SubmitResult.QUEUED else result.value)
    return SuccessResponse(data=data, elapsed_ms=(time.perf_counter() - started) * 1000)


@router.get("/{message_id}", response_model=SuccessResponse[MessageStatus])
async def get_message_status(
    service: Service,
    message_id: str = Path(..., description="Message id given at submission"),
):
    """Current status string, 404 if the id was never accepted."""
    status = service.get_status(message_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"message '{message_id}' not found")
    return SuccessResponse(data=MessageStatus(id=message_id, status=status))
