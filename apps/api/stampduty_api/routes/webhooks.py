"""Inbound webhook routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from stampduty_sdk import WebhookVerificationError
from stampduty_api.webhooks.secrets import UnknownWorkspaceError
from stampduty_api.webhooks.service import (
    DeliveryInProgressError,
    HandlerError,
    WebhookReceiver,
    get_receiver,
)

router = APIRouter(prefix="/v1", tags=["webhooks"])


async def _receive(
    request: Request,
    receiver: WebhookReceiver,
    workspace_id: Optional[str],
):
    # Verify over the bytes as received; never re-serialize the JSON
    raw_body = await request.body()

    try:
        result = await run_in_threadpool(receiver.receive, workspace_id, request.headers, raw_body)
    except UnknownWorkspaceError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WebhookVerificationError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"detail": str(e), "error": e.code},
        )
    except DeliveryInProgressError as e:
        # Non-2xx so the sender retries after the in-flight attempt settles
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(e), "error": "delivery_in_progress", "id": e.event.id},
        )
    except HandlerError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Event handler failed", "error": "handler_failed", "id": e.event.id},
        )

    return {"received": True, "status": result.status, "id": result.event.id}


@router.post("/webhooks", status_code=status.HTTP_200_OK)
async def receive_webhook(
    request: Request,
    receiver: WebhookReceiver = Depends(get_receiver),
):
    """Receive a delivery signed with the default workspace secret."""
    return await _receive(request, receiver, None)


@router.post("/webhooks/{workspace_id}", status_code=status.HTTP_200_OK)
async def receive_workspace_webhook(
    workspace_id: str,
    request: Request,
    receiver: WebhookReceiver = Depends(get_receiver),
):
    """Receive a delivery for a specific workspace."""
    return await _receive(request, receiver, workspace_id)
