"""Webhook endpoints for the ReviewPilot API.

- POST /webhooks/google: Google Business Profile push notifications
- GET  /webhooks/google/verify: subscription challenge echo
- GET  /webhooks/stream: Server-Sent Events feed of automation events
- POST /webhooks/test: push a synthetic review through the urgent path

Google retries notifications that are not acknowledged, so the push
endpoint answers 200 for everything except a bad signature.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse, StreamingResponse

from reviewpilot.api.dependencies import get_automation_service
from reviewpilot.api.models import WebhookAck
from reviewpilot.automation.service import AutomationService
from reviewpilot.config.settings import Settings, get_settings
from reviewpilot.webhooks.google import (
    SIGNATURE_HEADER,
    get_event_type,
    parse_review_notification,
    verify_signature,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

# Seconds between keep-alive comments on idle SSE connections
SSE_HEARTBEAT_SECONDS = 30.0

NON_REVIEW_EVENTS = {
    "location.updated": "location_updated",
    "account.updated": "account_updated",
}


async def _dispatch_notification(
    payload: dict[str, Any],
    service: AutomationService,
) -> WebhookAck:
    event_type = get_event_type(payload)

    if event_type in NON_REVIEW_EVENTS:
        message = payload.get("message") or {}
        await service.sink.publish(
            NON_REVIEW_EVENTS[event_type],
            {"data": message.get("data") or payload.get("data")},
        )
        return WebhookAck(status="received")

    review = parse_review_notification(payload)
    if review is None:
        return WebhookAck(status="ignored")

    await service.handle_webhook_review(review)
    return WebhookAck(status="received", review_id=review.id)


@router.post(
    "/google",
    response_model=WebhookAck,
    summary="Receive Google Business Profile notifications",
)
async def google_webhook(
    request: Request,
    service: AutomationService = Depends(get_automation_service),
    settings: Settings = Depends(get_settings),
) -> WebhookAck:
    """
    Handle a push notification.

    When GOOGLE_WEBHOOK_SECRET is set, the X-Goog-Signature header must
    carry a valid HMAC-SHA256 of the raw body.
    """
    body = await request.body()

    if settings.google_webhook_secret is not None:
        secret = settings.google_webhook_secret.get_secret_value()
        if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), secret):
            logger.warning("webhook_signature_invalid", client=request.client.host if request.client else None)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature",
            )

    try:
        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("payload is not a JSON object")
        ack = await _dispatch_notification(payload, service)
    except Exception as e:
        # Acknowledge anyway so Google does not redeliver
        logger.error("webhook_processing_failed", error=str(e), error_type=type(e).__name__)
        return WebhookAck(status="error")

    logger.info("webhook_received", status=ack.status, review_id=ack.review_id)
    return ack


@router.get(
    "/google/verify",
    response_class=PlainTextResponse,
    summary="Webhook subscription verification",
)
async def verify_google_webhook(
    challenge: str = Query(..., min_length=1),
) -> str:
    logger.info("webhook_verification_succeeded")
    return challenge


async def _event_stream(
    request: Request,
    service: AutomationService,
) -> AsyncIterator[str]:
    client_id, queue = service.sink.subscribe()
    try:
        connected = {
            "type": "connected",
            "client_id": client_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        yield f"event: connected\ndata: {json.dumps(connected)}\n\n"

        while not await request.is_disconnected():
            try:
                message = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield (
                f"id: {message['id']}\n"
                f"event: {message['type']}\n"
                f"data: {json.dumps(message, default=str)}\n\n"
            )
    finally:
        service.sink.unsubscribe(client_id)


@router.get(
    "/stream",
    summary="Automation event stream",
    description="Server-Sent Events feed of automation success/error/urgent events.",
)
async def stream_events(
    request: Request,
    service: AutomationService = Depends(get_automation_service),
) -> StreamingResponse:
    return StreamingResponse(
        _event_stream(request, service),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/stats", summary="Notification statistics")
async def notification_stats(
    service: AutomationService = Depends(get_automation_service),
) -> dict:
    return service.sink.get_stats()


@router.post(
    "/test",
    summary="Simulate a review notification",
    description="Push a synthetic 5-star review through the urgent automation path.",
)
async def test_webhook(
    service: AutomationService = Depends(get_automation_service),
) -> dict:
    location_name = "accounts/test-account/locations/test-location"
    payload = {
        "eventType": "review.create",
        "message": {
            "data": {
                "starRating": "FIVE",
                "comment": "Test review for webhook automation!",
                "reviewer": {"displayName": "Test User"},
                "createTime": datetime.now(timezone.utc).isoformat(),
            },
            "attributes": {
                "locationName": location_name,
                "reviewName": f"{location_name}/reviews/test-{uuid4().hex[:12]}",
            },
        },
    }
    ack = await _dispatch_notification(payload, service)
    logger.info("webhook_test_processed", review_id=ack.review_id)
    return {
        "status": "success",
        "message": "Test webhook processed successfully",
        "review_id": ack.review_id,
        "test_data": payload,
    }
