"""Channel provider webhook receiver route."""

import base64
import binascii
import hmac
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from guest_messaging.config import WEBHOOK_PASSWORD, WEBHOOK_USERNAME
from guest_messaging.context import AppContext
from guest_messaging.dependencies import get_context
from guest_messaging.errors import NotFoundError, WebhookPayloadError
from guest_messaging.metrics import webhook_events
from guest_messaging.schemas.webhooks import parse_webhook_event
from guest_messaging.services.webhooks import process_webhook_event

router = APIRouter()
logger = structlog.get_logger(__name__)


def validate_basic_auth(auth_header: str | None) -> bool:
    """
    Validate HTTP Basic Auth credentials against the webhook credentials.

    Args:
        auth_header: Authorization header value (e.g., "Basic dXNlcjpwYXNz")

    Returns:
        bool: True if credentials match, False otherwise (including when no
        webhook credentials are configured)
    """
    if not WEBHOOK_USERNAME or not auth_header or not auth_header.startswith("Basic "):
        return False

    try:
        encoded_credentials = auth_header[len("Basic ") :]
        decoded_credentials = base64.b64decode(encoded_credentials).decode("utf-8")
        username, password = decoded_credentials.split(":", 1)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.warning("webhook_auth_header_malformed")
        return False

    return hmac.compare_digest(username, WEBHOOK_USERNAME) and hmac.compare_digest(
        password, WEBHOOK_PASSWORD
    )


@router.post("/webhooks")
async def receive_channel_webhook(
    request: Request, context: AppContext = Depends(get_context)
) -> JSONResponse:
    """
    Handle incoming booking and messaging events.

    Supported events:
    - booking.created / booking.updated / booking.cancelled
    - message.received
    - message.status

    Authentication: HTTP Basic Auth with WEBHOOK_USERNAME/WEBHOOK_PASSWORD

    Expected payload structure:
        {
            "eventId": "evt_123",
            "event": "message.received",
            "data": {...}
        }

    A replayed eventId is acknowledged with {"status": "duplicate"} and not
    processed again.
    """
    auth_header = request.headers.get("Authorization")
    if not validate_basic_auth(auth_header):
        logger.warning("webhook_authentication_failed")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized"},
        )

    try:
        payload: Any = await request.json()
    except ValueError:
        logger.warning("webhook_invalid_json")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid JSON"},
        )

    event_type = payload.get("event") if isinstance(payload, dict) else None
    logger.info(
        "webhook_received",
        event_type=event_type,
        event_id=payload.get("eventId") if isinstance(payload, dict) else None,
    )

    try:
        event = parse_webhook_event(payload)
    except WebhookPayloadError as e:
        webhook_events.labels(event_type=str(event_type), outcome="rejected").inc()
        logger.warning("webhook_payload_rejected", event_type=event_type, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e)},
        )

    try:
        outcome = process_webhook_event(context, event)
    except NotFoundError as e:
        webhook_events.labels(event_type=event.event, outcome="rejected").inc()
        logger.warning("webhook_unknown_entity", event_type=event.event, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": str(e)},
        )
    except Exception as e:
        webhook_events.labels(event_type=event.event, outcome="failed").inc()
        logger.exception(
            "webhook_processing_failed",
            event_type=event.event,
            event_id=event.event_id,
            error=str(e),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    webhook_events.labels(event_type=event.event, outcome=outcome).inc()
    if outcome == "duplicate":
        return JSONResponse(content={"status": "duplicate"})
    return JSONResponse(content={"status": "accepted"})
