"""Handling of validated inbound webhook events."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog
from sqlalchemy.exc import IntegrityError

from guest_messaging.db.readers.reservations import get_reservation_by_external_id
from guest_messaging.db.readers.threads import (
    find_delivery_by_provider_id,
    find_echo_candidate,
    get_thread_by_reservation,
)
from guest_messaging.db.writers.deliveries import insert_delivery, set_provider_message_id
from guest_messaging.db.writers.messages import get_or_create_thread, insert_message
from guest_messaging.db.writers.webhooks import record_webhook_event, release_webhook_event
from guest_messaging.errors import NotFoundError
from guest_messaging.events import MessageDispatched, MessageReceived
from guest_messaging.messaging.delivery_state import DeliveryStatus
from guest_messaging.schemas.webhooks import (
    BookingCancelledEvent,
    BookingCreatedEvent,
    BookingUpdatedEvent,
    InboundMessageData,
    MessageReceivedEvent,
    MessageStatusEvent,
)
from guest_messaging.services.deliveries import apply_delivery_receipt
from guest_messaging.services.reservations import (
    apply_reservation_change,
    cancel_booking,
    upsert_booking,
)
from guest_messaging.storage.blob import rehost_images
from guest_messaging.utils.datetime import ensure_utc, utc_now

if TYPE_CHECKING:
    from guest_messaging.context import AppContext

logger = structlog.get_logger(__name__)

ECHO_WINDOW = timedelta(minutes=10)

PROCESSED = "processed"
DUPLICATE = "duplicate"


def ingest_inbound_message(
    context: "AppContext", data: InboundMessageData, now: Optional[datetime] = None
) -> Optional[int]:
    """
    Store a provider message on its reservation's thread.

    Replays of the same provider message id are no-ops. An outgoing echo of a
    message we sent is matched to the original instead of being duplicated.

    Returns:
        Optional[int]: Message id created or matched, None for a replay

    Raises:
        NotFoundError: If the booking is unknown
    """
    now = ensure_utc(now or utc_now())
    log = logger.bind(channel=data.channel, provider_message_id=data.provider_message_id)

    with context.engine.connect() as conn:
        if find_delivery_by_provider_id(conn, data.channel, data.provider_message_id):
            log.info("inbound_message_duplicate")
            return None
        reservation = get_reservation_by_external_id(conn, data.booking_id)
    if reservation is None:
        raise NotFoundError(f"Booking {data.booking_id} not found")

    if not data.is_incoming:
        with context.engine.begin() as conn:
            thread = get_thread_by_reservation(conn, reservation["id"])
            candidate = (
                find_echo_candidate(conn, thread["id"], data.channel, data.body, now - ECHO_WINDOW)
                if thread
                else None
            )
            if candidate:
                set_provider_message_id(conn, candidate["delivery_id"], data.provider_message_id)
        if candidate:
            log.info("outgoing_echo_matched", message_id=candidate["message_id"])
            return int(candidate["message_id"])

    image_urls = list(data.attachments)
    if image_urls and context.blob_store is not None:
        image_urls = rehost_images(
            context.blob_store, image_urls, prefix=f"reservations/{reservation['id']}"
        )

    message_values: dict[str, Any] = {
        "origin_role": "guest" if data.is_incoming else "host",
        "direction": "incoming" if data.is_incoming else "outgoing",
        "channel": data.channel,
        "content": data.body,
        "image_urls": image_urls or None,
    }
    if data.sent_at is not None:
        message_values["created_at"] = ensure_utc(data.sent_at)

    try:
        with context.engine.begin() as conn:
            thread_id = get_or_create_thread(conn, reservation["id"], now)
            message_id = insert_message(conn, {**message_values, "thread_id": thread_id}, now)
            delivery_id = insert_delivery(
                conn,
                message_id,
                data.channel,
                now,
                status=DeliveryStatus.DELIVERED if data.is_incoming else DeliveryStatus.SENT,
                provider_message_id=data.provider_message_id,
            )
    except IntegrityError:
        # A concurrent replay stored the same provider message first
        log.info("inbound_message_duplicate_race")
        return None

    log.info(
        "inbound_message_stored",
        message_id=message_id,
        thread_id=thread_id,
        direction=message_values["direction"],
        images=len(image_urls),
    )
    if data.is_incoming:
        context.bus.publish(
            MessageReceived(thread_id=thread_id, message_id=message_id, channel=data.channel)
        )
    else:
        context.bus.publish(
            MessageDispatched(
                thread_id=thread_id,
                message_id=message_id,
                delivery_id=delivery_id,
                channel=data.channel,
                status=DeliveryStatus.SENT.value,
            )
        )
    return message_id


def handle_booking_upsert(context: "AppContext", event: Any) -> dict[str, Any]:
    reservation_id, change = upsert_booking(context.engine, event.data)
    summary = apply_reservation_change(context.engine, reservation_id, change)
    logger.info(
        "booking_event_handled",
        event_type=event.event,
        reservation_id=reservation_id,
        change=change,
    )
    return {"reservation_id": reservation_id, **summary}


def handle_booking_cancelled(context: "AppContext", event: BookingCancelledEvent) -> dict[str, Any]:
    cancelled = cancel_booking(context.engine, event.data.booking_id)
    return {"booking_id": event.data.booking_id, "cancelled": cancelled}


def handle_message_received(context: "AppContext", event: MessageReceivedEvent) -> dict[str, Any]:
    return {"message_id": ingest_inbound_message(context, event.data)}


def handle_message_status(context: "AppContext", event: MessageStatusEvent) -> dict[str, Any]:
    applied = apply_delivery_receipt(
        context,
        event.data.channel,
        event.data.provider_message_id,
        event.data.status,
        error=event.data.error,
    )
    return {"applied": applied}


EVENT_HANDLERS: dict[type, Callable[["AppContext", Any], dict[str, Any]]] = {
    BookingCreatedEvent: handle_booking_upsert,
    BookingUpdatedEvent: handle_booking_upsert,
    BookingCancelledEvent: handle_booking_cancelled,
    MessageReceivedEvent: handle_message_received,
    MessageStatusEvent: handle_message_status,
}


def process_webhook_event(context: "AppContext", event: Any) -> str:
    """
    Run the handler for a validated event unless it was already processed.

    The event id is claimed in its own transaction before the handler runs,
    so concurrent deliveries of one event are handled once. If the handler
    raises, the claim is released and the error propagates.

    Returns:
        str: "processed" or "duplicate"
    """
    try:
        with context.engine.begin() as conn:
            record_webhook_event(
                conn, event.event_id, event.event, event.model_dump(mode="json", by_alias=True)
            )
    except IntegrityError:
        logger.info("webhook_event_duplicate", event_id=event.event_id, event_type=event.event)
        return DUPLICATE

    handler = EVENT_HANDLERS[type(event)]
    try:
        result = handler(context, event)
    except Exception:
        with context.engine.begin() as conn:
            release_webhook_event(conn, event.event_id)
        raise

    logger.info("webhook_event_processed", event_id=event.event_id, event_type=event.event, **result)
    return PROCESSED
