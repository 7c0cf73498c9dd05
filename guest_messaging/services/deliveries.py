"""Delivery receipts from providers and read tracking from viewers."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

import structlog

from guest_messaging.db.readers.threads import (
    find_delivery_by_provider_id,
    get_latest_delivery,
    get_message,
    get_thread,
)
from guest_messaging.db.readers.unread import get_unread_message_ids
from guest_messaging.db.writers.deliveries import transition_delivery
from guest_messaging.errors import NotFoundError
from guest_messaging.events import DeliveryStatusChanged, MessagesMarkedRead
from guest_messaging.messaging.delivery_state import DeliveryStatus
from guest_messaging.utils.datetime import ensure_utc, utc_now

if TYPE_CHECKING:
    from guest_messaging.context import AppContext

logger = structlog.get_logger(__name__)


def apply_delivery_receipt(
    context: "AppContext",
    channel: str,
    provider_message_id: str,
    status: str,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Apply a provider delivery receipt to the matching delivery row.

    Receipts for unknown provider ids and receipts that would move a row
    backward (replays, out-of-order callbacks) are ignored.

    Returns:
        bool: True if the delivery status changed
    """
    now = ensure_utc(now or utc_now())
    target = DeliveryStatus(status)

    with context.engine.begin() as conn:
        delivery = find_delivery_by_provider_id(conn, channel, provider_message_id)
        if delivery is None:
            logger.warning(
                "delivery_receipt_unmatched",
                channel=channel,
                provider_message_id=provider_message_id,
                status=target.value,
            )
            return False
        applied = transition_delivery(conn, delivery["id"], target, now, error=error)

    if applied:
        logger.info(
            "delivery_receipt_applied",
            delivery_id=delivery["id"],
            channel=channel,
            status=target.value,
        )
        context.bus.publish(
            DeliveryStatusChanged(
                delivery_id=delivery["id"],
                message_id=delivery["message_id"],
                thread_id=delivery["thread_id"],
                channel=channel,
                status=target.value,
            )
        )
    return applied


def readable_by(message: dict[str, Any], viewer: str) -> bool:
    """
    Whether a viewer's read mark applies to a message.

    The host reads incoming guest messages. The guest reads outgoing in-app
    messages; outgoing messages on other channels only become read through a
    provider read receipt.
    """
    if viewer == "host":
        return message["direction"] == "incoming"
    if viewer == "guest":
        return message["direction"] == "outgoing" and message["channel"] == "inapp"
    raise ValueError(f"Unknown viewer: {viewer!r}")


def mark_message_read(
    context: "AppContext",
    message_id: int,
    viewer: str = "host",
    now: Optional[datetime] = None,
) -> bool:
    """
    Mark one message read by the viewing party.

    The write re-checks the current status, so a failed or already-read
    delivery is left as it is. A message the viewer cannot read (see
    ``readable_by``) is left as it is too.

    Raises:
        NotFoundError: If the message does not exist
    """
    now = ensure_utc(now or utc_now())
    with context.engine.begin() as conn:
        message = get_message(conn, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if not readable_by(message, viewer):
            logger.info(
                "mark_read_not_applicable",
                message_id=message_id,
                viewer=viewer,
                direction=message["direction"],
                channel=message["channel"],
            )
            return False
        delivery = get_latest_delivery(conn, message_id)
        if delivery is None:
            logger.warning("mark_read_without_delivery", message_id=message_id)
            return False
        applied = transition_delivery(conn, delivery["id"], DeliveryStatus.READ, now)

    if applied:
        context.bus.publish(
            MessagesMarkedRead(thread_id=message["thread_id"], message_ids=(message_id,))
        )
    return applied


def mark_thread_read(
    context: "AppContext",
    thread_id: int,
    viewer: str = "host",
    up_to_message_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Mark every unread message of a thread read for the viewer.

    Args:
        context: Application context
        thread_id: Thread to mark
        viewer: "host" marks incoming guest messages, "guest" marks outgoing in-app ones
        up_to_message_id: Only mark messages with id <= this one
        now: Reference time

    Returns:
        int: Number of messages that became read

    Raises:
        NotFoundError: If the thread does not exist
    """
    now = ensure_utc(now or utc_now())
    marked: list[int] = []
    with context.engine.begin() as conn:
        if get_thread(conn, thread_id) is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        for message_id in get_unread_message_ids(conn, thread_id, viewer, up_to_message_id):
            delivery = get_latest_delivery(conn, message_id)
            if delivery is None:
                continue
            if transition_delivery(conn, delivery["id"], DeliveryStatus.READ, now):
                marked.append(message_id)

    if marked:
        logger.info("thread_marked_read", thread_id=thread_id, viewer=viewer, count=len(marked))
        context.bus.publish(MessagesMarkedRead(thread_id=thread_id, message_ids=tuple(marked)))
    return len(marked)
