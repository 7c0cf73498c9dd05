from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from guest_messaging.messaging.delivery_state import (
    TIMESTAMP_COLUMNS,
    DeliveryStatus,
    allowed_sources,
)
from guest_messaging.metrics import delivery_transitions
from guest_messaging.models.messages import MessageDelivery

logger = structlog.get_logger(__name__)


def insert_delivery(
    conn: Connection,
    message_id: int,
    channel: str,
    now: datetime,
    attempt: int = 1,
    status: DeliveryStatus = DeliveryStatus.QUEUED,
    provider_message_id: Optional[str] = None,
) -> int:
    """
    Create a delivery row in its initial state.

    Outgoing messages start queued; inbound messages are recorded as
    delivered since they have already reached us.

    Returns:
        int: New delivery id
    """
    values = {
        "message_id": message_id,
        "channel": channel,
        "attempt": attempt,
        "status": status.value,
        "provider_message_id": provider_message_id,
        "queued_at": now,
        TIMESTAMP_COLUMNS[status]: now,
    }
    result = conn.execute(insert(MessageDelivery).values(**values))
    return int(result.inserted_primary_key[0])


def transition_delivery(
    conn: Connection,
    delivery_id: int,
    target: DeliveryStatus | str,
    now: datetime,
    error: Optional[str] = None,
    provider_message_id: Optional[str] = None,
) -> bool:
    """
    Move a delivery to ``target`` if the state machine allows it.

    The update is a compare-and-set on the current status, so concurrent
    writers (sender result, provider receipt, read tracking) can never move a
    row backward. A disallowed transition changes nothing.

    Returns:
        bool: True if the row moved
    """
    target = DeliveryStatus(target)
    sources = [s.value for s in allowed_sources(target)]
    values: dict[str, object] = {"status": target.value, TIMESTAMP_COLUMNS[target]: now}
    if error is not None:
        values["error_message"] = error
    if provider_message_id is not None:
        values["provider_message_id"] = provider_message_id

    result = conn.execute(
        update(MessageDelivery)
        .where(MessageDelivery.id == delivery_id, MessageDelivery.status.in_(sources))
        .values(**values)
    )
    applied = result.rowcount == 1
    delivery_transitions.labels(
        status=target.value, outcome="applied" if applied else "ignored"
    ).inc()
    if not applied:
        logger.info("delivery_transition_ignored", delivery_id=delivery_id, target=target.value)
    return applied


def set_provider_message_id(conn: Connection, delivery_id: int, provider_message_id: str) -> None:
    conn.execute(
        update(MessageDelivery)
        .where(MessageDelivery.id == delivery_id, MessageDelivery.provider_message_id.is_(None))
        .values(provider_message_id=provider_message_id)
    )
