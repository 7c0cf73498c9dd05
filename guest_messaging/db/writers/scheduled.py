from datetime import datetime
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from guest_messaging.models.automation import ScheduledMessage

logger = structlog.get_logger(__name__)

EXPIRED_CLAIM_ERROR = "dispatch claim expired"


def insert_scheduled_message(conn: Connection, row: dict[str, Any]) -> int:
    """
    Insert one pending scheduled message.

    The partial unique index on (reservation_id, rule_id) rejects a second
    pending/processing row for the same pair with an IntegrityError.

    Returns:
        int: New scheduled message id
    """
    values = {**row, "status": "pending"}
    result = conn.execute(insert(ScheduledMessage).values(**values))
    return int(result.inserted_primary_key[0])


def cancel_pending(
    conn: Connection,
    reservation_id: int,
    reason: str,
    rule_ids: Optional[Iterable[int]] = None,
) -> int:
    """
    Cancel the reservation's pending scheduled messages.

    Rows already claimed, sent, failed or cancelled are untouched.

    Args:
        conn: Database connection (inside a transaction)
        reservation_id: Reservation whose rows to cancel
        reason: Stored as cancellation_reason
        rule_ids: Only cancel rows of these rules when given

    Returns:
        int: Number of rows cancelled
    """
    stmt = (
        update(ScheduledMessage)
        .where(
            ScheduledMessage.reservation_id == reservation_id,
            ScheduledMessage.status == "pending",
        )
        .values(status="cancelled", cancellation_reason=reason)
    )
    if rule_ids is not None:
        ids = list(rule_ids)
        if not ids:
            return 0
        stmt = stmt.where(ScheduledMessage.rule_id.in_(ids))
    return int(conn.execute(stmt).rowcount or 0)


def claim_scheduled_message(
    conn: Connection, scheduled_id: int, claim_token: str, now: datetime
) -> bool:
    """
    Take exclusive ownership of a pending row before dispatch.

    The conditional update only matches while the row is still pending, so of
    several concurrent claimers exactly one sees rowcount == 1.

    Returns:
        bool: True if this caller now owns the row
    """
    result = conn.execute(
        update(ScheduledMessage)
        .where(ScheduledMessage.id == scheduled_id, ScheduledMessage.status == "pending")
        .values(status="processing", claim_token=claim_token, claimed_at=now)
    )
    return result.rowcount == 1


def mark_sent(
    conn: Connection,
    scheduled_id: int,
    claim_token: str,
    now: datetime,
    message_id: Optional[int] = None,
    thread_id: Optional[int] = None,
) -> bool:
    """Record a successful dispatch for a row this worker claimed."""
    result = conn.execute(
        update(ScheduledMessage)
        .where(
            ScheduledMessage.id == scheduled_id,
            ScheduledMessage.status == "processing",
            ScheduledMessage.claim_token == claim_token,
        )
        .values(
            status="sent",
            sent_at=now,
            message_id=message_id,
            thread_id=thread_id,
            last_error=None,
        )
    )
    if result.rowcount != 1:
        logger.warning("scheduled_mark_sent_lost", scheduled_id=scheduled_id)
    return result.rowcount == 1


def mark_failed(
    conn: Connection,
    scheduled_id: int,
    claim_token: str,
    error: str,
    message_id: Optional[int] = None,
    thread_id: Optional[int] = None,
) -> bool:
    """Record a failed dispatch for a row this worker claimed."""
    result = conn.execute(
        update(ScheduledMessage)
        .where(
            ScheduledMessage.id == scheduled_id,
            ScheduledMessage.status == "processing",
            ScheduledMessage.claim_token == claim_token,
        )
        .values(status="failed", last_error=error, message_id=message_id, thread_id=thread_id)
    )
    if result.rowcount != 1:
        logger.warning("scheduled_mark_failed_lost", scheduled_id=scheduled_id)
    return result.rowcount == 1


def expire_stale_claims(conn: Connection, claimed_before: datetime) -> int:
    """
    Fail in-flight rows whose worker never reported an outcome.

    They are not returned to pending: the send may already have happened.

    Returns:
        int: Number of rows expired
    """
    result = conn.execute(
        update(ScheduledMessage)
        .where(
            ScheduledMessage.status == "processing",
            ScheduledMessage.claimed_at < claimed_before,
        )
        .values(status="failed", last_error=EXPIRED_CLAIM_ERROR)
    )
    return int(result.rowcount or 0)
