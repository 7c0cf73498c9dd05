from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from guest_messaging.models.automation import AutomationRule, ScheduledMessage

# States that block re-creating a (reservation, rule) instance without force
EXISTING_STATES = ("pending", "processing", "sent", "failed")


def get_existing_rule_ids(conn: Connection, reservation_id: int) -> set[int]:
    """Rule ids that already have a non-cancelled scheduled message for this reservation."""
    rows = conn.execute(
        select(ScheduledMessage.rule_id).where(
            ScheduledMessage.reservation_id == reservation_id,
            ScheduledMessage.status.in_(EXISTING_STATES),
        )
    )
    return set(rows.scalars().all())


def get_pending_reservation_ids(conn: Connection, reservation_ids: Iterable[int]) -> set[int]:
    """Subset of reservation_ids with at least one pending scheduled message."""
    ids = list(reservation_ids)
    if not ids:
        return set()
    rows = conn.execute(
        select(ScheduledMessage.reservation_id)
        .where(
            ScheduledMessage.reservation_id.in_(ids),
            ScheduledMessage.status == "pending",
        )
        .distinct()
    )
    return set(rows.scalars().all())


def get_scheduled_message(conn: Connection, scheduled_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(ScheduledMessage).where(ScheduledMessage.id == scheduled_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def list_scheduled_for_reservation(conn: Connection, reservation_id: int) -> list[dict[str, Any]]:
    rows = conn.execute(
        select(ScheduledMessage)
        .where(ScheduledMessage.reservation_id == reservation_id)
        .order_by(ScheduledMessage.fire_at, ScheduledMessage.id)
    ).mappings()
    return [dict(r) for r in rows]


def list_due(conn: Connection, now: datetime, limit: int) -> list[dict[str, Any]]:
    """
    Pending rows whose fire time has come, oldest fire time first.

    Args:
        conn (Connection): Database connection.
        now (datetime): Reference time (aware UTC).
        limit (int): Maximum rows to return.
    """
    rows = conn.execute(
        select(ScheduledMessage)
        .where(ScheduledMessage.status == "pending", ScheduledMessage.fire_at <= now)
        .order_by(ScheduledMessage.fire_at, ScheduledMessage.id)
        .limit(limit)
    ).mappings()
    return [dict(r) for r in rows]


def count_by_status(conn: Connection) -> dict[str, int]:
    rows = conn.execute(
        select(ScheduledMessage.status, func.count()).group_by(ScheduledMessage.status)
    )
    return {status: count for status, count in rows}


def get_pending_rule_timing_types(conn: Connection, reservation_id: int) -> dict[int, str]:
    """Map of rule_id -> timing_type for the reservation's pending scheduled messages."""
    rows = conn.execute(
        select(ScheduledMessage.rule_id, AutomationRule.timing_type)
        .join(AutomationRule, AutomationRule.id == ScheduledMessage.rule_id)
        .where(
            ScheduledMessage.reservation_id == reservation_id,
            ScheduledMessage.status == "pending",
        )
    )
    return {rule_id: timing_type for rule_id, timing_type in rows}
