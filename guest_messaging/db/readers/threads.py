from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.engine import Connection

from guest_messaging.models.messages import Message, MessageDelivery, Thread


def get_thread(conn: Connection, thread_id: int) -> Optional[dict[str, Any]]:
    row = conn.execute(select(Thread).where(Thread.id == thread_id)).mappings().first()
    return dict(row) if row else None


def get_thread_by_reservation(conn: Connection, reservation_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(Thread).where(Thread.reservation_id == reservation_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def list_threads(
    conn: Connection, status: Optional[str] = None, limit: int = 50, offset: int = 0
) -> list[dict[str, Any]]:
    """Threads ordered by most recent activity."""
    stmt = (
        select(Thread)
        .order_by(Thread.last_message_at.desc(), Thread.id.desc())
        .limit(limit)
        .offset(offset)
    )
    if status:
        stmt = stmt.where(Thread.status == status)
    return [dict(r) for r in conn.execute(stmt).mappings()]


def get_message(conn: Connection, message_id: int) -> Optional[dict[str, Any]]:
    row = conn.execute(select(Message).where(Message.id == message_id)).mappings().first()
    return dict(row) if row else None


def _latest_attempt_subquery() -> Any:
    return (
        select(
            MessageDelivery.message_id,
            func.max(MessageDelivery.attempt).label("attempt"),
        )
        .group_by(MessageDelivery.message_id)
        .subquery()
    )


def list_thread_messages(
    conn: Connection, thread_id: int, limit: int = 100, before_id: Optional[int] = None
) -> list[dict[str, Any]]:
    """
    Messages of a thread, oldest first, each with its latest delivery attempt.

    Returns:
        list[dict[str, Any]]: Message columns plus delivery_id, delivery_status,
        delivery_attempt and delivery_error (None when no delivery exists)
    """
    latest = _latest_attempt_subquery()
    stmt = (
        select(
            Message,
            MessageDelivery.id.label("delivery_id"),
            MessageDelivery.status.label("delivery_status"),
            MessageDelivery.attempt.label("delivery_attempt"),
            MessageDelivery.error_message.label("delivery_error"),
        )
        .outerjoin(latest, latest.c.message_id == Message.id)
        .outerjoin(
            MessageDelivery,
            and_(
                MessageDelivery.message_id == Message.id,
                MessageDelivery.attempt == latest.c.attempt,
            ),
        )
        .where(Message.thread_id == thread_id)
        .order_by(Message.id.desc())
        .limit(limit)
    )
    if before_id is not None:
        stmt = stmt.where(Message.id < before_id)
    rows = [dict(r) for r in conn.execute(stmt).mappings()]
    rows.reverse()
    return rows


def list_deliveries(conn: Connection, message_id: int) -> list[dict[str, Any]]:
    rows = conn.execute(
        select(MessageDelivery)
        .where(MessageDelivery.message_id == message_id)
        .order_by(MessageDelivery.attempt, MessageDelivery.id)
    ).mappings()
    return [dict(r) for r in rows]


def get_latest_delivery(conn: Connection, message_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(
            select(MessageDelivery)
            .where(MessageDelivery.message_id == message_id)
            .order_by(MessageDelivery.attempt.desc(), MessageDelivery.id.desc())
            .limit(1)
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None


def find_delivery_by_provider_id(
    conn: Connection, channel: str, provider_message_id: str
) -> Optional[dict[str, Any]]:
    """Delivery row joined with its message's thread_id, looked up by provider id."""
    row = (
        conn.execute(
            select(MessageDelivery, Message.thread_id)
            .join(Message, Message.id == MessageDelivery.message_id)
            .where(
                MessageDelivery.channel == channel,
                MessageDelivery.provider_message_id == provider_message_id,
            )
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None


def find_echo_candidate(
    conn: Connection, thread_id: int, channel: str, content: str, since: datetime
) -> Optional[dict[str, Any]]:
    """
    Recent outgoing message that a provider echo most likely refers to.

    Matches same thread, channel and content, created after ``since``, whose
    delivery has no provider id yet.

    Returns:
        Optional[dict[str, Any]]: message_id and delivery_id, or None
    """
    row = (
        conn.execute(
            select(Message.id.label("message_id"), MessageDelivery.id.label("delivery_id"))
            .join(MessageDelivery, MessageDelivery.message_id == Message.id)
            .where(
                Message.thread_id == thread_id,
                Message.direction == "outgoing",
                Message.channel == channel,
                Message.content == content,
                Message.created_at >= since,
                MessageDelivery.provider_message_id.is_(None),
            )
            .order_by(Message.id.desc())
            .limit(1)
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None


def get_thread_stats(conn: Connection, thread_id: int) -> dict[str, int]:
    """Message totals for a thread by direction and origin role."""
    row = conn.execute(
        select(
            func.count(Message.id).label("total"),
            func.sum(case((Message.direction == "incoming", 1), else_=0)).label("incoming"),
            func.sum(case((Message.direction == "outgoing", 1), else_=0)).label("outgoing"),
            func.sum(case((Message.origin_role == "guest", 1), else_=0)).label("from_guest"),
            func.sum(case((Message.origin_role == "host", 1), else_=0)).label("from_host"),
            func.sum(case((Message.origin_role == "system", 1), else_=0)).label("from_system"),
            func.sum(case((Message.origin_role == "assistant", 1), else_=0)).label(
                "from_assistant"
            ),
        ).where(Message.thread_id == thread_id)
    ).mappings().one()
    return {key: int(value or 0) for key, value in row.items()}
