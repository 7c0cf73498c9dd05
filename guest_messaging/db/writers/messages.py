from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from guest_messaging.models.messages import Message, Thread

logger = structlog.get_logger(__name__)

PREVIEW_LENGTH = 160


def make_preview(content: str) -> str:
    """Thread preview text, truncated with '...' past PREVIEW_LENGTH characters."""
    if len(content) > PREVIEW_LENGTH:
        return content[: PREVIEW_LENGTH - 3] + "..."
    return content


def get_or_create_thread(
    conn: Connection, reservation_id: int, now: datetime, subject: Optional[str] = None
) -> int:
    """
    Return the reservation's thread id, creating it or reopening it as needed.

    A closed thread is reopened because new activity is about to land on it.
    """
    row = conn.execute(
        select(Thread.id, Thread.status).where(Thread.reservation_id == reservation_id)
    ).first()
    if row is not None:
        thread_id, status = row
        if status == "closed":
            set_thread_status(conn, thread_id, "open")
            logger.info("thread_reopened", thread_id=thread_id, reservation_id=reservation_id)
        return int(thread_id)

    result = conn.execute(
        insert(Thread).values(
            reservation_id=reservation_id,
            subject=subject,
            status="open",
            created_at=now,
            updated_at=now,
        )
    )
    thread_id = int(result.inserted_primary_key[0])
    logger.info("thread_created", thread_id=thread_id, reservation_id=reservation_id)
    return thread_id


def set_thread_status(conn: Connection, thread_id: int, status: str) -> bool:
    result = conn.execute(update(Thread).where(Thread.id == thread_id).values(status=status))
    return result.rowcount == 1


def insert_message(conn: Connection, values: dict[str, Any], now: datetime) -> int:
    """
    Insert a message and refresh its thread's last-message fields.

    Args:
        conn: Database connection (inside a transaction)
        values: Message columns (thread_id, origin_role, direction, channel, content, ...)
        now: Creation time

    Returns:
        int: New message id
    """
    values = {"created_at": now, **values}
    result = conn.execute(insert(Message).values(**values))
    message_id = int(result.inserted_primary_key[0])

    conn.execute(
        update(Thread)
        .where(Thread.id == values["thread_id"])
        .values(
            last_message_at=values["created_at"],
            last_message_preview=make_preview(values.get("content") or ""),
            updated_at=now,
        )
    )
    return message_id
