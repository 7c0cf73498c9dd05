from typing import Iterable, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from guest_messaging.models.messages import Message, MessageDelivery

VIEWERS = ("host", "guest")


def _unread_predicate(viewer: str) -> ColumnElement[bool]:
    """
    Which messages count as unread for a viewer.

    host: incoming guest messages without a read delivery.
    guest: outgoing messages on the in-app channel without a read delivery.
    """
    not_read = ~exists().where(
        MessageDelivery.message_id == Message.id,
        MessageDelivery.status == "read",
    )
    if viewer == "host":
        return (Message.direction == "incoming") & Message.is_unsent.is_(False) & not_read
    if viewer == "guest":
        return (
            (Message.direction == "outgoing")
            & (Message.channel == "inapp")
            & Message.is_unsent.is_(False)
            & not_read
        )
    raise ValueError(f"Unknown viewer: {viewer!r}")


def get_unread_counts(
    conn: Connection, viewer: str = "host", thread_ids: Optional[Iterable[int]] = None
) -> dict[int, int]:
    """
    Per-thread unread counts for a viewer, computed from durable state.

    Threads with nothing unread are omitted.

    Args:
        conn (Connection): Database connection.
        viewer (str): "host" or "guest".
        thread_ids (Optional[Iterable[int]]): Restrict to these threads.
    """
    stmt = (
        select(Message.thread_id, func.count(Message.id))
        .where(_unread_predicate(viewer))
        .group_by(Message.thread_id)
    )
    if thread_ids is not None:
        stmt = stmt.where(Message.thread_id.in_(list(thread_ids)))
    return {thread_id: count for thread_id, count in conn.execute(stmt)}


def get_unread_message_ids(
    conn: Connection, thread_id: int, viewer: str = "host", up_to_message_id: Optional[int] = None
) -> list[int]:
    """Ids of messages in a thread that are unread for the viewer."""
    stmt = (
        select(Message.id)
        .where(Message.thread_id == thread_id, _unread_predicate(viewer))
        .order_by(Message.id)
    )
    if up_to_message_id is not None:
        stmt = stmt.where(Message.id <= up_to_message_id)
    return list(conn.execute(stmt).scalars().all())
