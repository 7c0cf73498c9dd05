"""Thread and message endpoints for the host inbox."""

from typing import Any, Literal, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from guest_messaging.context import AppContext
from guest_messaging.db.readers.threads import get_thread, get_thread_stats, list_thread_messages
from guest_messaging.db.readers.threads import list_threads as read_threads
from guest_messaging.db.readers.unread import VIEWERS, get_unread_counts
from guest_messaging.db.writers.messages import set_thread_status
from guest_messaging.dependencies import get_context, get_db_engine, require_api_key
from guest_messaging.errors import DeliveryStateError, NotFoundError
from guest_messaging.schemas.messaging import (
    MarkThreadReadPayload,
    SendMessagePayload,
    ThreadStatusPayload,
)
from guest_messaging.services.deliveries import mark_message_read, mark_thread_read
from guest_messaging.services.dispatch import retry_delivery, send_thread_message
from guest_messaging.services.unread import get_unread_summary

logger = structlog.get_logger(__name__)
router = APIRouter(dependencies=[Depends(require_api_key)])


def _thread_or_404(engine: Engine, thread_id: int) -> dict[str, Any]:
    with engine.connect() as conn:
        thread = get_thread(conn, thread_id)
    if thread is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Thread {thread_id} not found",
        )
    return thread


@router.get("/threads")
def list_threads(
    status_filter: Optional[Literal["open", "closed"]] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    """Threads by most recent activity, each with its host unread count."""
    with engine.connect() as conn:
        threads = read_threads(conn, status_filter, limit, offset)
        unread = get_unread_counts(conn, "host", [t["id"] for t in threads])
    return [{**thread, "unread": unread.get(thread["id"], 0)} for thread in threads]


@router.get("/threads/unread")
def unread_summary(
    viewer: Literal["host", "guest"] = Query("host"), engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    return get_unread_summary(engine, viewer)


@router.get("/threads/{thread_id}/messages")
def get_thread_messages(
    thread_id: int,
    limit: int = Query(100, ge=1, le=500),
    before_id: Optional[int] = Query(None),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    _thread_or_404(engine, thread_id)
    with engine.connect() as conn:
        return list_thread_messages(conn, thread_id, limit, before_id)


@router.post("/threads/{thread_id}/messages", status_code=status.HTTP_201_CREATED)
def post_thread_message(
    thread_id: int,
    payload: SendMessagePayload,
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """
    Send a message on a thread through the chosen channel.

    The message is stored even when the channel rejects it; the returned
    delivery status says how the send went.
    """
    try:
        outcome = send_thread_message(
            context,
            thread_id,
            payload.content,
            channel=payload.channel,
            origin_role=payload.origin_role,
            parent_message_id=payload.parent_message_id,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return outcome.as_dict()


@router.put("/threads/{thread_id}/status")
def put_thread_status(
    thread_id: int, payload: ThreadStatusPayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    with engine.begin() as conn:
        updated = set_thread_status(conn, thread_id, payload.status)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Thread {thread_id} not found",
        )
    logger.info("thread_status_changed", thread_id=thread_id, status=payload.status)
    return {"thread_id": thread_id, "status": payload.status}


@router.get("/threads/{thread_id}/stats")
def thread_stats(thread_id: int, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    _thread_or_404(engine, thread_id)
    with engine.connect() as conn:
        stats: dict[str, Any] = get_thread_stats(conn, thread_id)
        for viewer in VIEWERS:
            stats[f"unread_{viewer}"] = get_unread_counts(conn, viewer, [thread_id]).get(
                thread_id, 0
            )
    return stats


@router.post("/threads/{thread_id}/read")
def read_thread(
    thread_id: int,
    payload: Optional[MarkThreadReadPayload] = None,
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    payload = payload or MarkThreadReadPayload()
    try:
        marked = mark_thread_read(
            context, thread_id, viewer=payload.viewer, up_to_message_id=payload.up_to_message_id
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"thread_id": thread_id, "marked": marked}


@router.post("/messages/{message_id}/read")
def read_message(
    message_id: int,
    viewer: Literal["host", "guest"] = Query("host"),
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    try:
        applied = mark_message_read(context, message_id, viewer=viewer)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"message_id": message_id, "applied": applied}


@router.post("/messages/{message_id}/retry")
def retry_message(message_id: int, context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """
    Retry a failed delivery as a new attempt.

    Raises:
        HTTPException: 404 for an unknown message, 409 if its latest delivery
            has not failed
    """
    try:
        outcome = retry_delivery(context, message_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DeliveryStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return outcome.as_dict()
