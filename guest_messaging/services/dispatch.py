"""
Dispatch of scheduled and manual messages through channel senders.

A due scheduled message is claimed before anything is sent, so concurrent
sweeps (several workers or API instances) dispatch each row at most once.
Every row is handled in its own short transactions and provider calls happen
outside any transaction; one row's failure never stops the sweep.
"""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

import structlog

from guest_messaging.automation.templates import render_template
from guest_messaging.channels.registry import resolve_recipient
from guest_messaging.config import (
    CLAIM_LEASE_SECONDS,
    DISPATCH_BATCH_SIZE,
    DISPATCH_CONCURRENCY,
    DRY_RUN,
)
from guest_messaging.db.readers.automation import get_template
from guest_messaging.db.readers.reservations import get_reservation
from guest_messaging.db.readers.scheduled import get_scheduled_message, list_due
from guest_messaging.db.readers.threads import get_latest_delivery, get_message, get_thread
from guest_messaging.db.writers.deliveries import insert_delivery, transition_delivery
from guest_messaging.db.writers.messages import (
    get_or_create_thread,
    insert_message,
    set_thread_status,
)
from guest_messaging.db.writers.scheduled import (
    claim_scheduled_message,
    expire_stale_claims,
    mark_failed,
    mark_sent,
)
from guest_messaging.errors import (
    ChannelError,
    DeliveryStateError,
    NotFoundError,
    PermanentChannelError,
)
from guest_messaging.events import DeliveryStatusChanged, MessageDispatched
from guest_messaging.messaging.delivery_state import DeliveryStatus
from guest_messaging.metrics import (
    claim_conflicts,
    claims_expired,
    dispatch_total,
    sweep_duration,
    sweep_total,
)
from guest_messaging.utils.datetime import ensure_utc, utc_now

if TYPE_CHECKING:
    from guest_messaging.context import AppContext

logger = structlog.get_logger(__name__)

SENT = "sent"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class SweepResult:
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    expired: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DeliveryOutcome:
    message_id: int
    delivery_id: int
    thread_id: int
    channel: str
    status: str
    error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def deliver(
    context: "AppContext",
    *,
    message_id: int,
    delivery_id: int,
    thread_id: int,
    channel: str,
    reservation: dict[str, Any],
    content: str,
    subject: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DeliveryOutcome:
    """
    Hand a queued delivery to its channel sender and record the result.

    Sender errors of any kind are written to the delivery row (failed + error)
    and returned, not raised.
    """
    now = ensure_utc(now or utc_now())
    log = logger.bind(message_id=message_id, delivery_id=delivery_id, channel=channel)

    error: Optional[str] = None
    try:
        recipient = resolve_recipient(channel, reservation, thread_id)
        sender = context.channels.get(channel)
        result = sender.send(recipient, content, subject=subject)
    except ChannelError as e:
        error = str(e)
        log.warning("message_dispatch_failed", error=error, transient=e.transient)
    except Exception as e:
        error = f"[{channel}] sender error: {e}"
        log.exception("message_dispatch_crashed", error=str(e))

    if error is not None:
        with context.engine.begin() as conn:
            transition_delivery(conn, delivery_id, DeliveryStatus.FAILED, now, error=error)
        dispatch_total.labels(channel=channel, status=FAILED).inc()
        outcome = DeliveryOutcome(
            message_id, delivery_id, thread_id, channel, DeliveryStatus.FAILED.value, error
        )
    else:
        status = DeliveryStatus.SENT
        with context.engine.begin() as conn:
            transition_delivery(
                conn,
                delivery_id,
                DeliveryStatus.SENT,
                now,
                provider_message_id=result.provider_message_id,
            )
            if result.delivered:
                transition_delivery(conn, delivery_id, DeliveryStatus.DELIVERED, now)
                status = DeliveryStatus.DELIVERED
        dispatch_total.labels(channel=channel, status=SENT).inc()
        log.info(
            "message_dispatched",
            status=status.value,
            provider_message_id=result.provider_message_id,
        )
        outcome = DeliveryOutcome(message_id, delivery_id, thread_id, channel, status.value)

    context.bus.publish(
        DeliveryStatusChanged(
            delivery_id=delivery_id,
            message_id=message_id,
            thread_id=thread_id,
            channel=channel,
            status=outcome.status,
        )
    )
    return outcome


def _prepare_scheduled(
    context: "AppContext", scheduled_id: int, now: datetime
) -> tuple[dict[str, Any], dict[str, Any], str, Optional[str], int, int, int]:
    """
    Render a claimed row and persist its outgoing message with a queued delivery.

    Raises:
        NotFoundError: Reservation vanished
        PermanentChannelError: Template missing or disabled
    """
    with context.engine.begin() as conn:
        row = get_scheduled_message(conn, scheduled_id)
        if row is None:
            raise NotFoundError(f"Scheduled message {scheduled_id} not found")
        reservation = get_reservation(conn, row["reservation_id"])
        if reservation is None:
            raise NotFoundError(f"Reservation {row['reservation_id']} not found")
        template = get_template(conn, row["template_id"]) if row["template_id"] else None
        if template is None or not template["enabled"]:
            raise PermanentChannelError(row["channel"], "template missing or disabled")

        variables = row["payload"] or {}
        content = render_template(template["content"], variables)
        subject = render_template(template["subject"], variables) if template["subject"] else None

        thread_id = get_or_create_thread(conn, reservation["id"], now, subject=subject)
        message_id = insert_message(
            conn,
            {
                "thread_id": thread_id,
                "origin_role": "system",
                "direction": "outgoing",
                "channel": row["channel"],
                "content": content,
            },
            now,
        )
        delivery_id = insert_delivery(conn, message_id, row["channel"], now)

    return row, reservation, content, subject, thread_id, message_id, delivery_id


def dispatch_scheduled_message(
    context: "AppContext", scheduled_id: int, now: Optional[datetime] = None
) -> str:
    """
    Claim and dispatch one scheduled message.

    Returns:
        str: "sent", "failed", or "skipped" when another worker owns the row
    """
    now = ensure_utc(now or utc_now())
    token = uuid.uuid4().hex
    log = logger.bind(scheduled_id=scheduled_id)

    with context.engine.begin() as conn:
        claimed = claim_scheduled_message(conn, scheduled_id, token, now)
    if not claimed:
        claim_conflicts.inc()
        log.info("scheduled_message_claim_lost")
        return SKIPPED

    log.info("scheduled_message_claimed", claim_token=token)
    thread_id: Optional[int] = None
    message_id: Optional[int] = None
    try:
        row, reservation, content, subject, thread_id, message_id, delivery_id = (
            _prepare_scheduled(context, scheduled_id, now)
        )
        context.bus.publish(
            MessageDispatched(
                thread_id=thread_id,
                message_id=message_id,
                delivery_id=delivery_id,
                channel=row["channel"],
                status=DeliveryStatus.QUEUED.value,
            )
        )
        outcome = deliver(
            context,
            message_id=message_id,
            delivery_id=delivery_id,
            thread_id=thread_id,
            channel=row["channel"],
            reservation=reservation,
            content=content,
            subject=subject,
            now=now,
        )
    except (ChannelError, NotFoundError) as e:
        error = str(e)
        if isinstance(e, ChannelError):
            dispatch_total.labels(channel=e.channel, status=FAILED).inc()
        log.warning("scheduled_message_not_dispatchable", error=error)
        with context.engine.begin() as conn:
            mark_failed(conn, scheduled_id, token, error, message_id, thread_id)
        return FAILED
    except Exception as e:
        log.exception("scheduled_message_dispatch_crashed", error=str(e))
        with context.engine.begin() as conn:
            mark_failed(conn, scheduled_id, token, f"internal error: {e}", message_id, thread_id)
        return FAILED

    with context.engine.begin() as conn:
        if outcome.status == DeliveryStatus.FAILED.value:
            mark_failed(conn, scheduled_id, token, outcome.error or "send failed", message_id, thread_id)
        else:
            mark_sent(conn, scheduled_id, token, now, message_id, thread_id)

    return FAILED if outcome.status == DeliveryStatus.FAILED.value else SENT


def expire_claims(context: "AppContext", now: Optional[datetime] = None) -> int:
    """Fail processing rows whose claim is older than CLAIM_LEASE_SECONDS."""
    now = ensure_utc(now or utc_now())
    with context.engine.begin() as conn:
        expired = expire_stale_claims(conn, now - timedelta(seconds=CLAIM_LEASE_SECONDS))
    if expired:
        claims_expired.inc(expired)
        logger.warning("scheduled_claims_expired", count=expired)
    return expired


def run_sweep(
    context: "AppContext",
    now: Optional[datetime] = None,
    limit: int = DISPATCH_BATCH_SIZE,
    max_workers: int = DISPATCH_CONCURRENCY,
    dry_run: bool = DRY_RUN,
) -> SweepResult:
    """
    Dispatch every pending scheduled message whose fire time has come.

    Args:
        context: Application context (engine, bus, channels)
        now: Reference time; defaults to the current UTC time
        limit: Maximum due rows handled in this sweep
        max_workers: Bounded concurrency for per-row dispatch
        dry_run: Log what would be dispatched without claiming anything

    Returns:
        SweepResult: Counts of due/sent/failed/skipped/expired rows
    """
    sweep_total.inc()
    result = SweepResult()

    with sweep_duration.time():
        now = ensure_utc(now or utc_now())
        result.expired = expire_claims(context, now)

        with context.engine.connect() as conn:
            due = list_due(conn, now, limit)
        result.due = len(due)

        if dry_run:
            for row in due:
                logger.info(
                    "[DRY RUN] would dispatch scheduled message",
                    scheduled_id=row["id"],
                    channel=row["channel"],
                    fire_at=row["fire_at"].isoformat(),
                )
            return result

        ids = [row["id"] for row in due]
        if max_workers > 1 and len(ids) > 1:
            outcomes = []
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                futures = [pool.submit(dispatch_scheduled_message, context, i, now) for i in ids]
                for future in as_completed(futures):
                    outcomes.append(future.result())
        else:
            outcomes = [dispatch_scheduled_message(context, i, now) for i in ids]

    result.sent = outcomes.count(SENT)
    result.failed = outcomes.count(FAILED)
    result.skipped = outcomes.count(SKIPPED)
    logger.info("dispatch_sweep_completed", **result.as_dict())
    return result


def send_thread_message(
    context: "AppContext",
    thread_id: int,
    content: str,
    channel: str = "inapp",
    origin_role: str = "host",
    parent_message_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DeliveryOutcome:
    """
    Persist and dispatch a manually written message on a thread.

    Raises:
        NotFoundError: If the thread does not exist
    """
    now = ensure_utc(now or utc_now())
    with context.engine.begin() as conn:
        thread = get_thread(conn, thread_id)
        if thread is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        if thread["status"] == "closed":
            set_thread_status(conn, thread_id, "open")
        reservation = (
            get_reservation(conn, thread["reservation_id"]) if thread["reservation_id"] else None
        )
        message_id = insert_message(
            conn,
            {
                "thread_id": thread_id,
                "parent_message_id": parent_message_id,
                "origin_role": origin_role,
                "direction": "outgoing",
                "channel": channel,
                "content": content,
            },
            now,
        )
        delivery_id = insert_delivery(conn, message_id, channel, now)

    context.bus.publish(
        MessageDispatched(
            thread_id=thread_id,
            message_id=message_id,
            delivery_id=delivery_id,
            channel=channel,
            status=DeliveryStatus.QUEUED.value,
        )
    )
    return deliver(
        context,
        message_id=message_id,
        delivery_id=delivery_id,
        thread_id=thread_id,
        channel=channel,
        reservation=reservation or {},
        content=content,
        subject=thread.get("subject"),
        now=now,
    )


def retry_delivery(
    context: "AppContext", message_id: int, now: Optional[datetime] = None
) -> DeliveryOutcome:
    """
    Re-dispatch a message whose latest delivery failed, as a new attempt.

    The failed row is kept; the retry is a new delivery row with attempt + 1.

    Raises:
        NotFoundError: If the message does not exist
        DeliveryStateError: If the latest delivery has not failed
    """
    now = ensure_utc(now or utc_now())
    with context.engine.begin() as conn:
        message = get_message(conn, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        latest = get_latest_delivery(conn, message_id)
        if latest is None or latest["status"] != DeliveryStatus.FAILED.value:
            raise DeliveryStateError(
                f"Message {message_id} has no failed delivery to retry"
            )
        thread = get_thread(conn, message["thread_id"])
        reservation = (
            get_reservation(conn, thread["reservation_id"])
            if thread and thread["reservation_id"]
            else None
        )
        delivery_id = insert_delivery(
            conn, message_id, latest["channel"], now, attempt=latest["attempt"] + 1
        )

    logger.info(
        "delivery_retry_queued",
        message_id=message_id,
        delivery_id=delivery_id,
        attempt=latest["attempt"] + 1,
    )
    return deliver(
        context,
        message_id=message_id,
        delivery_id=delivery_id,
        thread_id=message["thread_id"],
        channel=latest["channel"],
        reservation=reservation or {},
        content=message["content"],
        subject=thread.get("subject") if thread else None,
        now=now,
    )
