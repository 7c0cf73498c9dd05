"""Integration tests for the dispatch sweep and manual sends."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from sqlalchemy import select, update

from guest_messaging.context import AppContext
from guest_messaging.db.readers.scheduled import get_scheduled_message
from guest_messaging.db.readers.threads import get_thread, list_deliveries, list_thread_messages
from guest_messaging.db.writers.automation import update_template
from guest_messaging.db.writers.messages import get_or_create_thread, set_thread_status
from guest_messaging.db.writers.scheduled import claim_scheduled_message
from guest_messaging.errors import DeliveryStateError, PermanentChannelError
from guest_messaging.events import DeliveryStatusChanged, MessageDispatched
from guest_messaging.models.automation import ScheduledMessage
from guest_messaging.services.automation import evaluate_reservation
from guest_messaging.services.dispatch import (
    dispatch_scheduled_message,
    expire_claims,
    retry_delivery,
    run_sweep,
    send_thread_message,
)

CREATED_AT = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)  # make_reservation default


def _scheduled_id(context: AppContext, reservation_id: int) -> int:
    with context.engine.connect() as conn:
        return conn.execute(
            select(ScheduledMessage.id).where(ScheduledMessage.reservation_id == reservation_id)
        ).scalar_one()


def _scheduled(context: AppContext, scheduled_id: int) -> dict[str, Any]:
    with context.engine.connect() as conn:
        row = get_scheduled_message(conn, scheduled_id)
    assert row is not None
    return row


@pytest.mark.integration
def test_welcome_message_is_sent_after_the_delay(
    context: AppContext,
    make_property: Callable[..., int],
    make_reservation: Callable[..., int],
    make_rule: Callable[..., int],
) -> None:
    make_rule()
    reservation_id = make_reservation(property_id=make_property(name="Seaside Loft"))
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)

    early = run_sweep(context, now=CREATED_AT + timedelta(minutes=4), max_workers=1, dry_run=False)
    assert early.due == 0

    result = run_sweep(context, now=CREATED_AT + timedelta(minutes=6), max_workers=1, dry_run=False)

    assert result.due == 1
    assert result.sent == 1
    row = _scheduled(context, _scheduled_id(context, reservation_id))
    assert row["status"] == "sent"
    assert row["sent_at"] == CREATED_AT + timedelta(minutes=6)

    with context.engine.connect() as conn:
        messages = list_thread_messages(conn, row["thread_id"])
    assert len(messages) == 1
    assert messages[0]["content"] == "Hi Aiko, welcome to Seaside Loft!"
    assert messages[0]["origin_role"] == "system"
    assert messages[0]["delivery_status"] == "delivered"


@pytest.mark.integration
def test_dry_run_claims_nothing(
    context: AppContext, make_reservation: Callable[..., int], make_rule: Callable[..., int]
) -> None:
    make_rule()
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)

    result = run_sweep(context, now=CREATED_AT + timedelta(hours=1), dry_run=True)

    assert result.due == 1
    assert result.sent == 0
    assert _scheduled(context, _scheduled_id(context, reservation_id))["status"] == "pending"


@pytest.mark.integration
def test_second_claim_is_skipped(
    context: AppContext, make_reservation: Callable[..., int], make_rule: Callable[..., int]
) -> None:
    make_rule()
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)
    scheduled_id = _scheduled_id(context, reservation_id)

    with context.engine.begin() as conn:
        assert claim_scheduled_message(conn, scheduled_id, "other-worker", CREATED_AT)

    outcome = dispatch_scheduled_message(context, scheduled_id, now=CREATED_AT)

    assert outcome == "skipped"
    row = _scheduled(context, scheduled_id)
    assert row["status"] == "processing"
    assert row["claim_token"] == "other-worker"


@pytest.mark.integration
def test_channel_failure_marks_row_failed_and_retry_adds_attempt(
    context: AppContext,
    whatsapp_sender: Any,
    make_reservation: Callable[..., int],
    make_rule: Callable[..., int],
) -> None:
    make_rule(channel="whatsapp")
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)
    whatsapp_sender.error = PermanentChannelError("whatsapp", "recipient not on WhatsApp")

    result = run_sweep(context, now=CREATED_AT + timedelta(minutes=6), max_workers=1, dry_run=False)

    assert result.failed == 1
    row = _scheduled(context, _scheduled_id(context, reservation_id))
    assert row["status"] == "failed"
    assert "recipient not on WhatsApp" in row["last_error"]

    whatsapp_sender.error = None
    outcome = retry_delivery(context, row["message_id"])

    assert outcome.status == "sent"
    with context.engine.connect() as conn:
        deliveries = list_deliveries(conn, row["message_id"])
    assert [(d["attempt"], d["status"]) for d in deliveries] == [(1, "failed"), (2, "sent")]
    assert deliveries[1]["provider_message_id"] == "whatsapp-1"


@pytest.mark.integration
def test_unexpected_sender_error_fails_the_delivery_and_allows_retry(
    context: AppContext,
    whatsapp_sender: Any,
    make_reservation: Callable[..., int],
    make_rule: Callable[..., int],
) -> None:
    make_rule(channel="whatsapp")
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)
    whatsapp_sender.error = AttributeError("'list' object has no attribute 'get'")

    result = run_sweep(context, now=CREATED_AT + timedelta(minutes=6), max_workers=1, dry_run=False)

    assert result.failed == 1
    row = _scheduled(context, _scheduled_id(context, reservation_id))
    assert row["status"] == "failed"
    with context.engine.connect() as conn:
        deliveries = list_deliveries(conn, row["message_id"])
    assert [d["status"] for d in deliveries] == ["failed"]
    assert "has no attribute" in deliveries[0]["error_message"]

    whatsapp_sender.error = None
    outcome = retry_delivery(context, row["message_id"])

    assert outcome.status == "sent"


@pytest.mark.integration
def test_retry_requires_a_failed_delivery(
    context: AppContext, make_reservation: Callable[..., int]
) -> None:
    reservation_id = make_reservation()
    with context.engine.begin() as conn:
        thread_id = get_or_create_thread(conn, reservation_id, CREATED_AT)
    outcome = send_thread_message(context, thread_id, "See you soon")

    with pytest.raises(DeliveryStateError):
        retry_delivery(context, outcome.message_id)


@pytest.mark.integration
def test_disabled_template_fails_the_row(
    context: AppContext,
    make_template: Callable[..., int],
    make_reservation: Callable[..., int],
    make_rule: Callable[..., int],
) -> None:
    template_id = make_template()
    make_rule(template_id=template_id)
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)
    scheduled_id = _scheduled_id(context, reservation_id)
    with context.engine.begin() as conn:
        update_template(conn, template_id, {"enabled": False})

    outcome = dispatch_scheduled_message(context, scheduled_id, now=CREATED_AT + timedelta(minutes=6))

    assert outcome == "failed"
    assert "template" in _scheduled(context, scheduled_id)["last_error"]


@pytest.mark.integration
def test_stale_claims_expire_to_failed(
    context: AppContext, make_reservation: Callable[..., int], make_rule: Callable[..., int]
) -> None:
    make_rule()
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)
    scheduled_id = _scheduled_id(context, reservation_id)
    with context.engine.begin() as conn:
        claim_scheduled_message(conn, scheduled_id, "crashed-worker", CREATED_AT)

    assert expire_claims(context, now=CREATED_AT + timedelta(minutes=5)) == 0
    assert expire_claims(context, now=CREATED_AT + timedelta(hours=1)) == 1

    row = _scheduled(context, scheduled_id)
    assert row["status"] == "failed"
    assert row["last_error"] == "dispatch claim expired"


@pytest.mark.integration
def test_manual_send_publishes_dispatch_events(
    context: AppContext, make_reservation: Callable[..., int]
) -> None:
    reservation_id = make_reservation()
    with context.engine.begin() as conn:
        thread_id = get_or_create_thread(conn, reservation_id, CREATED_AT)
        set_thread_status(conn, thread_id, "closed")

    seen: list[Any] = []
    context.bus.subscribe(MessageDispatched, seen.append)
    context.bus.subscribe(DeliveryStatusChanged, seen.append)

    outcome = send_thread_message(context, thread_id, "Check-in code is 4321", channel="whatsapp")

    assert outcome.status == "sent"
    assert [type(e).__name__ for e in seen] == ["MessageDispatched", "DeliveryStatusChanged"]
    with context.engine.connect() as conn:
        assert get_thread(conn, thread_id)["status"] == "open"


@pytest.mark.integration
def test_cancelled_rows_are_never_dispatched(
    context: AppContext, make_reservation: Callable[..., int], make_rule: Callable[..., int]
) -> None:
    make_rule()
    reservation_id = make_reservation()
    evaluate_reservation(context.engine, reservation_id, now=CREATED_AT)
    with context.engine.begin() as conn:
        conn.execute(
            update(ScheduledMessage)
            .where(ScheduledMessage.reservation_id == reservation_id)
            .values(status="cancelled")
        )

    result = run_sweep(context, now=CREATED_AT + timedelta(hours=1), max_workers=1, dry_run=False)

    assert result.due == 0
