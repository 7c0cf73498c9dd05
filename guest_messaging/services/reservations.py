"""Reservation intake from the booking channel and its automation hooks."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from guest_messaging.db.readers.reservations import get_property, get_reservation_by_external_id
from guest_messaging.db.writers.reservations import insert_reservation, update_reservation
from guest_messaging.errors import NotFoundError
from guest_messaging.schemas.webhooks import BookingData
from guest_messaging.services.automation import (
    evaluate_reservation,
    on_reservation_cancelled,
    on_reservation_dates_changed,
)
from guest_messaging.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)

CLOCK_FIELDS = ("check_in_date", "check_out_date", "check_in_time", "check_out_time")

CREATED = "created"
DATES_CHANGED = "dates_changed"
CANCELLED = "cancelled"
UPDATED = "updated"
UNCHANGED = "unchanged"


def _booking_values(booking: BookingData, master_id: Optional[int]) -> dict[str, Any]:
    return {
        "property_id": booking.property_id,
        "guest_name": booking.guest_name,
        "guest_first_name": booking.guest_first_name,
        "guest_last_name": booking.guest_last_name,
        "guest_email": booking.guest_email,
        "guest_phone": booking.guest_phone,
        "booking_source": booking.booking_source,
        "num_guests": booking.num_guests,
        "check_in_date": booking.check_in_date,
        "check_out_date": booking.check_out_date,
        "check_in_time": booking.check_in_time,
        "check_out_time": booking.check_out_time,
        "status": booking.status,
        "group_master_id": master_id,
        "is_group_master": booking.is_group_master,
    }


def classify_change(existing: dict[str, Any], changed: dict[str, Any]) -> str:
    """Name the lifecycle event a set of column changes represents."""
    if not changed:
        return UNCHANGED
    if changed.get("status") == "cancelled" and existing.get("status") != "cancelled":
        return CANCELLED
    if any(name in changed for name in CLOCK_FIELDS):
        return DATES_CHANGED
    return UPDATED


def upsert_booking(
    engine: Engine, booking: BookingData, now: Optional[datetime] = None
) -> tuple[int, str]:
    """
    Insert or update the reservation for a booking payload.

    Returns:
        tuple[int, str]: Reservation id and the change kind
            (created, dates_changed, cancelled, updated, unchanged)

    Raises:
        NotFoundError: If the booking's property is unknown
    """
    now = ensure_utc(now or utc_now())
    with engine.begin() as conn:
        if get_property(conn, booking.property_id) is None:
            raise NotFoundError(f"Property {booking.property_id} not found")

        master_id = None
        if booking.group_master_booking_id and not booking.is_group_master:
            master = get_reservation_by_external_id(conn, booking.group_master_booking_id)
            master_id = master["id"] if master else None

        values = _booking_values(booking, master_id)
        existing = get_reservation_by_external_id(conn, booking.booking_id)
        if existing is None:
            reservation_id = insert_reservation(
                conn,
                {
                    **values,
                    "external_booking_id": booking.booking_id,
                    "created_at": now,
                    "updated_at": now,
                },
            )
            return reservation_id, CREATED

        changed = {k: v for k, v in values.items() if existing.get(k) != v}
        if changed:
            update_reservation(conn, existing["id"], {**changed, "updated_at": now})

    change = classify_change(existing, changed)
    logger.info(
        "reservation_upserted",
        reservation_id=existing["id"],
        external_booking_id=booking.booking_id,
        change=change,
        fields=sorted(changed),
    )
    return existing["id"], change


def apply_reservation_change(
    engine: Engine, reservation_id: int, change: str, now: Optional[datetime] = None
) -> dict[str, Any]:
    """
    Run the automation hook for a reservation lifecycle change.

    Returns:
        dict[str, Any]: Summary of what the hook did
    """
    if change == CANCELLED:
        return {"change": change, "cancelled": on_reservation_cancelled(engine, reservation_id)}
    if change == DATES_CHANGED:
        result = on_reservation_dates_changed(engine, reservation_id, now=now)
    elif change == CREATED:
        result = evaluate_reservation(engine, reservation_id, trigger="created", now=now)
    else:
        result = evaluate_reservation(engine, reservation_id, trigger="updated", now=now)
    return {"change": change, **result.as_dict()}


def cancel_booking(engine: Engine, external_booking_id: str) -> Optional[int]:
    """
    Mark a booking cancelled and cancel its pending scheduled messages.

    Returns:
        Optional[int]: Number of cancelled scheduled messages, or None when the
        booking is unknown
    """
    with engine.begin() as conn:
        existing = get_reservation_by_external_id(conn, external_booking_id)
        if existing is None:
            logger.warning("cancel_unknown_booking", external_booking_id=external_booking_id)
            return None
        update_reservation(conn, existing["id"], {"status": "cancelled", "updated_at": utc_now()})
    return on_reservation_cancelled(engine, existing["id"])
