from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from guest_messaging.models.properties import Property
from guest_messaging.models.reservations import Reservation


def get_reservation(conn: Connection, reservation_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch one reservation row as a dict.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        reservation_id (int): Internal reservation ID.

    Returns:
        Optional[dict[str, Any]]: Reservation columns, or None if not found.
    """
    row = conn.execute(select(Reservation).where(Reservation.id == reservation_id)).mappings().first()
    return dict(row) if row else None


def get_reservation_by_external_id(
    conn: Connection, external_booking_id: str
) -> Optional[dict[str, Any]]:
    """Fetch a reservation by the booking channel's identifier."""
    row = (
        conn.execute(
            select(Reservation).where(Reservation.external_booking_id == external_booking_id)
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None


def get_property(conn: Connection, property_id: int) -> Optional[dict[str, Any]]:
    """Fetch one property row as a dict, or None."""
    row = conn.execute(select(Property).where(Property.id == property_id)).mappings().first()
    return dict(row) if row else None


def list_upcoming_reservations(
    conn: Connection, start: date, end: date, limit: int
) -> list[dict[str, Any]]:
    """
    Reservations eligible for automation backfill.

    Non-cancelled, automation-enabled reservations whose check-in date lies
    in [start, end], earliest check-in first.
    """
    rows = conn.execute(
        select(Reservation)
        .where(
            Reservation.check_in_date >= start,
            Reservation.check_in_date <= end,
            Reservation.status != "cancelled",
            Reservation.automation_enabled.is_(True),
        )
        .order_by(Reservation.check_in_date, Reservation.id)
        .limit(limit)
    ).mappings()
    return [dict(r) for r in rows]
