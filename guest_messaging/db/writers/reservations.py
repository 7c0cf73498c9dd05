from typing import Any

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from guest_messaging.models.reservations import Reservation

logger = structlog.get_logger(__name__)


def insert_reservation(conn: Connection, values: dict[str, Any]) -> int:
    """
    Insert a reservation row.

    Returns:
        int: New reservation id
    """
    result = conn.execute(insert(Reservation).values(**values))
    reservation_id = int(result.inserted_primary_key[0])
    logger.info(
        "reservation_inserted",
        reservation_id=reservation_id,
        external_booking_id=values.get("external_booking_id"),
    )
    return reservation_id


def update_reservation(conn: Connection, reservation_id: int, values: dict[str, Any]) -> bool:
    """Apply column updates to one reservation; returns False if it does not exist."""
    if not values:
        return True
    result = conn.execute(
        update(Reservation).where(Reservation.id == reservation_id).values(**values)
    )
    return result.rowcount == 1
