from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.engine import Connection

from guest_messaging.models.properties import Season
from guest_messaging.pricing.seasonality import SeasonRange


def list_seasons(conn: Connection, property_id: Optional[int] = None) -> list[SeasonRange]:
    """
    Seasons in priority order (display_order, then id).

    With a property_id, returns that property's seasons plus global ones;
    without, only global seasons.
    """
    stmt = select(Season).order_by(Season.display_order, Season.id)
    if property_id is None:
        stmt = stmt.where(Season.property_id.is_(None))
    else:
        stmt = stmt.where(or_(Season.property_id == property_id, Season.property_id.is_(None)))
    return [
        SeasonRange(
            id=row["id"],
            name=row["name"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            multiplier=row["multiplier"],
            recurring=row["recurring"],
        )
        for row in conn.execute(stmt).mappings()
    ]
