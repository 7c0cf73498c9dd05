"""Seasonal pricing lookup."""

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from guest_messaging.db.readers.seasons import list_seasons
from guest_messaging.dependencies import get_db_engine
from guest_messaging.pricing.seasonality import find_matching_season, get_seasonality_multiplier

router = APIRouter()


@router.get("/seasonality")
def seasonality(
    target_date: date = Query(..., alias="date"),
    property_id: Optional[int] = Query(None),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Price multiplier for a date.

    The property's seasons and the global ones are checked in display order;
    the first match wins and no match means 1.0.

    Example:
        >>> GET /pricing/seasonality?date=2025-12-28&property_id=3
        {"date": "2025-12-28", "property_id": 3, "multiplier": 1.5, "season": "Winter"}
    """
    with engine.connect() as conn:
        seasons = list_seasons(conn, property_id)
    match = find_matching_season(target_date, seasons)
    return {
        "date": target_date.isoformat(),
        "property_id": property_id,
        "multiplier": float(get_seasonality_multiplier(target_date, seasons)),
        "season": match.name if match else None,
    }
