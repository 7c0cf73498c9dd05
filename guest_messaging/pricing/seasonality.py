"""
Season date-range matching.

Non-recurring seasons compare full calendar dates. Recurring seasons compare
month/day only through a ``month * 100 + day`` key, so a range whose start key
is greater than its end key (e.g. Dec 1 - Feb 28) wraps over the new year.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Union

DateLike = Union[date, str]

DEFAULT_MULTIPLIER = 1.0


@dataclass(frozen=True)
class SeasonRange:
    start_date: date
    end_date: date
    multiplier: float
    recurring: bool
    name: Optional[str] = None
    id: Optional[int] = None


def _as_date(value: DateLike) -> date:
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


def _month_day_key(value: date) -> int:
    return value.month * 100 + value.day


def is_in_season(target: DateLike, start: DateLike, end: DateLike, recurring: bool) -> bool:
    """
    Whether ``target`` falls inside the season.

    Example:
        >>> is_in_season("2024-12-25", "2024-12-01", "2025-02-28", recurring=True)
        True
        >>> is_in_season("2025-05-01", "2024-04-29", "2024-05-05", recurring=False)
        False
    """
    target_date, start_date, end_date = _as_date(target), _as_date(start), _as_date(end)
    if not recurring:
        return start_date <= target_date <= end_date

    value = _month_day_key(target_date)
    start_key = _month_day_key(start_date)
    end_key = _month_day_key(end_date)
    if start_key <= end_key:
        return start_key <= value <= end_key
    return value >= start_key or value <= end_key


def find_matching_season(
    target: DateLike, seasons: Iterable[SeasonRange]
) -> Optional[SeasonRange]:
    """First season in iteration order that contains ``target``."""
    for season in seasons:
        if is_in_season(target, season.start_date, season.end_date, season.recurring):
            return season
    return None


def get_seasonality_multiplier(target: DateLike, seasons: Iterable[SeasonRange]) -> float:
    """Multiplier of the first matching season, 1.0 when none match."""
    season = find_matching_season(target, seasons)
    return season.multiplier if season else DEFAULT_MULTIPLIER
