"""
Event clock resolver.

Turns a timing variant plus a reservation's lifecycle timestamps into an
absolute UTC fire time. Calendar arithmetic happens in the property's
timezone; hour offsets are applied to the resulting absolute instant so a
DST change between the anchor and the fire time never shifts the offset.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from guest_messaging.automation.timing import (
    AfterCheckin,
    AfterDeparture,
    ArrivalDayBeforeCheckin,
    BackfillPolicy,
    BeforeArrival,
    BeforeCheckout,
    OnCreateDelay,
    Timing,
)
from guest_messaging.config import (
    AFTER_DEPARTURE_SEND_TIME,
    DEFAULT_CHECK_IN_TIME,
    DEFAULT_CHECK_OUT_TIME,
    DEFAULT_TIMEZONE,
    ELAPSED_GRACE_MINUTES,
)
from guest_messaging.utils.datetime import ensure_utc, parse_time_of_day

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationClock:
    """Lifecycle anchors of one reservation in its property's local time."""

    created_at: datetime
    check_in_date: date
    check_out_date: date
    check_in_time: time
    check_out_time: time
    tz: ZoneInfo
    departure_send_time: time = time(10, 0)

    @property
    def check_in_at(self) -> datetime:
        return _local_instant(self.check_in_date, self.check_in_time, self.tz)

    @property
    def check_out_at(self) -> datetime:
        return _local_instant(self.check_out_date, self.check_out_time, self.tz)


@dataclass(frozen=True)
class FireTime:
    """Resolved fire instant (UTC) and whether it had already passed."""

    fire_at: datetime
    elapsed: bool


def _local_instant(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def load_timezone(name: Optional[str]) -> ZoneInfo:
    """Return the named zone, falling back to DEFAULT_TIMEZONE when unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("unknown_property_timezone", timezone=name, fallback=DEFAULT_TIMEZONE)
    return ZoneInfo(DEFAULT_TIMEZONE)


def build_clock(reservation: Mapping[str, Any], prop: Optional[Mapping[str, Any]]) -> ReservationClock:
    """
    Assemble a ReservationClock from reservation and property rows.

    Reservation-level check-in/out times override the property's; the
    property's override the configured defaults.
    """
    prop = prop or {}
    check_in_time = (
        reservation.get("check_in_time")
        or prop.get("check_in_time")
        or parse_time_of_day(DEFAULT_CHECK_IN_TIME)
    )
    check_out_time = (
        reservation.get("check_out_time")
        or prop.get("check_out_time")
        or parse_time_of_day(DEFAULT_CHECK_OUT_TIME)
    )
    return ReservationClock(
        created_at=ensure_utc(reservation["created_at"]),
        check_in_date=reservation["check_in_date"],
        check_out_date=reservation["check_out_date"],
        check_in_time=parse_time_of_day(check_in_time),
        check_out_time=parse_time_of_day(check_out_time),
        tz=load_timezone(prop.get("timezone")),
        departure_send_time=parse_time_of_day(AFTER_DEPARTURE_SEND_TIME),
    )


def compute_fire_at(timing: Timing, clock: ReservationClock) -> datetime:
    """Absolute UTC instant at which the rule instance should fire."""
    if isinstance(timing, OnCreateDelay):
        return clock.created_at + timedelta(minutes=timing.minutes)
    if isinstance(timing, BeforeArrival):
        day = clock.check_in_date - timedelta(days=timing.days)
        return _local_instant(day, timing.at_time, clock.tz)
    if isinstance(timing, ArrivalDayBeforeCheckin):
        return clock.check_in_at - timedelta(hours=timing.hours)
    if isinstance(timing, AfterCheckin):
        return clock.check_in_at + timedelta(hours=timing.hours)
    if isinstance(timing, BeforeCheckout):
        return clock.check_out_at - timedelta(hours=timing.hours)
    if isinstance(timing, AfterDeparture):
        day = clock.check_out_date + timedelta(days=timing.days)
        return _local_instant(day, clock.departure_send_time, clock.tz)
    raise TypeError(f"Unsupported timing variant: {timing!r}")


def resolve_fire_time(
    timing: Timing,
    clock: ReservationClock,
    now: datetime,
    grace: timedelta = timedelta(minutes=ELAPSED_GRACE_MINUTES),
) -> FireTime:
    """
    Resolve the fire time and flag it as elapsed when it lies before now - grace.

    The resolver never moves an elapsed time forward; callers decide what an
    elapsed fire time means through the rule's backfill policy.
    """
    fire_at = compute_fire_at(timing, clock)
    return FireTime(fire_at=fire_at, elapsed=fire_at < ensure_utc(now) - grace)


def apply_backfill_policy(
    fire: FireTime,
    policy: str,
    clock: ReservationClock,
    now: datetime,
) -> Optional[datetime]:
    """
    Decide the effective fire time for a resolved rule instance.

    Returns:
        The time to schedule at, or None when nothing should be scheduled
    """
    if not fire.elapsed:
        return fire.fire_at
    now = ensure_utc(now)
    if policy == BackfillPolicy.ALWAYS.value:
        return now
    if policy == BackfillPolicy.UNTIL_CHECKIN.value and now < clock.check_in_at:
        return now
    return None
