"""Unit tests for fire time resolution."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from guest_messaging.automation.clock import (
    ReservationClock,
    apply_backfill_policy,
    build_clock,
    compute_fire_at,
    load_timezone,
    resolve_fire_time,
)
from guest_messaging.automation.timing import (
    AfterCheckin,
    AfterDeparture,
    ArrivalDayBeforeCheckin,
    BeforeArrival,
    BeforeCheckout,
    OnCreateDelay,
)

TOKYO = ZoneInfo("Asia/Tokyo")
CREATED = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ReservationClock:
    """Stay at a Tokyo property: check in 10 Mar 15:00, out 13 Mar 11:00 (local)."""
    return ReservationClock(
        created_at=CREATED,
        check_in_date=date(2025, 3, 10),
        check_out_date=date(2025, 3, 13),
        check_in_time=time(15, 0),
        check_out_time=time(11, 0),
        tz=TOKYO,
        departure_send_time=time(10, 0),
    )


@pytest.mark.unit
def test_on_create_delay_counts_from_creation(clock: ReservationClock) -> None:
    assert compute_fire_at(OnCreateDelay(minutes=5), clock) == CREATED + timedelta(minutes=5)


@pytest.mark.unit
def test_before_arrival_fires_at_local_wall_clock(clock: ReservationClock) -> None:
    """09:00 Tokyo two days before check-in is 00:00 UTC that day."""
    fire_at = compute_fire_at(BeforeArrival(days=2, at_time=time(9, 0)), clock)

    assert fire_at == datetime(2025, 3, 8, 0, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_before_arrival_ignores_server_timezone(
    clock: ReservationClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TZ", "America/Los_Angeles")

    fire_at = compute_fire_at(BeforeArrival(days=1, at_time=time(18, 0)), clock)

    assert fire_at.astimezone(TOKYO) == datetime(2025, 3, 9, 18, 0, tzinfo=TOKYO)


@pytest.mark.unit
def test_hour_offsets_around_check_in_and_check_out(clock: ReservationClock) -> None:
    check_in_utc = datetime(2025, 3, 10, 6, 0, tzinfo=timezone.utc)
    check_out_utc = datetime(2025, 3, 13, 2, 0, tzinfo=timezone.utc)

    assert clock.check_in_at == check_in_utc
    assert compute_fire_at(ArrivalDayBeforeCheckin(hours=3), clock) == check_in_utc - timedelta(
        hours=3
    )
    assert compute_fire_at(AfterCheckin(hours=2), clock) == check_in_utc + timedelta(hours=2)
    assert compute_fire_at(BeforeCheckout(hours=12), clock) == check_out_utc - timedelta(hours=12)


@pytest.mark.unit
def test_after_departure_uses_departure_send_time(clock: ReservationClock) -> None:
    fire_at = compute_fire_at(AfterDeparture(days=1), clock)

    assert fire_at.astimezone(TOKYO) == datetime(2025, 3, 14, 10, 0, tzinfo=TOKYO)


@pytest.mark.unit
def test_hour_offset_across_dst_change_is_absolute() -> None:
    """US clocks spring forward on 9 Mar 2025; 24 hours stays 24 real hours."""
    new_york = ZoneInfo("America/New_York")
    clock = ReservationClock(
        created_at=CREATED,
        check_in_date=date(2025, 3, 9),
        check_out_date=date(2025, 3, 10),
        check_in_time=time(15, 0),
        check_out_time=time(11, 0),
        tz=new_york,
    )

    fire_at = compute_fire_at(ArrivalDayBeforeCheckin(hours=24), clock)

    assert clock.check_in_at - fire_at == timedelta(hours=24)
    assert fire_at.astimezone(new_york).hour == 14


@pytest.mark.unit
def test_resolve_fire_time_flags_elapsed_outside_grace(clock: ReservationClock) -> None:
    timing = OnCreateDelay(minutes=0)

    within_grace = resolve_fire_time(timing, clock, CREATED + timedelta(minutes=4))
    elapsed = resolve_fire_time(timing, clock, CREATED + timedelta(minutes=6))

    assert within_grace.elapsed is False
    assert elapsed.elapsed is True
    assert elapsed.fire_at == CREATED


@pytest.mark.unit
def test_backfill_policies(clock: ReservationClock) -> None:
    before_check_in = datetime(2025, 3, 9, 0, 0, tzinfo=timezone.utc)
    after_check_in = datetime(2025, 3, 11, 0, 0, tzinfo=timezone.utc)
    fire = resolve_fire_time(OnCreateDelay(minutes=5), clock, before_check_in)

    assert apply_backfill_policy(fire, "skip_if_past", clock, before_check_in) is None
    assert apply_backfill_policy(fire, "always", clock, after_check_in) == after_check_in
    assert apply_backfill_policy(fire, "until_checkin", clock, before_check_in) == before_check_in
    assert apply_backfill_policy(fire, "until_checkin", clock, after_check_in) is None


@pytest.mark.unit
def test_future_fire_time_is_kept_by_every_policy(clock: ReservationClock) -> None:
    fire = resolve_fire_time(OnCreateDelay(minutes=60), clock, CREATED)

    for policy in ("skip_if_past", "until_checkin", "always"):
        assert apply_backfill_policy(fire, policy, clock, CREATED) == fire.fire_at


@pytest.mark.unit
def test_build_clock_prefers_reservation_times_over_property() -> None:
    reservation = {
        "created_at": CREATED,
        "check_in_date": date(2025, 3, 10),
        "check_out_date": date(2025, 3, 13),
        "check_in_time": time(17, 0),
        "check_out_time": None,
    }
    prop = {"timezone": "Europe/Lisbon", "check_in_time": time(15, 0), "check_out_time": time(10, 0)}

    clock = build_clock(reservation, prop)

    assert clock.check_in_time == time(17, 0)
    assert clock.check_out_time == time(10, 0)
    assert clock.tz == ZoneInfo("Europe/Lisbon")


@pytest.mark.unit
def test_build_clock_without_property_uses_defaults() -> None:
    reservation = {
        "created_at": CREATED,
        "check_in_date": date(2025, 3, 10),
        "check_out_date": date(2025, 3, 13),
    }

    clock = build_clock(reservation, None)

    assert clock.check_in_time == time(15, 0)
    assert clock.check_out_time == time(11, 0)
    assert clock.tz == TOKYO


@pytest.mark.unit
def test_load_timezone_falls_back_for_unknown_name() -> None:
    assert load_timezone("Mars/Olympus_Mons") == TOKYO
