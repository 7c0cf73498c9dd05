"""Unit tests for reservation change classification."""

from __future__ import annotations

from datetime import date, time

import pytest

from guest_messaging.services.reservations import classify_change


@pytest.mark.unit
def test_no_changes_is_unchanged() -> None:
    assert classify_change({"status": "confirmed"}, {}) == "unchanged"


@pytest.mark.unit
def test_cancellation_wins_over_date_changes() -> None:
    changed = {"status": "cancelled", "check_in_date": date(2025, 1, 1)}

    assert classify_change({"status": "confirmed"}, changed) == "cancelled"


@pytest.mark.unit
def test_clock_fields_are_date_changes() -> None:
    assert classify_change({}, {"check_in_date": date(2025, 1, 1)}) == "dates_changed"
    assert classify_change({}, {"check_out_time": time(10, 0)}) == "dates_changed"


@pytest.mark.unit
def test_other_fields_are_updates() -> None:
    assert classify_change({}, {"guest_email": "x@example.com"}) == "updated"
    assert classify_change({"status": "cancelled"}, {"status": "confirmed"}) == "updated"
