"""Unit tests for rule filters."""

from __future__ import annotations

from datetime import date

import pytest

from guest_messaging.automation.filters import rule_matches, validate_filters
from guest_messaging.errors import RuleValidationError

RESERVATION = {
    "booking_source": "Booking.com",
    "num_guests": 3,
    "check_in_date": date(2025, 3, 10),
    "check_out_date": date(2025, 3, 12),
}


@pytest.mark.unit
def test_no_filters_match_everything() -> None:
    assert rule_matches(None, RESERVATION)
    assert rule_matches({}, RESERVATION)


@pytest.mark.unit
def test_booking_source_matches_case_insensitive_substring() -> None:
    assert rule_matches({"booking_sources": ["booking"]}, RESERVATION)
    assert not rule_matches({"booking_sources": ["airbnb"]}, RESERVATION)


@pytest.mark.unit
def test_night_and_guest_bounds() -> None:
    assert rule_matches({"min_nights": 2, "min_guests": 3, "max_guests": 4}, RESERVATION)
    assert not rule_matches({"min_nights": 3}, RESERVATION)
    assert not rule_matches({"max_guests": 2}, RESERVATION)


@pytest.mark.unit
def test_validate_filters_rejects_unknown_keys() -> None:
    with pytest.raises(RuleValidationError):
        validate_filters({"country": "JP"})


@pytest.mark.unit
def test_validate_filters_rejects_inverted_guest_range() -> None:
    with pytest.raises(RuleValidationError):
        validate_filters({"min_guests": 5, "max_guests": 2})


@pytest.mark.unit
def test_validate_filters_strips_blank_sources() -> None:
    assert validate_filters({"booking_sources": [" Airbnb ", ""]}) == {"booking_sources": ["Airbnb"]}
