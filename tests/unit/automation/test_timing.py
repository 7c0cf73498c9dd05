"""Unit tests for rule timing variants."""

from __future__ import annotations

from datetime import time

import pytest

from guest_messaging.automation.timing import (
    AfterDeparture,
    BeforeArrival,
    OnCreateDelay,
    is_date_relative,
    timing_from_parts,
    timing_to_parts,
)
from guest_messaging.errors import RuleValidationError


@pytest.mark.unit
def test_timing_from_parts_builds_variant() -> None:
    timing = timing_from_parts("before_arrival", {"days": 2, "at_time": "09:30"})

    assert timing == BeforeArrival(days=2, at_time=time(9, 30))


@pytest.mark.unit
def test_timing_to_parts_stores_time_as_text() -> None:
    timing_type, params = timing_to_parts(BeforeArrival(days=1, at_time=time(18, 0)))

    assert timing_type == "before_arrival"
    assert params == {"days": 1, "at_time": "18:00"}


@pytest.mark.unit
def test_timing_from_parts_rejects_unknown_type() -> None:
    with pytest.raises(RuleValidationError):
        timing_from_parts("whenever", {})


@pytest.mark.unit
def test_timing_from_parts_rejects_parameters_of_another_variant() -> None:
    """A variant only carries its own parameters."""
    with pytest.raises(RuleValidationError):
        timing_from_parts("on_create_delay", {"minutes": 5, "days": 1})


@pytest.mark.unit
def test_timing_from_parts_rejects_missing_parameter() -> None:
    with pytest.raises(RuleValidationError):
        timing_from_parts("after_departure", {})


@pytest.mark.unit
@pytest.mark.parametrize("value", [-1, "5", True, 2.5])
def test_timing_from_parts_rejects_bad_integers(value: object) -> None:
    with pytest.raises(RuleValidationError):
        timing_from_parts("on_create_delay", {"minutes": value})


@pytest.mark.unit
def test_on_create_delay_and_after_departure_round_out() -> None:
    assert timing_from_parts("on_create_delay", {"minutes": 0}) == OnCreateDelay(minutes=0)
    assert timing_from_parts("after_departure", {"days": 1}) == AfterDeparture(days=1)


@pytest.mark.unit
def test_only_on_create_delay_is_not_date_relative() -> None:
    assert not is_date_relative("on_create_delay")
    assert is_date_relative("before_arrival")
    assert is_date_relative("after_checkin")
    assert is_date_relative("after_departure")
