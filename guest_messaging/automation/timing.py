"""
Automation rule timing variants.

Each rule carries exactly one variant. The stored form is a
``(timing_type, timing_params)`` pair; ``timing_from_parts`` rebuilds the
typed variant and rejects parameters that belong to another variant.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import time
from enum import Enum
from typing import Any, Mapping, Union

from guest_messaging.errors import RuleValidationError
from guest_messaging.utils.datetime import parse_time_of_day


class TimingType(str, Enum):
    ON_CREATE_DELAY = "on_create_delay"
    BEFORE_ARRIVAL = "before_arrival"
    ARRIVAL_DAY_BEFORE_CHECKIN = "arrival_day_before_checkin"
    AFTER_CHECKIN = "after_checkin"
    BEFORE_CHECKOUT = "before_checkout"
    AFTER_DEPARTURE = "after_departure"


class BackfillPolicy(str, Enum):
    SKIP_IF_PAST = "skip_if_past"
    UNTIL_CHECKIN = "until_checkin"
    ALWAYS = "always"


@dataclass(frozen=True)
class OnCreateDelay:
    minutes: int

    type = TimingType.ON_CREATE_DELAY


@dataclass(frozen=True)
class BeforeArrival:
    days: int
    at_time: time

    type = TimingType.BEFORE_ARRIVAL


@dataclass(frozen=True)
class ArrivalDayBeforeCheckin:
    hours: int

    type = TimingType.ARRIVAL_DAY_BEFORE_CHECKIN


@dataclass(frozen=True)
class AfterCheckin:
    hours: int

    type = TimingType.AFTER_CHECKIN


@dataclass(frozen=True)
class BeforeCheckout:
    hours: int

    type = TimingType.BEFORE_CHECKOUT


@dataclass(frozen=True)
class AfterDeparture:
    days: int

    type = TimingType.AFTER_DEPARTURE


Timing = Union[
    OnCreateDelay,
    BeforeArrival,
    ArrivalDayBeforeCheckin,
    AfterCheckin,
    BeforeCheckout,
    AfterDeparture,
]

_VARIANTS: dict[TimingType, type] = {
    TimingType.ON_CREATE_DELAY: OnCreateDelay,
    TimingType.BEFORE_ARRIVAL: BeforeArrival,
    TimingType.ARRIVAL_DAY_BEFORE_CHECKIN: ArrivalDayBeforeCheckin,
    TimingType.AFTER_CHECKIN: AfterCheckin,
    TimingType.BEFORE_CHECKOUT: BeforeCheckout,
    TimingType.AFTER_DEPARTURE: AfterDeparture,
}

_PARAMS: dict[TimingType, tuple[str, ...]] = {
    TimingType.ON_CREATE_DELAY: ("minutes",),
    TimingType.BEFORE_ARRIVAL: ("days", "at_time"),
    TimingType.ARRIVAL_DAY_BEFORE_CHECKIN: ("hours",),
    TimingType.AFTER_CHECKIN: ("hours",),
    TimingType.BEFORE_CHECKOUT: ("hours",),
    TimingType.AFTER_DEPARTURE: ("days",),
}

# Every variant except OnCreateDelay moves when the stay dates move
DATE_RELATIVE_TYPES = frozenset(t for t in TimingType if t is not TimingType.ON_CREATE_DELAY)


def timing_from_parts(timing_type: str, params: Mapping[str, Any]) -> Timing:
    """
    Build a typed timing variant from its stored form.

    Args:
        timing_type: One of the TimingType values
        params: Parameters of that variant only

    Returns:
        The timing variant instance

    Raises:
        RuleValidationError: Unknown type, missing/extra parameters, or
            out-of-range values
    """
    try:
        kind = TimingType(timing_type)
    except ValueError:
        raise RuleValidationError(f"Unknown timing type: {timing_type!r}") from None

    expected = _PARAMS[kind]
    extra = sorted(set(params) - set(expected))
    if extra:
        raise RuleValidationError(
            f"Parameters {extra} do not belong to timing type {kind.value}"
        )
    missing = [name for name in expected if params.get(name) is None]
    if missing:
        raise RuleValidationError(f"Timing type {kind.value} requires {missing}")

    values: dict[str, Any] = {}
    for name in expected:
        raw = params[name]
        if name == "at_time":
            try:
                values[name] = parse_time_of_day(raw)
            except (TypeError, ValueError) as e:
                raise RuleValidationError(str(e)) from e
            continue
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise RuleValidationError(f"{name} must be an integer, got {raw!r}")
        if raw < 0:
            raise RuleValidationError(f"{name} must not be negative, got {raw}")
        values[name] = raw

    return _VARIANTS[kind](**values)  # type: ignore[no-any-return]


def timing_to_parts(timing: Timing) -> tuple[str, dict[str, Any]]:
    """Serialize a timing variant into (timing_type, timing_params)."""
    params = asdict(timing)
    if isinstance(timing, BeforeArrival):
        params["at_time"] = timing.at_time.strftime("%H:%M")
    return timing.type.value, params


def is_date_relative(timing_type: str) -> bool:
    """True when the fire time depends on check-in/check-out dates."""
    try:
        return TimingType(timing_type) in DATE_RELATIVE_TYPES
    except ValueError:
        return False
