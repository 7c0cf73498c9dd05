"""Reservation filters attached to automation rules."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from guest_messaging.errors import RuleValidationError

KNOWN_FILTERS = frozenset({"booking_sources", "min_nights", "min_guests", "max_guests"})


def validate_filters(filters: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Check a rule's filter mapping and return a normalized copy.

    Raises:
        RuleValidationError: Unknown keys or malformed values
    """
    if not filters:
        return {}
    unknown = sorted(set(filters) - KNOWN_FILTERS)
    if unknown:
        raise RuleValidationError(f"Unknown rule filters: {unknown}")

    normalized: dict[str, Any] = {}
    sources = filters.get("booking_sources")
    if sources is not None:
        if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
            raise RuleValidationError("booking_sources must be a list of strings")
        normalized["booking_sources"] = [s.strip() for s in sources if s.strip()]
    for key in ("min_nights", "min_guests", "max_guests"):
        value = filters.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise RuleValidationError(f"{key} must be a non-negative integer")
        normalized[key] = value
    if (
        "min_guests" in normalized
        and "max_guests" in normalized
        and normalized["min_guests"] > normalized["max_guests"]
    ):
        raise RuleValidationError("min_guests must not exceed max_guests")
    return normalized


def rule_matches(filters: Optional[Mapping[str, Any]], reservation: Mapping[str, Any]) -> bool:
    """True when the reservation satisfies every filter of the rule."""
    if not filters:
        return True

    sources = filters.get("booking_sources")
    if sources:
        source = (reservation.get("booking_source") or "").lower()
        if not any(s.lower() in source for s in sources):
            return False

    min_nights = filters.get("min_nights")
    if min_nights is not None:
        nights = (reservation["check_out_date"] - reservation["check_in_date"]).days
        if nights < min_nights:
            return False

    guests = reservation.get("num_guests") or 1
    if filters.get("min_guests") is not None and guests < filters["min_guests"]:
        return False
    if filters.get("max_guests") is not None and guests > filters["max_guests"]:
        return False
    return True
