"""Template variable building and {{ placeholder }} rendering."""

from __future__ import annotations

import re
from datetime import time
from typing import Any, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def render_template(content: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute ``{{ name }}`` placeholders.

    Unknown placeholders render as empty strings.

    Example:
        >>> render_template("Hi {{ guest_first_name }}!", {"guest_first_name": "Aiko"})
        'Hi Aiko!'
    """

    def _substitute(match: re.Match[str]) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, content)


def _format_time(value: Optional[time]) -> str:
    if value is None:
        return ""
    return value.strftime("%H:%M")


def build_template_variables(
    reservation: Mapping[str, Any],
    prop: Optional[Mapping[str, Any]],
    check_in_time: Optional[time] = None,
    check_out_time: Optional[time] = None,
) -> dict[str, Any]:
    """
    Variables available to message templates for one reservation.

    The result is JSON-serializable so it can be stored as the scheduled
    message payload.
    """
    prop = prop or {}
    check_in = reservation.get("check_in_date")
    check_out = reservation.get("check_out_date")
    nights = (check_out - check_in).days if check_in and check_out else 0
    full_name = reservation.get("guest_name") or " ".join(
        part
        for part in (reservation.get("guest_first_name"), reservation.get("guest_last_name"))
        if part
    )

    return {
        "guest_name": full_name or "Guest",
        "guest_first_name": reservation.get("guest_first_name")
        or (full_name.split(" ")[0] if full_name else "Guest"),
        "guest_last_name": reservation.get("guest_last_name") or "",
        "guest_email": reservation.get("guest_email") or "",
        "guest_phone": reservation.get("guest_phone") or "",
        "check_in_date": check_in.isoformat() if check_in else "",
        "check_out_date": check_out.isoformat() if check_out else "",
        "check_in_time": _format_time(check_in_time or reservation.get("check_in_time")),
        "check_out_time": _format_time(check_out_time or reservation.get("check_out_time")),
        "num_nights": nights,
        "num_guests": reservation.get("num_guests") or 1,
        "property_name": prop.get("name") or "Your accommodation",
        "property_address": prop.get("address") or "",
        "booking_source": reservation.get("booking_source") or "",
        "booking_reference": reservation.get("external_booking_id") or str(reservation.get("id", "")),
    }
