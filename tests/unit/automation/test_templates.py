"""Unit tests for template rendering and variables."""

from __future__ import annotations

from datetime import date, time

import pytest

from guest_messaging.automation.templates import build_template_variables, render_template


@pytest.mark.unit
def test_render_template_substitutes_with_inner_whitespace() -> None:
    content = "Hi {{guest_first_name}}, see you at {{  check_in_time }}."

    rendered = render_template(content, {"guest_first_name": "Aiko", "check_in_time": "15:00"})

    assert rendered == "Hi Aiko, see you at 15:00."


@pytest.mark.unit
def test_render_template_blanks_unknown_placeholders() -> None:
    assert render_template("Code: {{ door_code }}.", {}) == "Code: ."


@pytest.mark.unit
def test_render_template_leaves_single_braces_alone() -> None:
    assert render_template("{guest_name}", {"guest_name": "Aiko"}) == "{guest_name}"


@pytest.mark.unit
def test_build_template_variables() -> None:
    reservation = {
        "external_booking_id": "BK-1",
        "guest_first_name": "Aiko",
        "guest_last_name": "Tanaka",
        "guest_email": "aiko@example.com",
        "num_guests": 2,
        "booking_source": "Airbnb",
        "check_in_date": date(2025, 3, 10),
        "check_out_date": date(2025, 3, 13),
    }
    prop = {"name": "Seaside Loft", "address": "Tokyo"}

    variables = build_template_variables(reservation, prop, time(15, 0), time(11, 0))

    assert variables["guest_name"] == "Aiko Tanaka"
    assert variables["num_nights"] == 3
    assert variables["check_in_date"] == "2025-03-10"
    assert variables["check_in_time"] == "15:00"
    assert variables["property_name"] == "Seaside Loft"
    assert variables["booking_reference"] == "BK-1"
