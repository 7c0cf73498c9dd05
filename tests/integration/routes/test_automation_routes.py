"""Integration tests for the automation operator endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from guest_messaging.context import AppContext


@pytest.mark.integration
def test_create_and_list_rules(
    client: TestClient, make_property: Callable[..., int], make_template: Callable[..., int]
) -> None:
    property_id = make_property()
    template_id = make_template()

    response = client.post(
        "/automation/rules",
        json={
            "name": "Pre-arrival",
            "template_id": template_id,
            "channel": "whatsapp",
            "property_id": property_id,
            "timing": {"type": "before_arrival", "days": 2, "at_time": "09:00"},
            "filters": {"min_nights": 2},
        },
    )

    assert response.status_code == 201
    rule = response.json()
    assert rule["timing_type"] == "before_arrival"
    assert rule["timing_params"] == {"days": 2, "at_time": "09:00"}
    assert rule["filters"] == {"min_nights": 2}

    listed = client.get("/automation/rules", params={"property_id": property_id}).json()
    assert [r["id"] for r in listed] == [rule["id"]]


@pytest.mark.integration
@pytest.mark.parametrize(
    "timing",
    [
        {"type": "before_arrival", "days": 2},
        {"type": "on_create_delay", "minutes": 5, "hours": 1},
        {"type": "sometime"},
        {"type": "arrival_day_before_checkin", "hours": 30},
    ],
)
def test_malformed_timing_is_rejected(
    client: TestClient, make_template: Callable[..., int], timing: dict
) -> None:
    response = client.post(
        "/automation/rules",
        json={"name": "Bad", "template_id": make_template(), "channel": "inapp", "timing": timing},
    )

    assert response.status_code == 422


@pytest.mark.integration
def test_rule_with_unknown_template_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/automation/rules",
        json={
            "name": "Orphan",
            "template_id": 999,
            "channel": "inapp",
            "timing": {"type": "on_create_delay", "minutes": 0},
        },
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Template 999 does not exist"


@pytest.mark.integration
def test_patch_rule_and_unknown_rule(client: TestClient, make_rule: Callable[..., int]) -> None:
    rule_id = make_rule()

    response = client.patch(
        f"/automation/rules/{rule_id}",
        json={"enabled": False, "timing": {"type": "after_departure", "days": 1}},
    )

    assert response.status_code == 200
    assert response.json()["enabled"] is False
    assert response.json()["timing_type"] == "after_departure"
    assert client.patch("/automation/rules/999", json={"enabled": True}).status_code == 404


@pytest.mark.integration
def test_templates_crud(client: TestClient) -> None:
    created = client.post(
        "/automation/templates",
        json={"name": "Checkout", "content": "Safe travels, {{ guest_first_name }}!"},
    )
    assert created.status_code == 201
    template_id = created.json()["id"]

    patched = client.patch(f"/automation/templates/{template_id}", json={"enabled": False})
    assert patched.json()["enabled"] is False
    assert [t["id"] for t in client.get("/automation/templates").json()] == [template_id]
    assert client.patch("/automation/templates/999", json={"name": "x"}).status_code == 404


@pytest.mark.integration
def test_trigger_cancel_and_list_scheduled(
    client: TestClient, make_reservation: Callable[..., int], make_rule: Callable[..., int]
) -> None:
    make_rule("after_checkin", {"hours": 2})
    reservation_id = make_reservation()

    with patch("guest_messaging.services.automation.utc_now") as mock_now:
        mock_now.return_value = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        triggered = client.post(f"/automation/reservations/{reservation_id}/trigger")

    assert triggered.status_code == 200
    assert triggered.json()["created"] == 1

    scheduled = client.get(f"/automation/reservations/{reservation_id}/scheduled").json()
    assert [s["status"] for s in scheduled] == ["pending"]

    cancelled = client.post(
        f"/automation/reservations/{reservation_id}/cancel", json={"reason": "Owner stay"}
    )
    assert cancelled.json() == {"reservation_id": reservation_id, "cancelled": 1}
    assert client.get("/automation/stats").json() == {"cancelled": 1}


@pytest.mark.integration
def test_unknown_reservation_returns_404(client: TestClient) -> None:
    assert client.post("/automation/reservations/999/trigger").status_code == 404
    assert client.get("/automation/reservations/999/scheduled").status_code == 404
    assert client.post("/automation/reservations/999/disable").status_code == 404
    assert (
        client.post("/automation/reservations/999/cancel", json={"reason": "x"}).status_code == 404
    )


@pytest.mark.integration
def test_disable_reservation(
    client: TestClient, make_reservation: Callable[..., int]
) -> None:
    reservation_id = make_reservation()

    response = client.post(f"/automation/reservations/{reservation_id}/disable")

    assert response.json() == {
        "reservation_id": reservation_id,
        "automation_enabled": False,
        "cancelled": 0,
    }


@pytest.mark.integration
def test_sweep_endpoint_runs_a_sweep(client: TestClient, context: AppContext) -> None:
    response = client.post("/automation/sweep")

    assert response.status_code == 200
    assert response.json() == {"due": 0, "sent": 0, "failed": 0, "skipped": 0, "expired": 0}


@pytest.mark.integration
def test_backfill_endpoint_accepts_empty_body(client: TestClient) -> None:
    response = client.post("/automation/backfill")

    assert response.status_code == 200
    assert response.json() == {"processed": 0, "skipped": 0, "failed": 0, "created": 0}


@pytest.mark.integration
@patch("guest_messaging.dependencies.config.ADMIN_API_KEY", "ops-key")
def test_operator_endpoints_require_api_key(client: TestClient) -> None:
    assert client.get("/automation/rules").status_code == 401
    assert client.get("/automation/rules", headers={"X-API-Key": "ops-key"}).status_code == 200
