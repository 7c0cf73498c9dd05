"""Unit tests for the Prometheus endpoint."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from guest_messaging.metrics import webhook_events
from guest_messaging.routes.metrics import router


@pytest.mark.unit
def test_metrics_endpoint_exposes_registered_metrics() -> None:
    app = FastAPI()
    app.include_router(router)
    webhook_events.labels(event_type="booking.created", outcome="processed").inc()

    response = TestClient(app).get("/metrics")

    assert response.status_code == 200
    assert "guest_messaging_webhook_events_total" in response.text
    assert "guest_messaging_sweep_duration_seconds" in response.text
