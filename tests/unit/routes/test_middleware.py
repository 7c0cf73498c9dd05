"""
Unit tests for middleware components.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from guest_messaging.middleware import RequestIDMiddleware


@pytest.fixture
def client() -> TestClient:
    """Test client for a bare app wrapped in RequestIDMiddleware."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/test")
    async def test_endpoint(request: Request) -> dict[str, str]:
        return {"request_id": request.state.request_id}

    return TestClient(app)


@pytest.mark.unit
def test_generates_request_id_when_missing(client: TestClient) -> None:
    response = client.get("/test")

    assert response.status_code == 200
    assert len(response.headers["X-Request-ID"]) == 36  # UUID length
    assert response.json()["request_id"] == response.headers["X-Request-ID"]


@pytest.mark.unit
def test_keeps_caller_request_id(client: TestClient) -> None:
    response = client.get("/test", headers={"X-Request-ID": "trace-abc"})

    assert response.headers["X-Request-ID"] == "trace-abc"
    assert response.json()["request_id"] == "trace-abc"


@pytest.mark.unit
def test_request_ids_are_unique(client: TestClient) -> None:
    first = client.get("/test").headers["X-Request-ID"]
    second = client.get("/test").headers["X-Request-ID"]

    assert first != second
