"""
Unit tests for FastAPI dependency injection.
"""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from guest_messaging.dependencies import get_context, get_db_engine, require_api_key


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()

    @app.get("/engine")
    def engine_endpoint(engine: object = Depends(get_db_engine)) -> dict[str, str]:
        return {"engine": type(engine).__name__}

    @app.get("/guarded", dependencies=[Depends(require_api_key)])
    def guarded_endpoint() -> dict[str, str]:
        return {"status": "ok"}

    return app


@pytest.mark.unit
def test_context_missing_returns_503(app: FastAPI) -> None:
    response = TestClient(app).get("/engine")

    assert response.status_code == 503
    assert response.json()["detail"] == "Application not ready"


@pytest.mark.unit
def test_engine_comes_from_the_context(app: FastAPI) -> None:
    app.state.context = Mock(engine=Mock(name="engine"))

    response = TestClient(app).get("/engine")

    assert response.status_code == 200
    assert response.json() == {"engine": "Mock"}


@pytest.mark.unit
def test_engine_dependency_can_be_overridden(app: FastAPI) -> None:
    app.dependency_overrides[get_db_engine] = lambda: "fake"

    assert TestClient(app).get("/engine").json() == {"engine": "str"}


@pytest.mark.unit
def test_get_context_returns_state_context() -> None:
    request = Mock()
    request.app.state.context = "ctx"

    assert get_context(request) == "ctx"


@pytest.mark.unit
@patch("guest_messaging.dependencies.config.ADMIN_API_KEY", "s3cret")
def test_api_key_required_when_configured(app: FastAPI) -> None:
    client = TestClient(app)

    assert client.get("/guarded").status_code == 401
    assert client.get("/guarded", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/guarded", headers={"X-API-Key": "s3cret"}).status_code == 200


@pytest.mark.unit
@patch("guest_messaging.dependencies.config.ADMIN_API_KEY", "")
def test_api_key_open_when_unset(app: FastAPI) -> None:
    assert TestClient(app).get("/guarded").status_code == 200
