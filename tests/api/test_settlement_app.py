"""Tests for the settlement API application factory."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from gaspay.api.settlement_api.app import create_app
from gaspay.envs.api_env import Settings


@pytest.fixture
def client(api_settings: Settings):
    with TestClient(create_app(api_settings)) as test_client:
        yield test_client


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root_points_at_docs(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


def test_unknown_run_is_not_found(client: TestClient) -> None:
    response = client.get("/api/v1/settlements/does-not-exist")

    assert response.status_code == 404


def test_invalid_request_is_rejected_without_contacting_backend(
    client: TestClient,
) -> None:
    response = client.post(
        "/api/v1/settlements",
        json={"amount": 60000, "customAmount": 70000, "totalDue": 60000},
        headers={"Authorization": "session-token"},
    )

    assert response.status_code == 400
    assert "exceeds total due" in response.json()["detail"]


def test_metrics_are_exposed(client: TestClient) -> None:
    response = client.get("/metrics/")

    assert response.status_code == 200
    assert "settlement_runs_total" in response.text


def test_configured_backend_token_is_not_used_for_anonymous_callers(
    client: TestClient, api_settings: Settings
) -> None:
    assert api_settings.settlement.backend_auth_token

    response = client.post(
        "/api/v1/settlements", json={"amount": 100, "totalDue": 100}
    )

    assert response.status_code == 401
