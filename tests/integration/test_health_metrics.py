"""Integration tests for /health, /healthz and /metrics endpoints."""

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from adoption.app.config import Settings
from adoption.app.db.inmemory import InMemoryAdoptionStore
from adoption.app.main import create_app
from adoption.app.services import build_services


@pytest.fixture
def client(store: InMemoryAdoptionStore, clock: Any) -> TestClient:
    """Create test client."""
    services = build_services(Settings(environment="test", scheduler_enabled=False), store=store, clock=clock)
    return TestClient(create_app(services))


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    def test_health_always_ok(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_healthz_in_memory(self, client: TestClient) -> None:
        """Test /healthz with no database or Redis configured."""
        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["components"]["db"] == "in_memory"
        assert data["components"]["redis"] == "not_configured"
        assert data["components"]["scheduler"] == "stopped"

    @patch("adoption.app.api.routes.health.check_db")
    @patch("adoption.app.api.routes.health.check_redis")
    def test_healthz_returns_503_when_db_fails(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        """Test /healthz returns 503 when DB check fails."""
        mock_check_db.return_value = (False, "connection refused")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["db"] == "connection refused"

    @patch("adoption.app.api.routes.health.check_db")
    @patch("adoption.app.api.routes.health.check_redis")
    def test_healthz_returns_503_when_redis_fails(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        """Test /healthz returns 503 when Redis check fails."""
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (False, "timeout")

        response = client.get("/healthz")

        assert response.status_code == 503
        assert response.json()["components"]["redis"] == "timeout"


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    def test_metrics_exposes_decision_counter(self, client: TestClient) -> None:
        client.get("/users/user-1", headers={"Authorization": "Bearer user-1:user"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert 'authz_decisions_total{check="admin_or_self",outcome="allowed"}' in response.text

    def test_metrics_declares_scheduler_series(self, client: TestClient) -> None:
        response = client.get("/metrics")

        assert "scheduler_poll_latency_ms" in response.text
        assert "audit_failures_total" in response.text


def test_lifespan_starts_and_stops_scheduler(store: InMemoryAdoptionStore, clock: Any) -> None:
    services = build_services(
        Settings(environment="test", scheduler_enabled=True, scheduler_poll_interval_seconds=3600),
        store=store,
        clock=clock,
    )

    with TestClient(create_app(services)) as client:
        assert client.get("/healthz").json()["components"]["scheduler"] == "running"

    assert not services.scheduler.running
