"""
Integration tests for status endpoints.

WHAT: Test / and /api/v1/health endpoints
WHY: Ensure the HTTP layer reports database and sweeper state
HOW: Use TestClient over an app wired to an in-memory database
"""

import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient

from gearmarket.core.config import Settings
from gearmarket.main import create_app


@pytest.mark.integration
class TestHealthEndpoint:
    """Test /api/v1/health endpoint."""

    def test_health_all_healthy(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["app_name"] == "Climbing Gear Marketplace"
        assert data["components"]["database"]["available"] is True
        assert data["components"]["expiration_sweeper"] == {"enabled": False, "running": False}

    def test_health_database_unavailable(self, client):
        with patch("gearmarket.api.v1.endpoints.status.ping_database") as mock_db:
            mock_db.return_value = {"available": False, "url": "sqlite://", "error": "disk I/O error"}
            response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_health_reports_running_sweeper(self, clock):
        app_settings = Settings(
            DATABASE_URL="sqlite://",
            OFFER_SWEEP_ENABLED=True,
            OFFER_SWEEP_INTERVAL_SECONDS=3600,
            LOG_FILE="",
        )
        app = create_app(app_settings, clock=clock)

        with TestClient(app) as client:
            sweeper = client.get("/api/v1/health").json()["components"]["expiration_sweeper"]
            assert sweeper == {"enabled": True, "running": True}

        assert app.state.expiration_sweeper.running is False


@pytest.mark.integration
def test_root_endpoint(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"
