"""
Unit Tests for Health Check Endpoints

Tests the /api/health and /api/ready endpoints.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from querypilot import __version__
from querypilot.api.main import app, app_state


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def restore_state():
    """Restore app_state after a test changes it."""
    original_state = app_state.copy()
    yield app_state
    app_state.update(original_state)


class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_returns_200(self, client):
        """Test that health endpoint returns 200 OK."""
        response = client.get("/api/health")
        assert response.status_code == 200

    def test_health_returns_correct_structure(self, client):
        """Test that health endpoint returns correct response structure."""
        data = client.get("/api/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert isinstance(data["timestamp"], str)

    def test_root_describes_api(self, client):
        data = client.get("/").json()

        assert data["name"] == "QueryPilot API"
        assert data["docs"] == "/docs"


class TestReadinessEndpoint:
    """Test suite for readiness check endpoint."""

    def test_ready_returns_200_when_all_checks_pass(self, client, restore_state, tenant_registry):
        """Test that ready endpoint returns 200 when all dependencies are ready."""
        restore_state["registry"] = tenant_registry
        restore_state["pipeline"] = MagicMock()
        restore_state["insights"] = MagicMock()

        response = client.get("/api/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["version"] == __version__
        assert data["checks"] == {"registry": True, "pipeline": True, "insights": True}

    def test_ready_returns_503_when_checks_fail(self, client, restore_state):
        """Test that ready endpoint returns 503 when dependencies are not ready."""
        restore_state.update(registry=None, pipeline=None, insights=None)

        response = client.get("/api/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["checks"] == {"registry": False, "pipeline": False, "insights": False}

    def test_empty_registry_is_not_ready(self, client, restore_state):
        """A registry without tenants cannot serve any request."""
        empty = MagicMock()
        empty.tenant_ids.return_value = []
        restore_state["registry"] = empty
        restore_state["pipeline"] = MagicMock()
        restore_state["insights"] = MagicMock()

        response = client.get("/api/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["registry"] is False
