"""Unit tests for FastAPI application.

Tests for medassist/main.py - root, health and status endpoints.

Run with:
    pytest tests/unit/test_main.py -v
    pytest tests/unit/test_main.py -v -m fast
"""

import pytest
from fastapi.testclient import TestClient

from medassist import __version__
from medassist.core.orchestrator import get_orchestrator
from medassist.main import app, error_response


@pytest.fixture
def test_client(orchestrator):
    """Create test client backed by the fake orchestrator."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.fast
class TestRootEndpoint:
    """Tests for root endpoint."""

    def test_root_returns_info(self, test_client):
        """Test root endpoint returns application info."""
        response = test_client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "MedAssist"
        assert data["version"] == __version__
        assert data["docs"] == "/docs"
        assert data["health"] == "/health"


@pytest.mark.fast
class TestHealthEndpoint:
    """Tests for health endpoint."""

    def test_health_returns_status(self, test_client):
        """Test health endpoint returns status."""
        response = test_client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["uptime_seconds"] >= 0
        assert data["active_sessions"] == 0

    def test_health_includes_providers(self, test_client):
        """Test health endpoint includes provider status."""
        data = test_client.get("/health").json()

        assert data["providers"] == {"google": True, "openrouter": True}

    def test_health_counts_sessions(self, test_client):
        """Test active sessions follow the chat store."""
        test_client.post("/api/v1/chat", json={"message": "hi", "sessionId": "a"})
        assert test_client.get("/health").json()["active_sessions"] == 1


@pytest.mark.fast
class TestAPIStatusEndpoint:
    """Tests for API status endpoint."""

    def test_api_status_returns_info(self, test_client):
        """Test API status endpoint returns configuration info."""
        response = test_client.get("/api/v1/status")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "running"
        assert data["api_version"] == "v1"
        assert data["model_chain"] == ["model-x", "model-y", "model-z"]
        assert "/api/v1/chat" in data["endpoints"]
        assert "/api/v1/read-prescription" in data["endpoints"]


@pytest.mark.fast
class TestErrorResponse:
    """Tests for the error envelope helper."""

    def test_envelope_without_detail(self):
        """Test the envelope shape."""
        response = error_response(400, "Message is required")
        assert response.status_code == 400
        assert response.body == b'{"error":"Message is required","statusCode":400,"success":false}'

    def test_envelope_with_detail(self):
        """Test detail is included when given."""
        response = error_response(503, "Unavailable", detail="last error")
        assert b'"detail":"last error"' in response.body
