"""Tests for the health check endpoint."""

from __future__ import annotations

from datetime import datetime

from conftest import TEST_MODEL


class TestHealthEndpoint:
    """Tests for GET /api/health."""

    def test_health_ok(self, test_client) -> None:
        """Test GET /api/health returns status, model and key presence."""
        response = test_client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["model"] == TEST_MODEL
        assert data["hasApiKey"] is True

    def test_health_timestamp_is_iso(self, test_client) -> None:
        data = test_client.get("/api/health").json()

        assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None

    def test_health_never_returns_key(self, test_client) -> None:
        """Test the credential itself is not exposed."""
        response = test_client.get("/api/health")

        assert "test-gemini-key" not in response.text
        assert set(response.json()) == {"status", "model", "hasApiKey", "timestamp"}


class TestHealthWithoutKey:
    """Tests for health when no credential is configured."""

    def test_health_reports_missing_key(self, test_client_no_key) -> None:
        """Test a missing key is reported but the server stays healthy."""
        response = test_client_no_key.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["hasApiKey"] is False
