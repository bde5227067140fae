"""Tests for Prometheus metrics."""

from __future__ import annotations

from sightline.observability.metrics import (
    ACTIVE_SESSIONS,
    get_content_type,
    get_metrics,
    record_error,
    record_message,
    record_session_event,
)


class TestMetricsModule:
    """Tests for metrics module functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        assert isinstance(get_metrics(), bytes)

    def test_get_content_type(self) -> None:
        content_type = get_content_type()
        assert "text/plain" in content_type or "text/openmetrics" in content_type

    def test_record_message(self) -> None:
        record_message("inbound", "audio.chunk")

        output = get_metrics().decode("utf-8")
        assert "sightline_ws_messages_total" in output
        assert 'type="audio.chunk"' in output

    def test_record_error(self) -> None:
        record_error("protocol")

        output = get_metrics().decode("utf-8")
        assert 'sightline_live_errors_total{kind="protocol"}' in output

    def test_session_gauge_tracks_open_and_close(self) -> None:
        """Test opened/closed events move the active session gauge."""
        before = ACTIVE_SESSIONS._value.get()

        record_session_event("opened")
        assert ACTIVE_SESSIONS._value.get() == before + 1

        record_session_event("closed_upstream")
        assert ACTIVE_SESSIONS._value.get() == before

    def test_superseded_does_not_move_gauge(self) -> None:
        before = ACTIVE_SESSIONS._value.get()

        record_session_event("superseded")

        assert ACTIVE_SESSIONS._value.get() == before


class TestMetricsEndpoint:
    """Tests for GET /metrics."""

    def test_metrics_endpoint(self, test_client) -> None:
        test_client.get("/api/health")
        response = test_client.get("/metrics")

        assert response.status_code == 200
        assert "sightline_active_channels" in response.text
