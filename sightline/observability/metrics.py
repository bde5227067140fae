"""Prometheus metrics for the Sightline live bridge.

Provides metrics for monitoring channel traffic, session lifecycle, and errors.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

WS_MESSAGES_TOTAL = Counter(
    "sightline_ws_messages_total",
    "Wire messages handled on live channels",
    ["direction", "type"],
)

LIVE_ERRORS_TOTAL = Counter(
    "sightline_live_errors_total",
    "live.error messages emitted, by error kind",
    ["kind"],
)

SESSIONS_TOTAL = Counter(
    "sightline_sessions_total",
    "Live session lifecycle events",
    ["event"],
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_CHANNELS = Gauge(
    "sightline_active_channels",
    "Currently open live channels",
)

ACTIVE_SESSIONS = Gauge(
    "sightline_active_sessions",
    "Currently open upstream Live sessions",
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_message(direction: str, message_type: str) -> None:
    """Count one wire message.

    Args:
        direction: "inbound" (client → server) or "outbound"
        message_type: Wire tag, e.g. "audio.chunk"
    """
    WS_MESSAGES_TOTAL.labels(direction=direction, type=message_type).inc()


def record_error(kind: str) -> None:
    """Count one surfaced error (configuration, protocol, no_session, upstream, dispatch)."""
    LIVE_ERRORS_TOTAL.labels(kind=kind).inc()


def record_session_event(event: str) -> None:
    """Track session lifecycle (opened, superseded, closed_local, closed_upstream, failed)."""
    SESSIONS_TOTAL.labels(event=event).inc()
    if event == "opened":
        ACTIVE_SESSIONS.inc()
    elif event in ("closed_local", "closed_upstream"):
        ACTIVE_SESSIONS.dec()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics.

    Returns:
        Content-Type header value for Prometheus metrics.
    """
    return CONTENT_TYPE_LATEST
