"""Observability module for metrics."""

from sightline.observability.metrics import (
    ACTIVE_CHANNELS,
    ACTIVE_SESSIONS,
    LIVE_ERRORS_TOTAL,
    SESSIONS_TOTAL,
    WS_MESSAGES_TOTAL,
    record_error,
    record_message,
    record_session_event,
)

__all__ = [
    "WS_MESSAGES_TOTAL",
    "LIVE_ERRORS_TOTAL",
    "SESSIONS_TOTAL",
    "ACTIVE_CHANNELS",
    "ACTIVE_SESSIONS",
    "record_message",
    "record_error",
    "record_session_event",
]
