"""Live session services (Gemini Live).

Provides the provider-neutral session interface used by the bridge and the
Gemini adapter that satisfies it.
"""

from sightline.services.live.exceptions import (
    LiveConfigurationError,
    LiveServiceError,
    LiveSessionClosedError,
    LiveUpstreamError,
    NoActiveSessionError,
)
from sightline.services.live.gemini import GeminiLiveProvider, GeminiLiveSession
from sightline.services.live.protocol import (
    ContentTurn,
    LiveServerEvent,
    LiveSessionCallbacks,
    LiveSessionConfig,
    LiveSessionHandle,
    LiveSessionProvider,
    MediaBlob,
    RealtimeInput,
    Transcription,
)

__all__ = [
    # Providers
    "GeminiLiveProvider",
    "GeminiLiveSession",
    # Protocol
    "LiveSessionProvider",
    "LiveSessionHandle",
    "LiveSessionCallbacks",
    # Data types
    "LiveSessionConfig",
    "LiveServerEvent",
    "ContentTurn",
    "RealtimeInput",
    "MediaBlob",
    "Transcription",
    # Exceptions
    "LiveServiceError",
    "LiveConfigurationError",
    "NoActiveSessionError",
    "LiveUpstreamError",
    "LiveSessionClosedError",
]
