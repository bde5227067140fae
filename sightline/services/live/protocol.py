"""Live session provider protocol and data types.

The bridge talks to any hosted streaming session through these types only.
Provider adapters translate their SDK objects into ``LiveServerEvent`` and
accept ``ContentTurn`` / ``RealtimeInput`` for sending.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class MediaBlob:
    """Base64 media payload with its mime type (as carried on the wire)."""

    data: str
    mime_type: str


@dataclass(frozen=True, slots=True)
class LiveSessionConfig:
    """Parameters for opening one Live session."""

    api_key: str
    model: str
    system_instruction: str | None = None
    response_modalities: tuple[str, ...] = ("AUDIO",)
    input_audio_transcription: bool = True
    output_audio_transcription: bool = True


@dataclass(frozen=True, slots=True)
class ContentTurn:
    """A single client content turn."""

    text: str
    role: str = "user"
    turn_complete: bool = True


@dataclass(frozen=True, slots=True)
class RealtimeInput:
    """One realtime input message. Exactly one field is expected to be set."""

    audio: MediaBlob | None = None
    video: MediaBlob | None = None
    activity_start: bool = False
    activity_end: bool = False
    audio_stream_end: bool = False


@dataclass(frozen=True, slots=True)
class Transcription:
    """A transcription fragment reported by the upstream session."""

    text: str | None = None
    finished: bool = False


@dataclass(frozen=True, slots=True)
class LiveServerEvent:
    """Provider-neutral view of one upstream session message.

    Several fields may be populated at once; the bridge treats each one as
    an independent flag.
    """

    setup_complete: bool = False
    session_id: str | None = None
    model_turn_parts: tuple[MediaBlob, ...] = field(default_factory=tuple)
    input_transcription: Transcription | None = None
    output_transcription: Transcription | None = None
    text: str | None = None
    interrupted: bool = False
    turn_complete: bool = False
    waiting_for_input: bool | None = None


@dataclass(frozen=True, slots=True)
class LiveSessionCallbacks:
    """The four lifecycle hooks a provider invokes for one session."""

    on_open: Callable[[], None]
    on_message: Callable[[LiveServerEvent], None]
    on_error: Callable[[str | None], None]
    on_close: Callable[[str | None], None]


class LiveSessionHandle(Protocol):
    """An open Live session.

    Sends are fire-and-forget: they are queued in order and any asynchronous
    failure is reported through ``LiveSessionCallbacks.on_error``. A send on a
    closed handle raises ``LiveSessionClosedError`` synchronously.
    """

    def send_content(self, turn: ContentTurn) -> None:
        """Send one client content turn."""
        ...

    def send_realtime_input(self, realtime_input: RealtimeInput) -> None:
        """Send realtime audio/video/activity input."""
        ...

    async def close(self) -> None:
        """Close the session. Does not invoke ``on_close``."""
        ...


class LiveSessionProvider(Protocol):
    """Protocol for Live session provider implementations."""

    async def connect(
        self,
        config: LiveSessionConfig,
        callbacks: LiveSessionCallbacks,
    ) -> LiveSessionHandle:
        """Open a session and start delivering events to ``callbacks``.

        Raises:
            LiveUpstreamError: If the session cannot be established.
        """
        ...
