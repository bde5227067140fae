"""Live session bridge.

Maps the small client wire protocol onto one stateful upstream Live session
and fans upstream events back out as server messages:
- At most one session per channel; a new connect supersedes the old one
- Every upstream call is contained; failures become exactly one live.error
- Callbacks from a superseded or locally closed session are ignored
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, assert_never

from sightline.logging_config import describe_payload, get_logger
from sightline.observability.metrics import record_error, record_session_event
from sightline.protocol.messages import (
    ActivityEnd,
    ActivityStart,
    AgentAudioChunk,
    AgentTextDelta,
    AgentTurnComplete,
    AudioChunk,
    AudioEnd,
    ClientMessage,
    LiveError,
    LiveInterrupted,
    LiveWaitingInput,
    Ping,
    Pong,
    ServerMessage,
    SessionClosed,
    SessionConnect,
    SessionConnected,
    SessionDisconnect,
    TextTurn,
    UserTranscript,
    VideoFrame,
)
from sightline.services.live.exceptions import (
    LiveConfigurationError,
    LiveUpstreamError,
    NoActiveSessionError,
)
from sightline.services.live.protocol import (
    ContentTurn,
    LiveServerEvent,
    LiveSessionCallbacks,
    LiveSessionConfig,
    LiveSessionHandle,
    LiveSessionProvider,
    MediaBlob,
    RealtimeInput,
)

logger: Any = get_logger(__name__)

DEFAULT_UPSTREAM_ERROR = "Live session error."
DEFAULT_DISPATCH_ERROR = "Unhandled Live bridge error."

RECONNECT_REASON = "Reconnecting session."
CLIENT_DISCONNECT_REASON = "Disconnected by client request."


@dataclass(frozen=True, slots=True)
class SendResult:
    """Outcome of translating one client message into an upstream call."""

    error: Exception | None = None

    @classmethod
    def success(cls) -> SendResult:
        return cls()

    @classmethod
    def failure(cls, error: Exception) -> SendResult:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(eq=False)
class _SessionSlot:
    """One connect attempt. ``handle`` is set once the provider returns."""

    handle: LiveSessionHandle | None = None


class LiveSessionBridge:
    """Owns the upstream Live session for a single channel.

    ``send`` must be non-blocking (the channel queues outbound messages);
    it is called from message handlers and from provider callbacks alike.
    """

    def __init__(
        self,
        *,
        provider: LiveSessionProvider,
        api_key: str,
        model: str,
        send: Callable[[ServerMessage], None],
    ) -> None:
        self._provider = provider
        self._api_key = api_key
        self._model = model
        self._send = send
        self._slot: _SessionSlot | None = None

    @property
    def model(self) -> str:
        return self._model

    @property
    def session_open(self) -> bool:
        """True once a session handle is live (not while connecting)."""
        return self._slot is not None and self._slot.handle is not None

    @property
    def connecting(self) -> bool:
        return self._slot is not None and self._slot.handle is None

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def connect(self, system_instruction: str | None = None) -> None:
        """Open a new upstream session, superseding any existing one.

        A missing credential is reported as live.error and nothing else happens.

        Raises:
            LiveUpstreamError: If the provider cannot open the session.
        """
        if not self._api_key:
            self._emit_error(LiveConfigurationError())
            return

        if self._slot is not None:
            logger.info("Superseding existing Live session")
            record_session_event("superseded")
            await self.disconnect(RECONNECT_REASON)

        slot = _SessionSlot()
        self._slot = slot

        instruction = system_instruction if system_instruction and system_instruction.strip() else None
        config = LiveSessionConfig(
            api_key=self._api_key,
            model=self._model,
            system_instruction=instruction,
        )

        try:
            handle = await self._provider.connect(config, self._callbacks_for(slot))
        except Exception:
            if self._slot is slot:
                self._slot = None
            record_session_event("failed")
            raise

        if self._slot is not slot:
            # Superseded, disconnected or closed upstream while connecting.
            logger.info("Discarding Live session that finished connecting too late")
            await handle.close()
            return

        slot.handle = handle
        record_session_event("opened")
        logger.info(f"Live session open ({self._model})")

    async def disconnect(self, reason: str | None = None) -> None:
        """Close the current session, if any, and emit session.closed."""
        slot = self._slot
        if slot is None:
            return

        self._slot = None

        if slot.handle is None:
            logger.info("Abandoning in-flight Live connect")
            return

        try:
            await slot.handle.close()
        except Exception as e:
            logger.warning(f"Error closing Live session: {e}")

        record_session_event("closed_local")
        logger.info(f"Live session closed: {reason or 'no reason'}")
        self._emit(SessionClosed(reason=reason))

    # =========================================================================
    # Client → upstream
    # =========================================================================

    async def handle_message(self, message: ClientMessage) -> None:
        """Dispatch one client message. Never raises."""
        try:
            result = await self._dispatch(message)
        except Exception as e:
            logger.warning(f"Dispatch of {message.type} failed: {e}")
            result = SendResult.failure(e)

        if not result.ok and result.error is not None:
            self._emit_error(result.error)

    async def _dispatch(self, message: ClientMessage) -> SendResult:
        match message:
            case SessionConnect(system_instruction=instruction):
                await self.connect(instruction)
                return SendResult.success()
            case SessionDisconnect():
                await self.disconnect(CLIENT_DISCONNECT_REASON)
                return SendResult.success()
            case Ping():
                self._emit(Pong())
                return SendResult.success()
            case TextTurn(text=text, turn_complete=turn_complete):
                turn = ContentTurn(text=text, turn_complete=turn_complete)
                return self._forward(lambda handle: handle.send_content(turn))
            case AudioChunk(data=data, mime_type=mime_type):
                logger.trace(f"audio.chunk {describe_payload(data, mime_type)}")
                audio = RealtimeInput(audio=MediaBlob(data=data, mime_type=mime_type))
                return self._forward(lambda handle: handle.send_realtime_input(audio))
            case AudioEnd():
                return self._forward(
                    lambda handle: handle.send_realtime_input(RealtimeInput(audio_stream_end=True))
                )
            case VideoFrame(data=data, mime_type=mime_type):
                logger.debug(f"video.frame {describe_payload(data, mime_type)}")
                video = RealtimeInput(video=MediaBlob(data=data, mime_type=mime_type))
                return self._forward(lambda handle: handle.send_realtime_input(video))
            case ActivityStart():
                return self._forward(
                    lambda handle: handle.send_realtime_input(RealtimeInput(activity_start=True))
                )
            case ActivityEnd():
                return self._forward(
                    lambda handle: handle.send_realtime_input(RealtimeInput(activity_end=True))
                )
            case _:
                assert_never(message)

    def _forward(self, call: Callable[[LiveSessionHandle], None]) -> SendResult:
        slot = self._slot
        if slot is None or slot.handle is None:
            return SendResult.failure(NoActiveSessionError())
        try:
            call(slot.handle)
        except Exception as e:
            logger.warning(f"Live send failed: {e}")
            return SendResult.failure(e)
        return SendResult.success()

    # =========================================================================
    # Upstream → client
    # =========================================================================

    def _callbacks_for(self, slot: _SessionSlot) -> LiveSessionCallbacks:
        def on_open() -> None:
            logger.debug("Live session transport open")

        def on_message(event: LiveServerEvent) -> None:
            if self._slot is slot:
                self._fan_out(event)

        def on_error(message: str | None) -> None:
            if self._slot is slot:
                logger.warning(f"Live upstream error: {message}")
                self._emit_error(LiveUpstreamError(message or DEFAULT_UPSTREAM_ERROR))

        def on_close(reason: str | None) -> None:
            if self._slot is not slot:
                return
            self._slot = None
            if slot.handle is not None:
                record_session_event("closed_upstream")
            logger.info(f"Live session closed upstream: {reason or 'no reason'}")
            self._emit(SessionClosed(reason=reason))

        return LiveSessionCallbacks(
            on_open=on_open,
            on_message=on_message,
            on_error=on_error,
            on_close=on_close,
        )

    def _fan_out(self, event: LiveServerEvent) -> None:
        """Translate one upstream event into zero or more server messages."""
        if event.setup_complete:
            self._emit(SessionConnected(session_id=event.session_id))

        for part in event.model_turn_parts:
            if part.data and part.mime_type.lower().startswith("audio/"):
                self._emit(AgentAudioChunk(data=part.data, mime_type=part.mime_type))

        heard = event.input_transcription
        if heard is not None and heard.text:
            self._emit(UserTranscript(text=heard.text, finished=heard.finished))

        spoken = event.output_transcription
        if spoken is not None and spoken.text and spoken.text.strip():
            self._emit(AgentTextDelta(text=spoken.text))
        elif event.text and event.text.strip():
            self._emit(AgentTextDelta(text=event.text))

        if event.interrupted:
            self._emit(LiveInterrupted())

        if event.turn_complete:
            self._emit(AgentTurnComplete())

        if event.waiting_for_input is not None:
            self._emit(LiveWaitingInput(waiting=event.waiting_for_input))

    def _emit_error(self, error: Exception) -> None:
        if isinstance(error, LiveConfigurationError):
            kind = "configuration"
        elif isinstance(error, NoActiveSessionError):
            kind = "no_session"
        elif isinstance(error, LiveUpstreamError):
            kind = "upstream"
        else:
            kind = "dispatch"
        record_error(kind)
        self._emit(LiveError(message=str(error) or DEFAULT_DISPATCH_ERROR))

    def _emit(self, message: ServerMessage) -> None:
        try:
            self._send(message)
        except Exception as e:
            logger.error(f"Failed to emit {message.type}: {e}")
