"""Gemini Live session provider using the google-genai SDK."""

from __future__ import annotations

import asyncio
import base64
import contextlib
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any

from websockets.exceptions import ConnectionClosed

from sightline.logging_config import get_logger
from sightline.services.live.exceptions import LiveSessionClosedError, LiveUpstreamError
from sightline.services.live.protocol import (
    ContentTurn,
    LiveServerEvent,
    LiveSessionCallbacks,
    LiveSessionConfig,
    MediaBlob,
    RealtimeInput,
    Transcription,
)

if TYPE_CHECKING:
    from google.genai import types
    from google.genai.live import AsyncSession

logger: Any = get_logger(__name__)

SendOperation = Callable[[], Awaitable[None]]


def _to_base64(data: bytes | str) -> str:
    if isinstance(data, str):
        return data
    return base64.b64encode(data).decode("ascii")


def _transcription(value: Any) -> Transcription | None:
    if value is None:
        return None
    return Transcription(
        text=getattr(value, "text", None),
        finished=bool(getattr(value, "finished", False)),
    )


def event_from_message(message: Any) -> LiveServerEvent:
    """Convert a ``types.LiveServerMessage`` into a provider-neutral event.

    Every inline-data part is carried over (the bridge decides which ones are
    audio); attribute access is tolerant of fields missing in older SDKs.
    """
    setup = getattr(message, "setup_complete", None)
    content = getattr(message, "server_content", None)

    parts: list[MediaBlob] = []
    model_turn = getattr(content, "model_turn", None)
    for part in getattr(model_turn, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None)
        if data:
            parts.append(
                MediaBlob(data=_to_base64(data), mime_type=getattr(inline, "mime_type", None) or "")
            )

    waiting = getattr(content, "waiting_for_input", None)

    return LiveServerEvent(
        setup_complete=setup is not None,
        session_id=getattr(setup, "session_id", None),
        model_turn_parts=tuple(parts),
        input_transcription=_transcription(getattr(content, "input_transcription", None)),
        output_transcription=_transcription(getattr(content, "output_transcription", None)),
        text=getattr(message, "text", None),
        interrupted=bool(getattr(content, "interrupted", False)),
        turn_complete=bool(getattr(content, "turn_complete", False)),
        waiting_for_input=waiting if isinstance(waiting, bool) else None,
    )


def build_connect_config(config: LiveSessionConfig) -> types.LiveConnectConfig:
    """Build the SDK connect config for a session request."""
    from google.genai import types

    return types.LiveConnectConfig(
        response_modalities=[types.Modality(m) for m in config.response_modalities],
        input_audio_transcription=(
            types.AudioTranscriptionConfig() if config.input_audio_transcription else None
        ),
        output_audio_transcription=(
            types.AudioTranscriptionConfig() if config.output_audio_transcription else None
        ),
        system_instruction=config.system_instruction,
    )


def build_realtime_kwargs(realtime_input: RealtimeInput) -> dict[str, Any]:
    """Map a ``RealtimeInput`` onto ``AsyncSession.send_realtime_input`` kwargs."""
    from google.genai import types

    kwargs: dict[str, Any] = {}
    if realtime_input.audio is not None:
        kwargs["audio"] = types.Blob(
            data=base64.b64decode(realtime_input.audio.data),
            mime_type=realtime_input.audio.mime_type,
        )
    if realtime_input.video is not None:
        kwargs["video"] = types.Blob(
            data=base64.b64decode(realtime_input.video.data),
            mime_type=realtime_input.video.mime_type,
        )
    if realtime_input.activity_start:
        kwargs["activity_start"] = types.ActivityStart()
    if realtime_input.activity_end:
        kwargs["activity_end"] = types.ActivityEnd()
    if realtime_input.audio_stream_end:
        kwargs["audio_stream_end"] = True
    return kwargs


class GeminiLiveSession:
    """An open Gemini Live session.

    Sends go through a single ordered queue drained by a background task, so
    callers never wait on the network. A receive task converts upstream
    messages into events until the connection ends.
    """

    def __init__(
        self,
        session: AsyncSession,
        exit_stack: AsyncExitStack,
        callbacks: LiveSessionCallbacks,
    ) -> None:
        self._session = session
        self._exit_stack = exit_stack
        self._callbacks = callbacks
        self._outbox: asyncio.Queue[SendOperation | None] = asyncio.Queue()
        self._closed = False
        self._send_task: asyncio.Task[None] | None = None
        self._receive_task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the send pump and the receive loop."""
        self._send_task = asyncio.create_task(self._pump())
        self._receive_task = asyncio.create_task(self._receive_loop())

    def send_content(self, turn: ContentTurn) -> None:
        from google.genai import types

        content = types.Content(role=turn.role, parts=[types.Part(text=turn.text)])
        self._enqueue(
            lambda: self._session.send_client_content(
                turns=content,
                turn_complete=turn.turn_complete,
            )
        )

    def send_realtime_input(self, realtime_input: RealtimeInput) -> None:
        kwargs = build_realtime_kwargs(realtime_input)
        self._enqueue(lambda: self._session.send_realtime_input(**kwargs))

    def _enqueue(self, operation: SendOperation) -> None:
        if self._closed:
            raise LiveSessionClosedError()
        self._outbox.put_nowait(operation)

    async def _pump(self) -> None:
        while True:
            operation = await self._outbox.get()
            if operation is None:
                return
            try:
                await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Live send failed: {e}")
                if not self._closed:
                    self._callbacks.on_error(str(e) or type(e).__name__)

    async def _receive_loop(self) -> None:
        reason: str | None = None
        try:
            while not self._closed:
                received = False
                async for message in self._session.receive():
                    received = True
                    self._callbacks.on_message(event_from_message(message))
                if not received:
                    break
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as e:
            reason = e.rcvd.reason if e.rcvd is not None and e.rcvd.reason else None
            logger.info(f"Live connection closed upstream: {reason or 'no reason'}")
        except Exception as e:
            logger.error(f"Live receive error: {e}")
            if not self._closed:
                self._callbacks.on_error(str(e) or type(e).__name__)

        if self._closed:
            return
        await self._shutdown()
        self._callbacks.on_close(reason)

    async def _shutdown(self) -> None:
        self._closed = True
        self._outbox.put_nowait(None)
        if self._send_task is not None:
            self._send_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._send_task
        try:
            await self._exit_stack.aclose()
        except Exception as e:
            logger.warning(f"Error closing Live connection: {e}")

    async def close(self) -> None:
        """Close locally. ``on_close`` is not invoked for local closes."""
        if self._closed:
            return
        self._closed = True
        current = asyncio.current_task()
        if self._receive_task is not None and self._receive_task is not current:
            self._receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task
        await self._shutdown()


class GeminiLiveProvider:
    """Live session provider backed by ``genai.Client().aio.live``."""

    def __init__(self, client_factory: Callable[[str], Any] | None = None) -> None:
        self._client_factory = client_factory or self._default_client

    @staticmethod
    def _default_client(api_key: str) -> Any:
        from google import genai

        return genai.Client(api_key=api_key)

    async def connect(
        self,
        config: LiveSessionConfig,
        callbacks: LiveSessionCallbacks,
    ) -> GeminiLiveSession:
        """Open a Live session and start streaming events to ``callbacks``.

        The SDK consumes the setup handshake inside ``connect``; a
        setup-complete event is delivered as soon as the context is entered.
        """
        client = self._client_factory(config.api_key)
        exit_stack = AsyncExitStack()
        try:
            session = await exit_stack.enter_async_context(
                client.aio.live.connect(model=config.model, config=build_connect_config(config))
            )
        except Exception as e:
            await exit_stack.aclose()
            logger.error(f"Failed to open Live session ({config.model}): {e}")
            raise LiveUpstreamError(f"Failed to open Live session: {e}") from e

        logger.info(f"Live session opened ({config.model})")
        handle = GeminiLiveSession(session, exit_stack, callbacks)
        callbacks.on_open()
        callbacks.on_message(LiveServerEvent(setup_complete=True))
        handle.start()
        return handle
