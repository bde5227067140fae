"""Live agent client controller.

Ties the channel connection to the transcript, playback scheduler,
auto-observer and capture devices, and exposes the user actions
(start/stop, mic and camera toggles, text, vision feedback, interrupt).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Coroutine
from typing import Any, Protocol

from sightline.client.auto_observe import AutoObserver, FeedbackMode
from sightline.client.connection import ConnectionState, LiveConnection
from sightline.client.playback import AudioOutput, AudioPlaybackScheduler
from sightline.client.scene_gate import EncodedFrame
from sightline.client.transcript import TranscriptAggregator, TranscriptRole
from sightline.config import Settings, get_settings
from sightline.logging_config import get_logger
from sightline.protocol import (
    AgentAudioChunk,
    AgentTextDelta,
    AgentTurnComplete,
    LiveError,
    LiveInterrupted,
    LiveWaitingInput,
    ServerMessage,
    ServerReady,
    SessionClosed,
    SessionConnected,
    UserTranscript,
)

logger: Any = get_logger(__name__)

VISION_REQUEST_ENTRY = "[vision] analyze latest frame"
LIVE_MODEL_MARKERS = ("live", "native-audio", "bidi")


def is_likely_live_model(model: str) -> bool:
    """Whether a model name looks like a bidirectional Live model."""
    normalized = model.strip().lower()
    return any(marker in normalized for marker in LIVE_MODEL_MARKERS)


class CaptureDevice(Protocol):
    """Microphone stream or frame sampler."""

    async def start(self) -> bool:
        ...

    def stop(self) -> None:
        ...


class ChannelConnection(Protocol):
    state: ConnectionState

    async def start_session(self, system_instruction: str) -> None: ...
    async def stop_session(self) -> None: ...
    def send_text_turn(self, text: str, turn_complete: bool = True) -> bool: ...
    def send_audio_chunk(self, data: str, mime_type: str) -> bool: ...
    def end_audio_stream(self) -> bool: ...
    def send_video_frame(self, data: str, mime_type: str) -> bool: ...
    def send_activity_start(self) -> bool: ...
    def send_activity_end(self) -> bool: ...


MicrophoneFactory = Callable[[Callable[[str, str], None], Callable[[str], None]], CaptureDevice]
CameraFactory = Callable[[Callable[[EncodedFrame], None], Callable[[str], None]], CaptureDevice]


def _default_output() -> AudioOutput:
    from sightline.client.audio_output import SoundDeviceOutput

    return SoundDeviceOutput()


def _default_microphone(on_chunk: Callable[[str, str], None], on_error: Callable[[str], None]):
    from sightline.client.microphone import MicrophoneStream

    return MicrophoneStream(on_chunk, on_error=on_error)


def _camera_factory_for(settings: Settings) -> CameraFactory:
    def build(on_frame: Callable[[EncodedFrame], None], on_error: Callable[[str], None]):
        from sightline.client.camera import CameraSource, encode_jpeg
        from sightline.client.scene_gate import FrameSampler, SceneChangeGate

        return FrameSampler(
            CameraSource(),
            SceneChangeGate(settings.scene_change_threshold),
            on_frame,
            interval=settings.frame_interval_seconds,
            encoder=lambda frame: encode_jpeg(frame, settings.jpeg_quality),
            on_error=on_error,
        )

    return build


class LiveAgentClient:
    """State and actions behind a Live conversation UI."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        connection: ChannelConnection | None = None,
        output_factory: Callable[[], AudioOutput] | None = None,
        microphone_factory: MicrophoneFactory | None = None,
        camera_factory: CameraFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        s = self.settings

        self.connection: ChannelConnection = connection or LiveConnection(
            s.live_ws_url, self.handle_server_message
        )
        self.transcript = TranscriptAggregator()
        self.playback = AudioPlaybackScheduler(
            output_factory or _default_output,
            lookahead=s.playback_lookahead_seconds,
            default_sample_rate=s.default_pcm_sample_rate,
            on_error=self._on_playback_error,
        )
        self.observer = AutoObserver(
            self._send_observation_prompt,
            clock=clock,
            enabled=s.auto_observe_enabled,
            interval=s.auto_observe_interval_seconds,
            silence=s.auto_observe_silence_seconds,
            cooldown=s.auto_observe_cooldown_seconds,
            freshness=s.frame_freshness_seconds,
        )

        self._microphone_factory = microphone_factory or _default_microphone
        self._camera_factory = camera_factory or _camera_factory_for(s)
        self._microphone: CaptureDevice | None = None
        self._camera: CaptureDevice | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

        self.model_label = ""
        self.system_instruction = s.system_instruction
        self.mic_enabled = False
        self.camera_enabled = False
        self.speak_responses = True
        self.waiting_for_input = False

    @property
    def live_input_enabled(self) -> bool:
        return self.connection.state == ConnectionState.CONNECTED

    # -------------------------------------------------------------------------
    # Server messages
    # -------------------------------------------------------------------------

    def handle_server_message(self, message: ServerMessage) -> None:
        match message:
            case ServerReady(model=model):
                self.model_label = model

            case SessionConnected(session_id=session_id):
                self.observer.connected = True
                self.observer.reset_feedback()
                suffix = f" ({session_id})" if session_id else ""
                self.transcript.append_event(f"Session connected{suffix}.")
                self._spawn(self._sync_devices())
                if self._loop_running():
                    self.observer.start()

            case SessionClosed(reason=reason):
                self.transcript.on_session_closed()
                self.transcript.append_event(
                    f"Session closed: {reason}" if reason else "Session closed."
                )
                self._reset_after_session()

            case UserTranscript(text=text, finished=finished):
                self.transcript.on_user_transcript(text, finished)

            case AgentTextDelta(text=text):
                self.transcript.on_agent_delta(text)

            case AgentAudioChunk(data=data, mime_type=mime_type):
                if self.speak_responses:
                    self.playback.enqueue(data, mime_type)

            case AgentTurnComplete():
                self.transcript.on_turn_complete()

            case LiveInterrupted():
                self.transcript.on_interrupted()
                self.transcript.append_event("Model output interrupted by new user activity.")
                self.playback.stop()

            case LiveWaitingInput(waiting=waiting):
                self.waiting_for_input = waiting
                self.observer.waiting_for_input = waiting

            case LiveError(message=text):
                self.transcript.append_event(f"Live error: {text}")

            case _:
                pass

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    async def start_session(self, system_instruction: str | None = None) -> bool:
        if self.model_label and not is_likely_live_model(self.model_label):
            self.transcript.append_event(
                f'Configured model "{self.model_label}" does not look Live-capable for bidi '
                "sessions. Set GEMINI_LIVE_MODEL to a current Live model and restart server."
            )
            return False

        if system_instruction is not None:
            self.system_instruction = system_instruction
        await self.connection.start_session(self.system_instruction)
        return True

    async def stop_session(self) -> None:
        self.transcript.flush_user_partial()
        await self.connection.stop_session()
        self._reset_after_session()

    async def set_mic_enabled(self, enabled: bool) -> None:
        self.mic_enabled = enabled
        if enabled:
            self.observer.note_user_activity()
        elif self.live_input_enabled:
            self.connection.end_audio_stream()
        await self._sync_devices()

    async def set_camera_enabled(self, enabled: bool) -> None:
        self.camera_enabled = enabled
        self.observer.camera_enabled = enabled
        await self._sync_devices()

    def set_speak_responses(self, enabled: bool) -> None:
        self.speak_responses = enabled
        if not enabled:
            self.playback.stop()

    def set_auto_observe_enabled(self, enabled: bool) -> None:
        self.observer.enabled = enabled

    def send_text(self, text: str) -> bool:
        trimmed = text.strip()
        if not trimmed:
            return False

        self.connection.send_text_turn(trimmed, True)
        self.transcript.append(TranscriptRole.USER, trimmed)
        self.observer.note_user_activity()
        return True

    def request_vision_feedback(self) -> bool:
        self.observer.note_user_activity()
        sent = self.observer.request_feedback(FeedbackMode.MANUAL)
        if sent:
            self.transcript.append(TranscriptRole.USER, VISION_REQUEST_ENTRY)
        return sent

    async def interrupt(self) -> None:
        self.connection.send_activity_start()
        self.observer.note_user_activity()
        self.playback.stop()
        await asyncio.sleep(self.settings.interrupt_release_seconds)
        self.connection.send_activity_end()

    async def close(self) -> None:
        if self.live_input_enabled:
            await self.stop_session()
        else:
            self._reset_after_session()
        for task in list(self._tasks):
            task.cancel()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _reset_after_session(self) -> None:
        self.mic_enabled = False
        self.camera_enabled = False
        self.waiting_for_input = False
        self._stop_devices()

        self.observer.stop()
        self.observer.connected = False
        self.observer.camera_enabled = False
        self.observer.waiting_for_input = False
        self.observer.reset()

        self.playback.stop()

    async def _sync_devices(self) -> None:
        live = self.live_input_enabled

        if live and self.mic_enabled and self._microphone is None:
            microphone = self._microphone_factory(self._on_mic_chunk, self._on_mic_error)
            self._microphone = microphone
            if not await microphone.start():
                self._microphone = None
        elif not (live and self.mic_enabled) and self._microphone is not None:
            self._microphone.stop()
            self._microphone = None

        if live and self.camera_enabled and self._camera is None:
            camera = self._camera_factory(self._on_frame, self._on_camera_error)
            self._camera = camera
            if not await camera.start():
                self._camera = None
        elif not (live and self.camera_enabled) and self._camera is not None:
            self._camera.stop()
            self._camera = None

    def _stop_devices(self) -> None:
        if self._microphone is not None:
            self._microphone.stop()
            self._microphone = None
        if self._camera is not None:
            self._camera.stop()
            self._camera = None

    def _on_mic_chunk(self, data: str, mime_type: str) -> None:
        self.connection.send_audio_chunk(data, mime_type)

    def _on_frame(self, frame: EncodedFrame) -> None:
        self.observer.note_frame_captured()
        self.connection.send_video_frame(frame.data, frame.mime_type)

    def _on_mic_error(self, message: str) -> None:
        self.transcript.append_event(f"Microphone error: {message}")
        self.mic_enabled = False
        if self._microphone is not None:
            self._microphone.stop()
            self._microphone = None

    def _on_camera_error(self, message: str) -> None:
        self.transcript.append_event(f"Camera error: {message}")
        self.camera_enabled = False
        self.observer.camera_enabled = False
        if self._camera is not None:
            self._camera.stop()
            self._camera = None

    def _on_playback_error(self, error: Exception) -> None:
        self.transcript.append_event(f"Playback error: {error}")

    def _send_observation_prompt(self, prompt: str) -> None:
        self.connection.send_text_turn(prompt, True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        if not self._loop_running():
            coro.close()
            return
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    def _loop_running() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True
