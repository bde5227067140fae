"""Tests for the LiveAgentClient controller."""

from __future__ import annotations

import pytest
from test_playback import OutputFactory

from sightline.client.auto_observe import AUTO_VISION_PROMPT, MANUAL_VISION_PROMPT
from sightline.client.connection import ConnectionState
from sightline.client.scene_gate import EncodedFrame
from sightline.client.session import LiveAgentClient, is_likely_live_model
from sightline.protocol import (
    AgentAudioChunk,
    AgentTextDelta,
    AgentTurnComplete,
    LiveError,
    LiveInterrupted,
    LiveWaitingInput,
    ServerReady,
    SessionClosed,
    SessionConnected,
    UserTranscript,
)

PCM_CHUNK = "AAAAAAAA"


class FakeConnection:
    """Records every call the controller makes on the channel."""

    def __init__(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.calls: list[tuple] = []

    async def start_session(self, system_instruction: str) -> None:
        self.calls.append(("start", system_instruction))

    async def stop_session(self) -> None:
        self.calls.append(("stop",))
        self.state = ConnectionState.DISCONNECTED

    def send_text_turn(self, text: str, turn_complete: bool = True) -> bool:
        self.calls.append(("text", text, turn_complete))
        return True

    def send_audio_chunk(self, data: str, mime_type: str) -> bool:
        self.calls.append(("audio", data, mime_type))
        return True

    def end_audio_stream(self) -> bool:
        self.calls.append(("audio_end",))
        return True

    def send_video_frame(self, data: str, mime_type: str) -> bool:
        self.calls.append(("video", data, mime_type))
        return True

    def send_activity_start(self) -> bool:
        self.calls.append(("activity_start",))
        return True

    def send_activity_end(self) -> bool:
        self.calls.append(("activity_end",))
        return True

    def of(self, kind: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == kind]


class FakeDevice:
    def __init__(self, on_data, on_error, start_ok: bool = True) -> None:
        self.on_data = on_data
        self.on_error = on_error
        self.start_ok = start_ok
        self.started = False
        self.stopped = False

    async def start(self) -> bool:
        self.started = True
        return self.start_ok

    def stop(self) -> None:
        self.stopped = True


class DeviceFactory:
    def __init__(self) -> None:
        self.devices: list[FakeDevice] = []

    def __call__(self, on_data, on_error) -> FakeDevice:
        device = FakeDevice(on_data, on_error)
        self.devices.append(device)
        return device

    @property
    def latest(self) -> FakeDevice:
        return self.devices[-1]


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def outputs() -> OutputFactory:
    return OutputFactory()


@pytest.fixture
def microphones() -> DeviceFactory:
    return DeviceFactory()


@pytest.fixture
def cameras() -> DeviceFactory:
    return DeviceFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(settings_factory, connection, outputs, microphones, cameras, clock) -> LiveAgentClient:
    return LiveAgentClient(
        settings_factory(interrupt_release_seconds=0.0),
        connection=connection,
        output_factory=outputs,
        microphone_factory=microphones,
        camera_factory=cameras,
        clock=clock,
    )


def events(client: LiveAgentClient) -> list[str]:
    return [entry.text for entry in client.transcript.entries if entry.role.value == "event"]


async def connect(client: LiveAgentClient, connection: FakeConnection) -> None:
    connection.state = ConnectionState.CONNECTED
    client.handle_server_message(SessionConnected(session_id="abc"))


class TestLiveModelCheck:
    @pytest.mark.parametrize(
        ("model", "expected"),
        [
            ("gemini-2.5-flash-native-audio-preview-12-2025", True),
            ("gemini-live-2.5-flash", True),
            ("some-bidi-model", True),
            ("gemini-2.0-flash", False),
        ],
    )
    def test_is_likely_live_model(self, model: str, expected: bool) -> None:
        assert is_likely_live_model(model) is expected


class TestStartStop:
    """Tests for session start/stop actions."""

    @pytest.mark.asyncio
    async def test_start_session_sends_instruction(self, client, connection) -> None:
        client.handle_server_message(ServerReady(model="gemini-live-test-model"))

        assert await client.start_session("Be brief.") is True
        assert connection.calls == [("start", "Be brief.")]

    @pytest.mark.asyncio
    async def test_start_session_uses_default_instruction(self, client, connection) -> None:
        await client.start_session()

        assert connection.calls == [("start", client.settings.system_instruction)]

    @pytest.mark.asyncio
    async def test_non_live_model_blocks_start(self, client, connection) -> None:
        """Test a model that does not look Live-capable yields an event instead."""
        client.handle_server_message(ServerReady(model="gemini-2.0-flash"))

        assert await client.start_session() is False
        assert connection.calls == []
        assert "does not look Live-capable" in events(client)[0]

    @pytest.mark.asyncio
    async def test_stop_session_resets_inputs(self, client, connection, microphones) -> None:
        await connect(client, connection)
        await client.set_mic_enabled(True)
        client.transcript.on_user_transcript("half", False)

        await client.stop_session()

        assert ("stop",) in connection.calls
        assert client.mic_enabled is False
        assert microphones.latest.stopped is True
        assert client.transcript.entries[-1].text == "half"
        assert client.observer.activity.last_user_activity is None


class TestServerMessages:
    """Tests for server message handling."""

    def test_server_ready_sets_model(self, client) -> None:
        client.handle_server_message(ServerReady(model="gemini-live-x"))

        assert client.model_label == "gemini-live-x"

    @pytest.mark.asyncio
    async def test_session_connected_event(self, client, connection) -> None:
        await connect(client, connection)

        assert events(client) == ["Session connected (abc)."]
        assert client.observer.connected is True
        assert client.observer.running is True

    def test_session_connected_without_id(self, client) -> None:
        client.handle_server_message(SessionConnected())

        assert events(client) == ["Session connected."]

    @pytest.mark.asyncio
    async def test_session_closed_resets(self, client, connection, outputs, cameras) -> None:
        """Test a close disables inputs, stops playback and logs the reason."""
        await connect(client, connection)
        await client.set_camera_enabled(True)
        client.handle_server_message(AgentAudioChunk(data=PCM_CHUNK, mime_type="audio/pcm"))
        await client.playback.join()
        connection.state = ConnectionState.DISCONNECTED

        client.handle_server_message(SessionClosed(reason="GoAway"))

        assert events(client)[-1] == "Session closed: GoAway"
        assert client.camera_enabled is False
        assert cameras.latest.stopped is True
        assert outputs.outputs[0].closed is True
        assert client.observer.running is False

    def test_session_closed_without_reason(self, client) -> None:
        client.handle_server_message(SessionClosed())

        assert events(client) == ["Session closed."]

    def test_transcripts_flow_into_log(self, client) -> None:
        client.handle_server_message(UserTranscript(text="what is this", finished=True))
        client.handle_server_message(AgentTextDelta(text="A mug"))
        client.handle_server_message(AgentTextDelta(text="A mug."))
        client.handle_server_message(AgentTurnComplete())

        assert [(e.role.value, e.text) for e in client.transcript.entries] == [
            ("user", "what is this"),
            ("agent", "A mug."),
        ]

    @pytest.mark.asyncio
    async def test_agent_audio_enqueued(self, client, outputs) -> None:
        client.handle_server_message(AgentAudioChunk(data=PCM_CHUNK, mime_type="audio/pcm"))
        await client.playback.join()

        assert len(outputs.outputs[0].scheduled) == 1

    @pytest.mark.asyncio
    async def test_agent_audio_muted(self, client, outputs) -> None:
        client.set_speak_responses(False)
        client.handle_server_message(AgentAudioChunk(data=PCM_CHUNK, mime_type="audio/pcm"))
        await client.playback.join()

        assert outputs.outputs == []

    @pytest.mark.asyncio
    async def test_interrupted_stops_playback(self, client, outputs) -> None:
        client.handle_server_message(AgentAudioChunk(data=PCM_CHUNK, mime_type="audio/pcm"))
        await client.playback.join()
        client.transcript.on_user_transcript("hold on", False)

        client.handle_server_message(LiveInterrupted())

        assert outputs.outputs[0].closed is True
        assert events(client) == ["Model output interrupted by new user activity."]
        assert client.transcript.entries[0].text == "hold on"

    def test_waiting_input_tracked(self, client) -> None:
        client.handle_server_message(LiveWaitingInput(waiting=True))

        assert client.waiting_for_input is True
        assert client.observer.waiting_for_input is True

    def test_live_error_event(self, client) -> None:
        client.handle_server_message(LiveError(message="quota exceeded"))

        assert events(client) == ["Live error: quota exceeded"]

    @pytest.mark.asyncio
    async def test_playback_error_event(self, client) -> None:
        client.handle_server_message(AgentAudioChunk(data="!!!", mime_type="audio/pcm"))
        await client.playback.join()

        assert events(client)[0].startswith("Playback error: Could not decode audio/pcm chunk")


class TestUserActions:
    """Tests for user-originated actions."""

    @pytest.mark.asyncio
    async def test_send_text(self, client, connection, clock) -> None:
        assert client.send_text("  hello  ") is True

        assert connection.of("text") == [("text", "hello", True)]
        assert client.transcript.entries[0].text == "hello"
        assert client.observer.activity.last_user_activity == clock.now

    def test_blank_text_ignored(self, client, connection) -> None:
        assert client.send_text("   ") is False
        assert connection.calls == []

    @pytest.mark.asyncio
    async def test_mic_streams_chunks(self, client, connection, microphones) -> None:
        await connect(client, connection)
        await client.set_mic_enabled(True)

        microphones.latest.on_data("AAAA", "audio/pcm;rate=16000")

        assert microphones.latest.started is True
        assert connection.of("audio") == [("audio", "AAAA", "audio/pcm;rate=16000")]

    @pytest.mark.asyncio
    async def test_mic_not_started_before_connect(self, client, microphones) -> None:
        await client.set_mic_enabled(True)

        assert client.mic_enabled is True
        assert microphones.devices == []

    @pytest.mark.asyncio
    async def test_mic_off_sends_audio_end(self, client, connection, microphones) -> None:
        await connect(client, connection)
        await client.set_mic_enabled(True)

        await client.set_mic_enabled(False)

        assert connection.of("audio_end") == [("audio_end",)]
        assert microphones.latest.stopped is True

    @pytest.mark.asyncio
    async def test_mic_error_event(self, client, connection, microphones) -> None:
        await connect(client, connection)
        await client.set_mic_enabled(True)

        microphones.latest.on_error("device busy")

        assert events(client)[-1] == "Microphone error: device busy"
        assert client.mic_enabled is False

    @pytest.mark.asyncio
    async def test_camera_error_event(self, client, connection, cameras) -> None:
        await connect(client, connection)
        await client.set_camera_enabled(True)

        cameras.latest.on_error("permission denied")

        assert events(client)[-1] == "Camera error: permission denied"
        assert client.camera_enabled is False

    @pytest.mark.asyncio
    async def test_manual_vision_feedback(self, client, connection, cameras) -> None:
        """Test manual feedback sends the analysis prompt after a fresh frame."""
        await connect(client, connection)
        await client.set_camera_enabled(True)
        cameras.latest.on_data(EncodedFrame(data="/9j/", mime_type="image/jpeg"))

        assert client.request_vision_feedback() is True

        assert connection.of("video") == [("video", "/9j/", "image/jpeg")]
        assert connection.of("text") == [("text", MANUAL_VISION_PROMPT, True)]
        assert client.transcript.entries[-1].text == "[vision] analyze latest frame"

    @pytest.mark.asyncio
    async def test_manual_feedback_without_frame(self, client, connection) -> None:
        await connect(client, connection)
        await client.set_camera_enabled(True)

        assert client.request_vision_feedback() is False
        assert connection.of("text") == []

    @pytest.mark.asyncio
    async def test_manual_request_counts_as_activity(self, client, connection, clock) -> None:
        """Test a manual analysis request resets activity even without a fresh frame."""
        await connect(client, connection)

        client.request_vision_feedback()

        assert client.observer.activity.last_user_activity == clock.now
        assert client.observer.silence_elapsed() is False

    @pytest.mark.asyncio
    async def test_auto_observation_tick(self, client, connection, cameras, clock) -> None:
        await connect(client, connection)
        await client.set_camera_enabled(True)
        cameras.latest.on_data(EncodedFrame(data="/9j/", mime_type="image/jpeg"))
        client.handle_server_message(LiveWaitingInput(waiting=True))

        assert client.observer.tick() is True
        assert connection.of("text") == [("text", AUTO_VISION_PROMPT, True)]

    @pytest.mark.asyncio
    async def test_interrupt(self, client, connection, outputs, clock) -> None:
        """Test interrupt brackets activity and stops playback immediately."""
        client.handle_server_message(AgentAudioChunk(data=PCM_CHUNK, mime_type="audio/pcm"))
        await client.playback.join()

        await client.interrupt()

        assert [call[0] for call in connection.calls] == ["activity_start", "activity_end"]
        assert outputs.outputs[0].closed is True
        assert client.observer.activity.last_user_activity == clock.now
