"""Tests for the live channel wire protocol."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from sightline.protocol import (
    ActivityStart,
    AgentAudioChunk,
    AudioChunk,
    LiveError,
    LiveWaitingInput,
    Ping,
    ServerReady,
    SessionClosed,
    SessionConnect,
    SessionConnected,
    TextTurn,
    UserTranscript,
    VideoFrame,
    WireProtocolError,
    encode_message,
    parse_client_message,
    parse_server_message,
)


class TestParseClientMessage:
    """Tests for client → server parsing."""

    def test_session_connect_with_instruction(self) -> None:
        """Test camelCase systemInstruction is mapped."""
        message = parse_client_message(
            '{"type": "session.connect", "systemInstruction": "Be brief."}'
        )

        assert isinstance(message, SessionConnect)
        assert message.system_instruction == "Be brief."

    def test_session_connect_without_instruction(self) -> None:
        """Test systemInstruction is optional."""
        message = parse_client_message('{"type": "session.connect"}')

        assert isinstance(message, SessionConnect)
        assert message.system_instruction is None

    def test_text_turn_defaults_turn_complete(self) -> None:
        """Test turnComplete defaults to true."""
        message = parse_client_message('{"type": "text.turn", "text": "hello"}')

        assert isinstance(message, TextTurn)
        assert message.text == "hello"
        assert message.turn_complete is True

    def test_text_turn_explicit_false(self) -> None:
        """Test an explicit false turnComplete is kept."""
        message = parse_client_message(
            '{"type": "text.turn", "text": "partial", "turnComplete": false}'
        )

        assert message.turn_complete is False

    def test_text_turn_non_boolean_turn_complete(self) -> None:
        """Test a non-boolean turnComplete falls back to true."""
        message = parse_client_message(
            '{"type": "text.turn", "text": "x", "turnComplete": "no"}'
        )

        assert message.turn_complete is True

    def test_audio_chunk(self) -> None:
        """Test audio.chunk carries data and mime type."""
        message = parse_client_message(
            '{"type": "audio.chunk", "data": "AAAA", "mimeType": "audio/pcm;rate=16000"}'
        )

        assert isinstance(message, AudioChunk)
        assert message.data == "AAAA"
        assert message.mime_type == "audio/pcm;rate=16000"

    def test_video_frame(self) -> None:
        """Test video.frame carries data and mime type."""
        message = parse_client_message(
            '{"type": "video.frame", "data": "/9j/", "mimeType": "image/jpeg"}'
        )

        assert isinstance(message, VideoFrame)
        assert message.mime_type == "image/jpeg"

    def test_bytes_payload_decoded_as_utf8(self) -> None:
        """Test binary frames are decoded before parsing."""
        message = parse_client_message(b'{"type": "activity.start"}')

        assert isinstance(message, ActivityStart)

    def test_unknown_fields_ignored(self) -> None:
        """Test extra fields do not invalidate a message."""
        message = parse_client_message('{"type": "ping", "nonce": 5}')

        assert isinstance(message, Ping)

    @pytest.mark.parametrize(
        "raw",
        [
            "not valid json {{{",
            "[]",
            '"session.connect"',
            "{}",
            '{"type": 42}',
            '{"type": "unknown.tag"}',
            '{"type": "session.connect", "systemInstruction": null}',
            '{"type": "session.connect", "systemInstruction": 7}',
            '{"type": "text.turn"}',
            '{"type": "text.turn", "text": 5}',
            '{"type": "audio.chunk", "data": "AAAA"}',
            '{"type": "server.ready", "model": "m"}',
        ],
    )
    def test_invalid_payloads_rejected(self, raw: str) -> None:
        """Test malformed or unrecognized payloads raise WireProtocolError."""
        with pytest.raises(WireProtocolError):
            parse_client_message(raw)

    def test_invalid_utf8_rejected(self) -> None:
        """Test undecodable binary frames raise WireProtocolError."""
        with pytest.raises(WireProtocolError):
            parse_client_message(b"\xff\xfe\x00")

    def test_wire_protocol_error_is_value_error(self) -> None:
        """Test WireProtocolError can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse_client_message("nope")


class TestParseServerMessage:
    """Tests for server → client parsing."""

    def test_user_transcript(self) -> None:
        message = parse_server_message(
            '{"type": "user.transcript", "text": "hi there", "finished": true}'
        )

        assert isinstance(message, UserTranscript)
        assert message.finished is True

    def test_waiting_input_false(self) -> None:
        message = parse_server_message('{"type": "live.waiting-input", "waiting": false}')

        assert isinstance(message, LiveWaitingInput)
        assert message.waiting is False

    def test_session_closed_without_reason(self) -> None:
        message = parse_server_message('{"type": "session.closed"}')

        assert isinstance(message, SessionClosed)
        assert message.reason is None

    def test_client_tag_rejected(self) -> None:
        """Test client-only tags are not valid server messages."""
        with pytest.raises(WireProtocolError):
            parse_server_message('{"type": "audio.end"}')


class TestEncodeMessage:
    """Tests for message encoding."""

    def test_encode_uses_camel_case(self) -> None:
        encoded = json.loads(
            encode_message(AgentAudioChunk(data="AAAA", mime_type="audio/pcm;rate=24000"))
        )

        assert encoded == {
            "type": "agent.audio.chunk",
            "data": "AAAA",
            "mimeType": "audio/pcm;rate=24000",
        }

    def test_encode_omits_absent_optionals(self) -> None:
        assert json.loads(encode_message(SessionConnected())) == {"type": "session.connected"}
        assert json.loads(encode_message(SessionClosed())) == {"type": "session.closed"}

    def test_encode_keeps_optional_when_present(self) -> None:
        encoded = json.loads(encode_message(SessionConnected(session_id="abc")))

        assert encoded == {"type": "session.connected", "sessionId": "abc"}

    def test_encode_parse_server_ready(self) -> None:
        """Test an encoded server message parses back to an equal model."""
        original = ServerReady(model="gemini-live")

        assert parse_server_message(encode_message(original)) == original

    def test_messages_are_immutable(self) -> None:
        message = LiveError(message="boom")

        with pytest.raises(ValidationError):
            message.message = "changed"
