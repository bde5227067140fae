"""Wire protocol for the /ws/live channel.

Every frame is a JSON object tagged by ``type``. The client→server and
server→client vocabularies are disjoint closed unions; field names use
camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel


class WireProtocolError(ValueError):
    """Raised when a channel payload is not a valid protocol message."""

    pass


class WireMessage(BaseModel):
    """Base class for all wire messages (immutable once constructed)."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Client → Server
# =============================================================================


class SessionConnect(WireMessage):
    type: Literal["session.connect"] = "session.connect"
    system_instruction: StrictStr | None = None

    @field_validator("system_instruction", mode="before")
    @classmethod
    def _reject_explicit_null(cls, value: Any) -> Any:
        # Absent is fine; present must be a string.
        if value is None:
            raise ValueError("systemInstruction must be a string when present")
        return value


class SessionDisconnect(WireMessage):
    type: Literal["session.disconnect"] = "session.disconnect"


class TextTurn(WireMessage):
    type: Literal["text.turn"] = "text.turn"
    text: StrictStr
    turn_complete: bool = True

    @field_validator("turn_complete", mode="before")
    @classmethod
    def _default_non_boolean(cls, value: Any) -> bool:
        # Anything other than a real boolean means "use the default".
        return value if isinstance(value, bool) else True


class AudioChunk(WireMessage):
    type: Literal["audio.chunk"] = "audio.chunk"
    data: StrictStr
    mime_type: StrictStr


class AudioEnd(WireMessage):
    type: Literal["audio.end"] = "audio.end"


class VideoFrame(WireMessage):
    type: Literal["video.frame"] = "video.frame"
    data: StrictStr
    mime_type: StrictStr


class ActivityStart(WireMessage):
    type: Literal["activity.start"] = "activity.start"


class ActivityEnd(WireMessage):
    type: Literal["activity.end"] = "activity.end"


class Ping(WireMessage):
    type: Literal["ping"] = "ping"


ClientMessage = Annotated[
    SessionConnect
    | SessionDisconnect
    | TextTurn
    | AudioChunk
    | AudioEnd
    | VideoFrame
    | ActivityStart
    | ActivityEnd
    | Ping,
    Field(discriminator="type"),
]


# =============================================================================
# Server → Client
# =============================================================================


class ServerReady(WireMessage):
    type: Literal["server.ready"] = "server.ready"
    model: StrictStr


class SessionConnected(WireMessage):
    type: Literal["session.connected"] = "session.connected"
    session_id: StrictStr | None = None


class SessionClosed(WireMessage):
    type: Literal["session.closed"] = "session.closed"
    reason: StrictStr | None = None


class UserTranscript(WireMessage):
    type: Literal["user.transcript"] = "user.transcript"
    text: StrictStr
    finished: StrictBool = False


class AgentTextDelta(WireMessage):
    type: Literal["agent.text.delta"] = "agent.text.delta"
    text: StrictStr


class AgentAudioChunk(WireMessage):
    type: Literal["agent.audio.chunk"] = "agent.audio.chunk"
    data: StrictStr
    mime_type: StrictStr


class AgentTurnComplete(WireMessage):
    type: Literal["agent.turn.complete"] = "agent.turn.complete"


class LiveInterrupted(WireMessage):
    type: Literal["live.interrupted"] = "live.interrupted"


class LiveWaitingInput(WireMessage):
    type: Literal["live.waiting-input"] = "live.waiting-input"
    waiting: StrictBool


class LiveError(WireMessage):
    type: Literal["live.error"] = "live.error"
    message: StrictStr


class Pong(WireMessage):
    type: Literal["pong"] = "pong"


ServerMessage = Annotated[
    ServerReady
    | SessionConnected
    | SessionClosed
    | UserTranscript
    | AgentTextDelta
    | AgentAudioChunk
    | AgentTurnComplete
    | LiveInterrupted
    | LiveWaitingInput
    | LiveError
    | Pong,
    Field(discriminator="type"),
]

_client_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
_server_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


def _load_object(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WireProtocolError("payload is not valid UTF-8") from e

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise WireProtocolError(f"payload is not valid JSON: {e.msg}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise WireProtocolError("payload must be an object with a string 'type'")

    return payload


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Parse one inbound channel frame.

    Raises:
        WireProtocolError: If the payload is unparseable, untagged, carries an
            unknown tag, or has fields of the wrong type.
    """
    payload = _load_object(raw)
    try:
        return _client_adapter.validate_python(payload)
    except ValidationError as e:
        raise WireProtocolError(f"invalid '{payload['type']}' message") from e


def parse_server_message(raw: str | bytes) -> ServerMessage:
    """Parse one outbound frame (used by the Python client)."""
    payload = _load_object(raw)
    try:
        return _server_adapter.validate_python(payload)
    except ValidationError as e:
        raise WireProtocolError(f"invalid '{payload['type']}' message") from e


def encode_message(message: WireMessage) -> str:
    """Serialize a message to its JSON wire form (absent optionals omitted)."""
    return message.model_dump_json(by_alias=True, exclude_none=True)
