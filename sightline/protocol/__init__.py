"""Wire protocol for the live channel."""

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
    ServerReady,
    SessionClosed,
    SessionConnect,
    SessionConnected,
    SessionDisconnect,
    TextTurn,
    UserTranscript,
    VideoFrame,
    WireMessage,
    WireProtocolError,
    encode_message,
    parse_client_message,
    parse_server_message,
)

__all__ = [
    # Client → server
    "ClientMessage",
    "SessionConnect",
    "SessionDisconnect",
    "TextTurn",
    "AudioChunk",
    "AudioEnd",
    "VideoFrame",
    "ActivityStart",
    "ActivityEnd",
    "Ping",
    # Server → client
    "ServerMessage",
    "ServerReady",
    "SessionConnected",
    "SessionClosed",
    "UserTranscript",
    "AgentTextDelta",
    "AgentAudioChunk",
    "AgentTurnComplete",
    "LiveInterrupted",
    "LiveWaitingInput",
    "LiveError",
    "Pong",
    # Codec
    "WireMessage",
    "WireProtocolError",
    "encode_message",
    "parse_client_message",
    "parse_server_message",
]
