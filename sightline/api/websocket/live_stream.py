"""WebSocket handler for the /ws/live channel.

Handles the live channel protocol:
- Sends server.ready as soon as the channel opens
- Parses client frames and hands them to a per-channel LiveSessionBridge
- Writes outbound messages in order from a single writer task
- Disconnects the upstream session when the channel closes
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from sightline.config import get_settings
from sightline.core.bridge import LiveSessionBridge
from sightline.logging_config import get_logger
from sightline.observability.metrics import ACTIVE_CHANNELS, record_error, record_message
from sightline.protocol.messages import (
    LiveError,
    ServerMessage,
    ServerReady,
    WireProtocolError,
    encode_message,
    parse_client_message,
)
from sightline.services.live.gemini import GeminiLiveProvider
from sightline.services.live.protocol import LiveSessionProvider

logger: Any = get_logger(__name__)

INVALID_PAYLOAD_MESSAGE = "Invalid websocket message payload."
SOCKET_CLOSED_REASON = "Socket closed."
SHUTDOWN_REASON = "Server shutting down."


@lru_cache
def get_live_provider() -> LiveSessionProvider:
    """Get the process-wide Live session provider."""
    return GeminiLiveProvider()


class ChannelOutbox:
    """Ordered, non-blocking outbound queue for one channel.

    ``send`` never waits; a single writer task serializes frames onto the
    socket and drops them once the socket is gone.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._queue: asyncio.Queue[ServerMessage | None] = asyncio.Queue()
        self._closed = False
        self._writer: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def start(self) -> None:
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, message: ServerMessage) -> None:
        """Queue one message for the client."""
        if self._closed:
            logger.debug(f"Dropping {message.type} for closed channel")
            return
        self._queue.put_nowait(message)

    async def _write_loop(self) -> None:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            if not self.connected:
                continue
            try:
                await self._websocket.send_text(encode_message(message))
                record_message("outbound", message.type)
            except Exception as e:
                logger.error(f"Failed to send {message.type}: {e}")

    async def close(self) -> None:
        """Flush pending messages and stop the writer."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        if self._writer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer


@dataclass
class ChannelEntry:
    """Entry in the channel registry."""

    bridge: LiveSessionBridge
    opened_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ChannelRegistry:
    """Registry of open live channels.

    One bridge per channel; used to close every upstream session on shutdown.
    """

    def __init__(self) -> None:
        self._channels: dict[str, ChannelEntry] = {}
        self._lock = asyncio.Lock()

    async def add(self, channel_id: str, bridge: LiveSessionBridge) -> None:
        async with self._lock:
            self._channels[channel_id] = ChannelEntry(bridge=bridge)
            ACTIVE_CHANNELS.set(len(self._channels))

    async def remove(self, channel_id: str) -> ChannelEntry | None:
        async with self._lock:
            entry = self._channels.pop(channel_id, None)
            ACTIVE_CHANNELS.set(len(self._channels))
            return entry

    async def close_all(self) -> None:
        """Disconnect every channel's session (for shutdown)."""
        async with self._lock:
            for channel_id, entry in list(self._channels.items()):
                try:
                    await entry.bridge.disconnect(SHUTDOWN_REASON)
                except Exception as e:
                    logger.error(f"Error closing channel {channel_id}: {e}")
            self._channels.clear()
            ACTIVE_CHANNELS.set(0)

    @property
    def active_count(self) -> int:
        """Number of open channels."""
        return len(self._channels)


# Global registry instance
channel_registry = ChannelRegistry()


def _frame_text(frame: dict[str, Any]) -> str | bytes:
    text = frame.get("text")
    if text is not None:
        return text
    return frame.get("bytes") or b""


async def live_stream_endpoint(websocket: WebSocket) -> None:
    """Handle one live channel connection.

    Protocol:
    - Receives JSON client messages (session.connect, audio.chunk, ...)
    - Sends JSON server messages (server.ready, agent.audio.chunk, ...)
    - Invalid frames yield live.error without closing the channel
    """
    await websocket.accept()
    channel_id = uuid.uuid4().hex[:12]
    logger.info(f"Live channel {channel_id} opened")

    settings = get_settings()
    outbox = ChannelOutbox(websocket)
    outbox.start()

    bridge = LiveSessionBridge(
        provider=get_live_provider(),
        api_key=settings.api_key,
        model=settings.gemini_live_model,
        send=outbox.send,
    )
    await channel_registry.add(channel_id, bridge)
    outbox.send(ServerReady(model=settings.gemini_live_model))

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break

            try:
                message = parse_client_message(_frame_text(frame))
            except WireProtocolError as e:
                logger.warning(f"Invalid payload on channel {channel_id}: {e}")
                record_error("protocol")
                outbox.send(LiveError(message=INVALID_PAYLOAD_MESSAGE))
                continue

            record_message("inbound", message.type)
            await bridge.handle_message(message)

    except Exception as e:
        logger.error(f"Live channel {channel_id} error: {e}")

    finally:
        await bridge.disconnect(SOCKET_CLOSED_REASON)
        await channel_registry.remove(channel_id)
        await outbox.close()
        logger.info(f"Live channel {channel_id} closed")
