"""Websocket channel client for the /ws/live endpoint.

Sends are dropped until the server confirms ``session.connected``. Outbound
messages go through a queue drained by a single writer task so they keep
their order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from sightline.logging_config import get_logger
from sightline.protocol import (
    ActivityEnd,
    ActivityStart,
    AudioChunk,
    AudioEnd,
    ClientMessage,
    LiveError,
    ServerMessage,
    SessionClosed,
    SessionConnect,
    SessionConnected,
    SessionDisconnect,
    TextTurn,
    VideoFrame,
    WireProtocolError,
    encode_message,
    parse_server_message,
)

logger: Any = get_logger(__name__)

PARSE_FAILURE_MESSAGE = "Failed to parse websocket server message."
SOCKET_ERROR_MESSAGE = "WebSocket error while communicating with server."


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class LiveConnection:
    """Client side of the Live channel."""

    def __init__(
        self,
        url: str,
        on_server_message: Callable[[ServerMessage], None],
        *,
        connector: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        self._url = url
        self._on_server_message = on_server_message
        self._connector = connector or websockets.connect

        self.state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._outbox: asyncio.Queue[str | None] | None = None
        self._reader: asyncio.Task[None] | None = None
        self._writer: asyncio.Task[None] | None = None
        self._pending_instruction = ""
        self._has_active_session = False

    @property
    def has_active_session(self) -> bool:
        return self._has_active_session

    @property
    def socket_open(self) -> bool:
        return self._ws is not None

    async def start_session(self, system_instruction: str) -> None:
        """Open the socket if needed and ask for a new Live session."""
        self._pending_instruction = system_instruction
        self._has_active_session = False

        if self._ws is not None:
            self._send(SessionConnect(system_instruction=system_instruction))
            return

        await self._open()

    async def stop_session(self) -> None:
        """Send session.disconnect and close the socket."""
        self._send(SessionDisconnect())
        await self._close_socket()
        self._has_active_session = False
        self.state = ConnectionState.DISCONNECTED

    def send_text_turn(self, text: str, turn_complete: bool = True) -> bool:
        return self._send_in_session(TextTurn(text=text, turn_complete=turn_complete))

    def send_audio_chunk(self, data: str, mime_type: str) -> bool:
        return self._send_in_session(AudioChunk(data=data, mime_type=mime_type))

    def end_audio_stream(self) -> bool:
        return self._send_in_session(AudioEnd())

    def send_video_frame(self, data: str, mime_type: str) -> bool:
        return self._send_in_session(VideoFrame(data=data, mime_type=mime_type))

    def send_activity_start(self) -> bool:
        return self._send_in_session(ActivityStart())

    def send_activity_end(self) -> bool:
        return self._send_in_session(ActivityEnd())

    def _send_in_session(self, message: ClientMessage) -> bool:
        if not self._has_active_session:
            return False
        return self._send(message)

    def _send(self, message: ClientMessage) -> bool:
        if self._ws is None or self._outbox is None:
            return False
        self._outbox.put_nowait(encode_message(message))
        return True

    async def _open(self) -> None:
        self.state = ConnectionState.CONNECTING
        try:
            ws = await self._connector(self._url)
        except (OSError, TimeoutError, WebSocketException) as e:
            logger.warning(f"Could not open Live channel {self._url}: {e}")
            self.state = ConnectionState.DISCONNECTED
            self._deliver(LiveError(message=SOCKET_ERROR_MESSAGE))
            return

        loop = asyncio.get_running_loop()
        self._ws = ws
        self._outbox = asyncio.Queue()
        self._writer = loop.create_task(self._write_loop(ws, self._outbox))
        self._reader = loop.create_task(self._read_loop(ws))
        logger.info(f"Live channel open: {self._url}")

        self._send(SessionConnect(system_instruction=self._pending_instruction))

    async def _write_loop(self, ws: Any, outbox: asyncio.Queue[str | None]) -> None:
        while True:
            text = await outbox.get()
            if text is None:
                return
            try:
                await ws.send(text)
            except ConnectionClosed:
                logger.debug("Live channel closed while sending")
                return

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                try:
                    message = parse_server_message(raw)
                except WireProtocolError as e:
                    logger.warning(f"Unparseable server message: {e}")
                    self._deliver(LiveError(message=PARSE_FAILURE_MESSAGE))
                    continue

                if isinstance(message, SessionConnected):
                    self._has_active_session = True
                    self.state = ConnectionState.CONNECTED
                elif isinstance(message, SessionClosed):
                    self._has_active_session = False
                    self.state = ConnectionState.DISCONNECTED

                self._deliver(message)

                if isinstance(message, SessionClosed):
                    await self._stop_writer()
                    await ws.close()
                    return
        except ConnectionClosed as e:
            if e.rcvd is None or e.rcvd.code != 1000:
                self._deliver(LiveError(message=SOCKET_ERROR_MESSAGE))
        finally:
            if self._ws is ws:
                self._ws = None
                self._outbox = None
                self._has_active_session = False
                self.state = ConnectionState.DISCONNECTED
            logger.info("Live channel closed")

    async def _stop_writer(self) -> None:
        writer = self._writer
        self._writer = None
        if self._outbox is not None:
            self._outbox.put_nowait(None)
        if writer is not None and writer is not asyncio.current_task():
            await writer

    async def _close_socket(self) -> None:
        ws = self._ws
        if ws is None:
            return

        await self._stop_writer()
        await ws.close()

        reader = self._reader
        self._reader = None
        if reader is not None:
            await reader

        self._ws = None
        self._outbox = None

    def _deliver(self, message: ServerMessage) -> None:
        self._on_server_message(message)
