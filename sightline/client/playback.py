"""Gapless playback scheduler for agent audio.

Chunks are decoded and scheduled back to back on an output context's clock:
- startAt = max(now + lookahead, next_play_time); next_play_time never decreases
- A single drain pass runs at a time; chunks keep arrival order
- stop() drops the queue, resets the cursor, and tears down the output outright
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from sightline.client.exceptions import PlaybackDecodeError
from sightline.logging_config import get_logger

logger: Any = get_logger(__name__)

DEFAULT_PCM_SAMPLE_RATE = 24000
DEFAULT_LOOKAHEAD_SECONDS = 0.01

_RATE_RE = re.compile(r"rate=(\d+)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class QueuedAudioChunk:
    """An agent audio chunk waiting to be decoded (base64 payload)."""

    data: str
    mime_type: str


@dataclass(frozen=True, slots=True)
class DecodedAudio:
    """Mono float samples in [-1, 1) at a given sample rate."""

    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return len(self.samples) / self.sample_rate


class AudioOutput(Protocol):
    """An audio output context with its own monotonic clock."""

    @property
    def current_time(self) -> float:
        """Current position of the output clock, in seconds."""
        ...

    @property
    def suspended(self) -> bool:
        ...

    async def resume(self) -> None:
        ...

    async def decode(self, data: bytes) -> DecodedAudio:
        """Decode a container format (wav, mp3, ogg, ...)."""
        ...

    def schedule(self, audio: DecodedAudio, start_at: float) -> None:
        """Play ``audio`` starting exactly at ``start_at`` on the output clock."""
        ...

    def close(self) -> None:
        """Tear down the context, silencing anything already scheduled."""
        ...


def parse_sample_rate(mime_type: str, default: int = DEFAULT_PCM_SAMPLE_RATE) -> int:
    """Read ``rate=<n>`` from a mime type such as ``audio/pcm;rate=16000``."""
    match = _RATE_RE.search(mime_type)
    if not match:
        return default
    rate = int(match.group(1))
    return rate if rate > 0 else default


def pcm16_to_float32(data: bytes) -> np.ndarray:
    """Convert little-endian 16-bit PCM to normalized float32 samples.

    A trailing odd byte is ignored.
    """
    usable = len(data) - (len(data) % 2)
    samples = np.frombuffer(data[:usable], dtype="<i2")
    return samples.astype(np.float32) / 32768.0


class AudioPlaybackScheduler:
    """Schedules agent audio chunks for gapless, ordered playback.

    Output contexts are created lazily through ``output_factory`` and are
    discarded by ``stop()``; the next chunk creates a fresh one.
    """

    def __init__(
        self,
        output_factory: Callable[[], AudioOutput],
        *,
        lookahead: float = DEFAULT_LOOKAHEAD_SECONDS,
        default_sample_rate: int = DEFAULT_PCM_SAMPLE_RATE,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._output_factory = output_factory
        self._lookahead = lookahead
        self._default_sample_rate = default_sample_rate
        self._on_error = on_error

        self._queue: deque[QueuedAudioChunk] = deque()
        self._output: AudioOutput | None = None
        self._next_play_time = 0.0
        self._draining = False
        self._generation = 0
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def next_play_time(self) -> float:
        return self._next_play_time

    @property
    def pending(self) -> int:
        """Chunks queued but not yet scheduled."""
        return len(self._queue)

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def output(self) -> AudioOutput | None:
        return self._output

    def enqueue(self, data: str, mime_type: str) -> None:
        """Queue a chunk and start a drain pass if none is running.

        Must be called from within a running event loop.
        """
        if not data or not mime_type:
            return

        self._queue.append(QueuedAudioChunk(data=data, mime_type=mime_type))

        if not self._draining:
            self._draining = True
            loop = asyncio.get_running_loop()
            self._drain_task = loop.create_task(self._drain(self._generation))

    async def join(self) -> None:
        """Wait until the current drain pass (if any) has finished."""
        while self._drain_task is not None and not self._drain_task.done():
            await self._drain_task

    def stop(self) -> None:
        """Drop queued chunks, reset the cursor, and close the output."""
        self._queue.clear()
        self._next_play_time = 0.0
        self._generation += 1
        self._draining = False

        output = self._output
        if output is not None:
            self._output = None
            try:
                output.close()
            except Exception as e:
                logger.warning(f"Error closing audio output: {e}")

    async def _drain(self, generation: int) -> None:
        try:
            while self._queue and generation == self._generation:
                chunk = self._queue.popleft()

                output = await self._ensure_output()
                if generation != self._generation:
                    return

                audio = await self._decode(output, chunk)
                if generation != self._generation:
                    return

                self._schedule(output, audio)

        except Exception as e:
            if generation != self._generation:
                return
            logger.error(f"Agent audio playback failed, dropping queue: {e}")
            self.stop()
            if self._on_error is not None:
                self._on_error(e)

        finally:
            if generation == self._generation:
                self._draining = False

    async def _ensure_output(self) -> AudioOutput:
        if self._output is None:
            self._output = self._output_factory()

        output = self._output
        if output.suspended:
            await output.resume()
        return output

    async def _decode(self, output: AudioOutput, chunk: QueuedAudioChunk) -> DecodedAudio:
        try:
            raw = base64.b64decode(chunk.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise PlaybackDecodeError(chunk.mime_type, "invalid base64 payload") from e

        mime_type = chunk.mime_type.lower()
        if mime_type.startswith("audio/pcm"):
            return DecodedAudio(
                samples=pcm16_to_float32(raw),
                sample_rate=parse_sample_rate(mime_type, self._default_sample_rate),
            )

        try:
            return await output.decode(raw)
        except PlaybackDecodeError:
            raise
        except Exception as e:
            raise PlaybackDecodeError(chunk.mime_type, str(e)) from e

    def _schedule(self, output: AudioOutput, audio: DecodedAudio) -> None:
        start_at = max(output.current_time + self._lookahead, self._next_play_time)
        output.schedule(audio, start_at)
        self._next_play_time = start_at + audio.duration
