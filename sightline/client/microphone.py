"""Microphone capture to base64 PCM16 chunks."""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable
from typing import Any

import numpy as np
import sounddevice as sd

from sightline.client.exceptions import CaptureError
from sightline.logging_config import get_logger

logger: Any = get_logger(__name__)

DEFAULT_INPUT_SAMPLE_RATE = 16000
DEFAULT_BLOCK_SIZE = 2048


def float32_to_base64_pcm(samples: np.ndarray) -> str:
    """Clamp float samples to [-1, 1] and pack as little-endian 16-bit PCM."""
    clamped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 32768.0, clamped * 32767.0)
    pcm = scaled.astype("<i2")
    return base64.b64encode(pcm.tobytes()).decode("ascii")


def pcm_mime_type(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"


class MicrophoneStream:
    """Streams mono microphone blocks to ``on_chunk(data, mime_type)``.

    Blocks arrive on the PortAudio thread and are handed to the event loop.
    """

    def __init__(
        self,
        on_chunk: Callable[[str, str], None],
        *,
        on_error: Callable[[str], None] | None = None,
        sample_rate: int = DEFAULT_INPUT_SAMPLE_RATE,
        block_size: int = DEFAULT_BLOCK_SIZE,
        device: int | str | None = None,
    ) -> None:
        self._on_chunk = on_chunk
        self._on_error = on_error
        self._sample_rate = sample_rate
        self._block_size = block_size
        self._device = device
        self._stream: sd.InputStream | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    async def start(self) -> bool:
        if self._stream is not None:
            return True

        self._loop = asyncio.get_running_loop()
        try:
            stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self._block_size,
                device=self._device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            error = CaptureError(f"Could not open microphone: {e}")
            logger.warning(str(error))
            if self._on_error is not None:
                self._on_error(str(error))
            return False

        self._stream = stream
        logger.info(f"Microphone streaming at {self._sample_rate}Hz")
        return True

    def stop(self) -> None:
        stream = self._stream
        if stream is None:
            return
        self._stream = None
        stream.stop()
        stream.close()
        logger.info("Microphone stopped")

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug(f"Microphone status: {status}")
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._emit, indata[:, 0].copy())

    def _emit(self, samples: np.ndarray) -> None:
        if self._stream is None:
            return
        self._on_chunk(float32_to_base64_pcm(samples), pcm_mime_type(self._sample_rate))
