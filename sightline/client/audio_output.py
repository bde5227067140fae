"""Speaker output context backed by a sounddevice stream.

The stream's callback mixes every scheduled segment into the output block,
so the frame counter it advances is the clock the playback scheduler uses.
"""

from __future__ import annotations

import asyncio
import io
import threading
from dataclasses import dataclass
from typing import Any

import numpy as np
import sounddevice as sd
import soxr
from pydub import AudioSegment

from sightline.client.playback import DecodedAudio
from sightline.logging_config import get_logger

logger: Any = get_logger(__name__)

DEFAULT_OUTPUT_SAMPLE_RATE = 48000


@dataclass(slots=True)
class _Segment:
    start_frame: int
    samples: np.ndarray

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)


def decode_container(data: bytes) -> DecodedAudio:
    """Decode a container-format chunk (wav, mp3, ogg...) to mono float samples."""
    segment = AudioSegment.from_file(io.BytesIO(data))
    segment = segment.set_channels(1).set_sample_width(2)
    samples = np.array(segment.get_array_of_samples(), dtype=np.int16)
    return DecodedAudio(
        samples=samples.astype(np.float32) / 32768.0,
        sample_rate=segment.frame_rate,
    )


class SoundDeviceOutput:
    """Audio output context on the default (or given) output device."""

    def __init__(
        self,
        sample_rate: int = DEFAULT_OUTPUT_SAMPLE_RATE,
        device: int | str | None = None,
    ) -> None:
        self._sample_rate = sample_rate
        self._frames_played = 0
        self._segments: list[_Segment] = []
        self._lock = threading.Lock()
        self._closed = False
        self._stream = sd.OutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            device=device,
            callback=self._callback,
        )

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_played / self._sample_rate

    @property
    def suspended(self) -> bool:
        return not self._closed and not self._stream.active

    async def resume(self) -> None:
        if self._closed:
            return
        self._stream.start()
        logger.debug(f"Audio output started at {self._sample_rate}Hz")

    async def decode(self, data: bytes) -> DecodedAudio:
        return await asyncio.to_thread(decode_container, data)

    def schedule(self, audio: DecodedAudio, start_at: float) -> None:
        if self._closed or len(audio.samples) == 0:
            return

        samples = audio.samples
        if audio.sample_rate != self._sample_rate:
            samples = soxr.resample(samples, audio.sample_rate, self._sample_rate)
        samples = np.asarray(samples, dtype=np.float32)

        segment = _Segment(start_frame=round(start_at * self._sample_rate), samples=samples)
        with self._lock:
            self._segments.append(segment)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._segments.clear()
        self._stream.abort()
        self._stream.close()

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug(f"Audio output status: {status}")

        outdata.fill(0)
        with self._lock:
            begin = self._frames_played
            end = begin + frames
            remaining: list[_Segment] = []

            for segment in self._segments:
                if segment.end_frame <= begin:
                    continue
                if segment.start_frame < end:
                    lo = max(segment.start_frame, begin)
                    hi = min(segment.end_frame, end)
                    outdata[lo - begin : hi - begin, 0] += segment.samples[
                        lo - segment.start_frame : hi - segment.start_frame
                    ]
                if segment.end_frame > end:
                    remaining.append(segment)

            self._segments = remaining
            self._frames_played = end
