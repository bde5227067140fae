"""Scene-change gate for camera frames.

Each captured frame is reduced to a 32x18 luma signature. A frame is sent
only when its mean absolute signature difference against the last sent
frame reaches the threshold (the first frame always passes).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from sightline.client.exceptions import CaptureError
from sightline.logging_config import get_logger

logger: Any = get_logger(__name__)

SIGNATURE_WIDTH = 32
SIGNATURE_HEIGHT = 18
DEFAULT_SCENE_CHANGE_THRESHOLD = 12.0
DEFAULT_FRAME_INTERVAL_SECONDS = 2.4


@dataclass(frozen=True, slots=True)
class EncodedFrame:
    """A compressed frame ready for the wire (base64 payload)."""

    data: str
    mime_type: str


class FrameSource(Protocol):
    """Anything that yields RGB frames (H x W x 3, uint8)."""

    def open(self) -> None:
        ...

    def read(self) -> np.ndarray | None:
        ...

    def close(self) -> None:
        ...


def compute_signature(
    frame: np.ndarray,
    width: int = SIGNATURE_WIDTH,
    height: int = SIGNATURE_HEIGHT,
) -> np.ndarray:
    """Downsample a frame to a ``height * width`` vector of cell-average luma.

    Luma uses 0.299R + 0.587G + 0.114B. Grayscale frames are used as-is.
    """
    pixels = np.asarray(frame, dtype=np.float32)
    if pixels.ndim == 3:
        luma = pixels[..., 0] * 0.299 + pixels[..., 1] * 0.587 + pixels[..., 2] * 0.114
    elif pixels.ndim == 2:
        luma = pixels
    else:
        raise ValueError(f"Unsupported frame shape: {pixels.shape}")

    rows, cols = luma.shape
    if rows == 0 or cols == 0:
        raise ValueError("Cannot compute signature of an empty frame")

    # Tiny frames are upsampled so every cell covers at least one pixel
    if rows < height or cols < width:
        luma = np.repeat(luma, -(-height // rows), axis=0)
        luma = np.repeat(luma, -(-width // cols), axis=1)
        rows, cols = luma.shape

    row_edges = np.linspace(0, rows, height + 1).astype(int)
    col_edges = np.linspace(0, cols, width + 1).astype(int)

    sums = np.add.reduceat(luma, row_edges[:-1], axis=0)
    sums = np.add.reduceat(sums, col_edges[:-1], axis=1)
    counts = np.outer(np.diff(row_edges), np.diff(col_edges))

    return (sums / counts).astype(np.float32).ravel()


def mean_luma_delta(previous: np.ndarray, current: np.ndarray) -> float:
    """Mean absolute difference between two signatures."""
    if previous.shape != current.shape:
        raise ValueError("Signatures must have the same shape")
    return float(np.mean(np.abs(current - previous)))


class SceneChangeGate:
    """Decides whether a frame differs enough from the last one sent."""

    def __init__(
        self,
        threshold: float = DEFAULT_SCENE_CHANGE_THRESHOLD,
        *,
        width: int = SIGNATURE_WIDTH,
        height: int = SIGNATURE_HEIGHT,
    ) -> None:
        self.threshold = threshold
        self._width = width
        self._height = height
        self._last_signature: np.ndarray | None = None

    @property
    def last_signature(self) -> np.ndarray | None:
        return self._last_signature

    def has_meaningful_change(self, signature: np.ndarray) -> bool:
        if self._last_signature is None:
            return True
        return mean_luma_delta(self._last_signature, signature) >= self.threshold

    def signature_of(self, frame: np.ndarray) -> np.ndarray:
        return compute_signature(frame, self._width, self._height)

    def accept(self, signature: np.ndarray) -> None:
        """Record the signature of a frame that was actually sent."""
        self._last_signature = signature

    def offer(self, frame: np.ndarray) -> bool:
        """Return True if ``frame`` should be sent; remembers it when it is."""
        signature = self.signature_of(frame)
        if not self.has_meaningful_change(signature):
            return False
        self.accept(signature)
        return True

    def reset(self) -> None:
        self._last_signature = None


def _default_encoder(frame: np.ndarray) -> EncodedFrame:
    from sightline.client.camera import encode_jpeg

    return encode_jpeg(frame)


class FrameSampler:
    """Samples a frame source on a fixed interval through a SceneChangeGate."""

    def __init__(
        self,
        source: FrameSource,
        gate: SceneChangeGate,
        on_frame: Callable[[EncodedFrame], None],
        *,
        interval: float = DEFAULT_FRAME_INTERVAL_SECONDS,
        encoder: Callable[[np.ndarray], EncodedFrame] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self._source = source
        self._gate = gate
        self._on_frame = on_frame
        self._interval = interval
        self._encoder = encoder or _default_encoder
        self._on_error = on_error
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sample_once(self) -> EncodedFrame | None:
        """Capture one frame; return it if it was sent."""
        frame = await asyncio.to_thread(self._source.read)
        if frame is None or frame.size == 0:
            return None

        signature = self._gate.signature_of(frame)
        if not self._gate.has_meaningful_change(signature):
            return None

        encoded = self._encoder(frame)
        self._on_frame(encoded)
        self._gate.accept(signature)
        return encoded

    async def start(self) -> bool:
        if self.running:
            return True

        self._gate.reset()
        try:
            await asyncio.to_thread(self._source.open)
        except CaptureError as e:
            logger.warning(f"Camera unavailable: {e}")
            self._report(str(e))
            return False

        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._source.close()
        self._gate.reset()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sample_once()
            except CaptureError as e:
                logger.warning(f"Frame capture failed: {e}")
                self._report(str(e))
                self._source.close()
                return
            except Exception as e:
                logger.error(f"Frame sampling failed: {e}")
                self._report(str(e) or type(e).__name__)
                self._source.close()
                return

    def _report(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)
