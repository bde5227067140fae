"""Camera capture and JPEG encoding via OpenCV."""

from __future__ import annotations

import base64
from typing import Any

import cv2
import numpy as np

from sightline.client.exceptions import CaptureError
from sightline.client.scene_gate import EncodedFrame
from sightline.logging_config import get_logger

logger: Any = get_logger(__name__)

DEFAULT_JPEG_QUALITY = 72


def encode_jpeg(frame: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> EncodedFrame:
    """Compress an RGB frame to a base64 JPEG."""
    bgr = cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)
    ok, buffer = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise CaptureError("JPEG encoding failed")
    return EncodedFrame(
        data=base64.b64encode(buffer.tobytes()).decode("ascii"),
        mime_type="image/jpeg",
    )


class CameraSource:
    """Reads RGB frames from a local camera."""

    def __init__(self, index: int = 0, width: int = 960, height: int = 540) -> None:
        self._index = index
        self._width = width
        self._height = height
        self._capture: cv2.VideoCapture | None = None

    def open(self) -> None:
        if self._capture is not None:
            return

        capture = cv2.VideoCapture(self._index)
        if not capture.isOpened():
            capture.release()
            raise CaptureError(f"Could not open camera {self._index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._capture = capture
        logger.info(f"Camera {self._index} opened")

    def read(self) -> np.ndarray | None:
        """Return the latest frame, or None if the camera has none yet."""
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self._index} released")
