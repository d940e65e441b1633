"""
Encoder and sink adapter.

Processed frames leave the pipeline as PNG bytes: lossless, deterministic
for identical pixels, and readable by any display toolkit. The display
side only ever sees bytes, never a Frame.
"""
import threading
from typing import Optional, Protocol

import cv2
import numpy as np

from image_segmentation.frames import Frame
from image_segmentation.utils import setup_logging

logger = setup_logging(__name__)

IMAGE_FORMAT = ".png"


class EncodingError(RuntimeError):
    """Raised when a frame cannot be serialized."""


def encode(frame: Frame) -> bytes:
    """
    Serialize a frame to PNG.

    Args:
        frame: 1- or 3-channel uint8 frame.

    Returns:
        PNG-encoded bytes.
    """
    if frame.is_empty:
        raise EncodingError("Cannot encode an empty frame")
    if frame.channels not in (1, 3):
        raise EncodingError(f"Unsupported channel count: {frame.channels}")
    if frame.pixels.dtype != np.uint8:
        raise EncodingError(f"Unsupported pixel type: {frame.pixels.dtype}")

    ok, buffer = cv2.imencode(IMAGE_FORMAT, frame.pixels)
    if not ok:
        raise EncodingError(f"cv2.imencode failed for {frame!r}")
    return buffer.tobytes()


def decode(data: bytes) -> np.ndarray:
    """Decode PNG bytes back to a numpy array, keeping the channel count."""
    pixels = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if pixels is None:
        raise EncodingError("cv2.imdecode could not read the image data")
    return pixels


class FrameSink(Protocol):
    """Receiver of encoded images (the display collaborator)."""

    def push(self, data: bytes) -> None:
        ...

    def clear(self) -> None:
        ...


class LatestImageSink:
    """
    Thread-safe sink keeping only the most recent image.

    The scheduler's worker thread pushes; the UI thread polls latest().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[bytes] = None
        self.push_count = 0

    def push(self, data: bytes) -> None:
        with self._lock:
            self._latest = data
            self.push_count += 1

    def clear(self) -> None:
        with self._lock:
            self._latest = None
        logger.debug("Sink cleared | pushes=%d", self.push_count)

    def latest(self) -> Optional[bytes]:
        with self._lock:
            return self._latest
