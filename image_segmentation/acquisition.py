"""
Camera acquisition.

Wraps an OpenCV capture device behind a small open/read/release contract
so the scheduler never touches cv2.VideoCapture directly. A read that
yields no data is reported as None ("skip this tick"), never as an error.

The capture factory is injectable: production code uses cv2.VideoCapture,
tests hand in a fake device.
"""
import time
from typing import Callable, Optional

import cv2
import numpy as np

from image_segmentation.frames import ColorSpace, Frame
from image_segmentation.utils import setup_logging, CAPTURE_SIZE

logger = setup_logging(__name__)


class DeviceUnavailableError(RuntimeError):
    """Raised when the capture device cannot be opened."""


class FrameSource:
    """
    Live frame source bound to one capture device.

    Mirrors the session lifecycle of a real camera:
    - Closed until open() succeeds
    - read() is only valid while open
    - release() returns to Closed and may be called any number of times

    Usage:
        source = FrameSource()
        if source.open(0):
            frame = source.read()
            source.release()
    """

    def __init__(
        self,
        capture_factory: Callable[[int], object] = cv2.VideoCapture,
        capture_size: Optional[tuple[int, int]] = CAPTURE_SIZE,
    ):
        """
        Args:
            capture_factory: Callable building a capture object from a device
                             index (cv2.VideoCapture-compatible API).
            capture_size: Requested (width, height), or None to keep the
                          driver default.
        """
        self.capture_factory = capture_factory
        self.capture_size = capture_size
        self.device_index: Optional[int] = None
        self.frame_count = 0
        self.empty_reads = 0
        self._capture = None

    def open(self, device_index: int) -> bool:
        """
        Bind to a capture device.

        Returns:
            True if the device is usable. On failure the source stays closed.
        """
        if self.is_open():
            self.release()

        capture = self.capture_factory(device_index)
        if not capture.isOpened():
            logger.error("Failed to open the camera connection | device=%d", device_index)
            capture.release()
            return False

        if self.capture_size is not None:
            width, height = self.capture_size
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        self._capture = capture
        self.device_index = device_index
        self.frame_count = 0
        self.empty_reads = 0
        logger.info("Capture opened | device=%d", device_index)
        return True

    def is_open(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def read(self) -> Optional[Frame]:
        """
        Fetch the next raw frame (blocking).

        Returns:
            A BGR Frame, or None if the device produced no data this time.
        """
        if not self.is_open():
            raise RuntimeError("read() called on a closed frame source")

        ok, pixels = self._capture.read()
        if not ok or pixels is None or pixels.size == 0:
            self.empty_reads += 1
            logger.debug("Empty read | device=%s | empty_reads=%d", self.device_index, self.empty_reads)
            return None

        frame = Frame(
            pixels=np.asarray(pixels),
            color_space=ColorSpace.BGR,
            frame_id=self.frame_count,
            timestamp=time.time(),
        )
        self.frame_count += 1

        logger.debug("Frame acquired | id=%d | shape=%s", frame.frame_id, pixels.shape)
        return frame

    def release(self) -> None:
        """Release the device. Safe to call when already closed."""
        if self._capture is None:
            return

        self._capture.release()
        self._capture = None
        logger.info(
            "Capture released | device=%s | frames=%d | empty_reads=%d",
            self.device_index,
            self.frame_count,
            self.empty_reads,
        )


def discover_cameras(max_index: int = 4) -> list[tuple[int, str]]:
    """
    Probe the first `max_index` device indices.

    Returns:
        List of (index, name) tuples; a single default entry if none answer.
    """
    found = []
    for i in range(max_index):
        cap = cv2.VideoCapture(i)
        if cap.isOpened():
            found.append((i, f"Camera {i}"))
        cap.release()
    return found if found else [(0, "Default Camera")]
