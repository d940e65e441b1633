"""
Frame data model.

Every image moving through the pipeline is wrapped in a Frame that carries
its pixels together with a colour-space tag. Stages never convert a frame
in place: a conversion produces a new Frame with a new tag, so a consumer
can always check what it was handed before running a colour-specific
operation.
"""
import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class ColorSpace(Enum):
    """Colour-space tag attached to every frame."""
    BGR = "bgr"
    HSV = "hsv"
    GRAY = "gray"
    HUE = "hue"
    MASK = "mask"


CHANNELS = {
    ColorSpace.BGR: 3,
    ColorSpace.HSV: 3,
    ColorSpace.GRAY: 1,
    ColorSpace.HUE: 1,
    ColorSpace.MASK: 1,
}


class ColorSpaceMismatchError(ValueError):
    """Raised when a frame's pixels or tag do not fit the requested operation."""


@dataclass(frozen=True, eq=False)
class Frame:
    """
    A captured or derived image.

    Attributes:
        pixels: numpy array, (H, W) for single-channel or (H, W, C) for colour.
        color_space: Tag describing how to interpret the pixels.
        frame_id: Sequence number assigned by the frame source.
        timestamp: Capture time (seconds since epoch).
    """
    pixels: np.ndarray
    color_space: ColorSpace = ColorSpace.BGR
    frame_id: int = 0
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.pixels.ndim not in (2, 3):
            raise ColorSpaceMismatchError(
                f"Frame pixels must be 2-D or 3-D, got shape {self.pixels.shape}"
            )
        expected = CHANNELS[self.color_space]
        if self.channels != expected:
            raise ColorSpaceMismatchError(
                f"{self.color_space.name} frame needs {expected} channel(s), "
                f"got {self.channels}"
            )

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else self.pixels.shape[2]

    @property
    def extent(self) -> tuple[int, int]:
        """(height, width) of the pixel grid."""
        return self.height, self.width

    @property
    def is_empty(self) -> bool:
        return self.pixels.size == 0

    def require(self, *spaces: ColorSpace) -> None:
        """Raise ColorSpaceMismatchError unless tagged with one of `spaces`."""
        if self.color_space not in spaces:
            allowed = ", ".join(s.name for s in spaces)
            raise ColorSpaceMismatchError(
                f"Expected a {allowed} frame, got {self.color_space.name}"
            )

    def derive(self, pixels: np.ndarray, color_space: ColorSpace) -> "Frame":
        """Build a new frame from `pixels`, keeping this frame's id and timestamp."""
        return Frame(
            pixels=pixels,
            color_space=color_space,
            frame_id=self.frame_id,
            timestamp=self.timestamp,
        )

    def __repr__(self) -> str:
        return (
            f"Frame(id={self.frame_id}, space={self.color_space.name}, "
            f"shape={self.pixels.shape})"
        )
