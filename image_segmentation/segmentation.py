"""
Segmentation pipeline.

Two interchangeable strategies turn a raw BGR frame into a displayable
BGR frame:

- Edge detection: grayscale, 3x3 blur, Canny with a fixed 1:3 threshold
  ratio, then the edge mask selects the original colour pixels.
- Background removal: the hue plane is thresholded at the scene's average
  hue, the mask is cleaned with blur + dilate/erode, and the foreground is
  copied onto a flat white canvas.

Which strategy runs is decided by a PipelineConfig snapshot. The mode is a
single enum value, so at most one strategy can ever be active.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Optional, Union

import cv2
import numpy as np

from image_segmentation.frames import ColorSpace, Frame
from image_segmentation.histogram import weighted_mean_hue
from image_segmentation.utils import (
    setup_logging,
    BACKGROUND_COLOR,
    DEFAULT_THRESHOLD,
    DILATE_ITERATIONS,
    EDGE_BLUR_KERNEL,
    EDGE_THRESHOLD_RATIO,
    ERODE_ITERATIONS,
    HUE_MAX,
    MASK_BLUR_KERNEL,
    THRESHOLD_RANGE,
)

logger = setup_logging(__name__)

EdgeOperator = Callable[[np.ndarray, float, float], np.ndarray]


class SegmentationMode(Enum):
    """Exclusive choice of segmentation strategy."""
    NONE = "none"
    EDGE_DETECTION = "edge"
    BACKGROUND_REMOVAL = "background"


def validate_threshold(threshold: float) -> float:
    """Return `threshold` as float, raising ValueError outside THRESHOLD_RANGE."""
    low, high = THRESHOLD_RANGE
    value = float(threshold)
    if not low <= value <= high:
        raise ValueError(f"Threshold {value} outside [{low}, {high}]")
    return value


def _copy_where(source: np.ndarray, mask: np.ndarray, canvas: np.ndarray) -> np.ndarray:
    """Copy `source` pixels onto `canvas` wherever `mask` is non-zero."""
    selected = mask > 0
    canvas[selected] = source[selected]
    return canvas


def detect_edges(
    frame: Frame,
    threshold: float,
    edge_operator: EdgeOperator = cv2.Canny,
) -> Frame:
    """
    Edge-detection strategy.

    Args:
        frame: Raw BGR frame.
        threshold: Canny lower bound; the upper bound is threshold * 3.
        edge_operator: Callable with the cv2.Canny(image, lower, upper) signature.

    Returns:
        BGR frame showing edge pixels in their original colour, black elsewhere.
    """
    frame.require(ColorSpace.BGR)
    start = time.perf_counter()

    gray = cv2.cvtColor(frame.pixels, cv2.COLOR_BGR2GRAY)

    # reduce noise before Canny
    blurred = cv2.blur(gray, EDGE_BLUR_KERNEL)

    lower = float(threshold)
    upper = lower * EDGE_THRESHOLD_RATIO
    edges = frame.derive(edge_operator(blurred, lower, upper), ColorSpace.MASK)

    output = _copy_where(frame.pixels, edges.pixels, np.zeros_like(frame.pixels))

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.debug(
        "Edge detection | frame=%d | thresholds=(%.1f, %.1f) | time=%.1fms",
        frame.frame_id,
        lower,
        upper,
        elapsed_ms,
    )
    return frame.derive(output, ColorSpace.BGR)


def remove_background(frame: Frame, inverse_polarity: bool = False) -> Frame:
    """
    Background-removal strategy.

    The hue plane is split at its weighted mean. With inverse_polarity off,
    hues above the mean are dropped (THRESH_BINARY_INV keeps the low side);
    with it on, hues at or below the mean are dropped.

    Args:
        frame: Raw BGR frame.
        inverse_polarity: Swap which side of the mean hue is kept.

    Returns:
        BGR frame with the kept region in original colour over white.
    """
    frame.require(ColorSpace.BGR)
    start = time.perf_counter()

    hsv = frame.derive(cv2.cvtColor(frame.pixels, cv2.COLOR_BGR2HSV), ColorSpace.HSV)
    hue_plane, _, _ = cv2.split(hsv.pixels)
    hue = hsv.derive(hue_plane, ColorSpace.HUE)

    threshold = weighted_mean_hue(hue, frame.extent)
    rule = cv2.THRESH_BINARY if inverse_polarity else cv2.THRESH_BINARY_INV

    # mask values live in the hue domain, so the max value is 179, not 255
    _, mask = cv2.threshold(hue.pixels, threshold, HUE_MAX, rule)
    mask = cv2.blur(mask, MASK_BLUR_KERNEL)

    # dilate to fill gaps, erode to pull the boundary back in
    mask = cv2.dilate(
        mask, None,
        iterations=DILATE_ITERATIONS,
        borderType=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    mask = cv2.erode(
        mask, None,
        iterations=ERODE_ITERATIONS,
        borderType=cv2.BORDER_CONSTANT,
        borderValue=0,
    )

    # re-threshold with the value computed before the cleanup
    _, mask = cv2.threshold(mask, threshold, HUE_MAX, cv2.THRESH_BINARY)
    mask_frame = frame.derive(mask, ColorSpace.MASK)

    canvas = np.full(frame.pixels.shape, BACKGROUND_COLOR, dtype=frame.pixels.dtype)
    output = _copy_where(frame.pixels, mask_frame.pixels, canvas)

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.debug(
        "Background removal | frame=%d | mean_hue=%.2f | inverse=%s | time=%.1fms",
        frame.frame_id,
        threshold,
        inverse_polarity,
        elapsed_ms,
    )
    return frame.derive(output, ColorSpace.BGR)


@dataclass(frozen=True)
class EdgeStrategy:
    """Edge detection bound to one threshold."""
    threshold: float
    edge_operator: EdgeOperator = cv2.Canny

    name: ClassVar[str] = "edge_detection"

    def process(self, frame: Frame) -> Frame:
        return detect_edges(frame, self.threshold, self.edge_operator)


@dataclass(frozen=True)
class BackgroundRemovalStrategy:
    """Background removal bound to one polarity."""
    inverse_polarity: bool = False

    name: ClassVar[str] = "background_removal"

    def process(self, frame: Frame) -> Frame:
        return remove_background(frame, self.inverse_polarity)


Strategy = Union[EdgeStrategy, BackgroundRemovalStrategy]


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable snapshot of the user's segmentation settings.

    threshold is only used in edge mode, inverse_polarity only in
    background-removal mode; both are remembered across mode switches.
    """
    mode: SegmentationMode = SegmentationMode.NONE
    threshold: float = DEFAULT_THRESHOLD
    inverse_polarity: bool = False

    def strategy(self, edge_operator: EdgeOperator = cv2.Canny) -> Optional[Strategy]:
        """Return the active strategy, or None when no mode is selected."""
        if self.mode is SegmentationMode.EDGE_DETECTION:
            return EdgeStrategy(self.threshold, edge_operator)
        if self.mode is SegmentationMode.BACKGROUND_REMOVAL:
            return BackgroundRemovalStrategy(self.inverse_polarity)
        return None

    @property
    def edge_detection(self) -> bool:
        return self.mode is SegmentationMode.EDGE_DETECTION

    @property
    def background_removal(self) -> bool:
        return self.mode is SegmentationMode.BACKGROUND_REMOVAL
