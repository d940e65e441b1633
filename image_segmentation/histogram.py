"""
Hue histogram analysis.

The background-removal pipeline thresholds the hue plane at the average
hue of the scene, so the cut point follows the lighting instead of being
a fixed number. The average is read off a 180-bin histogram:

    sum(bin[h] * h for h in 0..179) / (height * width)

which equals summing every pixel's hue and dividing by the pixel count.
"""
import cv2
import numpy as np

from image_segmentation.frames import ColorSpace, Frame
from image_segmentation.utils import setup_logging, HUE_BINS, HUE_MAX

logger = setup_logging(__name__)


class AnalysisDomainError(ValueError):
    """Raised when a histogram statistic is requested over zero pixels."""


def hue_histogram(channel: Frame) -> np.ndarray:
    """
    Compute the hue histogram of a single-channel frame.

    Args:
        channel: HUE (or other single-channel) frame, uint8.

    Returns:
        float32 array of HUE_BINS counts, bin h holding pixels of hue h.
    """
    channel.require(ColorSpace.HUE, ColorSpace.GRAY, ColorSpace.MASK)
    if channel.is_empty:
        raise AnalysisDomainError("Cannot build a histogram of an empty channel")

    # Upper range bound is exclusive in calcHist: [0, 180) gives one bin per degree
    hist = cv2.calcHist([channel.pixels], [0], None, [HUE_BINS], [0, HUE_BINS])
    return hist.ravel()


def weighted_mean_hue(channel: Frame, extent: tuple[int, int]) -> float:
    """
    Average hue weighted by pixel count.

    Pure function of its inputs; the channel is not modified.

    Args:
        channel: Single-channel hue frame.
        extent: (height, width) of the originating frame.

    Returns:
        Mean hue in [0, HUE_MAX].

    Raises:
        AnalysisDomainError: if the channel is empty or the extent is zero.
    """
    height, width = extent
    if height <= 0 or width <= 0:
        raise AnalysisDomainError(f"Zero-extent channel: {height}x{width}")

    hist = hue_histogram(channel)
    total = float(np.dot(hist, np.arange(HUE_BINS, dtype=np.float64)))
    average = total / height / width

    logger.debug(
        "Weighted mean hue | frame=%d | extent=%dx%d | mean=%.2f",
        channel.frame_id,
        height,
        width,
        average,
    )
    return min(max(average, 0.0), float(HUE_MAX))
