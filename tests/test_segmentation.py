"""Tests for the segmentation strategies."""
import cv2
import numpy as np
import pytest

from image_segmentation.frames import ColorSpace, ColorSpaceMismatchError, Frame
from image_segmentation.segmentation import (
    BackgroundRemovalStrategy,
    EdgeStrategy,
    PipelineConfig,
    SegmentationMode,
    detect_edges,
    remove_background,
    validate_threshold,
)

WHITE = [255, 255, 255]


def _make_dummy_frame(h: int = 60, w: int = 60) -> Frame:
    """Create a random BGR frame."""
    return Frame(np.random.randint(0, 256, (h, w, 3), dtype=np.uint8), ColorSpace.BGR)


def _make_two_region_frame(h: int = 60, w: int = 60) -> Frame:
    """Left half hue 10, right half hue 150, full saturation and value."""
    hsv = np.zeros((h, w, 3), dtype=np.uint8)
    hsv[:, : w // 2] = (10, 255, 255)
    hsv[:, w // 2:] = (150, 255, 255)
    return Frame(cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR), ColorSpace.BGR)


class RecordingEdgeOperator:
    """Edge operator that records its arguments and returns a fixed mask."""

    def __init__(self, mask: np.ndarray):
        self.mask = mask
        self.calls = []

    def __call__(self, image, lower, upper):
        self.calls.append((image, lower, upper))
        return self.mask


class TestDetectEdges:
    def test_upper_bound_is_three_times_threshold(self):
        frame = _make_dummy_frame()
        operator = RecordingEdgeOperator(np.zeros(frame.extent, dtype=np.uint8))

        detect_edges(frame, 50, operator)

        assert len(operator.calls) == 1
        image, lower, upper = operator.calls[0]
        assert lower == 50
        assert upper == 150
        assert image.shape == frame.extent

    def test_mask_selects_original_pixels(self):
        frame = _make_dummy_frame()
        mask = np.zeros(frame.extent, dtype=np.uint8)
        mask[10:20, 15:25] = 255

        result = detect_edges(frame, 30, RecordingEdgeOperator(mask))

        assert result.color_space is ColorSpace.BGR
        assert result.pixels.shape == frame.pixels.shape
        np.testing.assert_array_equal(result.pixels[10:20, 15:25], frame.pixels[10:20, 15:25])
        assert result.pixels[mask == 0].max() == 0

    def test_with_canny(self):
        pixels = np.zeros((60, 60, 3), dtype=np.uint8)
        pixels[20:40, 20:40] = (0, 200, 255)
        frame = Frame(pixels, ColorSpace.BGR)

        result = detect_edges(frame, 50)

        kept = result.pixels.any(axis=2)
        assert kept.any()
        np.testing.assert_array_equal(result.pixels[kept], pixels[kept])
        # flat interior has no edges
        assert not kept[30, 30]

    def test_rejects_non_bgr(self):
        frame = Frame(np.zeros((10, 10, 3), dtype=np.uint8), ColorSpace.HSV)
        with pytest.raises(ColorSpaceMismatchError):
            detect_edges(frame, 50)

    def test_input_not_modified(self):
        frame = _make_dummy_frame()
        before = frame.pixels.copy()
        detect_edges(frame, 50)
        np.testing.assert_array_equal(frame.pixels, before)


class TestRemoveBackground:
    def test_default_polarity_keeps_low_hues(self):
        frame = _make_two_region_frame()

        result = remove_background(frame, inverse_polarity=False)

        np.testing.assert_array_equal(result.pixels[30, 10], frame.pixels[30, 10])
        assert result.pixels[30, 50].tolist() == WHITE

    def test_inverse_polarity_keeps_high_hues(self):
        frame = _make_two_region_frame()

        result = remove_background(frame, inverse_polarity=True)

        assert result.pixels[30, 10].tolist() == WHITE
        np.testing.assert_array_equal(result.pixels[30, 50], frame.pixels[30, 50])

    def test_zero_border_erodes_image_edge(self):
        frame = _make_two_region_frame()

        result = remove_background(frame, inverse_polarity=False)

        assert result.pixels[30, 0].tolist() == WHITE
        assert result.pixels[0, 10].tolist() == WHITE

    def test_output_is_tagged_bgr(self):
        frame = Frame(_make_two_region_frame().pixels, ColorSpace.BGR, frame_id=4)

        result = remove_background(frame)

        assert result.color_space is ColorSpace.BGR
        assert result.frame_id == 4
        assert result.pixels.shape == frame.pixels.shape
        assert result.pixels.dtype == np.uint8

    def test_pixels_are_original_or_white(self):
        frame = _make_dummy_frame()

        result = remove_background(frame)

        white = (result.pixels == 255).all(axis=2)
        same = (result.pixels == frame.pixels).all(axis=2)
        assert (white | same).all()

    def test_input_not_modified(self):
        frame = _make_two_region_frame()
        before = frame.pixels.copy()
        remove_background(frame)
        np.testing.assert_array_equal(frame.pixels, before)

    def test_rejects_non_bgr(self):
        frame = Frame(np.zeros((10, 10), dtype=np.uint8), ColorSpace.GRAY)
        with pytest.raises(ColorSpaceMismatchError):
            remove_background(frame)


class TestStrategies:
    def test_edge_strategy_delegates(self):
        frame = _make_dummy_frame()
        operator = RecordingEdgeOperator(np.zeros(frame.extent, dtype=np.uint8))

        EdgeStrategy(20.0, operator).process(frame)

        assert operator.calls[0][1:] == (20.0, 60.0)

    def test_background_strategy_matches_function(self):
        frame = _make_two_region_frame()
        result = BackgroundRemovalStrategy(inverse_polarity=True).process(frame)
        np.testing.assert_array_equal(result.pixels, remove_background(frame, True).pixels)


class TestPipelineConfig:
    def test_default_has_no_strategy(self):
        config = PipelineConfig()
        assert config.mode is SegmentationMode.NONE
        assert config.strategy() is None

    def test_edge_mode_strategy(self):
        config = PipelineConfig(mode=SegmentationMode.EDGE_DETECTION, threshold=42.0)
        strategy = config.strategy()
        assert isinstance(strategy, EdgeStrategy)
        assert strategy.threshold == 42.0
        assert config.edge_detection
        assert not config.background_removal

    def test_background_mode_strategy(self):
        config = PipelineConfig(mode=SegmentationMode.BACKGROUND_REMOVAL, inverse_polarity=True)
        strategy = config.strategy()
        assert isinstance(strategy, BackgroundRemovalStrategy)
        assert strategy.inverse_polarity is True
        assert config.background_removal
        assert not config.edge_detection


class TestValidateThreshold:
    def test_bounds_accepted(self):
        assert validate_threshold(0) == 0.0
        assert validate_threshold(255) == 255.0

    def test_out_of_range_raises(self):
        with pytest.raises(ValueError):
            validate_threshold(-1)
        with pytest.raises(ValueError):
            validate_threshold(256)
