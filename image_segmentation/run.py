"""
Headless acquisition runner.

Runs the scheduler against a camera for a fixed duration without any
display, then reports tick statistics. Useful to check that a pipeline
keeps up with the 30 Hz tick on a given machine.

Usage:
    python -m image_segmentation.run --mode edge --threshold 50
    python -m image_segmentation.run --mode background --inverse --duration 30
"""
import argparse
import sys
import time

from image_segmentation.acquisition import DeviceUnavailableError
from image_segmentation.encoder import LatestImageSink
from image_segmentation.scheduler import AcquisitionScheduler
from image_segmentation.segmentation import PipelineConfig, SegmentationMode, validate_threshold
from image_segmentation.utils import (
    setup_logging,
    DEFAULT_DEVICE_INDEX,
    DEFAULT_THRESHOLD,
    TICK_INTERVAL_S,
)

logger = setup_logging(__name__)


def run(
    device: int = DEFAULT_DEVICE_INDEX,
    mode: SegmentationMode = SegmentationMode.NONE,
    threshold: float = DEFAULT_THRESHOLD,
    inverse: bool = False,
    duration: float = 10.0,
) -> int:
    """
    Acquire and segment frames for `duration` seconds.

    Returns:
        Process exit status: 0 on success, 1 if the camera cannot be opened.
    """
    config = PipelineConfig(
        mode=mode,
        threshold=validate_threshold(threshold),
        inverse_polarity=inverse,
    )
    sink = LatestImageSink()
    scheduler = AcquisitionScheduler(sink, device_index=device, config=config)

    logger.info("=" * 60)
    logger.info("Headless segmentation run")
    logger.info("=" * 60)
    logger.info("Device:     %d", device)
    logger.info("Mode:       %s", mode.value)
    logger.info("Threshold:  %.1f", threshold)
    logger.info("Inverse:    %s", inverse)
    logger.info("Duration:   %.1fs", duration)
    logger.info("Tick:       %.0fms", TICK_INTERVAL_S * 1000)

    try:
        scheduler.start()
    except DeviceUnavailableError as exc:
        logger.error("%s", exc)
        return 1

    with scheduler:
        time.sleep(duration)

    stats = scheduler.stats
    logger.info("Ticks:      %d", stats.ticks)
    logger.info("Delivered:  %d", stats.delivered)
    logger.info("Empty:      %d", stats.empty_frames)
    logger.info("Faults:     %d", stats.faults)
    logger.info("FPS:        %.1f", stats.processing_fps)
    logger.info("Pushed:     %d images", sink.push_count)
    return 0


def _threshold_arg(value: str) -> float:
    """argparse type: a float inside the accepted threshold range."""
    try:
        return validate_threshold(float(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def main():
    parser = argparse.ArgumentParser(description="Run live segmentation without a display")
    parser.add_argument(
        "--device", type=int, default=DEFAULT_DEVICE_INDEX,
        help="Capture device index (default: 0)",
    )
    parser.add_argument(
        "--mode", type=SegmentationMode, default=SegmentationMode.NONE,
        choices=list(SegmentationMode),
        metavar="{none,edge,background}",
        help="Segmentation mode: none, edge or background (default: none)",
    )
    parser.add_argument(
        "--threshold", type=_threshold_arg, default=DEFAULT_THRESHOLD,
        help="Canny lower threshold for edge mode",
    )
    parser.add_argument(
        "--inverse", action="store_true",
        help="Inverse polarity for background removal",
    )
    parser.add_argument(
        "--duration", type=float, default=10.0,
        help="Seconds to run before stopping",
    )
    args = parser.parse_args()

    sys.exit(run(
        device=args.device,
        mode=args.mode,
        threshold=args.threshold,
        inverse=args.inverse,
        duration=args.duration,
    ))


if __name__ == "__main__":
    main()
