"""
Shared utilities: logging configuration, paths, and pipeline settings.
"""
import logging
import sys
from pathlib import Path

# ── Project Paths ──────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOGS_DIR = PROJECT_ROOT / "logs"

# ── Acquisition Settings ───────────────────────────────────────
DEFAULT_DEVICE_INDEX = 0
CAPTURE_SIZE = (640, 480)

# One tick every 33 ms (~30 Hz)
TICK_INTERVAL_S = 0.033
# stop() waits at most one tick for the in-flight tick
SHUTDOWN_WAIT_S = TICK_INTERVAL_S

# ── Segmentation Settings ──────────────────────────────────────
# OpenCV stores 8-bit hue as degrees / 2, so the domain is [0, 179]
HUE_BINS = 180
HUE_MAX = 179

# Canny lower:upper ratio is fixed at 1:3
EDGE_THRESHOLD_RATIO = 3
EDGE_BLUR_KERNEL = (3, 3)
THRESHOLD_RANGE = (0.0, 255.0)
DEFAULT_THRESHOLD = 50.0

MASK_BLUR_KERNEL = (5, 5)
DILATE_ITERATIONS = 1
ERODE_ITERATIONS = 3
BACKGROUND_COLOR = (255, 255, 255)

# ── Display Settings ───────────────────────────────────────────
DISPLAY_WIDTH = 380

# ── Logging ────────────────────────────────────────────────────
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    name: str = "image_segmentation",
    level: int = logging.INFO,
    log_file: str = "app.log",
) -> logging.Logger:
    """
    Configure project-wide logging to console and file.

    Args:
        name: Logger name (use __name__ from calling module).
        level: Logging level.
        log_file: Filename inside the logs/ directory.

    Returns:
        Configured logger instance.
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers if called multiple times
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    file_handler = logging.FileHandler(LOGS_DIR / log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
