"""
Image Segmentation — Streamlit Application.

Live camera view with two interchangeable segmentation pipelines:
Canny edge detection and hue-based background removal.

Features:
    - Start/stop live acquisition from a local camera
    - Exclusive mode selection (none / edge detection / background removal)
    - Adjustable edge threshold and background-removal polarity
    - Live tick statistics

Run with:
    streamlit run image_segmentation/app.py
"""
import sys
import time
from pathlib import Path

import streamlit as st

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from image_segmentation.acquisition import DeviceUnavailableError, discover_cameras
from image_segmentation.encoder import LatestImageSink
from image_segmentation.scheduler import AcquisitionScheduler
from image_segmentation.segmentation import SegmentationMode
from image_segmentation.utils import (
    setup_logging,
    DEFAULT_THRESHOLD,
    DISPLAY_WIDTH,
    THRESHOLD_RANGE,
    TICK_INTERVAL_S,
)

logger = setup_logging("image_segmentation.app")

MODE_LABELS = {
    "None": SegmentationMode.NONE,
    "Edge detection": SegmentationMode.EDGE_DETECTION,
    "Background removal": SegmentationMode.BACKGROUND_REMOVAL,
}

# ── Page Config ────────────────────────────────────────────────
st.set_page_config(
    page_title="Image Segmentation",
    page_icon="🎥",
    layout="wide",
)

# ── Session State Initialization ──────────────────────────────
if "sink" not in st.session_state:
    st.session_state.sink = LatestImageSink()
if "scheduler" not in st.session_state:
    st.session_state.scheduler = AcquisitionScheduler(st.session_state.sink)

sink: LatestImageSink = st.session_state.sink
scheduler: AcquisitionScheduler = st.session_state.scheduler


# ── Helper Functions ──────────────────────────────────────────
@st.cache_data
def get_cameras() -> list[tuple[int, str]]:
    """Probe camera indices once per session."""
    logger.info("Discovering cameras (cached)")
    return discover_cameras()


def apply_settings(mode: SegmentationMode, threshold: float, inverse: bool) -> None:
    """Forward sidebar values to the scheduler, only when they changed."""
    config = scheduler.config
    if config.mode is not mode:
        scheduler.set_mode(mode)
    if config.threshold != threshold:
        scheduler.set_threshold(threshold)
    if config.inverse_polarity != inverse:
        scheduler.set_inverse_polarity(inverse)


# ── Sidebar ───────────────────────────────────────────────────
with st.sidebar:
    st.title("🎥 Image Segmentation")
    st.caption("Edge detection and background removal on a live stream")
    st.divider()

    st.subheader("Camera")
    cameras = get_cameras()
    camera_names = [f"{name} (idx {idx})" for idx, name in cameras]
    selected_camera = st.selectbox(
        "Device",
        range(len(cameras)),
        format_func=lambda i: camera_names[i],
        disabled=scheduler.running,
    )
    device_index = cameras[selected_camera][0]

    st.divider()

    st.subheader("Segmentation")
    mode_label = st.radio(
        "Mode",
        list(MODE_LABELS),
        help="Only one pipeline can be active at a time.",
    )
    mode = MODE_LABELS[mode_label]

    threshold = st.slider(
        "Edge threshold",
        min_value=THRESHOLD_RANGE[0],
        max_value=THRESHOLD_RANGE[1],
        value=DEFAULT_THRESHOLD,
        step=1.0,
        help="Canny lower bound; the upper bound is three times this value.",
        disabled=mode is not SegmentationMode.EDGE_DETECTION,
    )

    inverse = st.checkbox(
        "Inverse",
        value=False,
        help="Keep the hues above the scene's average hue instead of below.",
        disabled=mode is not SegmentationMode.BACKGROUND_REMOVAL,
    )

    apply_settings(mode, threshold, inverse)


# ── Main Content ──────────────────────────────────────────────
st.header("Live View")

col_start, col_spacer = st.columns([1, 3])
with col_start:
    if scheduler.running:
        if st.button("⏹  Stop Camera", type="primary", use_container_width=True):
            scheduler.stop()
            st.rerun()
    else:
        if st.button("▶  Start Camera", type="primary", use_container_width=True):
            try:
                scheduler.start(device_index=device_index)
            except DeviceUnavailableError as exc:
                st.error(f"⚠️ Failed to open the camera connection.\n\n{exc}")
            else:
                st.rerun()

st.divider()
col_img, col_stats = st.columns([2, 1])

with col_img:
    img_display = st.empty()

with col_stats:
    stats_header = st.empty()
    stats_ticks = st.empty()
    stats_delivered = st.empty()
    stats_empty = st.empty()
    stats_faults = st.empty()
    stats_fps = st.empty()
    stats_latency = st.empty()


def display_latest() -> None:
    """Render the most recent encoded image and the tick counters."""
    data = sink.latest()
    if data is not None:
        img_display.image(data, width=DISPLAY_WIDTH)

    stats = scheduler.stats
    stats_header.subheader("Pipeline")
    stats_ticks.metric("Ticks", stats.ticks)
    stats_delivered.metric("Delivered", stats.delivered)
    stats_empty.metric("Empty frames", stats.empty_frames)
    stats_faults.metric("Faults", stats.faults)
    stats_fps.metric("Processing FPS", f"{stats.processing_fps:.1f}")
    stats_latency.metric("Latency", f"{stats.last_tick_ms:.0f} ms")


# ── Live loop ────────────────────────────────────────────────
if scheduler.running:
    # Widget interaction triggers a rerun, which ends this loop
    while scheduler.running:
        display_latest()
        time.sleep(TICK_INTERVAL_S)
else:
    img_display.info("Camera stopped. Select a mode and press Start.")
