"""
Acquisition scheduler.

Drives the periodic tick

    FrameSource.read() -> strategy.process() -> encode() -> sink.push()

on a single background thread at a fixed cadence (33 ms, ~30 Hz). The
scheduler owns the frame source and the pipeline; the UI only talks to it
through command messages and start()/stop(), and only receives encoded
bytes through the sink.

Settings changes are applied by swapping an immutable PipelineConfig
snapshot. A tick reads the snapshot once, so a change made while a tick is
in flight shows up on the next tick at the latest.
"""
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

import cv2

from image_segmentation.acquisition import DeviceUnavailableError, FrameSource
from image_segmentation.encoder import EncodingError, FrameSink, encode
from image_segmentation.frames import ColorSpaceMismatchError
from image_segmentation.histogram import AnalysisDomainError
from image_segmentation.segmentation import (
    EdgeOperator,
    PipelineConfig,
    SegmentationMode,
    validate_threshold,
)
from image_segmentation.utils import (
    setup_logging,
    DEFAULT_DEVICE_INDEX,
    SHUTDOWN_WAIT_S,
    TICK_INTERVAL_S,
)

logger = setup_logging(__name__)


class SchedulerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


# ── Commands ──────────────────────────────────────────────────

@dataclass(frozen=True)
class SetMode:
    mode: SegmentationMode


@dataclass(frozen=True)
class SetThreshold:
    threshold: float


@dataclass(frozen=True)
class SetInversePolarity:
    inverse_polarity: bool


Command = Union[SetMode, SetThreshold, SetInversePolarity]


@dataclass
class TickStats:
    """Counters updated by the worker thread, read by the UI."""
    ticks: int = 0
    delivered: int = 0
    empty_frames: int = 0
    faults: int = 0
    last_tick_ms: float = 0.0
    processing_fps: float = 0.0


class AcquisitionScheduler:
    """
    Fixed-rate acquisition loop with a Stopped -> Running -> Stopped lifecycle.

    Usage:
        sink = LatestImageSink()
        scheduler = AcquisitionScheduler(sink)
        scheduler.set_mode(SegmentationMode.EDGE_DETECTION)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        sink: FrameSink,
        source: Optional[FrameSource] = None,
        device_index: int = DEFAULT_DEVICE_INDEX,
        interval: float = TICK_INTERVAL_S,
        shutdown_wait: float = SHUTDOWN_WAIT_S,
        config: Optional[PipelineConfig] = None,
        edge_operator: EdgeOperator = cv2.Canny,
    ):
        """
        Args:
            sink: Receiver of encoded images.
            source: Frame source; a cv2-backed FrameSource by default.
            device_index: Capture device opened by start().
            interval: Tick period in seconds.
            shutdown_wait: Longest time stop() waits for an in-flight tick.
            config: Initial segmentation settings.
            edge_operator: Edge operator handed to the edge strategy.
        """
        self.sink = sink
        self.source = source if source is not None else FrameSource()
        self.device_index = device_index
        self.interval = interval
        self.shutdown_wait = shutdown_wait
        self.edge_operator = edge_operator
        self.stats = TickStats()

        self._config = config if config is not None else PipelineConfig()
        self._config_lock = threading.Lock()
        self._state = SchedulerState.STOPPED
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None
        # worker abandoned by a timed-out stop(), still finishing its tick
        self._lingering: Optional[threading.Thread] = None
        self._fps_history: deque = deque(maxlen=30)

    # ── Settings ──────────────────────────────────────────────

    @property
    def config(self) -> PipelineConfig:
        with self._config_lock:
            return self._config

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def submit(self, command: Command) -> PipelineConfig:
        """
        Apply a settings command by replacing the config snapshot.

        Returns:
            The new snapshot.
        """
        if isinstance(command, SetMode):
            changes = {"mode": SegmentationMode(command.mode)}
        elif isinstance(command, SetThreshold):
            changes = {"threshold": validate_threshold(command.threshold)}
        elif isinstance(command, SetInversePolarity):
            changes = {"inverse_polarity": bool(command.inverse_polarity)}
        else:
            raise TypeError(f"Unknown command: {command!r}")

        with self._config_lock:
            self._config = replace(self._config, **changes)
            config = self._config

        logger.info(
            "Settings updated | mode=%s | threshold=%.1f | inverse=%s",
            config.mode.value,
            config.threshold,
            config.inverse_polarity,
        )
        return config

    def set_mode(self, mode: SegmentationMode) -> PipelineConfig:
        return self.submit(SetMode(mode))

    def set_threshold(self, threshold: float) -> PipelineConfig:
        return self.submit(SetThreshold(threshold))

    def set_inverse_polarity(self, inverse_polarity: bool) -> PipelineConfig:
        return self.submit(SetInversePolarity(inverse_polarity))

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self, device_index: Optional[int] = None) -> None:
        """
        Open the capture device and begin ticking.

        Args:
            device_index: Device to open; keeps the current one if None.

        Raises:
            DeviceUnavailableError: if the device cannot be opened, or a tick
                left over from a timed-out stop() is still running. The
                scheduler stays stopped and no tick is scheduled.
        """
        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                logger.warning("start() called while already running")
                return

            if self._lingering is not None:
                self._lingering.join(timeout=self.shutdown_wait)
                if self._lingering.is_alive():
                    raise DeviceUnavailableError(
                        "Previous tick is still reading from the capture device"
                    )
                self._lingering = None

            if device_index is not None:
                self.device_index = device_index

            if not self.source.open(self.device_index):
                raise DeviceUnavailableError(
                    f"Cannot open capture device {self.device_index}"
                )

            self.stats = TickStats()
            self._fps_history.clear()
            self._stop_event = threading.Event()
            self._worker = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="acquisition-scheduler",
                daemon=True,
            )
            self._state = SchedulerState.RUNNING
            self._worker.start()

        logger.info(
            "Acquisition started | device=%d | interval=%.0fms",
            self.device_index,
            self.interval * 1000,
        )

    def stop(self) -> bool:
        """
        Stop ticking, release the device and clear the shown image.

        Waits at most `shutdown_wait` seconds for an in-flight tick. If that
        expires, cleanup proceeds anyway and a warning is logged.

        Returns:
            True if the worker finished within the wait, False on timeout.
        """
        with self._state_lock:
            if self._state is SchedulerState.STOPPED and self._worker is None:
                return True
            self._state = SchedulerState.STOPPED
            worker = self._worker
            self._worker = None
            self._stop_event.set()

        clean = True
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=self.shutdown_wait)
            if worker.is_alive():
                clean = False
                with self._state_lock:
                    self._lingering = worker
                logger.warning(
                    "Shutdown timeout | tick still running after %.0fms, releasing the camera now",
                    self.shutdown_wait * 1000,
                )

        self.source.release()
        self.sink.clear()

        logger.info(
            "Acquisition stopped | ticks=%d | delivered=%d | empty=%d | faults=%d",
            self.stats.ticks,
            self.stats.delivered,
            self.stats.empty_frames,
            self.stats.faults,
        )
        return clean

    def __enter__(self) -> "AcquisitionScheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ── Worker ────────────────────────────────────────────────

    def _run(self, stop_event: threading.Event) -> None:
        next_deadline = time.perf_counter()
        while not stop_event.is_set():
            self._tick()

            next_deadline += self.interval
            now = time.perf_counter()
            if next_deadline < now:
                # Overran: drop the missed slots instead of bursting
                missed = int((now - next_deadline) // self.interval) + 1
                next_deadline += missed * self.interval
            stop_event.wait(next_deadline - now)

    def _tick(self) -> None:
        """One acquisition cycle. Failures are contained to this tick."""
        config = self.config
        start = time.perf_counter()
        self.stats.ticks += 1

        try:
            frame = self.source.read()
            if frame is None:
                self.stats.empty_frames += 1
                return

            strategy = config.strategy(self.edge_operator)
            if strategy is not None:
                frame = strategy.process(frame)

            data = encode(frame)
            self.sink.push(data)
        except (AnalysisDomainError, ColorSpaceMismatchError, EncodingError) as exc:
            self.stats.faults += 1
            logger.warning("Tick skipped | tick=%d | reason=%s", self.stats.ticks, exc)
            return
        except Exception:
            self.stats.faults += 1
            logger.exception("Tick failed | tick=%d", self.stats.ticks)
            return

        elapsed = time.perf_counter() - start
        self.stats.delivered += 1
        self.stats.last_tick_ms = elapsed * 1000

        self._fps_history.append(elapsed)
        if len(self._fps_history) > 1:
            avg = sum(self._fps_history) / len(self._fps_history)
            self.stats.processing_fps = 1.0 / avg if avg > 0 else 0.0

        logger.debug(
            "Tick complete | tick=%d | frame=%d | mode=%s | time=%.1fms",
            self.stats.ticks,
            frame.frame_id,
            config.mode.value,
            self.stats.last_tick_ms,
        )
