"""Test doubles for the capture device."""
import threading
import time

import numpy as np


class FakeCapture:
    """
    Minimal cv2.VideoCapture stand-in.

    Serves `frames` in a loop; a None entry simulates a read with no data.
    Tracks how many reads overlap so tests can catch concurrent access.
    """

    def __init__(self, frames=None, opened=True, read_delay=0.0):
        if frames is None:
            frames = [np.random.randint(0, 256, (48, 64, 3), dtype=np.uint8)]
        self.frames = list(frames)
        self.opened = opened
        self.read_delay = read_delay
        self.reads = 0
        self.read_started = 0
        self.active_reads = 0
        self.max_active_reads = 0
        self.released = False
        self.props = {}
        self._lock = threading.Lock()

    def isOpened(self):
        return self.opened and not self.released

    def read(self):
        with self._lock:
            self.read_started += 1
            self.active_reads += 1
            self.max_active_reads = max(self.max_active_reads, self.active_reads)
        try:
            if self.read_delay > 0:
                time.sleep(self.read_delay)
            pixels = self.frames[self.reads % len(self.frames)]
            self.reads += 1
        finally:
            with self._lock:
                self.active_reads -= 1
        if pixels is None:
            return False, None
        return True, pixels.copy()

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def release(self):
        self.released = True
