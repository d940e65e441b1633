"""Shared fixtures."""
import pytest

from fakes import FakeCapture


@pytest.fixture
def capture_factory():
    """Build a capture factory returning the given FakeCapture for any index."""
    def _factory(capture: FakeCapture):
        def _open(index):
            capture.index = index
            return capture
        return _open
    return _factory
