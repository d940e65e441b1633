"""Tests for the headless runner."""
import sys

import pytest

from image_segmentation import run as run_module
from image_segmentation import scheduler as scheduler_module
from image_segmentation.acquisition import FrameSource
from image_segmentation.segmentation import SegmentationMode

from fakes import FakeCapture


@pytest.fixture
def fake_camera(monkeypatch):
    """Make schedulers built without an explicit source use a fake device."""
    def _install(**capture_kwargs):
        monkeypatch.setattr(
            scheduler_module,
            "FrameSource",
            lambda: FrameSource(capture_factory=lambda i: FakeCapture(**capture_kwargs)),
        )
    return _install


class TestRun:
    def test_device_failure_exit_status(self, fake_camera):
        fake_camera(opened=False)
        assert run_module.run(device=3, duration=0.0) == 1

    def test_successful_run(self, fake_camera):
        fake_camera()
        status = run_module.run(
            mode=SegmentationMode.BACKGROUND_REMOVAL,
            inverse=True,
            duration=0.1,
        )
        assert status == 0

    def test_invalid_threshold_rejected(self, fake_camera):
        fake_camera()
        with pytest.raises(ValueError):
            run_module.run(threshold=1000.0, duration=0.0)


class TestMain:
    def test_parses_arguments(self, monkeypatch):
        captured = {}

        def fake_run(**kwargs):
            captured.update(kwargs)
            return 0

        monkeypatch.setattr(run_module, "run", fake_run)
        monkeypatch.setattr(
            sys, "argv",
            ["run", "--mode", "edge", "--threshold", "42", "--duration", "1", "--device", "2"],
        )

        with pytest.raises(SystemExit) as exc_info:
            run_module.main()

        assert exc_info.value.code == 0
        assert captured["mode"] is SegmentationMode.EDGE_DETECTION
        assert captured["threshold"] == 42.0
        assert captured["device"] == 2
        assert captured["inverse"] is False

    def test_out_of_range_threshold_is_usage_error(self, monkeypatch, capsys):
        called = []
        monkeypatch.setattr(run_module, "run", lambda **kwargs: called.append(kwargs))
        monkeypatch.setattr(sys, "argv", ["run", "--threshold", "1000"])

        with pytest.raises(SystemExit) as exc_info:
            run_module.main()

        assert exc_info.value.code == 2
        assert called == []
        assert "--threshold" in capsys.readouterr().err
