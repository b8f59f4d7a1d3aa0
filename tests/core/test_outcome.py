import numpy as np
import pytest

from betavision.core.analytics.outcome import OutcomeConfig, OutcomeScanner, detect_outcome, height_progress
from betavision.core.analytics.sampling import TimeRange
from betavision.core.types import Hold, HSVColor, Keypoint, Route, RouteContext


def _route(top_y=100.0, start_y=500.0):
    top = Hold(id="red_TOP", x=200, y=top_y, width=20, height=20, confidence=0.9, color="red", ordinal=2, is_top=True)
    start = Hold(id="red_1", x=200, y=start_y, width=20, height=20, confidence=0.9, color="red", ordinal=1)
    return Route(color="red", hsv=HSVColor(0, 80, 80), holds=(top, start), top_hold=top, start_hold=start)


def _wrists(lx, ly, rx, ry, score=0.9):
    return [Keypoint("left_wrist", lx, ly, score), Keypoint("right_wrist", rx, ry, score)]


class _FakeVideo:
    def __init__(self, duration=10.0):
        self.duration = duration
        self.width = 640
        self.height = 480
        self.current = None
        self.seeks = []

    def seek(self, seconds):
        self.current = seconds
        self.seeks.append(seconds)
        return np.zeros((4, 4, 3), dtype=np.uint8)


class _ScriptedPose:
    def __init__(self, video, script):
        self.video = video
        self.script = script

    def estimate(self, frame):
        return self.script(self.video.current)


def test_height_progress():
    assert height_progress(300, 500, 100) == 50
    assert height_progress(600, 500, 100) == 0
    assert height_progress(50, 500, 100) == 100
    # Degenerate route: start and top at the same height.
    assert height_progress(100, 100, 100) == 100
    assert height_progress(101, 100, 100) == 0


def test_scanner_tracks_progress_and_success():
    scanner = OutcomeScanner(_route())
    assert scanner.observe(1.0, _wrists(50, 300, 60, 320)) is False
    assert scanner.observe(1.5, _wrists(50, 180, 60, 190)) is False
    assert scanner.observe(2.0, _wrists(50, 140, 60, 150)) is False
    out = scanner.result()
    assert out.max_progress == pytest.approx(90.0)
    assert out.best_climb_time == 1.5
    assert scanner.observe(2.5, _wrists(190, 100, 210, 110)) is True
    out = scanner.result()
    assert out.success is True
    assert out.reach_time == 2.5
    assert out.max_progress == 100.0
    assert scanner.observe(3.0, []) is True


def test_scanner_requires_both_confident_wrists():
    scanner = OutcomeScanner(_route())
    assert scanner.observe(1.0, _wrists(200, 100, 200, 100, score=0.2)) is False
    assert scanner.observe(1.5, [Keypoint("left_wrist", 200, 100, 0.9)]) is False
    assert scanner.result().max_progress == 0.0
    assert scanner.observe(2.0, _wrists(200, 100, 200, 100, score=0.3)) is True


def test_one_hand_on_top_is_not_success():
    scanner = OutcomeScanner(_route())
    assert scanner.observe(1.0, _wrists(200, 100, 400, 300)) is False
    assert scanner.result().success is False


def test_detect_outcome_stops_at_first_success():
    video = _FakeVideo(duration=10.0)

    def script(t):
        if t < 1.0:
            return []
        y = max(100.0, 500.0 - 100.0 * t)
        return _wrists(200, y, 200, y)

    pose = _ScriptedPose(video, script)
    ctx = RouteContext(all_holds=_route().holds, routes=(_route(),), frame_width=640, frame_height=480)
    out = detect_outcome(video, pose, ctx, _route())
    assert out.success is True
    assert out.reach_time == pytest.approx(3.5)
    assert out.best_climb_time == pytest.approx(3.0)
    assert max(video.seeks) == pytest.approx(3.5)


def test_detect_outcome_without_success_scans_whole_range():
    video = _FakeVideo(duration=10.0)
    pose = _ScriptedPose(video, lambda t: _wrists(200, 400, 210, 400))
    ctx = RouteContext(all_holds=_route().holds, routes=(_route(),))
    out = detect_outcome(video, pose, ctx, _route(), TimeRange(2.0, 6.0), OutcomeConfig(sample_interval=1.0))
    assert out.success is False
    assert out.reach_time is None
    assert out.max_progress == pytest.approx(25.0)
    assert out.best_climb_time is None
    assert video.seeks == [2.0, 3.0, 4.0, 5.0, 6.0]


def test_outcome_config_validation():
    with pytest.raises(ValueError):
        OutcomeConfig(sample_interval=0)
    with pytest.raises(ValueError):
        OutcomeConfig(best_climb_min=90, best_climb_max=80)
