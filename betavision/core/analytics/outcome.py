"""Top-out detection and height-based progress for one attempt."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from betavision.core.analytics.sampling import TimeRange
from betavision.core.detectors.base import PoseEstimator
from betavision.core.types import Pose, Route, RouteContext, find_keypoint
from betavision.core.video_sources.base import SeekableVideo

logger = logging.getLogger(__name__)


@dataclass
class OutcomeConfig:
    sample_interval: float = 0.5
    touch_threshold: float = 70.0
    min_confidence: float = 0.3
    # Progress window for the representative mid-climb frame.
    best_climb_min: float = 40.0
    best_climb_max: float = 85.0

    def __post_init__(self) -> None:
        if self.sample_interval <= 0:
            raise ValueError("sample_interval must be > 0")
        if self.touch_threshold <= 0:
            raise ValueError("touch_threshold must be > 0")
        if not 0.0 <= self.best_climb_min <= self.best_climb_max <= 100.0:
            raise ValueError("best climb window must satisfy 0 <= min <= max <= 100")


@dataclass
class ClimbOutcome:
    success: bool = False
    reach_time: float | None = None
    max_progress: float = 0.0
    best_climb_time: float | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "reach_time": self.reach_time,
            "max_progress": self.max_progress,
            "best_climb_time": self.best_climb_time,
        }


def height_progress(hand_y: float, start_y: float, top_y: float) -> float:
    """Linear hand-height progress between start and top, clamped to [0, 100]."""

    span = start_y - top_y
    if span == 0:
        return 100.0 if hand_y <= top_y else 0.0
    return max(0.0, min(100.0, (start_y - hand_y) / span * 100.0))


class OutcomeScanner:
    """Consume pose samples in time order until both hands reach the top hold."""

    def __init__(self, route: Route, frame_height: int = 0, config: OutcomeConfig | None = None) -> None:
        self.route = route
        self.config = config or OutcomeConfig()
        self.top = route.top_hold
        start = route.start_hold
        self.start_y = start.y if start is not None else float(frame_height)
        self.outcome = ClimbOutcome()
        self._best_progress = 0.0

    @property
    def done(self) -> bool:
        return self.outcome.success

    def observe(self, time: float, pose: Pose) -> bool:
        """Process one sample; returns True once the top has been reached."""

        if self.done:
            return True
        cfg = self.config
        left = find_keypoint(pose, "left_wrist")
        right = find_keypoint(pose, "right_wrist")
        if left is None or right is None:
            return False
        if left.score < cfg.min_confidence or right.score < cfg.min_confidence:
            return False

        progress = height_progress(min(left.y, right.y), self.start_y, self.top.y)
        out = self.outcome
        out.max_progress = max(out.max_progress, progress)
        if cfg.best_climb_min <= progress <= cfg.best_climb_max and progress > self._best_progress:
            self._best_progress = progress
            out.best_climb_time = time

        left_d = math.hypot(left.x - self.top.x, left.y - self.top.y)
        right_d = math.hypot(right.x - self.top.x, right.y - self.top.y)
        if left_d < cfg.touch_threshold and right_d < cfg.touch_threshold:
            out.success = True
            out.reach_time = time
            out.max_progress = 100.0
            logger.info("Top reached at %.1fs (%.0f / %.0f px)", time, left_d, right_d)
            return True
        return False

    def result(self) -> ClimbOutcome:
        return self.outcome


def detect_outcome(
    video: SeekableVideo,
    pose_estimator: PoseEstimator,
    context: RouteContext,
    route: Route,
    time_range: TimeRange | None = None,
    config: OutcomeConfig | None = None,
) -> ClimbOutcome:
    """Scan the attempt at a fixed interval and stop at the first top-out."""

    cfg = config or OutcomeConfig()
    scanner = OutcomeScanner(route, frame_height=context.frame_height, config=cfg)
    start = time_range.start if time_range is not None else 0.0
    end = time_range.end if time_range is not None else video.duration
    samples = int(math.floor((end - start) / cfg.sample_interval))
    logger.debug("Scanning %.1fs-%.1fs for top %s", start, end, route.top_hold.id)

    for i in range(samples + 1):
        t = start + i * cfg.sample_interval
        if t > end:
            break
        frame = video.seek(t)
        if frame is None:
            continue
        pose = pose_estimator.estimate(frame)
        if not pose:
            continue
        if scanner.observe(t, pose):
            break

    out = scanner.result()
    logger.info(
        "Outcome on %s: success=%s max_progress=%.0f%%", route.color, out.success, out.max_progress
    )
    return out
