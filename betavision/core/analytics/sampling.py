"""Time-range and frame sampling over a recorded attempt.

Both helpers seek the video and run the pose collaborator one frame at a time.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from betavision.core.detectors.base import PoseEstimator
from betavision.core.types import Pose, find_keypoint
from betavision.core.video_sources.base import SeekableVideo

logger = logging.getLogger(__name__)

PRESENCE_INTERVAL = 2.0
# Skip the first half second; many clips open on a black frame.
PRESENCE_OFFSET = 0.5
PRESENCE_MIN_KEYPOINTS = 5
PRESENCE_MIN_SCORE = 0.3
RANGE_PADDING = 1.0

VALID_FRAME_MIN_SCORE = 0.4
_LIMB_KEYPOINTS = ("left_wrist", "right_wrist", "left_ankle", "right_ankle")


@dataclass(frozen=True)
class TimeRange:
    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start


@dataclass
class ValidFrame:
    """A sampled frame in which both wrists and both ankles were seen."""

    time: float
    pose: Pose


def find_human_time_range(video: SeekableVideo, pose_estimator: PoseEstimator) -> TimeRange | None:
    """Return the padded span in which a person is visible, or None if nobody is.

    A sample counts as a person when at least five keypoints score above 0.3.
    """

    samples = int(math.floor(video.duration / PRESENCE_INTERVAL))
    first: float | None = None
    last: float | None = None
    for i in range(samples):
        t = i * PRESENCE_INTERVAL + PRESENCE_OFFSET
        frame = video.seek(t)
        if frame is None:
            continue
        pose = pose_estimator.estimate(frame)
        visible = sum(1 for kp in pose if kp.score > PRESENCE_MIN_SCORE)
        if visible >= PRESENCE_MIN_KEYPOINTS:
            if first is None:
                first = t
            last = t

    if first is None or last is None:
        logger.info("No person found in %d samples", samples)
        return None
    return TimeRange(start=max(0.0, first - RANGE_PADDING), end=min(video.duration, last + RANGE_PADDING))


def _all_limbs_visible(pose: Pose, min_score: float) -> bool:
    return all(find_keypoint(pose, name, min_score) is not None for name in _LIMB_KEYPOINTS)


def collect_valid_frames(
    video: SeekableVideo,
    pose_estimator: PoseEstimator,
    time_range: TimeRange,
    target_count: int = 7,
    min_score: float = VALID_FRAME_MIN_SCORE,
) -> list[ValidFrame]:
    """Walk the range collecting frames where both hands and both feet are visible.

    The walk oversamples (interval = length / 3 target) and then jumps 1.5
    intervals after a hit and half an interval after a miss, giving up after
    five probes per wanted frame.
    """

    if target_count <= 0:
        raise ValueError("target_count must be > 0")
    interval = time_range.length / (target_count * 3)
    if interval <= 0:
        return []

    found: list[ValidFrame] = []
    t = time_range.start
    probes = 0
    max_probes = target_count * 5
    while len(found) < target_count and t < time_range.end and probes < max_probes:
        frame = video.seek(t)
        probes += 1
        pose = pose_estimator.estimate(frame) if frame is not None else []
        if pose and _all_limbs_visible(pose, min_score):
            found.append(ValidFrame(time=t, pose=list(pose)))
            logger.debug("Valid frame at %.1fs (%d/%d)", t, len(found), target_count)
            t += interval * 1.5
        else:
            t += interval * 0.5

    logger.info("Collected %d valid frames in %d probes", len(found), probes)
    return found
