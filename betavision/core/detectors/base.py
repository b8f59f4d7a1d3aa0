"""Perception collaborator interfaces.

The analysis core never runs a model itself; it consumes whatever implements
these protocols (Ultralytics adapters in production, fakes in tests).
"""

from __future__ import annotations

from typing import Protocol

from betavision.core.types import Frame, HoldCandidate, Keypoint

# COCO-17 keypoint order shared by MoveNet and YOLO pose models.
COCO_KEYPOINTS: tuple[str, ...] = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)


class HoldDetector(Protocol):
    def detect(self, frame: Frame) -> list[HoldCandidate]:
        """Return hold candidates for one frame (possibly empty)."""


class PoseEstimator(Protocol):
    def estimate(self, frame: Frame) -> list[Keypoint]:
        """Return named keypoints of the climber, or `[]` when nobody is found."""


class NullHoldDetector:
    """Detector that never finds anything (dry runs without model weights)."""

    def detect(self, frame: Frame) -> list[HoldCandidate]:
        return []


class NullPoseEstimator:
    def estimate(self, frame: Frame) -> list[Keypoint]:
        return []
