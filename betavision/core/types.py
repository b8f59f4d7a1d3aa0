"""Shared type definitions used across the analysis core.

Small, stable records (hold candidates, holds, routes, keypoints, beta actions
and diff results) live here so the fusion, recognition and diff code can stay
strongly typed without importing each other.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

Frame = np.ndarray

Point = tuple[float, float]


class ColorName(str, Enum):
    """Named hold colors produced by the HSV band classifier."""

    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    CYAN = "cyan"
    BLUE = "blue"
    PURPLE = "purple"
    PINK = "pink"
    WHITE = "white"
    GRAY = "gray"
    BLACK = "black"
    BROWN = "brown"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class HSVColor:
    """HSV triple: hue in degrees [0, 360), saturation and value in [0, 100]."""

    h: float
    s: float
    v: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.h, self.s, self.v)


@dataclass
class HoldCandidate:
    """One detector proposal for a single frame, in pixel coordinates."""

    x: float
    y: float
    width: float
    height: float
    confidence: float
    color_class: str
    polygon: list[Point] = field(default_factory=list)
    detection_id: str = ""
    frame_index: int = 0


@dataclass
class MergedHold:
    """Candidates from several frames fused into one physical hold."""

    x: float
    y: float
    color: str
    predictions: list[HoldCandidate] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return len(self.predictions)

    @property
    def best(self) -> HoldCandidate:
        """Highest-confidence contributing prediction (first one on ties)."""

        best = self.predictions[0]
        for pred in self.predictions[1:]:
            if pred.confidence > best.confidence:
                best = pred
        return best

    @property
    def confidence(self) -> float:
        return self.best.confidence

    def absorb(self, candidate: HoldCandidate) -> None:
        """Add a prediction and move the center to the running mean."""

        self.predictions.append(candidate)
        n = float(len(self.predictions))
        self.x += (candidate.x - self.x) / n
        self.y += (candidate.y - self.y) / n

    def representative(self) -> HoldCandidate:
        """The best prediction re-centred on the fused position."""

        best = self.best
        return HoldCandidate(
            x=self.x,
            y=self.y,
            width=best.width,
            height=best.height,
            confidence=best.confidence,
            color_class=best.color_class,
            polygon=list(best.polygon),
            detection_id=best.detection_id,
            frame_index=best.frame_index,
        )


@dataclass
class CorrectedCandidate:
    """A candidate annotated with its color cluster."""

    candidate: HoldCandidate
    cluster_id: int
    cluster_hsv: HSVColor
    corrected_color: str


@dataclass(frozen=True)
class Hold:
    """Finalized hold exposed downstream. Never mutated after route building."""

    id: str
    x: float
    y: float
    width: float
    height: float
    confidence: float
    color: str
    ordinal: int
    is_top: bool = False
    polygon: tuple[Point, ...] = ()
    hsv: HSVColor | None = None

    @property
    def center(self) -> Point:
        return (self.x, self.y)


@dataclass(frozen=True)
class Route:
    """Same-colored holds forming one climbing problem, sorted top first."""

    color: str
    hsv: HSVColor
    holds: tuple[Hold, ...]
    top_hold: Hold
    start_hold: Hold

    @property
    def hold_ids(self) -> frozenset[str]:
        return frozenset(h.id for h in self.holds)

    def __len__(self) -> int:
        return len(self.holds)


@dataclass(frozen=True)
class RouteContext:
    """Everything known about the wall for one climbing attempt."""

    all_holds: tuple[Hold, ...]
    routes: tuple[Route, ...]
    frame_width: int = 0
    frame_height: int = 0

    def route_for_color(self, color: str) -> Route | None:
        for route in self.routes:
            if route.color == color:
                return route
        return None

    def route_for_hold(self, hold_id: str) -> Route | None:
        for route in self.routes:
            if hold_id in route.hold_ids:
                return route
        return None

    def nearest_hold(self, point: Point, max_distance: float | None = None) -> tuple[Hold, float] | None:
        """Return (hold, distance) of the closest hold, optionally within `max_distance`."""

        px, py = point
        nearest: Hold | None = None
        best = math.inf
        for hold in self.all_holds:
            d = math.hypot(px - hold.x, py - hold.y)
            if d < best:
                best = d
                nearest = hold
        if nearest is None:
            return None
        if max_distance is not None and best >= max_distance:
            return None
        return nearest, best


@dataclass(frozen=True)
class Keypoint:
    """Named 2D body keypoint from the pose collaborator."""

    name: str
    x: float
    y: float
    score: float = 1.0

    @property
    def point(self) -> Point:
        return (self.x, self.y)


Pose = list[Keypoint]


def find_keypoint(pose: Pose, name: str, min_score: float | None = None) -> Keypoint | None:
    """Return the keypoint called `name`, or None when absent or below `min_score`."""

    for kp in pose:
        if kp.name == name:
            if min_score is not None and kp.score <= min_score:
                return None
            return kp
    return None


class Limb(str, Enum):
    LEFT_HAND = "leftHand"
    RIGHT_HAND = "rightHand"
    LEFT_FOOT = "leftFoot"
    RIGHT_FOOT = "rightFoot"

    @property
    def is_hand(self) -> bool:
        return self in (Limb.LEFT_HAND, Limb.RIGHT_HAND)

    @property
    def keypoint_name(self) -> str:
        return _LIMB_KEYPOINTS[self]

    @property
    def label(self) -> str:
        return _LIMB_LABELS[self]


_LIMB_KEYPOINTS = {
    Limb.LEFT_HAND: "left_wrist",
    Limb.RIGHT_HAND: "right_wrist",
    Limb.LEFT_FOOT: "left_ankle",
    Limb.RIGHT_FOOT: "right_ankle",
}

_LIMB_LABELS = {
    Limb.LEFT_HAND: "left hand",
    Limb.RIGHT_HAND: "right hand",
    Limb.LEFT_FOOT: "left foot",
    Limb.RIGHT_FOOT: "right foot",
}


class LimbPhase(str, Enum):
    IDLE = "idle"
    MOVING = "moving"
    HOLDING = "holding"


@dataclass
class LimbState:
    """Per-limb tracker state, mutated once per processed frame."""

    limb: Limb
    phase: LimbPhase = LimbPhase.IDLE
    last_position: Point | None = None
    hold_id: str | None = None


class ActionType(str, Enum):
    START = "Start"
    GRAB = "Grab"
    STEP = "Step"
    HEEL_HOOK = "HeelHook"
    CROSSOVER = "Crossover"
    MATCH = "Match"
    FINISH = "Finish"


@dataclass(frozen=True)
class BetaAction:
    """One discrete climbing action, timestamped relative to sequence start."""

    id: str
    timestamp: float
    type: ActionType
    limb: Limb
    hold_id: str
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "limb": self.limb.value,
            "hold_id": self.hold_id,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BetaAction:
        return cls(
            id=str(data.get("id", "")),
            timestamp=float(data.get("timestamp", 0.0)),
            type=ActionType(data["type"]),
            limb=Limb(data["limb"]),
            hold_id=str(data.get("hold_id", "?")),
            description=str(data.get("description", "")),
        )


@dataclass
class BetaSequence:
    actions: list[BetaAction]
    total_time: float = 0.0

    def to_dict(self) -> dict:
        return {
            "actions": [a.to_dict() for a in self.actions],
            "total_time": self.total_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BetaSequence:
        return cls(
            actions=[BetaAction.from_dict(a) for a in data.get("actions", [])],
            total_time=float(data.get("total_time", 0.0)),
        )


class DiffOpType(str, Enum):
    MATCH = "match"
    INSERT = "insert"
    DELETE = "delete"
    SUBSTITUTE = "substitute"


@dataclass(frozen=True)
class DiffOperation:
    type: DiffOpType
    source: BetaAction | None = None
    target: BetaAction | None = None
    description: str = ""


@dataclass
class DiffResult:
    operations: list[DiffOperation]
    cost: float
