"""Per-frame climbing action recognition.

Each limb runs a small state machine (idle -> moving -> holding -> moving ...)
driven by its keypoint displacement and distance to the nearest hold. Contact
changes are recorded as `BetaAction`s; heel hooks and crossovers are detected
from joint geometry on top of that.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from betavision.core.analytics.progress import compute_progress
from betavision.core.types import (
    ActionType,
    BetaAction,
    BetaSequence,
    Keypoint,
    Limb,
    LimbPhase,
    LimbState,
    Point,
    Pose,
    Route,
    RouteContext,
    find_keypoint,
)

logger = logging.getLogger(__name__)


@dataclass
class RecognizerConfig:
    """Pixel and angle thresholds (tuned for 720p-1080p footage)."""

    move_threshold: float = 3.0
    hold_distance: float = 40.0
    min_confidence: float = 0.3
    heel_hook_angle: float = 120.0
    # `ankle.y < knee.y + margin` lets the ankle sit slightly below the knee.
    heel_hook_margin: float = 20.0
    crossover_margin: float = 0.0

    def __post_init__(self) -> None:
        if self.move_threshold < 0:
            raise ValueError("move_threshold must be >= 0")
        if self.hold_distance <= 0:
            raise ValueError("hold_distance must be > 0")
        if not 0.0 <= self.min_confidence < 1.0:
            raise ValueError("min_confidence must be in [0, 1)")
        if not 0.0 < self.heel_hook_angle <= 180.0:
            raise ValueError("heel_hook_angle must be in (0, 180]")


@dataclass
class RecognizerSnapshot:
    """State returned by `ActionRecognizer.update` after each frame."""

    active_route: Route | None
    progress: int
    touched_holds: frozenset[str]
    limbs: dict[Limb, LimbState]
    actions: list[BetaAction] = field(default_factory=list)


def joint_angle(a: Point, b: Point, c: Point) -> float:
    """Angle at `b` (degrees, 0-180) between the segments b->a and b->c."""

    v1 = (a[0] - b[0], a[1] - b[1])
    v2 = (c[0] - b[0], c[1] - b[1])
    n1 = math.hypot(*v1)
    n2 = math.hypot(*v2)
    if n1 == 0.0 or n2 == 0.0:
        return 0.0
    cos = (v1[0] * v2[0] + v1[1] * v2[1]) / (n1 * n2)
    return math.degrees(math.acos(max(-1.0, min(1.0, cos))))


def _initial_limbs() -> dict[Limb, LimbState]:
    return {limb: LimbState(limb=limb) for limb in Limb}


class ActionRecognizer:
    """Turn a stream of poses into a beta sequence for one attempt.

    `context` is the attempt's route context. When `active_route` is not given,
    the route of the first grabbed or stepped-on hold is adopted.
    """

    def __init__(
        self,
        context: RouteContext | None = None,
        active_route: Route | None = None,
        config: RecognizerConfig | None = None,
    ) -> None:
        self.config = config or RecognizerConfig()
        self.context = context
        self._initial_route = active_route
        self.reset()

    def set_context(self, context: RouteContext, active_route: Route | None = None) -> None:
        """Switch to a new wall and start over."""

        self.context = context
        self._initial_route = active_route
        self.reset()

    def reset(self) -> None:
        self.limbs: dict[Limb, LimbState] = _initial_limbs()
        self.actions: list[BetaAction] = []
        self.touched_holds: set[str] = set()
        self.active_route: Route | None = self._initial_route
        self.progress = 0
        self._start_ms: float | None = None
        self._last_ms: float | None = None

    def update(self, pose: Pose, timestamp_ms: float) -> RecognizerSnapshot:
        """Consume one frame's pose.

        Empty poses (nobody found) and frames before a context is set are
        ignored; limbs whose keypoint is missing or weak keep their state.
        """

        if self.context is None or not pose:
            return self.snapshot()
        if self._start_ms is None:
            self._start_ms = timestamp_ms
        self._last_ms = timestamp_ms

        for limb in Limb:
            kp = find_keypoint(pose, limb.keypoint_name, self.config.min_confidence)
            if kp is not None:
                self._update_limb(limb, kp, timestamp_ms)

        self._detect_heel_hook(pose, "left", timestamp_ms)
        self._detect_heel_hook(pose, "right", timestamp_ms)
        self._detect_crossover(pose, timestamp_ms)

        self.progress = compute_progress(self.touched_holds, self.active_route)
        return self.snapshot()

    def snapshot(self) -> RecognizerSnapshot:
        return RecognizerSnapshot(
            active_route=self.active_route,
            progress=self.progress,
            touched_holds=frozenset(self.touched_holds),
            limbs={limb: LimbState(s.limb, s.phase, s.last_position, s.hold_id) for limb, s in self.limbs.items()},
            actions=list(self.actions),
        )

    def get_beta_sequence(self) -> list[BetaAction]:
        return list(self.actions)

    def beta_sequence(self) -> BetaSequence:
        """Actions so far, with the elapsed time since the first observed pose."""

        total = 0.0
        if self._start_ms is not None and self._last_ms is not None:
            total = (self._last_ms - self._start_ms) / 1000.0
        return BetaSequence(actions=list(self.actions), total_time=total)

    def hint(self) -> str:
        if self.active_route is None:
            return "Waiting for route detection..."
        if self.progress == 100:
            return f"Finished the {self.active_route.color} route!"
        return f"{self.active_route.color} route {self.progress}%"

    def _elapsed(self, timestamp_ms: float) -> float:
        start = self._start_ms if self._start_ms is not None else timestamp_ms
        return (timestamp_ms - start) / 1000.0

    def _update_limb(self, limb: Limb, kp: Keypoint, timestamp_ms: float) -> None:
        state = self.limbs[limb]
        cfg = self.config
        if state.last_position is None:
            # First sighting: nothing to compare against yet.
            state.last_position = kp.point
            return

        displacement = math.hypot(kp.x - state.last_position[0], kp.y - state.last_position[1])
        if displacement > cfg.move_threshold:
            state.phase = LimbPhase.MOVING
            state.hold_id = None
        elif self.context is not None:
            hit = self.context.nearest_hold(kp.point, cfg.hold_distance)
            if hit is not None:
                hold = hit[0]
                if not (state.phase is LimbPhase.HOLDING and state.hold_id == hold.id):
                    state.phase = LimbPhase.HOLDING
                    state.hold_id = hold.id
                    self.touched_holds.add(hold.id)
                    self._on_contact(limb, hold.id, timestamp_ms)
        state.last_position = kp.point

    def _on_contact(self, limb: Limb, hold_id: str, timestamp_ms: float) -> None:
        kind = ActionType.GRAB if limb.is_hand else ActionType.STEP
        verb = "grabs" if limb.is_hand else "steps on"
        self._record(
            BetaAction(
                id=f"{timestamp_ms:g}-{limb.value}",
                timestamp=self._elapsed(timestamp_ms),
                type=kind,
                limb=limb,
                hold_id=hold_id,
                description=f"{limb.label} {verb} {hold_id}",
            )
        )

        if self.active_route is None and self.context is not None:
            self.active_route = self.context.route_for_hold(hold_id)
            if self.active_route is not None:
                logger.info("Active route set to %s from %s", self.active_route.color, hold_id)

        if not limb.is_hand:
            return
        other = Limb.RIGHT_HAND if limb is Limb.LEFT_HAND else Limb.LEFT_HAND
        other_state = self.limbs[other]
        # _on_contact only runs on a new contact, so each grab yields at most one match.
        if other_state.phase is LimbPhase.HOLDING and other_state.hold_id == hold_id:
            self._record(
                BetaAction(
                    id=f"mt-{timestamp_ms:g}",
                    timestamp=self._elapsed(timestamp_ms),
                    type=ActionType.MATCH,
                    limb=limb,
                    hold_id=hold_id,
                    description=f"match hands on {hold_id}",
                )
            )
        route = self.active_route
        if route is not None and hold_id == route.top_hold.id:
            if not any(a.type is ActionType.FINISH for a in self.actions):
                self._record(
                    BetaAction(
                        id=f"fin-{timestamp_ms:g}",
                        timestamp=self._elapsed(timestamp_ms),
                        type=ActionType.FINISH,
                        limb=limb,
                        hold_id=hold_id,
                        description=f"{limb.label} reaches the top {hold_id}",
                    )
                )

    def _detect_heel_hook(self, pose: Pose, side: str, timestamp_ms: float) -> None:
        limb = Limb.LEFT_FOOT if side == "left" else Limb.RIGHT_FOOT
        state = self.limbs[limb]
        if state.phase is not LimbPhase.HOLDING:
            return
        min_conf = self.config.min_confidence
        hip = find_keypoint(pose, f"{side}_hip", min_conf)
        knee = find_keypoint(pose, f"{side}_knee", min_conf)
        ankle = find_keypoint(pose, f"{side}_ankle", min_conf)
        if hip is None or knee is None or ankle is None:
            return

        angle = joint_angle(hip.point, knee.point, ankle.point)
        if angle < self.config.heel_hook_angle and ankle.y < knee.y + self.config.heel_hook_margin:
            if self._last_action_is(limb, ActionType.HEEL_HOOK):
                return
            hold_id = state.hold_id or "?"
            self._record(
                BetaAction(
                    id=f"hh-{timestamp_ms:g}",
                    timestamp=self._elapsed(timestamp_ms),
                    type=ActionType.HEEL_HOOK,
                    limb=limb,
                    hold_id=hold_id,
                    description=f"{limb.label} heel hook on {hold_id}",
                )
            )

    def _detect_crossover(self, pose: Pose, timestamp_ms: float) -> None:
        state = self.limbs[Limb.RIGHT_HAND]
        if state.phase is not LimbPhase.HOLDING:
            return
        min_conf = self.config.min_confidence
        nose = find_keypoint(pose, "nose", min_conf)
        wrist = find_keypoint(pose, "right_wrist", min_conf)
        if nose is None or wrist is None:
            return
        if wrist.x < nose.x - self.config.crossover_margin:
            if self._last_action_is(Limb.RIGHT_HAND, ActionType.CROSSOVER):
                return
            hold_id = state.hold_id or "?"
            self._record(
                BetaAction(
                    id=f"co-{timestamp_ms:g}",
                    timestamp=self._elapsed(timestamp_ms),
                    type=ActionType.CROSSOVER,
                    limb=Limb.RIGHT_HAND,
                    hold_id=hold_id,
                    description=f"right hand crossover to {hold_id}",
                )
            )

    def _last_action_is(self, limb: Limb, kind: ActionType) -> bool:
        for action in reversed(self.actions):
            if action.limb is limb:
                return action.type is kind
        return False

    def _record(self, action: BetaAction) -> None:
        self.actions.append(action)
        logger.debug("%.2fs %s", action.timestamp, action.description)
