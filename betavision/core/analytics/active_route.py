"""Active route selection by limb/hold contact voting."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from betavision.core.types import Limb, Pose, Route, RouteContext, find_keypoint

logger = logging.getLogger(__name__)


@dataclass
class VoteTally:
    """Per-color touch votes, split by hand and foot.

    `order` records colors in the order they first received a vote.
    """

    hand: dict[str, int] = field(default_factory=dict)
    foot: dict[str, int] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)

    def add(self, color: str, is_hand: bool) -> None:
        bucket = self.hand if is_hand else self.foot
        bucket[color] = bucket.get(color, 0) + 1
        if color not in self.order:
            self.order.append(color)

    def total(self, color: str) -> int:
        return self.hand.get(color, 0) + self.foot.get(color, 0)

    def eligible(self) -> list[str]:
        """Colors with at least one hand vote and one foot vote."""

        return [c for c in self.order if self.hand.get(c, 0) > 0 and self.foot.get(c, 0) > 0]

    def winner(self) -> str | None:
        best: str | None = None
        for color in self.eligible():
            if best is None or self.total(color) > self.total(best):
                best = color
        return best


def tally_votes(
    poses: Iterable[Pose],
    context: RouteContext,
    touch_threshold: float = 80.0,
    min_confidence: float = 0.4,
) -> VoteTally:
    tally = VoteTally()
    for pose in poses:
        for limb in Limb:
            kp = find_keypoint(pose, limb.keypoint_name, min_confidence)
            if kp is None:
                continue
            hit = context.nearest_hold(kp.point, touch_threshold)
            if hit is None:
                continue
            tally.add(hit[0].color, limb.is_hand)
    return tally


def select_active_route(
    poses: Iterable[Pose],
    context: RouteContext,
    touch_threshold: float = 80.0,
    min_confidence: float = 0.4,
) -> Route | None:
    """Pick the route the climber is on, or None when contact is ambiguous.

    A color counts only when both a hand and a foot touched one of its holds;
    among those, the most total votes wins (first voted color on ties).
    """

    tally = tally_votes(poses, context, touch_threshold, min_confidence)
    color = tally.winner()
    logger.debug("Route votes hand=%s foot=%s -> %s", tally.hand, tally.foot, color)
    if color is None:
        return None
    route = context.route_for_color(color)
    if route is None:
        logger.info("Winning color %s has no route", color)
    return route
