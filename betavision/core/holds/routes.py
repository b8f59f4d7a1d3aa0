"""Route building from color-resolved holds."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from betavision.core.color.hsv import average_hsv
from betavision.core.types import CorrectedCandidate, Hold, Route, RouteContext

logger = logging.getLogger(__name__)

MIN_HOLDS_PER_ROUTE = 5


def _group_holds(color: str, members: Sequence[CorrectedCandidate]) -> list[Hold]:
    """Create holds for one color group, sorted top first (smallest y).

    Ordinals count from the bottom (1 = start). The topmost hold is named
    `{color}_TOP`, the others `{color}_{ordinal}`.
    """

    ordered = sorted(members, key=lambda m: m.candidate.y)
    n = len(ordered)
    holds: list[Hold] = []
    for index, member in enumerate(ordered):
        cand = member.candidate
        ordinal = n - index
        is_top = index == 0
        holds.append(
            Hold(
                id=f"{color}_TOP" if is_top else f"{color}_{ordinal}",
                x=cand.x,
                y=cand.y,
                width=cand.width,
                height=cand.height,
                confidence=cand.confidence,
                color=color,
                ordinal=ordinal,
                is_top=is_top,
                polygon=tuple(cand.polygon),
                hsv=member.cluster_hsv,
            )
        )
    return holds


def build_routes(
    corrected: Sequence[CorrectedCandidate],
    min_holds: int = MIN_HOLDS_PER_ROUTE,
    frame_size: tuple[int, int] = (0, 0),
) -> RouteContext:
    """Group holds by corrected color and build routes.

    Every hold is exposed in `all_holds`; only groups with at least `min_holds`
    members become routes. Routes are ordered by descending hold count.
    """

    groups: dict[str, list[CorrectedCandidate]] = {}
    for member in corrected:
        groups.setdefault(member.corrected_color, []).append(member)

    all_holds: list[Hold] = []
    routes: list[Route] = []
    for color, members in groups.items():
        holds = _group_holds(color, members)
        all_holds.extend(holds)
        if len(holds) < min_holds:
            logger.debug("Skipping %s: %d holds < %d", color, len(holds), min_holds)
            continue
        routes.append(
            Route(
                color=color,
                hsv=average_hsv([m.cluster_hsv for m in members]),
                holds=tuple(holds),
                top_hold=holds[0],
                start_hold=holds[-1],
            )
        )

    routes.sort(key=lambda r: len(r.holds), reverse=True)
    for route in routes:
        logger.info(
            "Route %s: %d holds, top=%s start=%s",
            route.color,
            len(route.holds),
            route.top_hold.id,
            route.start_hold.id,
        )
    w, h = frame_size
    return RouteContext(all_holds=tuple(all_holds), routes=tuple(routes), frame_width=w, frame_height=h)
