"""Route progress from touched holds."""

from __future__ import annotations

import math
from collections.abc import Iterable

from betavision.core.types import Route


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (unlike Python's banker's rounding)."""

    return int(math.floor(value + 0.5))


def compute_progress(touched_hold_ids: Iterable[str], route: Route | None) -> int:
    """Percentage of the route's holds that were touched; 100 once the top is touched."""

    if route is None or not route.holds:
        return 0
    touched = set(touched_hold_ids)
    if route.top_hold.id in touched:
        return 100
    hit = len(touched & route.hold_ids)
    return round_half_up(100.0 * hit / len(route.holds))
