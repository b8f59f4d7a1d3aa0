"""Multi-frame hold detection fusion.

Detections of the same physical hold across sampled frames are merged greedily
by color and center distance. Isolated low-confidence detections are treated as
noise, and holds that were labelled with two different colors at the same spot
are resolved in favour of the more confident label.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from betavision.core.color.hsv import main_color_from_class
from betavision.core.types import HoldCandidate, MergedHold

logger = logging.getLogger(__name__)


@dataclass
class FusionConfig:
    """Pixel thresholds for merging and de-overlapping detections."""

    merge_threshold: float = 30.0
    overlap_threshold: float = 25.0
    # Single-frame merges below this confidence are dropped.
    noise_confidence: float = 0.7

    def __post_init__(self) -> None:
        if self.merge_threshold <= 0:
            raise ValueError("merge_threshold must be > 0")
        if self.overlap_threshold < 0:
            raise ValueError("overlap_threshold must be >= 0")
        if not 0.0 <= self.noise_confidence <= 1.0:
            raise ValueError("noise_confidence must be in [0, 1]")


def _distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(ax - bx, ay - by)


def merge_detections(
    frame_detections: Sequence[Iterable[HoldCandidate]],
    merge_threshold: float = 30.0,
    noise_confidence: float = 0.7,
) -> list[MergedHold]:
    """Merge per-frame candidates into de-duplicated holds.

    Candidates are visited in frame order, then detection order. Each one joins
    the first existing merge of the same color whose center is within
    `merge_threshold` pixels, otherwise it starts a new merge.
    """

    merged: list[MergedHold] = []
    for candidates in frame_detections:
        for cand in candidates:
            color = main_color_from_class(cand.color_class)
            target = None
            for m in merged:
                if m.color == color and _distance(m.x, m.y, cand.x, cand.y) < merge_threshold:
                    target = m
                    break
            if target is None:
                merged.append(MergedHold(x=cand.x, y=cand.y, color=color, predictions=[cand]))
            else:
                target.absorb(cand)

    kept = [m for m in merged if not (m.frame_count == 1 and m.confidence < noise_confidence)]
    if len(kept) != len(merged):
        logger.debug("Dropped %d single-frame low-confidence merges", len(merged) - len(kept))
    return kept


def remove_cross_color_overlaps(merged: Sequence[MergedHold], overlap_threshold: float = 25.0) -> list[MergedHold]:
    """Keep one hold where merges of different colors overlap.

    The merge with the higher best confidence survives; on equal confidence the
    earlier merge wins.
    """

    kept: list[MergedHold] = []
    for m in merged:
        rivals = [
            k
            for k in kept
            if k.color != m.color and _distance(k.x, k.y, m.x, m.y) < overlap_threshold
        ]
        if any(r.confidence >= m.confidence for r in rivals):
            continue
        for r in rivals:
            kept.remove(r)
        kept.append(m)
    if len(kept) != len(merged):
        logger.debug("Removed %d cross-color overlaps", len(merged) - len(kept))
    return kept


def fuse_detections(
    frame_detections: Sequence[Iterable[HoldCandidate]],
    config: FusionConfig | None = None,
) -> list[MergedHold]:
    """Run merging and cross-color overlap removal with one config."""

    cfg = config or FusionConfig()
    merged = merge_detections(
        frame_detections,
        merge_threshold=cfg.merge_threshold,
        noise_confidence=cfg.noise_confidence,
    )
    fused = remove_cross_color_overlaps(merged, overlap_threshold=cfg.overlap_threshold)
    logger.info("Fused %d frames into %d holds", len(frame_detections), len(fused))
    return fused
