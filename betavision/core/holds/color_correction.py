"""Lighting-robust hold color correction.

The detector's color labels drift under gym lighting (shadowed yellow reads as
orange, washed-out blue as cyan). Holds are re-grouped by their measured color:
interior pixels are sampled from one representative frame, averaged in HSV
space, and clustered with K-Means over (hue, saturation) using a circular hue
distance. Each cluster is then named from its centroid.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import cv2
import numpy as np

from betavision.core.color.hsv import (
    average_hsv,
    bgr_pixels_to_hsv,
    circular_mean_hue,
    classify_color,
    main_color_from_class,
)
from betavision.core.types import CorrectedCandidate, Frame, HoldCandidate, HSVColor

logger = logging.getLogger(__name__)

# Weight applied to squared saturation differences in the clustering distance.
SATURATION_WEIGHT = 0.5
UNCLUSTERED = -1


@dataclass
class ColorCorrectionConfig:
    """Pixel sampling and K-Means parameters."""

    sample_pixels: int = 500
    # Pixels at or below this value (0-100) are treated as shadow and ignored.
    shadow_value: float = 15.0
    max_routes: int = 8
    max_iterations: int = 50

    def __post_init__(self) -> None:
        if self.sample_pixels <= 0:
            raise ValueError("sample_pixels must be > 0")
        if self.max_routes < 2:
            raise ValueError("max_routes must be >= 2")
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be > 0")


def extract_hold_pixels(candidate: HoldCandidate, frame: Frame, sample_pixels: int = 500) -> np.ndarray:
    """Grid-sample BGR pixels inside a candidate's box (or polygon when it has one).

    Returns an (N, 3) uint8 array; N is roughly bounded by `sample_pixels`.
    """

    if frame.ndim == 2:
        frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    h, w = frame.shape[:2]
    left = max(0, int(math.floor(candidate.x - candidate.width / 2.0)))
    top = max(0, int(math.floor(candidate.y - candidate.height / 2.0)))
    right = min(w, int(math.ceil(candidate.x + candidate.width / 2.0)))
    bottom = min(h, int(math.ceil(candidate.y + candidate.height / 2.0)))
    if right <= left or bottom <= top:
        return np.zeros((0, 3), dtype=np.uint8)

    total = (right - left) * (bottom - top)
    step = max(1, int(math.sqrt(total / float(sample_pixels))))
    gy, gx = np.meshgrid(
        np.arange(top, bottom, step),
        np.arange(left, right, step),
        indexing="ij",
    )
    gy = gy.ravel()
    gx = gx.ravel()

    if len(candidate.polygon) > 2:
        mask = np.zeros((bottom - top, right - left), dtype=np.uint8)
        pts = np.round(np.asarray(candidate.polygon, dtype=np.float64) - (left, top)).astype(np.int32)
        cv2.fillPoly(mask, [pts], 1)
        inside = mask[gy - top, gx - left] > 0
        gy = gy[inside]
        gx = gx[inside]

    return frame[gy, gx].reshape(-1, 3)


def hold_color(
    candidate: HoldCandidate,
    frame: Frame,
    sample_pixels: int = 500,
    shadow_value: float = 15.0,
) -> HSVColor | None:
    """Mean HSV color of a hold's lit pixels, or None when nothing usable was sampled."""

    hsv = bgr_pixels_to_hsv(extract_hold_pixels(candidate, frame, sample_pixels))
    hsv = hsv[hsv[:, 2] > shadow_value]
    if hsv.shape[0] == 0:
        return None
    return average_hsv(hsv)


def choose_k(color_classes: Sequence[str], n_features: int, max_routes: int = 8) -> int:
    """Cluster count: distinct detector labels, capped by `max_routes` and n/3, at least 2."""

    return max(2, min(len(set(color_classes)), max_routes, n_features // 3))


def hs_distances(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Pairwise (hue, saturation) distances, shape (len(points), len(centroids))."""

    dh = np.abs(points[:, None, 0] - centroids[None, :, 0]) % 360.0
    dh = np.minimum(dh, 360.0 - dh)
    ds = points[:, None, 1] - centroids[None, :, 1]
    return np.sqrt(dh * dh + SATURATION_WEIGHT * ds * ds)


def _seed_indices(points: np.ndarray, k: int, rng: np.random.Generator) -> list[int]:
    """K-Means++ seeding: uniform first pick, then proportional to squared distance."""

    n = points.shape[0]
    first = int(rng.integers(n))
    chosen = [first]
    while len(chosen) < k:
        d = hs_distances(points, points[chosen]).min(axis=1)
        weights = d * d
        weights[chosen] = 0.0
        total = float(weights.sum())
        if total > 0.0:
            idx = int(rng.choice(n, p=weights / total))
        else:
            # Every remaining point coincides with a centroid.
            unused = [i for i in range(n) if i not in chosen]
            idx = int(rng.choice(unused))
        chosen.append(idx)
    return chosen


def _init_centroids(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    return points[_seed_indices(points, k, rng)].astype(np.float64).copy()


def _update_centroids(
    points: np.ndarray, assignments: np.ndarray, k: int, rng: np.random.Generator
) -> np.ndarray:
    centroids = np.zeros((k, 2), dtype=np.float64)
    for c in range(k):
        members = points[assignments == c]
        if members.shape[0] == 0:
            centroids[c] = points[int(rng.integers(points.shape[0]))]
        else:
            centroids[c] = (circular_mean_hue(members[:, 0]), float(members[:, 1].mean()))
    return centroids


def kmeans(
    points: np.ndarray,
    k: int,
    rng: np.random.Generator | None = None,
    max_iterations: int = 50,
) -> np.ndarray:
    """Cluster (hue, saturation) rows and return one cluster index per row."""

    rng = rng if rng is not None else np.random.default_rng()
    n = points.shape[0]
    if n <= k:
        return np.arange(n)

    centroids = _init_centroids(points, k, rng)
    assignments = np.full(n, -1, dtype=np.int64)
    for iteration in range(max_iterations):
        new_assignments = hs_distances(points, centroids).argmin(axis=1)
        if np.array_equal(new_assignments, assignments):
            logger.debug("K-Means converged after %d iterations", iteration + 1)
            break
        assignments = new_assignments
        centroids = _update_centroids(points, assignments, k, rng)
    return assignments


class ColorCorrector:
    """Re-cluster hold candidates by measured color.

    Pass a seeded `numpy.random.Generator` for reproducible cluster assignment.
    """

    def __init__(
        self,
        config: ColorCorrectionConfig | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.config = config or ColorCorrectionConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

    def correct(self, candidates: Sequence[HoldCandidate], frame: Frame) -> list[CorrectedCandidate]:
        """Annotate every candidate with a corrected color, cluster id and centroid."""

        if not candidates:
            return []
        cfg = self.config

        feature_index: list[int] = []
        feature_colors: list[HSVColor] = []
        for i, cand in enumerate(candidates):
            color = hold_color(cand, frame, cfg.sample_pixels, cfg.shadow_value)
            if color is not None:
                feature_index.append(i)
                feature_colors.append(color)

        if len(feature_colors) < 2:
            logger.info("Only %d holds with usable pixels; keeping detector colors", len(feature_colors))
            return [self._fallback(c) for c in candidates]

        k = choose_k([c.color_class for c in candidates], len(feature_colors), cfg.max_routes)
        points = np.asarray([(c.h, c.s) for c in feature_colors], dtype=np.float64)
        assignments = kmeans(points, k, rng=self.rng, max_iterations=cfg.max_iterations)
        n_clusters = max(k, int(assignments.max()) + 1)

        centers: list[HSVColor] = []
        for c in range(n_clusters):
            members = [feature_colors[j] for j in range(len(feature_colors)) if assignments[j] == c]
            centers.append(average_hsv(members) if members else HSVColor(0.0, 0.0, 0.0))
        names = [classify_color(center).value for center in centers]
        for c, (center, name) in enumerate(zip(centers, names)):
            logger.debug("Cluster %d: H=%.0f S=%.0f V=%.0f -> %s", c, center.h, center.s, center.v, name)

        by_candidate = {idx: int(assignments[j]) for j, idx in enumerate(feature_index)}
        out: list[CorrectedCandidate] = []
        for i, cand in enumerate(candidates):
            cluster = by_candidate.get(i)
            if cluster is None:
                out.append(self._fallback(cand))
                continue
            out.append(
                CorrectedCandidate(
                    candidate=cand,
                    cluster_id=cluster,
                    cluster_hsv=centers[cluster],
                    corrected_color=names[cluster],
                )
            )
        logger.info("Color correction grouped %d holds into %d clusters", len(candidates), k)
        return out

    @staticmethod
    def _fallback(candidate: HoldCandidate) -> CorrectedCandidate:
        return CorrectedCandidate(
            candidate=candidate,
            cluster_id=UNCLUSTERED,
            cluster_hsv=HSVColor(0.0, 0.0, 0.0),
            corrected_color=main_color_from_class(candidate.color_class),
        )
