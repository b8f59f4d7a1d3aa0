"""Hold detection pipeline orchestration.

Ties frame sampling, per-frame hold detection, multi-frame fusion, color
correction and route building into one call producing a `RouteContext`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

import numpy as np

from betavision.core.detectors.base import HoldDetector
from betavision.core.holds.color_correction import ColorCorrectionConfig, ColorCorrector
from betavision.core.holds.fusion import FusionConfig, fuse_detections
from betavision.core.holds.routes import MIN_HOLDS_PER_ROUTE, build_routes
from betavision.core.types import Frame, HoldCandidate, RouteContext
from betavision.core.video_sources.base import SeekableVideo

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_FRACTIONS: tuple[float, ...] = (0.05, 0.25, 0.5, 0.75, 0.95)


def sample_frames(
    video: SeekableVideo, fractions: Sequence[float] = DEFAULT_SAMPLE_FRACTIONS
) -> list[Frame]:
    """Seek to each fraction of the clip duration; undecodable positions are skipped."""

    frames: list[Frame] = []
    for fraction in fractions:
        t = video.duration * float(fraction)
        frame = video.seek(t)
        if frame is None:
            logger.debug("No frame at %.2fs", t)
            continue
        frames.append(frame)
    return frames


def build_route_context(
    frames: Sequence[Frame],
    detections_per_frame: Sequence[Sequence[HoldCandidate]],
    fusion_config: FusionConfig | None = None,
    correction_config: ColorCorrectionConfig | None = None,
    rng: np.random.Generator | None = None,
    min_holds: int = MIN_HOLDS_PER_ROUTE,
) -> RouteContext:
    """Fuse raw per-frame detections and build routes.

    Color correction samples pixels from the middle frame, with each fused
    hold represented by its most confident prediction.
    """

    if len(frames) != len(detections_per_frame):
        raise ValueError("frames and detections_per_frame must have the same length")
    if not frames:
        return RouteContext(all_holds=(), routes=())

    frame = frames[len(frames) // 2]
    h, w = frame.shape[:2]
    indexed = [
        [replace(cand, frame_index=index) for cand in candidates]
        for index, candidates in enumerate(detections_per_frame)
    ]
    fused = fuse_detections(indexed, fusion_config)
    if not fused:
        logger.info("No holds survived fusion")
        return RouteContext(all_holds=(), routes=(), frame_width=w, frame_height=h)

    corrector = ColorCorrector(correction_config, rng=rng)
    corrected = corrector.correct([m.representative() for m in fused], frame)
    return build_routes(corrected, min_holds=min_holds, frame_size=(w, h))


class HoldPipeline:
    """Sample a clip, detect holds frame by frame and build the route context."""

    def __init__(
        self,
        detector: HoldDetector,
        fractions: Sequence[float] = DEFAULT_SAMPLE_FRACTIONS,
        fusion_config: FusionConfig | None = None,
        correction_config: ColorCorrectionConfig | None = None,
        rng: np.random.Generator | None = None,
        min_holds: int = MIN_HOLDS_PER_ROUTE,
    ) -> None:
        self.detector = detector
        self.fractions = tuple(fractions)
        self.fusion_config = fusion_config or FusionConfig()
        self.correction_config = correction_config or ColorCorrectionConfig()
        self.rng = rng
        self.min_holds = min_holds

    def detect(self, video: SeekableVideo) -> RouteContext:
        frames = sample_frames(video, self.fractions)
        detections: list[list[HoldCandidate]] = []
        for i, frame in enumerate(frames):
            found = self.detector.detect(frame)
            logger.debug("Frame %d: %d hold candidates", i, len(found))
            detections.append(list(found))
        context = build_route_context(
            frames,
            detections,
            fusion_config=self.fusion_config,
            correction_config=self.correction_config,
            rng=self.rng,
            min_holds=self.min_holds,
        )
        if not context.frame_width and getattr(video, "width", 0):
            context = RouteContext(
                all_holds=context.all_holds,
                routes=context.routes,
                frame_width=int(video.width),
                frame_height=int(video.height),
            )
        return context
