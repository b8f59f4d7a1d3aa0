"""Whole-attempt analysis.

One recorded attempt goes through hold detection, person localisation, active
route voting, top-out detection and beta extraction, strictly in that order.
Each attempt gets its own `RouteContext` and recognizer; nothing is shared
between attempts.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

import numpy as np

from betavision.core.analytics.active_route import select_active_route
from betavision.core.analytics.outcome import ClimbOutcome, OutcomeConfig, detect_outcome
from betavision.core.analytics.recognizer import ActionRecognizer, RecognizerConfig
from betavision.core.analytics.sampling import TimeRange, collect_valid_frames, find_human_time_range
from betavision.core.config.settings import AnalysisSettings
from betavision.core.detectors.base import HoldDetector, PoseEstimator
from betavision.core.holds.color_correction import ColorCorrectionConfig
from betavision.core.holds.fusion import FusionConfig
from betavision.core.holds.pipeline import HoldPipeline
from betavision.core.types import BetaSequence, Route, RouteContext
from betavision.core.video_sources.base import SeekableVideo

logger = logging.getLogger(__name__)

UNKNOWN_ROUTE = "unknown"
# Top-out scanning starts this long before the first valid frame.
OUTCOME_LEAD = 2.0
# and stops this long before the end of the clip.
OUTCOME_TAIL = 0.3


@dataclass
class ClimbAttempt:
    """Summary of one recorded attempt."""

    id: str
    video_name: str
    route_color: str = UNKNOWN_ROUTE
    route_hold_count: int = 0
    is_success: bool = False
    duration: float = 0.0
    max_progress: float = 0.0
    top_reached_time: float | None = None
    best_climb_time: float | None = None
    beta: BetaSequence = field(default_factory=lambda: BetaSequence(actions=[]))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "video_name": self.video_name,
            "route_color": self.route_color,
            "route_hold_count": self.route_hold_count,
            "is_success": self.is_success,
            "duration": self.duration,
            "max_progress": self.max_progress,
            "top_reached_time": self.top_reached_time,
            "best_climb_time": self.best_climb_time,
            "beta": self.beta.to_dict(),
        }


def _new_attempt_id() -> str:
    return f"climb-{uuid.uuid4().hex[:12]}"


class AttemptAnalyzer:
    def __init__(
        self,
        hold_detector: HoldDetector,
        pose_estimator: PoseEstimator,
        hold_pipeline: HoldPipeline | None = None,
        recognizer_config: RecognizerConfig | None = None,
        outcome_config: OutcomeConfig | None = None,
        route_touch_threshold: float = 80.0,
        route_min_confidence: float = 0.4,
        valid_frame_target: int = 7,
        min_valid_frames: int = 3,
        beta_interval: float = 0.2,
    ) -> None:
        self.pose_estimator = pose_estimator
        self.hold_pipeline = hold_pipeline or HoldPipeline(hold_detector)
        self.recognizer_config = recognizer_config or RecognizerConfig()
        self.outcome_config = outcome_config or OutcomeConfig()
        self.route_touch_threshold = route_touch_threshold
        self.route_min_confidence = route_min_confidence
        self.valid_frame_target = valid_frame_target
        self.min_valid_frames = min_valid_frames
        self.beta_interval = beta_interval

    @classmethod
    def from_settings(
        cls,
        settings: AnalysisSettings,
        hold_detector: HoldDetector,
        pose_estimator: PoseEstimator,
    ) -> AttemptAnalyzer:
        pipeline = HoldPipeline(
            hold_detector,
            fractions=settings.sample_fractions,
            fusion_config=FusionConfig(
                merge_threshold=settings.merge_threshold,
                overlap_threshold=settings.overlap_threshold,
                noise_confidence=settings.noise_confidence,
            ),
            correction_config=ColorCorrectionConfig(
                sample_pixels=settings.color_sample_pixels,
                shadow_value=settings.shadow_value,
                max_routes=settings.max_routes,
                max_iterations=settings.kmeans_max_iterations,
            ),
            rng=np.random.default_rng(settings.random_seed),
            min_holds=settings.min_holds_per_route,
        )
        return cls(
            hold_detector,
            pose_estimator,
            hold_pipeline=pipeline,
            recognizer_config=RecognizerConfig(
                move_threshold=settings.move_threshold,
                hold_distance=settings.hold_distance,
                min_confidence=settings.keypoint_min_confidence,
                heel_hook_angle=settings.heel_hook_angle,
                heel_hook_margin=settings.heel_hook_margin,
                crossover_margin=settings.crossover_margin,
            ),
            outcome_config=OutcomeConfig(
                sample_interval=settings.outcome_interval,
                touch_threshold=settings.top_touch_threshold,
            ),
            route_touch_threshold=settings.route_touch_threshold,
            route_min_confidence=settings.route_min_confidence,
            valid_frame_target=settings.valid_frame_target,
            min_valid_frames=settings.min_valid_frames,
            beta_interval=settings.beta_interval,
        )

    def analyze(self, video: SeekableVideo, name: str) -> ClimbAttempt:
        """Analyze one attempt; missing data yields an attempt on the unknown route."""

        attempt = ClimbAttempt(id=_new_attempt_id(), video_name=name, duration=video.duration)

        context = self.hold_pipeline.detect(video)
        if not context.routes:
            logger.info("%s: no routes found", name)
            return attempt

        time_range = find_human_time_range(video, self.pose_estimator)
        if time_range is None:
            logger.info("%s: no climber found", name)
            return attempt

        valid = collect_valid_frames(video, self.pose_estimator, time_range, self.valid_frame_target)
        if len(valid) < self.min_valid_frames:
            logger.info("%s: only %d valid frames", name, len(valid))
            return attempt

        route = select_active_route(
            [f.pose for f in valid],
            context,
            touch_threshold=self.route_touch_threshold,
            min_confidence=self.route_min_confidence,
        )
        if route is None:
            logger.info("%s: no active route", name)
            return attempt
        logger.info("%s: climbing %s (%d holds)", name, route.color, len(route.holds))

        scan = TimeRange(
            start=max(0.0, min(f.time for f in valid) - OUTCOME_LEAD),
            end=max(0.0, video.duration - OUTCOME_TAIL),
        )
        outcome = detect_outcome(video, self.pose_estimator, context, route, scan, self.outcome_config)
        beta = self.extract_beta(video, context, route, time_range)
        return self._fill(attempt, route, outcome, beta)

    def extract_beta(
        self,
        video: SeekableVideo,
        context: RouteContext,
        route: Route | None,
        time_range: TimeRange,
    ) -> BetaSequence:
        """Replay the climb through a fresh recognizer at a fixed interval."""

        recognizer = ActionRecognizer(context, route, self.recognizer_config)
        t = time_range.start
        while t <= time_range.end:
            frame = video.seek(t)
            if frame is not None:
                recognizer.update(self.pose_estimator.estimate(frame), t * 1000.0)
            t += self.beta_interval
        sequence = recognizer.beta_sequence()
        logger.debug("Extracted %d actions", len(sequence.actions))
        return sequence

    def analyze_batch(self, videos: Iterable[tuple[str, SeekableVideo]]) -> list[ClimbAttempt]:
        """Analyze attempts one after another; a failing attempt becomes a failure marker."""

        attempts: list[ClimbAttempt] = []
        for i, (name, video) in enumerate(videos):
            try:
                attempts.append(self.analyze(video, name))
            except Exception:
                logger.exception("Analysis of %s failed", name)
                attempts.append(ClimbAttempt(id=f"failed-{i}", video_name=name))
        return attempts

    @staticmethod
    def _fill(attempt: ClimbAttempt, route: Route, outcome: ClimbOutcome, beta: BetaSequence) -> ClimbAttempt:
        attempt.route_color = route.color
        attempt.route_hold_count = len(route.holds)
        attempt.is_success = outcome.success
        attempt.max_progress = outcome.max_progress
        attempt.top_reached_time = outcome.reach_time
        attempt.best_climb_time = outcome.best_climb_time
        attempt.beta = beta
        return attempt
