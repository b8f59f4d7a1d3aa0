from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

import numpy as np

from betavision.core.analytics.attempt import AttemptAnalyzer
from betavision.core.config.presets import preset_patch
from betavision.core.config.settings import load_settings
from betavision.core.detectors.base import NullHoldDetector, NullPoseEstimator
from betavision.core.video_sources.base import VideoFile


def _to_jsonable(obj):
    if hasattr(obj, "to_dict"):
        return _to_jsonable(obj.to_dict())
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    return obj


def _build_collaborators(args, settings):
    if args.mock:
        return NullHoldDetector(), NullPoseEstimator()
    # Deferred so --mock runs never load torch.
    from betavision.core.detectors.yolo import YoloHoldDetector, YoloPoseEstimator

    holds = YoloHoldDetector(settings.hold_model, conf=settings.hold_confidence, device=settings.device)
    pose = YoloPoseEstimator(settings.pose_model, conf=settings.pose_confidence, device=settings.device)
    return holds, pose


def run(args):
    overrides = preset_patch(args.preset) if args.preset else {}
    if args.seed is not None:
        overrides["random_seed"] = args.seed
    settings = load_settings(**overrides)
    hold_detector, pose_estimator = _build_collaborators(args, settings)
    analyzer = AttemptAnalyzer.from_settings(settings, hold_detector, pose_estimator)

    videos = []
    for path in args.input:
        try:
            videos.append((Path(path).name, VideoFile(path)))
        except RuntimeError:
            for _, v in videos:
                v.close()
            raise SystemExit(f"Cannot open video {path}")
    try:
        attempts = analyzer.analyze_batch(videos)
    finally:
        for _, v in videos:
            v.close()

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump([_to_jsonable(a) for a in attempts], f, indent=2)
    print(f"Wrote {len(attempts)} attempt(s) to {out_path}")
    return attempts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze recorded climbing attempts")
    parser.add_argument("--input", required=True, nargs="+", help="Path(s) to video files")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--preset", default=None, help="phone_720p|hd_1080p|uhd_4k")
    parser.add_argument("--seed", type=int, default=None, help="Seed for color clustering")
    parser.add_argument(
        "--mock", action="store_true", help="Use null detectors (no model download)"
    )
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    return run(args)


if __name__ == "__main__":
    main()
