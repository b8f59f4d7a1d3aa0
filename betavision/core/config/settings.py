"""Analysis configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `BV_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `BV_` env overrides."""

    model_config = SettingsConfigDict(env_prefix="BV_", validate_assignment=True)

    # Perception models (Ultralytics weights or ONNX exports).
    hold_model: str = Field("models/holds-seg.pt")
    pose_model: str = Field("yolo11n-pose.pt")
    device: str = "cpu"
    hold_confidence: float = 0.5
    pose_confidence: float = 0.3

    # Hold detection: clip fractions sampled for detection.
    sample_fractions: list[float] = Field(default_factory=lambda: [0.05, 0.25, 0.5, 0.75, 0.95])
    merge_threshold: float = 30.0
    overlap_threshold: float = 25.0
    noise_confidence: float = 0.7
    color_sample_pixels: int = 500
    shadow_value: float = 15.0
    max_routes: int = 8
    kmeans_max_iterations: int = 50
    # Fixed seed makes color clustering reproducible; None draws fresh entropy.
    random_seed: int | None = None
    min_holds_per_route: int = 5

    # Active route voting.
    route_touch_threshold: float = 80.0
    route_min_confidence: float = 0.4
    valid_frame_target: int = 7
    min_valid_frames: int = 3

    # Action recognition.
    move_threshold: float = 3.0
    hold_distance: float = 40.0
    keypoint_min_confidence: float = 0.3
    heel_hook_angle: float = 120.0
    heel_hook_margin: float = 20.0
    crossover_margin: float = 0.0
    # Seconds between frames fed to the recognizer when extracting beta.
    beta_interval: float = 0.2

    # Outcome detection.
    outcome_interval: float = 0.5
    top_touch_threshold: float = 70.0

    @field_validator(
        "hold_confidence",
        "pose_confidence",
        "noise_confidence",
        "route_min_confidence",
        "keypoint_min_confidence",
    )
    @classmethod
    def _validate_confidence(cls, v: float) -> float:
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("confidence values must be in [0, 1]")
        return float(v)

    @field_validator(
        "merge_threshold",
        "hold_distance",
        "route_touch_threshold",
        "top_touch_threshold",
        "beta_interval",
        "outcome_interval",
    )
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if float(v) <= 0:
            raise ValueError("distances and intervals must be > 0")
        return float(v)

    @field_validator("overlap_threshold", "move_threshold", "shadow_value", "heel_hook_margin", "crossover_margin")
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if float(v) < 0:
            raise ValueError("value must be >= 0")
        return float(v)

    @field_validator("sample_fractions")
    @classmethod
    def _validate_fractions(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("sample_fractions must not be empty")
        for f in v:
            if not 0.0 <= float(f) <= 1.0:
                raise ValueError("sample_fractions must be in [0, 1]")
        return [float(f) for f in v]

    @field_validator("max_routes")
    @classmethod
    def _validate_max_routes(cls, v: int) -> int:
        if v < 2:
            raise ValueError("max_routes must be >= 2")
        return v

    @field_validator(
        "color_sample_pixels",
        "kmeans_max_iterations",
        "min_holds_per_route",
        "valid_frame_target",
        "min_valid_frames",
    )
    @classmethod
    def _validate_count(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("counts must be >= 1")
        return int(v)

    @field_validator("heel_hook_angle")
    @classmethod
    def _validate_angle(cls, v: float) -> float:
        if not 0.0 < float(v) <= 180.0:
            raise ValueError("heel_hook_angle must be in (0, 180]")
        return float(v)


def settings_to_dict(settings: AnalysisSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return settings.model_dump()


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/analysis.config.yml)."""

    return Path(os.getenv("BV_CONFIG", "config/analysis.config.yml"))


def load_settings(**overrides: Any) -> AnalysisSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override; keyword overrides
    (e.g. a preset chosen on the command line) win over both.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = AnalysisSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides, **overrides}
    return AnalysisSettings(**merged)
