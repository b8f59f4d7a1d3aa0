from __future__ import annotations

from typing import Any


# Pixel thresholds scaled to the footage resolution. The defaults in
# `AnalysisSettings` are tuned for 1080p phone footage.
#
# Notes:
# - merge/overlap thresholds govern multi-frame hold fusion
# - move_threshold and hold_distance drive the limb state machine
# - touch thresholds govern route voting and top-out detection


PRESETS: dict[str, dict[str, Any]] = {
    "phone_720p": {
        "merge_threshold": 20.0,
        "overlap_threshold": 17.0,
        "route_touch_threshold": 55.0,
        "move_threshold": 2.0,
        "hold_distance": 27.0,
        "top_touch_threshold": 47.0,
    },
    "hd_1080p": {
        "merge_threshold": 30.0,
        "overlap_threshold": 25.0,
        "route_touch_threshold": 80.0,
        "move_threshold": 3.0,
        "hold_distance": 40.0,
        "top_touch_threshold": 70.0,
    },
    # Heavier footage; clustering gets more samples per hold.
    "uhd_4k": {
        "merge_threshold": 60.0,
        "overlap_threshold": 50.0,
        "route_touch_threshold": 160.0,
        "move_threshold": 6.0,
        "hold_distance": 80.0,
        "top_touch_threshold": 140.0,
        "color_sample_pixels": 800,
    },
}


PRESET_LABELS: dict[str, str] = {
    "phone_720p": "Phone 720p",
    "hd_1080p": "HD 1080p",
    "uhd_4k": "UHD 4K",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
