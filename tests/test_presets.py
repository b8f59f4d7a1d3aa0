from __future__ import annotations

import pytest

from betavision.core.config.presets import PRESETS, list_presets, preset_patch
from betavision.core.config.settings import AnalysisSettings


def test_list_presets_has_expected_shape_and_labels():
    presets = list_presets()
    ids = {p["id"] for p in presets}
    assert ids == set(PRESETS.keys()) == {"phone_720p", "hd_1080p", "uhd_4k"}

    by_id = {p["id"]: p for p in presets}
    assert by_id["hd_1080p"]["label"] == "HD 1080p"
    assert by_id["uhd_4k"]["settings"]["hold_distance"] == 80.0


def test_preset_patch_is_a_copy():
    patch = preset_patch("hd_1080p")
    patch["merge_threshold"] = 999
    assert PRESETS["hd_1080p"]["merge_threshold"] == 30.0


def test_unknown_preset():
    with pytest.raises(KeyError):
        preset_patch("vhs_480i")


def test_hd_preset_matches_defaults():
    defaults = AnalysisSettings()
    for key, value in PRESETS["hd_1080p"].items():
        assert getattr(defaults, key) == value


def test_every_preset_is_valid_settings():
    for preset_id in PRESETS:
        AnalysisSettings(**preset_patch(preset_id))
