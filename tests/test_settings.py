from pathlib import Path

import pytest

from betavision.core.config import settings as cfg
from betavision.core.config.presets import preset_patch


def test_load_settings_reads_updated_file(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("merge_threshold: 35\nhold_distance: 45\n", encoding="utf-8")
    monkeypatch.setenv("BV_CONFIG", str(conf_path))

    first = cfg.load_settings()
    assert first.merge_threshold == 35.0
    assert first.hold_distance == 45.0

    conf_path.write_text("merge_threshold: 28\nhold_distance: 33\n", encoding="utf-8")

    second = cfg.load_settings()
    assert second.merge_threshold == 28.0
    assert second.hold_distance == 33.0


def test_env_overrides_yaml(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("merge_threshold: 35\nmove_threshold: 4\n", encoding="utf-8")
    monkeypatch.setenv("BV_CONFIG", str(conf_path))
    monkeypatch.setenv("BV_MERGE_THRESHOLD", "40")

    s = cfg.load_settings()
    assert s.merge_threshold == 40.0
    assert s.move_threshold == 4.0


def test_keyword_overrides_win(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BV_CONFIG", str(tmp_path / "missing.yml"))
    monkeypatch.setenv("BV_HOLD_DISTANCE", "50")
    s = cfg.load_settings(**preset_patch("uhd_4k"))
    assert s.hold_distance == 80.0
    assert s.color_sample_pixels == 800


def test_missing_file_gives_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BV_CONFIG", str(tmp_path / "missing.yml"))
    s = cfg.load_settings()
    assert s.merge_threshold == 30.0
    assert s.sample_fractions == [0.05, 0.25, 0.5, 0.75, 0.95]
    assert s.random_seed is None


def test_confidence_validation():
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(noise_confidence=1.5)
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(route_min_confidence=-0.1)
    assert cfg.AnalysisSettings(hold_confidence=1.0).hold_confidence == 1.0


def test_distance_validation():
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(merge_threshold=0)
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(overlap_threshold=-1)
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(beta_interval=0)
    assert cfg.AnalysisSettings(overlap_threshold=0).overlap_threshold == 0.0


def test_sample_fraction_validation():
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(sample_fractions=[])
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(sample_fractions=[0.5, 1.2])


def test_count_and_angle_validation():
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(max_routes=1)
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(min_holds_per_route=0)
    with pytest.raises(ValueError):
        cfg.AnalysisSettings(heel_hook_angle=181)


def test_validate_assignment():
    s = cfg.AnalysisSettings()
    with pytest.raises(ValueError):
        s.hold_distance = -5
    s.hold_distance = 35
    assert s.hold_distance == 35.0


def test_settings_to_dict():
    data = cfg.settings_to_dict(cfg.AnalysisSettings(random_seed=3))
    assert data["random_seed"] == 3
    assert data["pose_model"] == "yolo11n-pose.pt"
