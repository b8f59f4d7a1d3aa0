import pytest

from betavision.core.holds.fusion import (
    FusionConfig,
    fuse_detections,
    merge_detections,
    remove_cross_color_overlaps,
)
from betavision.core.types import HoldCandidate


def _cand(x, y, conf=0.9, color="yellow-hold"):
    return HoldCandidate(x=x, y=y, width=20, height=20, confidence=conf, color_class=color)


def test_duplicates_in_one_frame_merge_into_one_hold():
    dup = [_cand(100, 100), _cand(100, 100), _cand(100, 100)]
    merged = merge_detections([dup])
    assert len(merged) == 1
    assert merged[0].frame_count == 3


def test_three_frames_of_one_hold_keep_best_confidence():
    frames = [
        [_cand(100, 100, conf=0.6)],
        [_cand(108, 104, conf=0.8)],
        [_cand(104, 96, conf=0.9)],
    ]
    merged = fuse_detections(frames)
    assert len(merged) == 1
    hold = merged[0]
    assert hold.frame_count == 3
    assert hold.confidence == 0.9
    assert hold.representative().confidence == 0.9
    assert hold.x == pytest.approx(104.0)
    assert hold.y == pytest.approx(100.0)


def test_different_colors_do_not_merge():
    merged = merge_detections([[_cand(100, 100), _cand(105, 100, color="blue-hold")]])
    assert sorted(m.color for m in merged) == ["blue", "yellow"]


def test_two_tone_labels_merge_by_main_color():
    merged = merge_detections([[_cand(100, 100, color="yellow-purple-hold")], [_cand(104, 100)]])
    assert len(merged) == 1
    assert merged[0].color == "yellow"


def test_far_candidates_stay_separate():
    merged = merge_detections([[_cand(100, 100)], [_cand(200, 100)]])
    assert len(merged) == 2


def test_single_frame_low_confidence_is_noise():
    merged = merge_detections([[_cand(100, 100, conf=0.6), _cand(300, 300, conf=0.75)]])
    assert [(m.x, m.y) for m in merged] == [(300, 300)]


def test_low_confidence_seen_twice_is_kept():
    merged = merge_detections([[_cand(100, 100, conf=0.5)], [_cand(102, 100, conf=0.5)]])
    assert len(merged) == 1


def test_cross_color_overlap_keeps_more_confident():
    merged = merge_detections(
        [
            [_cand(100, 100, conf=0.8, color="orange-hold")],
            [_cand(110, 100, conf=0.95, color="red-hold")],
        ]
    )
    kept = remove_cross_color_overlaps(merged, overlap_threshold=25)
    assert [m.color for m in kept] == ["red"]


def test_cross_color_overlap_tie_keeps_earlier():
    merged = merge_detections(
        [[_cand(100, 100, conf=0.9, color="orange-hold"), _cand(110, 100, conf=0.9, color="red-hold")]]
    )
    kept = remove_cross_color_overlaps(merged, overlap_threshold=25)
    assert [m.color for m in kept] == ["orange"]


def test_merge_does_not_touch_input_candidates():
    cands = [_cand(100, 100)]
    merge_detections([cands, [_cand(101, 100)]])
    assert cands[0].x == 100
    assert cands[0].frame_index == 0


def test_fusion_config_validation():
    with pytest.raises(ValueError):
        FusionConfig(merge_threshold=0)
    with pytest.raises(ValueError):
        FusionConfig(noise_confidence=1.5)
