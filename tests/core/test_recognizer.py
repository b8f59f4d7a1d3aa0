import math

import pytest

from betavision.core.analytics.recognizer import ActionRecognizer, RecognizerConfig, joint_angle
from betavision.core.types import ActionType, Hold, HSVColor, Keypoint, Limb, LimbPhase, Route, RouteContext


def _hold(hold_id, x, y, ordinal, top=False, color="yellow"):
    return Hold(id=hold_id, x=x, y=y, width=20, height=20, confidence=0.9, color=color, ordinal=ordinal, is_top=top)


def _context():
    holds = (
        _hold("yellow_TOP", 100, 50, 5, top=True),
        _hold("yellow_4", 100, 100, 4),
        _hold("yellow_3", 200, 200, 3),
        _hold("yellow_2", 130, 250, 2),
        _hold("yellow_1", 100, 400, 1),
    )
    route = Route(color="yellow", hsv=HSVColor(60, 80, 80), holds=holds, top_hold=holds[0], start_hold=holds[-1])
    return RouteContext(all_holds=holds, routes=(route,), frame_width=640, frame_height=480)


def _kp(name, x, y, score=0.9):
    return Keypoint(name=name, x=x, y=y, score=score)


def _types(recognizer):
    return [a.type for a in recognizer.get_beta_sequence()]


def test_joint_angle():
    assert joint_angle((0, 0), (1, 0), (2, 0)) == pytest.approx(180.0)
    assert joint_angle((0, 1), (0, 0), (1, 0)) == pytest.approx(90.0)
    assert joint_angle((0, 0), (0, 0), (1, 0)) == 0.0


def test_first_sighting_only_records_position():
    rec = ActionRecognizer(_context())
    snap = rec.update([_kp("left_wrist", 100, 100)], 0)
    assert snap.actions == []
    assert snap.limbs[Limb.LEFT_HAND].last_position == (100, 100)
    assert snap.limbs[Limb.LEFT_HAND].phase is LimbPhase.IDLE


def test_holding_still_emits_one_grab():
    rec = ActionRecognizer(_context())
    for i in range(10):
        jitter = 1 if i % 2 else 0
        rec.update([_kp("left_wrist", 100 + jitter, 100)], 1000 + i * 100)
    actions = rec.get_beta_sequence()
    assert [a.type for a in actions] == [ActionType.GRAB]
    grab = actions[0]
    assert grab.limb is Limb.LEFT_HAND
    assert grab.hold_id == "yellow_4"
    assert grab.timestamp == pytest.approx(0.1)
    assert grab.id == "1100-leftHand"
    assert grab.description == "left hand grabs yellow_4"


def test_moving_clears_hold_and_next_hold_is_grabbed():
    rec = ActionRecognizer(_context())
    rec.update([_kp("left_wrist", 100, 100)], 0)
    rec.update([_kp("left_wrist", 100, 100)], 100)
    snap = rec.update([_kp("left_wrist", 200, 200)], 200)
    assert snap.limbs[Limb.LEFT_HAND].phase is LimbPhase.MOVING
    assert snap.limbs[Limb.LEFT_HAND].hold_id is None
    rec.update([_kp("left_wrist", 200, 200)], 300)
    assert [a.hold_id for a in rec.get_beta_sequence()] == ["yellow_4", "yellow_3"]


def test_feet_step():
    rec = ActionRecognizer(_context())
    rec.update([_kp("right_ankle", 100, 400)], 0)
    rec.update([_kp("right_ankle", 100, 400)], 100)
    (step,) = rec.get_beta_sequence()
    assert step.type is ActionType.STEP
    assert step.description == "right foot steps on yellow_1"


def test_far_from_holds_stays_idle():
    rec = ActionRecognizer(_context())
    rec.update([_kp("left_wrist", 500, 400)], 0)
    snap = rec.update([_kp("left_wrist", 500, 400)], 100)
    assert snap.actions == []
    assert snap.limbs[Limb.LEFT_HAND].phase is LimbPhase.IDLE


def test_heel_hook_is_detected_once():
    rec = ActionRecognizer(_context())
    pose = [
        _kp("left_hip", 100, 300),
        _kp("left_knee", 150, 300),
        _kp("left_ankle", 130, 250),
    ]
    for t in (0, 100, 200, 300):
        rec.update(pose, t)
    assert _types(rec) == [ActionType.STEP, ActionType.HEEL_HOOK]
    hook = rec.get_beta_sequence()[1]
    assert hook.limb is Limb.LEFT_FOOT
    assert hook.hold_id == "yellow_2"
    assert hook.id == "hh-100"


def test_straight_leg_is_not_a_heel_hook():
    rec = ActionRecognizer(_context())
    pose = [
        _kp("left_hip", 130, 50),
        _kp("left_knee", 130, 150),
        _kp("left_ankle", 130, 250),
    ]
    for t in (0, 100, 200):
        rec.update(pose, t)
    assert _types(rec) == [ActionType.STEP]


def test_heel_hook_allows_ankle_slightly_below_knee():
    rec = ActionRecognizer(_context())
    # Ankle 15 px below the knee, knee bent well under 120 degrees.
    pose = [
        _kp("left_hip", 144, 201),
        _kp("left_knee", 180, 235),
        _kp("left_ankle", 130, 250),
    ]
    angle = joint_angle((144, 201), (180, 235), (130, 250))
    assert angle < 120
    for t in (0, 100):
        rec.update(pose, t)
    assert _types(rec) == [ActionType.STEP, ActionType.HEEL_HOOK]


def test_crossover_is_debounced():
    rec = ActionRecognizer(_context())
    pose = [_kp("right_wrist", 200, 200), _kp("nose", 300, 150)]
    for t in (0, 100, 200, 300):
        rec.update(pose, t)
    assert _types(rec) == [ActionType.GRAB, ActionType.CROSSOVER]
    assert rec.get_beta_sequence()[1].limb is Limb.RIGHT_HAND


def test_no_crossover_when_right_hand_is_right_of_nose():
    rec = ActionRecognizer(_context())
    pose = [_kp("right_wrist", 200, 200), _kp("nose", 150, 150)]
    for t in (0, 100, 200):
        rec.update(pose, t)
    assert _types(rec) == [ActionType.GRAB]


def test_matching_hands_on_one_hold():
    rec = ActionRecognizer(_context())
    pose = [_kp("left_wrist", 195, 200), _kp("right_wrist", 205, 200), _kp("nose", 100, 150)]
    for t in (0, 100, 200):
        rec.update(pose, t)
    assert _types(rec) == [ActionType.GRAB, ActionType.GRAB, ActionType.MATCH]


def test_match_repeats_only_after_a_hand_lets_go():
    rec = ActionRecognizer(_context())
    left, nose = _kp("left_wrist", 195, 200), _kp("nose", 100, 150)
    on_hold, away = _kp("right_wrist", 205, 200), _kp("right_wrist", 300, 200)
    frames = [on_hold] * 5 + [away, away, on_hold, on_hold, on_hold]
    for i, right in enumerate(frames):
        rec.update([left, right, nose], i * 100)
    assert _types(rec) == [
        ActionType.GRAB,
        ActionType.GRAB,
        ActionType.MATCH,
        ActionType.GRAB,
        ActionType.MATCH,
    ]
    matches = [a for a in rec.get_beta_sequence() if a.type is ActionType.MATCH]
    assert [m.limb for m in matches] == [Limb.RIGHT_HAND, Limb.RIGHT_HAND]
    assert matches[1].id == "mt-800"


def test_reaching_the_top_finishes_the_route():
    ctx = _context()
    rec = ActionRecognizer(ctx, active_route=ctx.routes[0])
    rec.update([_kp("left_wrist", 100, 50)], 0)
    snap = rec.update([_kp("left_wrist", 100, 50)], 500)
    assert _types(rec) == [ActionType.GRAB, ActionType.FINISH]
    assert snap.progress == 100
    assert rec.hint() == "Finished the yellow route!"


def test_route_is_adopted_from_first_contact():
    rec = ActionRecognizer(_context())
    assert rec.hint() == "Waiting for route detection..."
    rec.update([_kp("left_ankle", 100, 400)], 0)
    snap = rec.update([_kp("left_ankle", 100, 400)], 100)
    assert snap.active_route is not None
    assert snap.active_route.color == "yellow"
    assert snap.progress == 20
    assert rec.hint() == "yellow route 20%"


def test_low_confidence_and_missing_keypoints_are_skipped():
    rec = ActionRecognizer(_context())
    rec.update([_kp("left_wrist", 100, 100)], 0)
    snap = rec.update([_kp("left_wrist", 400, 400, score=0.2)], 100)
    assert snap.limbs[Limb.LEFT_HAND].last_position == (100, 100)
    rec.update([_kp("nose", 10, 10)], 200)
    rec.update([_kp("left_wrist", 100, 100)], 300)
    assert _types(rec) == [ActionType.GRAB]


def test_empty_pose_does_not_start_the_clock():
    rec = ActionRecognizer(_context())
    rec.update([], 0)
    rec.update([_kp("left_wrist", 100, 100)], 2000)
    rec.update([_kp("left_wrist", 100, 100)], 2500)
    seq = rec.beta_sequence()
    assert seq.actions[0].timestamp == pytest.approx(0.5)
    assert seq.total_time == pytest.approx(0.5)


def test_without_context_updates_are_ignored():
    rec = ActionRecognizer()
    rec.update([_kp("left_wrist", 100, 100)], 0)
    rec.update([_kp("left_wrist", 100, 100)], 100)
    assert rec.get_beta_sequence() == []
    rec.set_context(_context())
    rec.update([_kp("left_wrist", 100, 100)], 200)
    rec.update([_kp("left_wrist", 100, 100)], 300)
    assert _types(rec) == [ActionType.GRAB]


def test_reset_returns_limbs_to_idle():
    rec = ActionRecognizer(_context())
    rec.update([_kp("left_wrist", 100, 100)], 0)
    rec.update([_kp("left_wrist", 100, 100)], 100)
    rec.reset()
    snap = rec.snapshot()
    assert snap.actions == []
    assert snap.touched_holds == frozenset()
    assert all(s.phase is LimbPhase.IDLE and s.last_position is None for s in snap.limbs.values())


def test_config_validation():
    with pytest.raises(ValueError):
        RecognizerConfig(hold_distance=0)
    with pytest.raises(ValueError):
        RecognizerConfig(heel_hook_angle=200)
    assert math.isclose(RecognizerConfig().move_threshold, 3.0)
