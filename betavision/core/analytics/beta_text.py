"""Human-readable beta lines."""

from __future__ import annotations

from betavision.core.types import ActionType, BetaAction, BetaSequence

EMPTY_TEXT = "Waiting for actions..."


def describe_action(action: BetaAction) -> str:
    who = action.limb.label
    hold = action.hold_id
    if action.type is ActionType.START:
        return f"start: hands and feet on {hold}"
    if action.type is ActionType.GRAB:
        return f"{who} grabs {hold}"
    if action.type is ActionType.STEP:
        return f"{who} steps on {hold}"
    if action.type is ActionType.HEEL_HOOK:
        return f"technique: {who} heel hook on {hold}"
    if action.type is ActionType.CROSSOVER:
        return f"technique: {who} crossover to {hold}"
    if action.type is ActionType.MATCH:
        return f"match on {hold}"
    if action.type is ActionType.FINISH:
        return "route finished!"
    return action.description


def describe_sequence(sequence: BetaSequence | list[BetaAction]) -> list[str]:
    """One `[1.5s] ...` line per action in time order."""

    actions = sequence.actions if isinstance(sequence, BetaSequence) else list(sequence)
    if not actions:
        return [EMPTY_TEXT]
    ordered = sorted(actions, key=lambda a: a.timestamp)
    return [f"[{a.timestamp:.1f}s] {describe_action(a)}" for a in ordered]
