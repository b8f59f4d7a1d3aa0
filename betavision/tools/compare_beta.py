from __future__ import annotations

import argparse
import json
from pathlib import Path

from betavision.core.analytics.beta_text import describe_action
from betavision.core.analytics.diff import diff
from betavision.core.types import BetaSequence


def load_sequence(path: str | Path) -> BetaSequence:
    """Read a beta sequence from JSON.

    Accepts a bare sequence (`{"actions": [...]}`), one attempt (`{"beta": ...}`)
    or the attempt list written by `analyze_video` (first attempt is used).
    """

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        if not data:
            raise ValueError(f"{path}: no attempts")
        data = data[0]
    if "beta" in data:
        data = data["beta"]
    return BetaSequence.from_dict(data)


def _op_to_dict(op) -> dict:
    return {
        "type": op.type.value,
        "a": op.source.to_dict() if op.source is not None else None,
        "b": op.target.to_dict() if op.target is not None else None,
        "description": op.description,
    }


def run(args):
    seq_a = load_sequence(args.a)
    seq_b = load_sequence(args.b)
    result = diff(seq_a.actions, seq_b.actions)
    payload = {
        "cost": result.cost,
        "operations": [_op_to_dict(op) for op in result.operations],
    }
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    for op in result.operations:
        if op.type.value == "match":
            continue
        left = describe_action(op.source) if op.source is not None else "-"
        right = describe_action(op.target) if op.target is not None else "-"
        print(f"{op.type.value:<10} {left} | {right} ({op.description})")
    print(f"Diff cost {result.cost:g} over {len(result.operations)} operations -> {out_path}")
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare two beta sequences")
    parser.add_argument("--a", required=True, help="JSON beta sequence or attempt (A)")
    parser.add_argument("--b", required=True, help="JSON beta sequence or attempt (B)")
    parser.add_argument("--output", required=True, help="Where to save the JSON diff")
    return parser


def main(argv=None):
    return run(build_parser().parse_args(argv))


if __name__ == "__main__":
    main()
