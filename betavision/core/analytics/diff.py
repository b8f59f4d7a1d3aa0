"""Beta sequence comparison by weighted edit distance."""

from __future__ import annotations

import math
from collections.abc import Sequence

from betavision.core.types import BetaAction, DiffOperation, DiffOpType, DiffResult

MATCH_DESCRIPTION = "same move"
HOLD_DESCRIPTION = "different hold choice"
TECHNIQUE_DESCRIPTION = "different technique"
DELETE_DESCRIPTION = "extra move (only in A)"
INSERT_DESCRIPTION = "missing move (only in B)"


def substitution_cost(a: BetaAction, b: BetaAction) -> float:
    """0 for the same move, 0.5 for the same move on another hold, 1 otherwise."""

    if a.limb != b.limb:
        return 1.0
    same_type = a.type == b.type
    same_hold = a.hold_id == b.hold_id
    if same_type and same_hold:
        return 0.0
    if same_type:
        return 0.5
    return 1.0


def _same(a: float, b: float) -> bool:
    return math.isclose(a, b, abs_tol=1e-9)


class SequenceDiffer:
    """Align two beta sequences and describe how A turns into B."""

    def diff(self, seq_a: Sequence[BetaAction], seq_b: Sequence[BetaAction]) -> DiffResult:
        n, m = len(seq_a), len(seq_b)
        dp = [[0.0] * (m + 1) for _ in range(n + 1)]
        for i in range(n + 1):
            dp[i][0] = float(i)
        for j in range(m + 1):
            dp[0][j] = float(j)

        for i in range(1, n + 1):
            for j in range(1, m + 1):
                dp[i][j] = min(
                    dp[i - 1][j] + 1.0,
                    dp[i][j - 1] + 1.0,
                    dp[i - 1][j - 1] + substitution_cost(seq_a[i - 1], seq_b[j - 1]),
                )

        # Walk back preferring diagonal, then deletion, then insertion.
        ops: list[DiffOperation] = []
        i, j = n, m
        while i > 0 or j > 0:
            if i > 0 and j > 0:
                a, b = seq_a[i - 1], seq_b[j - 1]
                cost = substitution_cost(a, b)
                if _same(dp[i][j], dp[i - 1][j - 1] + cost):
                    if cost == 0.0:
                        ops.append(DiffOperation(DiffOpType.MATCH, a, b, MATCH_DESCRIPTION))
                    else:
                        desc = HOLD_DESCRIPTION if cost == 0.5 else TECHNIQUE_DESCRIPTION
                        ops.append(DiffOperation(DiffOpType.SUBSTITUTE, a, b, desc))
                    i -= 1
                    j -= 1
                    continue
            if i > 0 and _same(dp[i][j], dp[i - 1][j] + 1.0):
                ops.append(DiffOperation(DiffOpType.DELETE, seq_a[i - 1], None, DELETE_DESCRIPTION))
                i -= 1
            else:
                ops.append(DiffOperation(DiffOpType.INSERT, None, seq_b[j - 1], INSERT_DESCRIPTION))
                j -= 1

        ops.reverse()
        return DiffResult(operations=ops, cost=dp[n][m])


def diff(seq_a: Sequence[BetaAction], seq_b: Sequence[BetaAction]) -> DiffResult:
    return SequenceDiffer().diff(seq_a, seq_b)
