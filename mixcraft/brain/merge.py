"""MIXCRAFT Progress Merge — best-wins reconciliation of two progress maps.

Every field combines with a commutative, idempotent operator (max / OR),
so local and remote progress can be merged in either order, any number
of times, with the same result. The stored breakdown follows the higher
best score; on an exact tie the breakdown whose canonical JSON sorts
higher wins, which keeps the merge symmetric.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from mixcraft.brain.progress import ChallengeProgress


def _canonical(breakdown: dict[str, float]) -> str:
    return json.dumps(breakdown, sort_keys=True)


def _pick_breakdown(a: ChallengeProgress, b: ChallengeProgress) -> dict[str, float] | None:
    if a.breakdown is None:
        return b.breakdown
    if b.breakdown is None:
        return a.breakdown
    if a.best_score != b.best_score:
        return a.breakdown if a.best_score > b.best_score else b.breakdown
    return max(a.breakdown, b.breakdown, key=_canonical)


def merge_records(
    a: ChallengeProgress,
    b: ChallengeProgress,
    challenge_id: str | None = None,
) -> ChallengeProgress:
    """Field-by-field best-wins merge of two records for the same challenge.

    The merged record carries ``challenge_id`` when given (the map key),
    else the smaller of the two record ids.
    """
    return ChallengeProgress(
        challenge_id=challenge_id if challenge_id is not None else min(a.challenge_id, b.challenge_id),
        best_score=max(a.best_score, b.best_score),
        stars=max(a.stars, b.stars),
        attempts=max(a.attempts, b.attempts),
        completed=a.completed or b.completed,
        breakdown=_pick_breakdown(a, b),
    )


def merge_progress(
    a: Mapping[str, ChallengeProgress],
    b: Mapping[str, ChallengeProgress],
) -> dict[str, ChallengeProgress]:
    """Union of both maps; ids present on both sides are merged."""
    merged: dict[str, ChallengeProgress] = {}
    for challenge_id in sorted(set(a) | set(b)):
        left, right = a.get(challenge_id), b.get(challenge_id)
        if left is None:
            merged[challenge_id] = right  # type: ignore[assignment]
        elif right is None:
            merged[challenge_id] = left
        else:
            merged[challenge_id] = merge_records(left, right, challenge_id)
    return merged
