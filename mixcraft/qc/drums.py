"""MIXCRAFT QC Drums — step-sequencer pattern matching.

Patterns are per-instrument step lists of velocities (0 = off). Each
reference hit is classified exact, near miss (placed one step early or
late) or miss; stray hits the reference does not explain count against
the track.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from pydantic import BaseModel, Field

from mixcraft.qc.scoring import ScoreBreakdown, ScoringPolicy, StarBands, banded_similarity

# ── Tolerances ───────────────────────────────────────────

VELOCITY_TOLERANCE = 0.15
SWING_TOLERANCE = 0.1
TEMPO_TOLERANCE = 5.0  # BPM
FALLOFF = 3.0
NEAR_MISS_CREDIT = 0.5

DRUMS_POLICY = ScoringPolicy(pass_threshold=70.0, star_bands=StarBands(one=70.0, two=70.0, three=90.0))

Focus = Literal["pattern", "velocity", "swing", "tempo"]
ALL_FOCUS: tuple[Focus, ...] = ("pattern", "velocity", "swing", "tempo")


class DrumState(BaseModel):
    domain: Literal["drums"] = "drums"
    tracks: dict[str, list[float]] = Field(default_factory=dict)
    swing: float = 0.0
    tempo: float = 120.0


class DrumTarget(BaseModel):
    domain: Literal["drums"] = "drums"
    tracks: dict[str, list[float]] = Field(default_factory=dict)
    swing: float | None = None
    tempo: float | None = None
    focus: list[Focus] | None = None


# ── Pattern ──────────────────────────────────────────────


def _hits(steps: list[float], length: int) -> np.ndarray:
    grid = np.zeros(length, dtype=bool)
    if steps:
        values = np.asarray(steps[:length], dtype=np.float64)
        grid[: len(values)] = values > 0
    return grid


def track_pattern_score(target: list[float], actual: list[float] | None) -> float:
    """0–1 step-grid agreement for one instrument."""
    length = max(len(target), len(actual or []))
    want = _hits(target, length)
    if actual is None:
        return 0.0 if want.any() else 1.0
    have = _hits(actual, length)
    if not want.any() and not have.any():
        return 1.0

    credit = 0.0
    explained = np.zeros(length, dtype=bool)
    for step in np.flatnonzero(want):
        if have[step]:
            credit += 1.0
            explained[step] = True
            continue
        for neighbor in (step - 1, step + 1):
            if 0 <= neighbor < length and have[neighbor] and not want[neighbor] and not explained[neighbor]:
                credit += NEAR_MISS_CREDIT
                explained[neighbor] = True
                break

    stray = int(np.count_nonzero(have & ~explained))
    return credit / (int(want.sum()) + stray)


def pattern_score(target: DrumTarget, actual: DrumState) -> float:
    names = list(target.tracks)
    names += [n for n, steps in actual.tracks.items() if n not in target.tracks and any(v > 0 for v in steps)]
    if not names:
        return 100.0
    scores = [track_pattern_score(target.tracks.get(n, []), actual.tracks.get(n)) for n in names]
    return float(np.mean(scores)) * 100.0


def velocity_score(target: DrumTarget, actual: DrumState) -> float:
    """Closeness of velocities on steps both patterns hit."""
    sims: list[float] = []
    target_hits = 0
    for name, steps in target.tracks.items():
        ours = actual.tracks.get(name, [])
        for i, v in enumerate(steps):
            if v <= 0:
                continue
            target_hits += 1
            if i < len(ours) and ours[i] > 0:
                sims.append(banded_similarity(ours[i], v, VELOCITY_TOLERANCE, FALLOFF))
    if target_hits == 0:
        return 100.0
    if not sims:
        return 0.0
    return float(np.mean(sims)) * 100.0


# ── Evaluator ────────────────────────────────────────────


def evaluate_drums(target: DrumTarget, actual: DrumState) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()
    focus = set(target.focus or ALL_FOCUS)

    if "pattern" in focus and target.tracks:
        score = pattern_score(target, actual)
        breakdown.add("pattern", score, "Pattern matches" if score >= 90 else "Check the step grid")
    if "velocity" in focus and target.tracks:
        score = velocity_score(target, actual)
        breakdown.add("velocity", score, "Dynamics match" if score >= 90 else "Adjust hit velocities")
    if "swing" in focus and target.swing is not None:
        score = banded_similarity(actual.swing, target.swing, SWING_TOLERANCE, FALLOFF) * 100.0
        breakdown.add("swing", score, f"Swing {actual.swing:.0%} vs {target.swing:.0%}")
    if "tempo" in focus and target.tempo is not None:
        score = banded_similarity(actual.tempo, target.tempo, TEMPO_TOLERANCE, FALLOFF) * 100.0
        breakdown.add("tempo", score, f"{actual.tempo:g} BPM vs {target.tempo:g} BPM")
    return breakdown
