"""MIXCRAFT QC Sampling — chop, tune, trim and flip challenges.

Slice scoring is structural: the number of slices is worth 60 points and
how well the boundaries line up (or, without reference boundaries, how
evenly the sample was cut) is worth the remaining 40.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from pydantic import BaseModel, Field

from mixcraft.qc.scoring import AxisAccumulator, ScoreBreakdown, ScoringPolicy, StarBands, banded_similarity

# ── Tolerances ───────────────────────────────────────────

PITCH_TOLERANCE = 1.0  # semitones
STRETCH_TOLERANCE = 0.1
POINT_TOLERANCE = 0.02  # fraction of the sample
FADE_TOLERANCE = 0.05  # s
SLICE_TOLERANCE = 0.02  # fraction of the duration
SLICE_NEAR_MISS = 0.04
SLICE_COUNT_POINTS = 60.0
SLICE_PLACEMENT_POINTS = 40.0

SAMPLING_POLICY = ScoringPolicy(pass_threshold=60.0, star_bands=StarBands(one=60.0, two=75.0, three=90.0))

ChallengeKind = Literal["recreate_kit", "chop", "tune_to_track", "flip_this", "clean_sample"]


class SamplerState(BaseModel):
    domain: Literal["sampling"] = "sampling"
    sample_loaded: bool = True
    duration: float = Field(default=1.0, gt=0)  # s
    pitch: float = 0.0  # semitones
    time_stretch: float = 1.0
    slices: list[float] = Field(default_factory=list)  # s from sample start
    start_point: float = Field(default=0.0, ge=0.0, le=1.0)
    end_point: float = Field(default=1.0, ge=0.0, le=1.0)
    fade_in: float = 0.0
    fade_out: float = 0.0
    reverse: bool = False

    def techniques(self) -> list[str]:
        """Manipulations applied on top of the raw sample."""
        used = []
        if self.pitch != 0:
            used.append("pitch")
        if self.time_stretch != 1.0:
            used.append("time stretch")
        if self.reverse:
            used.append("reverse")
        if self.slices:
            used.append("slicing")
        if self.start_point > 0 or self.end_point < 1:
            used.append("trim")
        if self.fade_in > 0 or self.fade_out > 0:
            used.append("fades")
        return used


class SamplingTarget(BaseModel):
    domain: Literal["sampling"] = "sampling"
    kind: ChallengeKind = "recreate_kit"
    pitch: float | None = None
    time_stretch: float | None = None
    slice_count: int | None = Field(default=None, ge=0)
    slice_points: list[float] | None = None
    start_point: float | None = None
    end_point: float | None = None
    fade_in: float | None = None
    fade_out: float | None = None
    reverse: bool | None = None


# ── Slices ───────────────────────────────────────────────


def slice_evenness(points: list[float], duration: float) -> float:
    """1.0 for perfectly even cuts, falling with the spread of segment lengths."""
    if not points:
        return 0.0
    edges = np.concatenate(([0.0], np.sort(np.asarray(points, dtype=np.float64)), [duration]))
    segments = np.diff(edges)
    mean = float(segments.mean())
    if mean <= 0:
        return 0.0
    return float(max(0.0, 1.0 - float(segments.std()) / mean))


def slice_placement(target: list[float], actual: list[float], duration: float) -> float:
    """Mean credit per reference boundary: exact 1, near miss 0.5."""
    if not target:
        return 1.0 if not actual else 0.0
    if not actual:
        return 0.0
    ours = np.asarray(actual, dtype=np.float64)
    credits = []
    for point in target:
        distance = float(np.min(np.abs(ours - point))) / duration
        if distance <= SLICE_TOLERANCE:
            credits.append(1.0)
        elif distance <= SLICE_NEAR_MISS:
            credits.append(0.5)
        else:
            credits.append(0.0)
    return float(np.mean(credits))


def score_slices(target: SamplingTarget, actual: SamplerState) -> tuple[float, str] | None:
    expected = target.slice_count
    if expected is None and target.slice_points is not None:
        expected = len(target.slice_points)
    if expected is None:
        return None

    count = len(actual.slices)
    count_credit = 1.0 if count == expected else max(0.0, 1.0 - abs(count - expected) / max(expected, 1))
    if target.slice_points is not None:
        placement = slice_placement(target.slice_points, actual.slices, actual.duration)
    else:
        placement = slice_evenness(actual.slices, actual.duration) if expected else 1.0

    score = count_credit * SLICE_COUNT_POINTS + placement * SLICE_PLACEMENT_POINTS
    if count != expected:
        return score, f"{count} slices, expected {expected}"
    return score, "Slice count matches" if placement >= 0.9 else "Tighten slice positions"


# ── Evaluator ────────────────────────────────────────────


def _banded(acc: AxisAccumulator, label: str, actual: float, target: float | None, tol: float) -> None:
    if target is not None:
        acc.value(label, banded_similarity(actual, target, tol))


def evaluate_sampling(target: SamplingTarget, actual: SamplerState) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()

    pitch = AxisAccumulator("pitch")
    _banded(pitch, "pitch", actual.pitch, target.pitch, PITCH_TOLERANCE)
    pitch.emit(breakdown)

    slices = score_slices(target, actual)
    if slices is not None:
        breakdown.add("slices", slices[0], slices[1])

    timing = AxisAccumulator("timing")
    _banded(timing, "time stretch", actual.time_stretch, target.time_stretch, STRETCH_TOLERANCE)
    timing.emit(breakdown)

    trim = AxisAccumulator("trim")
    _banded(trim, "start point", actual.start_point, target.start_point, POINT_TOLERANCE)
    _banded(trim, "end point", actual.end_point, target.end_point, POINT_TOLERANCE)
    trim.flag("reverse", actual.reverse, target.reverse)

    fades = AxisAccumulator("fades")
    _banded(fades, "fade in", actual.fade_in, target.fade_in, FADE_TOLERANCE)
    _banded(fades, "fade out", actual.fade_out, target.fade_out, FADE_TOLERANCE)

    if target.kind == "clean_sample":
        # Without reference values a clean edit means trimmed silence and click-free edges.
        if not trim:
            trim.value("trimmed", 1.0 if actual.start_point > 0 or actual.end_point < 1 else 0.0)
        if not fades:
            fades.value("fade in", 1.0 if actual.fade_in > 0 else 0.0)
            fades.value("fade out", 1.0 if actual.fade_out > 0 else 0.0)
    trim.emit(breakdown)
    fades.emit(breakdown)

    if target.kind == "flip_this":
        breakdown.add("creativity", *score_creativity(actual))

    return breakdown


def score_creativity(actual: SamplerState) -> tuple[float, str]:
    if not actual.sample_loaded:
        return 0.0, "Load the sample first"
    used = actual.techniques()
    if not used:
        return 50.0, "Try flipping it: pitch, chop, reverse"
    return min(100.0, 60.0 + 10.0 * len(used)), "Used " + ", ".join(used)
