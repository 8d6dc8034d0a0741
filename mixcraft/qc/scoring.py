"""MIXCRAFT QC Scoring — shared similarity laws and the score aggregator.

Every domain evaluator reduces parameter distances to 0–100 axis scores
with the helpers below and hands a :class:`ScoreBreakdown` to
:func:`aggregate`, which applies the domain policy (weights, pass
threshold, star bands) and produces the canonical :class:`ScoreResult`.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np

# ── Types ────────────────────────────────────────────────


@dataclass
class AxisScore:
    """Score for a single breakdown axis."""

    name: str
    score: float  # 0–100
    feedback: str = ""
    weight: float = 1.0


@dataclass
class ConditionResult:
    """Outcome of one relational goal (multi-track / production goals)."""

    description: str
    passed: bool


@dataclass
class ScoreBreakdown:
    """Ordered per-axis sub-scores explaining an overall score."""

    axes: dict[str, AxisScore] = field(default_factory=dict)
    conditions: list[ConditionResult] = field(default_factory=list)

    def add(self, name: str, score: float, feedback: str = "", weight: float = 1.0) -> AxisScore:
        axis = AxisScore(name=name, score=clamp_score(score), feedback=feedback, weight=weight)
        self.axes[name] = axis
        return axis

    def scores(self) -> dict[str, float]:
        return {name: axis.score for name, axis in self.axes.items()}

    def __contains__(self, name: object) -> bool:
        return name in self.axes

    def __getitem__(self, name: str) -> AxisScore:
        return self.axes[name]

    def __len__(self) -> int:
        return len(self.axes)

    def weakest(self) -> str:
        if not self.axes:
            return ""
        return min(self.axes.values(), key=lambda a: a.score).name

    def strongest(self) -> str:
        if not self.axes:
            return ""
        return max(self.axes.values(), key=lambda a: a.score).name


@dataclass(frozen=True)
class StarBands:
    """Three ascending overall-score thresholds for 1, 2 and 3 stars."""

    one: float = 60.0
    two: float = 75.0
    three: float = 90.0

    def __post_init__(self) -> None:
        if not self.one <= self.two <= self.three:
            raise ValueError(f"Star bands must be ascending, got {self.one}/{self.two}/{self.three}")

    def stars_for(self, overall: float) -> int:
        if overall >= self.three:
            return 3
        if overall >= self.two:
            return 2
        return 1


@dataclass(frozen=True)
class ScoringPolicy:
    """Domain-specific aggregation parameters."""

    weights: Mapping[str, float] = field(default_factory=dict)
    pass_threshold: float = 60.0
    star_bands: StarBands = field(default_factory=StarBands)


@dataclass
class ScoreResult:
    """Canonical scored attempt."""

    overall: int
    stars: int
    passed: bool
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    feedback: list[str] = field(default_factory=list)

    @property
    def earned_stars(self) -> int:
        """Stars that count towards progress (0 for a failed attempt)."""
        return self.stars if self.passed else 0

    def breakdown_data(self) -> dict[str, float]:
        """Flat ``{axis: score}`` mapping persisted with progress records."""
        return self.breakdown.scores()

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "stars": self.stars,
            "passed": self.passed,
            "breakdown": {
                name: {"score": round(axis.score, 2), "feedback": axis.feedback}
                for name, axis in self.breakdown.axes.items()
            },
            "conditions": [
                {"description": c.description, "passed": c.passed} for c in self.breakdown.conditions
            ],
            "feedback": list(self.feedback),
        }


# ── Similarity Laws ──────────────────────────────────────
# All return a 0–1 similarity; callers scale to 0–100.


def clamp_score(score: float) -> float:
    """Clamp to [0, 100]; NaN counts as 0."""
    if math.isnan(score):
        return 0.0
    return float(min(max(score, 0.0), 100.0))


def _unit(value: float) -> float:
    return float(min(max(value, 0.0), 1.0))


def linear_similarity(actual: float, target: float, tolerance: float) -> float:
    """``1 - |actual - target| / tolerance`` clamped to [0, 1]."""
    if tolerance <= 0:
        return 1.0 if actual == target else 0.0
    return _unit(1.0 - abs(actual - target) / tolerance)


def log_similarity(actual: float, target: float, octaves: float) -> float:
    """Distance measured in octaves (frequency, time constants, ratios)."""
    if target <= 0 or actual <= 0:
        return 1.0 if actual == target else 0.0
    return _unit(1.0 - abs(math.log2(actual / target)) / octaves)


def tolerance_similarity(actual: float, target: float, tolerance: float) -> float:
    """Full credit within 10 % of the tolerance, nothing beyond it."""
    diff = abs(actual - target)
    if diff <= tolerance * 0.1:
        return 1.0
    if diff > tolerance:
        return 0.0
    return _unit(1.0 - (diff - tolerance * 0.1) / (tolerance * 0.9))


def banded_similarity(actual: float, target: float, tolerance: float, falloff: float = 3.0) -> float:
    """1.0 → 0.7 inside the tolerance, then 0.7 → 0 over ``falloff`` tolerances."""
    diff = abs(actual - target)
    if tolerance <= 0:
        return 1.0 if diff == 0 else 0.0
    if diff <= tolerance:
        return 1.0 - 0.3 * diff / tolerance
    return 0.7 * _unit(1.0 - (diff - tolerance) / (tolerance * falloff))


def range_similarity(value: float, low: float | None, high: float | None, falloff: float) -> float:
    """Full credit inside ``[low, high]``, linear falloff outside it."""
    if low is not None and value < low:
        return _unit(1.0 - (low - value) / falloff)
    if high is not None and value > high:
        return _unit(1.0 - (value - high) / falloff)
    return 1.0


def category_similarity(actual: str | None, target: str, related: Iterable[frozenset[str]] = ()) -> float:
    """Exact match 1, related categories 0.5, anything else 0."""
    if actual is None:
        return 0.0
    if actual == target:
        return 1.0
    for group in related:
        if actual in group and target in group:
            return 0.5
    return 0.0


# ── Axis Builder ─────────────────────────────────────────


class AxisAccumulator:
    """Collects parameter similarities for one axis.

    Parameters whose target is ``None`` are skipped entirely; a missing
    actual value scores 0. An axis with no scored parameters is left out
    of the breakdown.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._parts: list[tuple[str, float]] = []

    def linear(self, label: str, actual: float | None, target: float | None, tolerance: float) -> None:
        if target is None:
            return
        self._parts.append((label, 0.0 if actual is None else linear_similarity(actual, target, tolerance)))

    def log(self, label: str, actual: float | None, target: float | None, octaves: float) -> None:
        if target is None:
            return
        self._parts.append((label, 0.0 if actual is None else log_similarity(actual, target, octaves)))

    def category(
        self,
        label: str,
        actual: str | None,
        target: str | None,
        related: Iterable[frozenset[str]] = (),
    ) -> None:
        if target is None:
            return
        self._parts.append((label, category_similarity(actual, target, related)))

    def flag(self, label: str, actual: bool | None, target: bool | None) -> None:
        if target is None:
            return
        self._parts.append((label, 1.0 if actual == target else 0.0))

    def value(self, label: str, similarity: float) -> None:
        self._parts.append((label, _unit(similarity)))

    def __bool__(self) -> bool:
        return bool(self._parts)

    def score(self) -> float:
        if not self._parts:
            return 0.0
        return float(np.mean([s for _, s in self._parts])) * 100.0

    def feedback(self) -> str:
        misses = [label for label, s in self._parts if s < 0.7]
        if not misses:
            return "On target"
        return "Adjust " + ", ".join(misses)

    def emit(self, breakdown: ScoreBreakdown, weight: float = 1.0) -> None:
        if self._parts:
            breakdown.add(self.name, self.score(), self.feedback(), weight)


# ── Aggregator ───────────────────────────────────────────


def aggregate(
    breakdown: ScoreBreakdown,
    weights: Mapping[str, float] | None = None,
    pass_threshold: float = 60.0,
    star_bands: StarBands | None = None,
) -> ScoreResult:
    """Weighted mean of the axis scores → overall, pass/fail and stars.

    An axis weight comes from ``weights`` when given, else from the axis
    itself. Axes absent from the breakdown carry no weight at all.
    """
    bands = star_bands or StarBands()
    axes = list(breakdown.axes.values())
    if not axes:
        overall = 0
    else:
        scores = np.array([a.score for a in axes], dtype=np.float64)
        w = np.array(
            [weights.get(a.name, a.weight) if weights else a.weight for a in axes],
            dtype=np.float64,
        )
        w = np.clip(w, 0.0, None)
        mean = float(np.average(scores, weights=w)) if w.sum() > 0 else float(scores.mean())
        overall = int(round(clamp_score(mean)))

    passed = overall >= pass_threshold
    stars = bands.stars_for(overall)
    result = ScoreResult(overall=overall, stars=stars, passed=passed, breakdown=breakdown)
    result.feedback = summarize(result)
    return result


def aggregate_with(breakdown: ScoreBreakdown, policy: ScoringPolicy) -> ScoreResult:
    return aggregate(breakdown, policy.weights, policy.pass_threshold, policy.star_bands)


def summarize(result: ScoreResult) -> list[str]:
    """Short human feedback lines for a scored attempt."""
    lines: list[str] = []
    if result.passed and result.stars == 3:
        lines.append("Perfect! Your ears are dialed in.")
    elif result.passed and result.stars == 2:
        lines.append("Great job, very close to the target.")
    elif result.passed:
        lines.append("Good start. Keep refining for more stars.")
    else:
        weakest = result.breakdown.weakest()
        lines.append(f"Focus on {weakest.replace('_', ' ')}." if weakest else "Keep trying.")

    for axis in result.breakdown.axes.values():
        if axis.score < 70 and axis.feedback:
            lines.append(f"{axis.name}: {axis.feedback}")
    return lines
