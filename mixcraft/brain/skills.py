"""MIXCRAFT Skill Model — breakdown history → skills, weaknesses, next steps.

Axis names from the evaluators map onto skill categories (``eq.low`` →
``eq``, ``layer.kick`` → ``layer``). Each attempted challenge contributes
one sample per skill it exercised: the mean of its axes in that skill.
Skill scores are derived on demand and never persisted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from mixcraft.brain.catalog import Challenge, ChallengeCatalog
from mixcraft.brain.progress import ChallengeProgress
from mixcraft.brain.tracks import classify

# ── Constants ────────────────────────────────────────────

WEAKNESS_THRESHOLD = 80.0
MIN_SAMPLES = 2
MAX_WEAKNESSES = 3
MAX_RECOMMENDATIONS = 5
MIN_ATTEMPTED = 5
PRACTICE_THRESHOLD = 70.0
MAX_PRACTICE = 3

SKILL_LABELS: dict[str, str] = {
    # sound design
    "oscillator": "Oscillators",
    "filter": "Filter design",
    "brightness": "Brightness",
    "attack": "Attack shaping",
    "envelope": "Envelopes",
    "filter_envelope": "Filter envelopes",
    "lfo": "Modulation",
    "effects": "Effects",
    "harmonicity": "FM ratios",
    "modulation_index": "FM depth",
    "waveforms": "Waveforms",
    "harmonics": "Harmonics",
    # mixing
    "eq": "EQ",
    "compressor": "Compression",
    "conditions": "Mix goals",
    # production
    "layer": "Layer balance",
    # sampling
    "pitch": "Pitch",
    "slices": "Chopping",
    "timing": "Time stretch",
    "trim": "Trimming",
    "fades": "Fades",
    "creativity": "Creativity",
    # drums
    "pattern": "Rhythm patterns",
    "velocity": "Velocity dynamics",
    "swing": "Groove",
    "tempo": "Tempo",
}


# ── Types ────────────────────────────────────────────────


@dataclass
class SkillScore:
    skill: str
    label: str
    track: str | None
    score: float
    sample_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Weakness:
    skill: str
    label: str
    track: str | None
    score: float
    severity: float  # points below the competency threshold

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Recommendation:
    challenge_id: str
    title: str
    module: str
    reason: str
    skill: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def skill_for_axis(axis: str) -> str:
    """Skill category an evaluator axis belongs to."""
    if axis in SKILL_LABELS:
        return axis
    return axis.split(".", 1)[0]


def skill_label(skill: str) -> str:
    return SKILL_LABELS.get(skill, skill.replace("_", " ").capitalize())


# ── Skill Scores ─────────────────────────────────────────


def compute_skill_scores(progress: Mapping[str, ChallengeProgress]) -> list[SkillScore]:
    """Average per-skill sub-scores across all challenges with a breakdown, weakest first."""
    samples: dict[str, list[float]] = {}
    tracks: dict[str, str | None] = {}
    for challenge_id in sorted(progress):
        record = progress[challenge_id]
        if not record.breakdown:
            continue
        grouped: dict[str, list[float]] = {}
        for axis, score in record.breakdown.items():
            grouped.setdefault(skill_for_axis(axis), []).append(float(score))
        track = classify(challenge_id)
        for skill, scores in grouped.items():
            samples.setdefault(skill, []).append(float(np.mean(scores)))
            tracks.setdefault(skill, track.value if track else None)

    skills = [
        SkillScore(
            skill=skill,
            label=skill_label(skill),
            track=tracks[skill],
            score=round(float(np.mean(values)), 2),
            sample_count=len(values),
        )
        for skill, values in samples.items()
    ]
    skills.sort(key=lambda s: (s.score, s.skill))
    return skills


def get_weaknesses(
    skills: list[SkillScore],
    min_samples: int = MIN_SAMPLES,
    max_results: int = MAX_WEAKNESSES,
    threshold: float = WEAKNESS_THRESHOLD,
) -> list[Weakness]:
    """Skills below the threshold with enough evidence, worst first."""
    weak = [s for s in skills if s.sample_count >= min_samples and s.score < threshold]
    weak.sort(key=lambda s: (s.score, s.skill))
    return [
        Weakness(
            skill=s.skill,
            label=s.label,
            track=s.track,
            score=s.score,
            severity=round(threshold - s.score, 2),
        )
        for s in weak[:max_results]
    ]


# ── Recommendations ──────────────────────────────────────


def _candidates(skill: str, progress: Mapping[str, ChallengeProgress], catalog: ChallengeCatalog) -> list[Challenge]:
    """Not-yet-completed challenges tagged with ``skill``, easiest first (stable on catalog order)."""
    open_ = [c for c in catalog.tagged(skill) if not (c.id in progress and progress[c.id].completed)]
    return sorted(open_, key=lambda c: c.difficulty)


def _recommend(
    skills: list[tuple[str, str]],
    progress: Mapping[str, ChallengeProgress],
    catalog: ChallengeCatalog,
    max_results: int,
    exclude: set[str],
) -> list[Recommendation]:
    queues = [(skill, label, _candidates(skill, progress, catalog)) for skill, label in skills]
    chosen: list[Recommendation] = []
    seen = set(exclude)
    while len(chosen) < max_results and any(q for _, _, q in queues):
        for skill, label, queue in queues:
            while queue and queue[0].id in seen:
                queue.pop(0)
            if not queue or len(chosen) >= max_results:
                continue
            challenge = queue.pop(0)
            seen.add(challenge.id)
            chosen.append(
                Recommendation(
                    challenge_id=challenge.id,
                    title=challenge.title,
                    module=challenge.module,
                    reason=f"Improve {label.lower()}",
                    skill=skill,
                )
            )
    return chosen


def get_recommendations(
    weaknesses: list[Weakness],
    progress: Mapping[str, ChallengeProgress],
    catalog: ChallengeCatalog,
    max_results: int = MAX_RECOMMENDATIONS,
    min_attempted: int = MIN_ATTEMPTED,
) -> list[Recommendation]:
    """Challenges that target the weakest skills.

    Weaknesses take turns (worst first), each contributing its easiest
    open challenge per round. Nothing is recommended until at least
    ``min_attempted`` challenges have been attempted.
    """
    attempted = sum(1 for r in progress.values() if r.attempts > 0)
    if attempted < min_attempted:
        return []
    ordered = sorted(weaknesses, key=lambda w: (w.score, w.skill))
    return _recommend([(w.skill, w.label) for w in ordered], progress, catalog, max_results, set())


def practice_more_suggestions(
    breakdown: Mapping[str, float],
    progress: Mapping[str, ChallengeProgress],
    catalog: ChallengeCatalog,
    current_id: str | None = None,
    threshold: float = PRACTICE_THRESHOLD,
    max_results: int = MAX_PRACTICE,
) -> list[Recommendation]:
    """Follow-ups for the weak axes of the attempt just finished."""
    per_skill: dict[str, list[float]] = {}
    for axis, score in breakdown.items():
        per_skill.setdefault(skill_for_axis(axis), []).append(float(score))
    weak = sorted(
        ((float(np.mean(v)), skill) for skill, v in per_skill.items() if float(np.mean(v)) < threshold),
    )
    exclude = {current_id} if current_id else set()
    return _recommend([(skill, skill_label(skill)) for _, skill in weak], progress, catalog, max_results, exclude)


def skill_report(progress: Mapping[str, ChallengeProgress], catalog: ChallengeCatalog) -> dict[str, Any]:
    """Skills, weaknesses and recommendations in one JSON-ready payload."""
    skills = compute_skill_scores(progress)
    weaknesses = get_weaknesses(skills)
    recommendations = get_recommendations(weaknesses, progress, catalog)
    return {
        "skills": [s.to_dict() for s in skills],
        "weaknesses": [w.to_dict() for w in weaknesses],
        "recommendations": [r.to_dict() for r in recommendations],
        "total_attempted": sum(1 for r in progress.values() if r.attempts > 0),
    }
