"""MIXCRAFT Skill Model Tests — skill scores, weaknesses, recommendations."""

import pytest

from mixcraft.brain.catalog import Challenge, ChallengeCatalog
from mixcraft.brain.progress import ChallengeProgress
from mixcraft.brain.skills import (
    compute_skill_scores,
    get_recommendations,
    get_weaknesses,
    practice_more_suggestions,
    skill_for_axis,
)


def _record(challenge_id, breakdown, completed=True, attempts=1):
    score = int(sum(breakdown.values()) / len(breakdown))
    return ChallengeProgress(challenge_id, best_score=score, stars=1, attempts=attempts, completed=completed, breakdown=breakdown)


def _challenge(challenge_id, skills, difficulty=1, module="F1"):
    return Challenge.model_validate({
        "id": challenge_id,
        "title": challenge_id.title(),
        "module": module,
        "difficulty": difficulty,
        "skills": skills,
        "target": {"domain": "mixing"},
    })


CATALOG = ChallengeCatalog([
    _challenge("F1-01", ["eq"], 1),
    _challenge("F1-02", ["eq"], 2),
    _challenge("F1-03", ["eq"], 3),
    _challenge("F2-01", ["compressor"], 2),
    _challenge("F2-02", ["compressor"], 1),
    _challenge("F3-01", ["eq", "compressor"], 1),
    _challenge("M1-01", ["conditions"], 1, module="M1"),
])

WEAK_HISTORY = {
    "F1-01": _record("F1-01", {"eq.low": 50, "eq.high": 60}),
    "F1-02": _record("F1-02", {"eq.mid": 40}, completed=False),
    "F2-01": _record("F2-01", {"compressor.threshold": 70, "compressor.amount": 60}),
    "F2-09": _record("F2-09", {"compressor.curve": 70}),
    "M1-09": _record("M1-09", {"conditions": 100}),
}


# ── Test 1: Skill scores ─────────────────────────────────

def test_skill_for_axis():
    assert skill_for_axis("eq.low") == "eq"
    assert skill_for_axis("layer.kick") == "layer"
    assert skill_for_axis("filter_envelope") == "filter_envelope"


def test_compute_skill_scores_weakest_first():
    skills = compute_skill_scores(WEAK_HISTORY)
    by_name = {s.skill: s for s in skills}
    # one sample per challenge: F1-01 → 55, F1-02 → 40
    assert by_name["eq"].score == pytest.approx(47.5)
    assert by_name["eq"].sample_count == 2
    assert by_name["compressor"].score == pytest.approx(67.5)
    assert by_name["eq"].track == "mixing"
    assert [s.skill for s in skills] == ["eq", "compressor", "conditions"]


def test_records_without_breakdown_are_skipped():
    progress = {"F1-01": ChallengeProgress("F1-01", best_score=0, attempts=1)}
    assert compute_skill_scores(progress) == []


# ── Test 2: Weaknesses ───────────────────────────────────

def test_weaknesses_need_samples_and_threshold():
    weaknesses = get_weaknesses(compute_skill_scores(WEAK_HISTORY))
    assert [w.skill for w in weaknesses] == ["eq", "compressor"]
    assert weaknesses[0].severity == pytest.approx(32.5)


def test_weaknesses_capped():
    skills = compute_skill_scores(WEAK_HISTORY)
    assert len(get_weaknesses(skills, max_results=1)) == 1
    assert get_weaknesses(skills, min_samples=3) == []


# ── Test 3: Recommendations ──────────────────────────────

def test_cold_start_returns_nothing():
    history = dict(list(WEAK_HISTORY.items())[:4])
    weaknesses = get_weaknesses(compute_skill_scores(history))
    assert weaknesses
    assert get_recommendations(weaknesses, history, CATALOG) == []


def test_recommendations_easiest_open_challenge_per_weakness():
    weaknesses = get_weaknesses(compute_skill_scores(WEAK_HISTORY))
    recs = get_recommendations(weaknesses, WEAK_HISTORY, CATALOG)
    ids = [r.challenge_id for r in recs]
    # eq: F1-01 completed → F3-01 (d1), then F1-02 (d2), F1-03 (d3)
    # compressor: F2-02 (d1), F3-01 already taken, F2-01 completed
    assert ids == ["F3-01", "F2-02", "F1-02", "F1-03"]
    assert recs[0].reason == "Improve eq"
    assert recs[1].reason == "Improve compression"
    assert len(set(ids)) == len(ids)


def test_recommendations_capped_and_deterministic():
    weaknesses = get_weaknesses(compute_skill_scores(WEAK_HISTORY))
    first = get_recommendations(weaknesses, WEAK_HISTORY, CATALOG, max_results=2)
    second = get_recommendations(weaknesses, WEAK_HISTORY, CATALOG, max_results=2)
    assert first == second
    assert len(first) == 2


def test_practice_more_suggestions():
    recs = practice_more_suggestions({"eq.low": 40, "eq.mid": 50, "conditions": 95}, {}, CATALOG, current_id="F1-01")
    assert [r.challenge_id for r in recs] == ["F3-01", "F1-02", "F1-03"]
    assert all(r.skill == "eq" for r in recs)
