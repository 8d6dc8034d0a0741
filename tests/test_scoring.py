"""MIXCRAFT Scoring Tests — similarity laws and the score aggregator."""

import pytest

from mixcraft.qc.scoring import (
    AxisAccumulator,
    ScoreBreakdown,
    StarBands,
    aggregate,
    banded_similarity,
    category_similarity,
    linear_similarity,
    log_similarity,
    range_similarity,
    tolerance_similarity,
)


# ── Test 1: Similarity laws ──────────────────────────────

def test_linear_similarity_clamped():
    assert linear_similarity(5.0, 5.0, 2.0) == 1.0
    assert linear_similarity(6.0, 5.0, 2.0) == pytest.approx(0.5)
    assert linear_similarity(50.0, 5.0, 2.0) == 0.0


def test_log_similarity_octaves():
    assert log_similarity(1000.0, 1000.0, 2.0) == 1.0
    assert log_similarity(2000.0, 1000.0, 2.0) == pytest.approx(0.5)
    assert log_similarity(0.0, 0.0, 2.0) == 1.0
    assert log_similarity(0.0, 100.0, 2.0) == 0.0


def test_tolerance_similarity_bands():
    # 10 % of tolerance is full credit, beyond tolerance is nothing
    assert tolerance_similarity(0.3, 0.0, 3.0) == 1.0
    assert tolerance_similarity(3.5, 0.0, 3.0) == 0.0
    assert 0.0 < tolerance_similarity(1.5, 0.0, 3.0) < 1.0


def test_banded_similarity_continuous_at_tolerance():
    tol = 3.0
    inside = banded_similarity(tol - 1e-9, 0.0, tol)
    outside = banded_similarity(tol + 1e-9, 0.0, tol)
    assert inside == pytest.approx(0.7, abs=1e-6)
    assert outside == pytest.approx(0.7, abs=1e-6)
    assert banded_similarity(4 * tol, 0.0, tol, falloff=3.0) == 0.0


def test_range_similarity():
    assert range_similarity(-3.0, -6.0, -2.0, 6.0) == 1.0
    assert range_similarity(-6.0, -6.0, -2.0, 6.0) == 1.0  # boundaries included
    assert range_similarity(1.0, -6.0, -2.0, 6.0) == pytest.approx(0.5)
    assert range_similarity(100.0, None, None, 1.0) == 1.0


def test_category_partial_credit():
    related = (frozenset({"sine", "triangle"}),)
    assert category_similarity("sine", "sine", related) == 1.0
    assert category_similarity("triangle", "sine", related) == 0.5
    assert category_similarity("square", "sine", related) == 0.0
    assert category_similarity(None, "sine", related) == 0.0


# ── Test 2: Axis accumulator ─────────────────────────────

def test_accumulator_skips_absent_targets():
    breakdown = ScoreBreakdown()
    acc = AxisAccumulator("filter")
    acc.linear("resonance", 3.0, None, 10.0)
    acc.emit(breakdown)
    assert "filter" not in breakdown


def test_accumulator_missing_actual_scores_zero():
    acc = AxisAccumulator("envelope")
    acc.linear("sustain", None, 0.5, 1.0)
    acc.linear("release", 0.3, 0.3, 1.0)
    assert acc.score() == pytest.approx(50.0)


# ── Test 3: Aggregator ───────────────────────────────────

def test_aggregate_equal_weights():
    breakdown = ScoreBreakdown()
    breakdown.add("a", 100)
    breakdown.add("b", 50)
    result = aggregate(breakdown)
    assert result.overall == 75
    assert result.passed
    assert result.stars == 2


def test_aggregate_explicit_weights():
    breakdown = ScoreBreakdown()
    breakdown.add("filter", 100)
    breakdown.add("lfo", 0)
    result = aggregate(breakdown, weights={"filter": 3.0, "lfo": 1.0})
    assert result.overall == 75


def test_aggregate_ignores_weights_for_absent_axes():
    breakdown = ScoreBreakdown()
    breakdown.add("filter", 80)
    result = aggregate(breakdown, weights={"filter": 0.25, "lfo": 0.75})
    assert result.overall == 80


def test_aggregate_clamps_scores():
    breakdown = ScoreBreakdown()
    breakdown.add("a", 250)
    breakdown.add("b", -40)
    assert breakdown["a"].score == 100.0
    assert breakdown["b"].score == 0.0


def test_aggregate_empty_breakdown():
    result = aggregate(ScoreBreakdown())
    assert result.overall == 0
    assert not result.passed
    assert result.earned_stars == 0


def test_failed_attempt_earns_no_stars():
    breakdown = ScoreBreakdown()
    breakdown.add("a", 55)
    result = aggregate(breakdown, pass_threshold=60)
    assert not result.passed
    assert result.stars == 1
    assert result.earned_stars == 0
    assert result.feedback[0].startswith("Focus on")


@pytest.mark.parametrize("score, stars", [(95, 3), (90, 3), (89, 2), (75, 2), (74, 1), (60, 1)])
def test_default_star_bands(score, stars):
    breakdown = ScoreBreakdown()
    breakdown.add("a", score)
    assert aggregate(breakdown).stars == stars


def test_star_bands_must_ascend():
    with pytest.raises(ValueError):
        StarBands(one=80, two=70, three=90)
