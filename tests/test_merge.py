"""MIXCRAFT Merge Tests — best-wins reconciliation is commutative and idempotent."""

import numpy as np
import pytest

from mixcraft.brain.merge import merge_progress, merge_records
from mixcraft.brain.progress import ChallengeProgress

IDS = ["SD1-01", "SD1-02", "F1-01", "i2-01", "P1-01", "SM1-01", "DS1-01"]


def _random_progress(rng: np.random.Generator) -> dict[str, ChallengeProgress]:
    """Random progress map; scores drawn from a small set so ties are common."""
    records = {}
    for challenge_id in IDS:
        if rng.random() < 0.4:
            continue
        breakdown = None
        if rng.random() < 0.7:
            breakdown = {axis: float(rng.choice([40, 60, 80, 100])) for axis in rng.choice(["eq", "filter", "pitch"], 2)}
        records[challenge_id] = ChallengeProgress(
            challenge_id=challenge_id,
            best_score=int(rng.choice([0, 50, 75, 90])),
            stars=int(rng.integers(0, 4)),
            attempts=int(rng.integers(0, 6)),
            completed=bool(rng.random() < 0.5),
            breakdown=breakdown,
        )
    return records


# ── Test 1: Algebraic properties ─────────────────────────

@pytest.mark.parametrize("seed", range(25))
def test_merge_is_commutative(seed):
    rng = np.random.default_rng(seed)
    a, b = _random_progress(rng), _random_progress(rng)
    assert merge_progress(a, b) == merge_progress(b, a)


@pytest.mark.parametrize("seed", range(25))
def test_merge_is_idempotent(seed):
    rng = np.random.default_rng(seed)
    a, b = _random_progress(rng), _random_progress(rng)
    once = merge_progress(a, b)
    assert merge_progress(a, once) == once
    assert merge_progress(once, once) == once


# ── Test 2: Edge cases ───────────────────────────────────

def test_merge_empty():
    assert merge_progress({}, {}) == {}


def test_merge_disjoint_is_union():
    a = {"F1-01": ChallengeProgress("F1-01", best_score=70, attempts=1)}
    b = {"P1-01": ChallengeProgress("P1-01", best_score=40, attempts=2)}
    merged = merge_progress(a, b)
    assert merged == {**a, **b}


def test_merge_fields_best_wins():
    local = ChallengeProgress("F1-01", best_score=80, stars=2, attempts=3, completed=True, breakdown={"eq": 80})
    cloud = ChallengeProgress("F1-01", best_score=65, stars=3, attempts=7, completed=False, breakdown={"eq": 65})
    merged = merge_records(local, cloud)
    assert merged == ChallengeProgress("F1-01", best_score=80, stars=3, attempts=7, completed=True, breakdown={"eq": 80})


def test_missing_breakdown_defers_to_other_side():
    with_bd = ChallengeProgress("F1-01", best_score=50, breakdown={"eq": 50})
    without = ChallengeProgress("F1-01", best_score=90)
    assert merge_records(with_bd, without).breakdown == {"eq": 50}
    assert merge_records(without, with_bd).breakdown == {"eq": 50}


def test_tied_breakdown_is_deterministic():
    a = ChallengeProgress("F1-01", best_score=75, breakdown={"eq": 70})
    b = ChallengeProgress("F1-01", best_score=75, breakdown={"eq": 80})
    assert merge_records(a, b).breakdown == merge_records(b, a).breakdown


def test_merged_record_takes_the_map_key():
    a = {"F1-01": ChallengeProgress("F1-01", best_score=60)}
    b = {"F1-01": ChallengeProgress("f1-01", best_score=70)}
    assert merge_progress(a, b) == merge_progress(b, a)
    assert merge_progress(a, b)["F1-01"].challenge_id == "F1-01"
    assert merge_records(a["F1-01"], b["F1-01"]) == merge_records(b["F1-01"], a["F1-01"])
