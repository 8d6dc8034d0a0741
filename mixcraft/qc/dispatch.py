"""MIXCRAFT QC dispatch — route a target/actual pair to its domain evaluator.

Targets and user states are tagged unions keyed by ``domain``; the pair
is pattern-matched so each evaluator only ever sees its own descriptor
types. The domain's scoring policy is then applied by the aggregator.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import Field, TypeAdapter

from mixcraft.qc.drums import DRUMS_POLICY, DrumState, DrumTarget, evaluate_drums
from mixcraft.qc.mixing import MIXING_POLICY, MixingTarget, MixState, evaluate_mixing
from mixcraft.qc.production import PRODUCTION_POLICY, ProductionState, ProductionTarget, evaluate_production
from mixcraft.qc.sampling import SAMPLING_POLICY, SamplerState, SamplingTarget, evaluate_sampling
from mixcraft.qc.scoring import ScoreBreakdown, ScoreResult, ScoringPolicy, aggregate_with
from mixcraft.qc.synthesis import (
    ADDITIVE_POLICY,
    FM_POLICY,
    SUBTRACTIVE_POLICY,
    AdditivePatch,
    FMPatch,
    SubtractivePatch,
    evaluate_additive,
    evaluate_fm,
    evaluate_subtractive,
)

ChallengeTarget = Annotated[
    SubtractivePatch | FMPatch | AdditivePatch | MixingTarget | ProductionTarget | SamplingTarget | DrumTarget,
    Field(discriminator="domain"),
]
ActualState = Annotated[
    SubtractivePatch | FMPatch | AdditivePatch | MixState | ProductionState | SamplerState | DrumState,
    Field(discriminator="domain"),
]

_target_adapter: TypeAdapter[Any] = TypeAdapter(ChallengeTarget)
_state_adapter: TypeAdapter[Any] = TypeAdapter(ActualState)


def parse_target(data: dict[str, Any]) -> ChallengeTarget:
    return _target_adapter.validate_python(data)


def parse_state(data: dict[str, Any]) -> ActualState:
    return _state_adapter.validate_python(data)


def score_breakdown(target: ChallengeTarget, actual: ActualState) -> tuple[ScoreBreakdown, ScoringPolicy]:
    """Per-axis breakdown plus the policy that aggregates it.

    Raises:
        TypeError: the user state belongs to a different domain than the target.
    """
    match (target, actual):
        case (SubtractivePatch(), SubtractivePatch()):
            return evaluate_subtractive(target, actual), SUBTRACTIVE_POLICY
        case (FMPatch(), FMPatch()):
            return evaluate_fm(target, actual), FM_POLICY
        case (AdditivePatch(), AdditivePatch()):
            return evaluate_additive(target, actual), ADDITIVE_POLICY
        case (MixingTarget(), MixState()):
            return evaluate_mixing(target, actual), MIXING_POLICY
        case (ProductionTarget(), ProductionState()):
            return evaluate_production(target, actual), PRODUCTION_POLICY
        case (SamplingTarget(), SamplerState()):
            return evaluate_sampling(target, actual), SAMPLING_POLICY
        case (DrumTarget(), DrumState()):
            return evaluate_drums(target, actual), DRUMS_POLICY
    raise TypeError(f"Cannot score a '{actual.domain}' state against a '{target.domain}' target")


def evaluate(target: ChallengeTarget, actual: ActualState) -> ScoreResult:
    """Score the user's current configuration against a hidden target."""
    breakdown, policy = score_breakdown(target, actual)
    return aggregate_with(breakdown, policy)
