"""QC — Scoring layer.

Modules:
  scoring:     similarity laws, ScoreBreakdown/ScoreResult, aggregator
  synthesis:   subtractive, FM and additive patch matching
  mixing:      EQ/compressor targets and multi-track conditions
  production:  layered arrangement balance
  sampling:    chop/tune/trim/flip challenges
  drums:       step-sequencer pattern matching
  dispatch:    domain dispatch
"""

from mixcraft.qc.dispatch import ActualState, ChallengeTarget, evaluate, parse_state, parse_target
from mixcraft.qc.scoring import AxisScore, ScoreBreakdown, ScoreResult, ScoringPolicy, StarBands, aggregate

__all__ = [
    "ActualState",
    "AxisScore",
    "ChallengeTarget",
    "ScoreBreakdown",
    "ScoreResult",
    "ScoringPolicy",
    "StarBands",
    "aggregate",
    "evaluate",
    "parse_state",
    "parse_target",
]
