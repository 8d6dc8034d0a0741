"""MIXCRAFT QC Production — layered arrangement balance.

Reference targets score every layer on its own ``layer.<id>`` axis
(volume, pan, mute state, low/high shelf). Goal targets check relational
conditions between layers and fold them into a ``conditions`` axis.
"""

from __future__ import annotations

from typing import Annotated, Literal

import numpy as np
from pydantic import BaseModel, Field

from mixcraft.qc.mixing import Range, add_conditions_axis
from mixcraft.qc.scoring import (
    ConditionResult,
    ScoreBreakdown,
    ScoringPolicy,
    StarBands,
    banded_similarity,
    range_similarity,
)

# ── Tolerances ───────────────────────────────────────────

VOLUME_TOLERANCE = 3.0  # dB
PAN_TOLERANCE = 0.2
EQ_TOLERANCE = 2.0  # dB
FALLOFF = 4.0  # tolerances past the band until the score reaches 0
MUTED_PENALTY = 30.0
POSITION_TOLERANCE = 0.15

PRODUCTION_POLICY = ScoringPolicy(pass_threshold=60.0, star_bands=StarBands(one=60.0, two=75.0, three=90.0))


# ── State ────────────────────────────────────────────────


class LayerState(BaseModel):
    id: str
    name: str = ""
    volume: float = 0.0  # dB
    pan: float = Field(default=0.0, ge=-1.0, le=1.0)
    muted: bool = False
    solo: bool = False
    eq_low: float = 0.0
    eq_high: float = 0.0


class ProductionState(BaseModel):
    domain: Literal["production"] = "production"
    layers: list[LayerState] = Field(default_factory=list)

    def layer(self, layer_id: str) -> LayerState | None:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        return None

    def audible(self, layer: LayerState) -> bool:
        """Muted layers are silent; with any solo engaged only soloed layers play."""
        if layer.muted:
            return False
        if any(other.solo for other in self.layers):
            return layer.solo
        return True


# ── Targets ──────────────────────────────────────────────


class LayerTarget(BaseModel):
    id: str
    volume: float | None = None
    volume_range: Range | None = None
    pan: float | None = None
    muted: bool | None = None
    eq_low: float | None = None
    eq_high: float | None = None


class LevelOrder(BaseModel):
    """Layers listed loudest first."""

    type: Literal["level_order"] = "level_order"
    layers: list[str]


class LayerPanSpread(BaseModel):
    type: Literal["pan_spread"] = "pan_spread"
    layer1: str
    layer2: str
    min_spread: float


class LayerActive(BaseModel):
    type: Literal["layer_active"] = "layer_active"
    layer: str


class LayerMuted(BaseModel):
    type: Literal["layer_muted"] = "layer_muted"
    layer: str


class LayerRelativeLevel(BaseModel):
    type: Literal["relative_level"] = "relative_level"
    louder: str
    quieter: str
    min_difference: float = 0.0


class LayerPanPosition(BaseModel):
    type: Literal["pan_position"] = "pan_position"
    layer: str
    position: Literal["left", "center", "right"]
    tolerance: float = POSITION_TOLERANCE


ProductionGoal = Annotated[
    LevelOrder | LayerPanSpread | LayerActive | LayerMuted | LayerRelativeLevel | LayerPanPosition,
    Field(discriminator="type"),
]


class ProductionTarget(BaseModel):
    domain: Literal["production"] = "production"
    layers: list[LayerTarget] = Field(default_factory=list)
    goals: list[ProductionGoal] = Field(default_factory=list)


# ── Layer Scoring ────────────────────────────────────────


def score_layer(target: LayerTarget, layer: LayerState | None, audible: bool) -> tuple[float, str]:
    """0–100 score and feedback for one layer against its reference."""
    if target.muted:
        if layer is None or not audible:
            return 100.0, "Muted as expected"
        return 0.0, "Should be muted"

    if layer is None:
        return 0.0, "Layer missing"

    parts: list[float] = []
    notes: list[str] = []

    if target.volume is not None:
        parts.append(banded_similarity(layer.volume, target.volume, VOLUME_TOLERANCE, FALLOFF))
        if abs(layer.volume - target.volume) > VOLUME_TOLERANCE:
            notes.append("volume too " + ("loud" if layer.volume > target.volume else "quiet"))
    elif target.volume_range is not None:
        vr = target.volume_range
        parts.append(range_similarity(layer.volume, vr.min, vr.max, VOLUME_TOLERANCE * FALLOFF))
        if not vr.contains(layer.volume):
            notes.append("volume out of range")
    if target.pan is not None:
        parts.append(banded_similarity(layer.pan, target.pan, PAN_TOLERANCE, FALLOFF))
        if abs(layer.pan - target.pan) > PAN_TOLERANCE:
            notes.append("pan")
    if target.eq_low is not None:
        parts.append(banded_similarity(layer.eq_low, target.eq_low, EQ_TOLERANCE, FALLOFF))
    if target.eq_high is not None:
        parts.append(banded_similarity(layer.eq_high, target.eq_high, EQ_TOLERANCE, FALLOFF))

    score = float(np.mean(parts)) * 100.0 if parts else 100.0
    if not audible:
        score -= MUTED_PENALTY
        notes.append("should be audible")
    return score, ("On target" if not notes else "Check " + ", ".join(notes))


# ── Goals ────────────────────────────────────────────────


def _level(state: ProductionState, layer_id: str) -> float | None:
    layer = state.layer(layer_id)
    if layer is None or not state.audible(layer):
        return None
    return layer.volume


def check_goal(goal: ProductionGoal, state: ProductionState) -> bool:
    match goal:
        case LevelOrder(layers=order):
            levels = [_level(state, layer_id) for layer_id in order]
            if any(level is None for level in levels):
                return False
            return all(a > b for a, b in zip(levels, levels[1:]))  # type: ignore[operator]
        case LayerPanSpread(layer1=a, layer2=b, min_spread=spread):
            la, lb = state.layer(a), state.layer(b)
            return la is not None and lb is not None and abs(la.pan - lb.pan) >= spread
        case LayerActive(layer=layer_id):
            layer = state.layer(layer_id)
            return layer is not None and state.audible(layer)
        case LayerMuted(layer=layer_id):
            layer = state.layer(layer_id)
            return layer is None or not state.audible(layer)
        case LayerRelativeLevel(louder=a, quieter=b, min_difference=diff):
            loud, quiet = _level(state, a), _level(state, b)
            if loud is None:
                return False
            if quiet is None:
                return True
            gap = loud - quiet
            return gap > 0 and gap >= diff
        case LayerPanPosition(layer=layer_id, position=pos, tolerance=tol):
            layer = state.layer(layer_id)
            if layer is None:
                return False
            if pos == "center":
                return abs(layer.pan) <= tol
            return layer.pan <= -tol if pos == "left" else layer.pan >= tol
    return False


def describe_goal(goal: ProductionGoal) -> str:
    match goal:
        case LevelOrder(layers=order):
            return " > ".join(order)
        case LayerPanSpread(layer1=a, layer2=b, min_spread=spread):
            return f"{a} and {b} spread at least {spread:g}"
        case LayerActive(layer=layer_id):
            return f"{layer_id} audible"
        case LayerMuted(layer=layer_id):
            return f"{layer_id} muted"
        case LayerRelativeLevel(louder=a, quieter=b):
            return f"{a} louder than {b}"
        case LayerPanPosition(layer=layer_id, position=pos):
            return f"{layer_id} panned {pos}"
    return goal.type


# ── Evaluator ────────────────────────────────────────────


def evaluate_production(target: ProductionTarget, actual: ProductionState) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()
    for layer_target in target.layers:
        layer = actual.layer(layer_target.id)
        audible = layer is not None and actual.audible(layer)
        score, feedback = score_layer(layer_target, layer, audible)
        breakdown.add(f"layer.{layer_target.id}", score, feedback)

    results = [ConditionResult(describe_goal(g), check_goal(g, actual)) for g in target.goals]
    add_conditions_axis(breakdown, results)
    return breakdown
