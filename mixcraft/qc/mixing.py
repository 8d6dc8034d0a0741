"""MIXCRAFT QC Mixing — EQ, compressor and multi-track goal evaluation.

Three target styles can be combined in one challenge:
  exact:      per-band EQ gains and compressor settings, tolerance-banded
  problem:    acceptable ranges ("cut the mud by at least 3 dB")
  conditions: relational multi-track goals, folded into one
              ``conditions`` axis as a satisfaction ratio
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

from mixcraft.console.dynamics import DEFAULT_KNEE_DB, amount_to_ratio, curve_distance
from mixcraft.qc.scoring import (
    ConditionResult,
    ScoreBreakdown,
    ScoringPolicy,
    StarBands,
    linear_similarity,
    range_similarity,
    tolerance_similarity,
)

# ── Tolerances ───────────────────────────────────────────

EQ_TOLERANCE = 3.0  # dB
THRESHOLD_TOLERANCE = 6.0  # dB
AMOUNT_TOLERANCE = 15.0  # %
ATTACK_TOLERANCE = 0.05  # s
RELEASE_TOLERANCE = 0.1  # s
CURVE_TOLERANCE = 6.0  # mean dB between transfer curves

EQ_RANGE_FALLOFF = 6.0
AMOUNT_RANGE_FALLOFF = 15.0

PAN_TOLERANCE = 0.15
BALANCE_TOLERANCE = 3.0
SEPARATION_DB = 3.0

# Reverb send (0–100) that reads as each depth plane; bands overlap on purpose.
DEPTH_BANDS: dict[str, tuple[float, float]] = {
    "front": (0.0, 25.0),
    "middle": (20.0, 50.0),
    "back": (40.0, 100.0),
}

MIXING_POLICY = ScoringPolicy(pass_threshold=60.0, star_bands=StarBands(one=60.0, two=75.0, three=90.0))

Band = Literal["low", "mid", "high"]
BANDS: tuple[Band, ...] = ("low", "mid", "high")


# ── State ────────────────────────────────────────────────


class EQSettings(BaseModel):
    low: float = 0.0
    mid: float = 0.0
    high: float = 0.0

    def gain(self, band: Band) -> float:
        return float(getattr(self, band))


class CompressorSettings(BaseModel):
    threshold: float = 0.0  # dBFS
    amount: float = 0.0  # %, maps to ratio
    attack: float | None = None
    release: float | None = None


class TrackMix(BaseModel):
    """One channel strip of a multi-track session."""

    volume: float = 0.0  # dB
    pan: float = Field(default=0.0, ge=-1.0, le=1.0)
    low: float = 0.0
    mid: float = 0.0
    high: float = 0.0
    reverb_mix: float = Field(default=0.0, ge=0.0, le=100.0)
    compressor_amount: float | None = None

    def gain(self, band: Band) -> float:
        return float(getattr(self, band))


class MixState(BaseModel):
    """User's current mixer: master EQ/compressor plus optional track strips."""

    domain: Literal["mixing"] = "mixing"
    eq: EQSettings = Field(default_factory=EQSettings)
    compressor: CompressorSettings = Field(default_factory=CompressorSettings)
    tracks: dict[str, TrackMix] = Field(default_factory=dict)


# ── Targets ──────────────────────────────────────────────


class Range(BaseModel):
    min: float | None = None
    max: float | None = None

    def contains(self, value: float) -> bool:
        return (self.min is None or value >= self.min) and (self.max is None or value <= self.max)


class EQTarget(BaseModel):
    low: float | None = None
    mid: float | None = None
    high: float | None = None


class CompressorTarget(BaseModel):
    threshold: float | None = None
    amount: float | None = None
    attack: float | None = None
    release: float | None = None


class ProblemTarget(BaseModel):
    """Range-based "fix this problem" target."""

    low: Range | None = None
    mid: Range | None = None
    high: Range | None = None
    threshold: Range | None = None
    amount: Range | None = None


class VolumeLouder(BaseModel):
    type: Literal["volume_louder"] = "volume_louder"
    track1: str
    track2: str
    min_difference: float = 0.0


class VolumeBalanced(BaseModel):
    type: Literal["volume_balanced"] = "volume_balanced"
    track1: str
    track2: str
    tolerance: float = BALANCE_TOLERANCE


class VolumeRange(BaseModel):
    type: Literal["volume_range"] = "volume_range"
    track: str
    min_db: float
    max_db: float


class PanPosition(BaseModel):
    type: Literal["pan_position"] = "pan_position"
    track: str
    position: Literal["left", "center", "right"]
    tolerance: float = PAN_TOLERANCE


class PanOpposite(BaseModel):
    type: Literal["pan_opposite"] = "pan_opposite"
    track1: str
    track2: str


class PanSpread(BaseModel):
    type: Literal["pan_spread"] = "pan_spread"
    track1: str
    track2: str
    min_spread: float


class DepthPlacement(BaseModel):
    type: Literal["depth_placement"] = "depth_placement"
    track: str
    depth: Literal["front", "middle", "back"]


class ReverbAmount(BaseModel):
    type: Literal["reverb_amount"] = "reverb_amount"
    track: str
    min_mix: float
    max_mix: float


class ReverbContrast(BaseModel):
    type: Literal["reverb_contrast"] = "reverb_contrast"
    dry_track: str
    wet_track: str
    min_difference: float


class TrackCompression(BaseModel):
    type: Literal["track_compression"] = "track_compression"
    track: str
    min_amount: float
    max_amount: float | None = None


class CompressionContrast(BaseModel):
    type: Literal["compression_contrast"] = "compression_contrast"
    more_compressed: str
    less_compressed: str
    min_difference: float


class BusCompression(BaseModel):
    type: Literal["bus_compression"] = "bus_compression"
    min_amount: float
    max_amount: float | None = None


class BusEQBoost(BaseModel):
    type: Literal["bus_eq_boost"] = "bus_eq_boost"
    band: Band
    min_boost: float


class BusEQCut(BaseModel):
    type: Literal["bus_eq_cut"] = "bus_eq_cut"
    band: Band
    min_cut: float


class EQBoost(BaseModel):
    type: Literal["eq_boost"] = "eq_boost"
    track: str
    band: Band
    min_boost: float


class EQCut(BaseModel):
    type: Literal["eq_cut"] = "eq_cut"
    track: str
    band: Band
    min_cut: float


class FrequencySeparation(BaseModel):
    type: Literal["frequency_separation"] = "frequency_separation"
    track1: str
    track2: str
    band: Band
    min_difference: float = SEPARATION_DB


class RelativeLevel(BaseModel):
    """``louder`` must sit above ``quieter``, optionally within one band."""

    type: Literal["relative_level"] = "relative_level"
    louder: str
    quieter: str
    band: Band | None = None


MixCondition = Annotated[
    VolumeLouder
    | VolumeBalanced
    | VolumeRange
    | PanPosition
    | PanOpposite
    | PanSpread
    | DepthPlacement
    | ReverbAmount
    | ReverbContrast
    | TrackCompression
    | CompressionContrast
    | BusCompression
    | BusEQBoost
    | BusEQCut
    | EQBoost
    | EQCut
    | FrequencySeparation
    | RelativeLevel,
    Field(discriminator="type"),
]


class MixingTarget(BaseModel):
    domain: Literal["mixing"] = "mixing"
    eq: EQTarget | None = None
    compressor: CompressorTarget | None = None
    problem: ProblemTarget | None = None
    conditions: list[MixCondition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_target_per_axis(self) -> MixingTarget:
        """An exact and a range target on the same parameter would share one axis."""
        if self.problem is None:
            return self
        clashes: list[str] = []
        if self.eq is not None:
            clashes += [
                f"eq.{band}"
                for band in BANDS
                if getattr(self.eq, band) is not None and getattr(self.problem, band) is not None
            ]
        if self.compressor is not None:
            clashes += [
                f"compressor.{name}"
                for name in ("threshold", "amount")
                if getattr(self.compressor, name) is not None and getattr(self.problem, name) is not None
            ]
        if clashes:
            raise ValueError(f"exact and range targets both set {', '.join(clashes)}")
        return self


# ── Condition Checks ─────────────────────────────────────


def _amount_in(value: float | None, low: float, high: float | None) -> bool:
    if value is None:
        return False
    return value >= low and (high is None or value <= high)


def _amount_label(low: float, high: float | None) -> str:
    return f"at {low:g}% to {high:g}%" if high is not None else f"at least {low:g}%"


def check_condition(condition: MixCondition, state: MixState) -> bool:
    """True when the mixer satisfies the goal; missing tracks fail."""
    tracks = state.tracks
    match condition:
        case VolumeLouder(track1=a, track2=b, min_difference=diff):
            if a not in tracks or b not in tracks:
                return False
            gap = tracks[a].volume - tracks[b].volume
            return gap > 0 and gap >= diff
        case VolumeBalanced(track1=a, track2=b, tolerance=tol):
            if a not in tracks or b not in tracks:
                return False
            return abs(tracks[a].volume - tracks[b].volume) <= tol
        case VolumeRange(track=t, min_db=lo, max_db=hi):
            return t in tracks and lo <= tracks[t].volume <= hi
        case PanPosition(track=t, position=pos, tolerance=tol):
            if t not in tracks:
                return False
            pan = tracks[t].pan
            if pos == "center":
                return abs(pan) <= tol
            if pos == "left":
                return pan <= -tol
            return pan >= tol
        case PanOpposite(track1=a, track2=b):
            if a not in tracks or b not in tracks:
                return False
            return tracks[a].pan * tracks[b].pan < 0
        case PanSpread(track1=a, track2=b, min_spread=spread):
            if a not in tracks or b not in tracks:
                return False
            return abs(tracks[a].pan - tracks[b].pan) >= spread
        case DepthPlacement(track=t, depth=depth):
            if t not in tracks:
                return False
            lo, hi = DEPTH_BANDS[depth]
            return lo <= tracks[t].reverb_mix <= hi
        case ReverbAmount(track=t, min_mix=lo, max_mix=hi):
            return t in tracks and lo <= tracks[t].reverb_mix <= hi
        case ReverbContrast(dry_track=dry, wet_track=wet, min_difference=diff):
            if dry not in tracks or wet not in tracks:
                return False
            return tracks[wet].reverb_mix - tracks[dry].reverb_mix >= diff
        case TrackCompression(track=t, min_amount=lo, max_amount=hi):
            return t in tracks and _amount_in(tracks[t].compressor_amount, lo, hi)
        case CompressionContrast(more_compressed=more, less_compressed=less, min_difference=diff):
            if more not in tracks or less not in tracks:
                return False
            hi_amt, lo_amt = tracks[more].compressor_amount, tracks[less].compressor_amount
            if hi_amt is None or lo_amt is None:
                return False
            return hi_amt - lo_amt >= diff
        case BusCompression(min_amount=lo, max_amount=hi):
            return _amount_in(state.compressor.amount, lo, hi)
        case BusEQBoost(band=band, min_boost=boost):
            return state.eq.gain(band) >= boost
        case BusEQCut(band=band, min_cut=cut):
            return state.eq.gain(band) <= -cut
        case EQBoost(track=t, band=band, min_boost=boost):
            return t in tracks and tracks[t].gain(band) >= boost
        case EQCut(track=t, band=band, min_cut=cut):
            return t in tracks and tracks[t].gain(band) <= -cut
        case FrequencySeparation(track1=a, track2=b, band=band, min_difference=diff):
            if a not in tracks or b not in tracks:
                return False
            return abs(tracks[a].gain(band) - tracks[b].gain(band)) >= diff
        case RelativeLevel(louder=a, quieter=b, band=band):
            if a not in tracks or b not in tracks:
                return False
            loud = tracks[a].volume + (tracks[a].gain(band) if band else 0.0)
            quiet = tracks[b].volume + (tracks[b].gain(band) if band else 0.0)
            return loud > quiet
    return False


def describe_condition(condition: MixCondition) -> str:
    """Short goal text shown next to the pass/fail tick."""
    match condition:
        case VolumeLouder(track1=a, track2=b, min_difference=diff):
            extra = f" by {diff:g} dB" if diff else ""
            return f"{a} louder than {b}{extra}"
        case VolumeBalanced(track1=a, track2=b, tolerance=tol):
            return f"{a} and {b} balanced within {tol:g} dB"
        case VolumeRange(track=t, min_db=lo, max_db=hi):
            return f"{t} volume between {lo:g} and {hi:g} dB"
        case PanPosition(track=t, position=pos):
            return f"{t} panned {pos}"
        case PanOpposite(track1=a, track2=b):
            return f"{a} and {b} panned to opposite sides"
        case PanSpread(track1=a, track2=b, min_spread=spread):
            return f"{a} and {b} spread at least {spread:g}"
        case DepthPlacement(track=t, depth=depth):
            return f"{t} placed at the {depth}"
        case ReverbAmount(track=t, min_mix=lo, max_mix=hi):
            return f"{t} reverb at {lo:g}% to {hi:g}%"
        case ReverbContrast(dry_track=dry, wet_track=wet, min_difference=diff):
            return f"{wet} at least {diff:g}% wetter than {dry}"
        case TrackCompression(track=t, min_amount=lo, max_amount=hi):
            return f"{t} compression {_amount_label(lo, hi)}"
        case CompressionContrast(more_compressed=more, less_compressed=less, min_difference=diff):
            return f"{more} compressed at least {diff:g}% more than {less}"
        case BusCompression(min_amount=lo, max_amount=hi):
            return f"bus compression {_amount_label(lo, hi)}"
        case BusEQBoost(band=band, min_boost=boost):
            return f"bus {band} boosted by {boost:g} dB"
        case BusEQCut(band=band, min_cut=cut):
            return f"bus {band} cut by {cut:g} dB"
        case EQBoost(track=t, band=band, min_boost=boost):
            return f"{t} {band} boosted by {boost:g} dB"
        case EQCut(track=t, band=band, min_cut=cut):
            return f"{t} {band} cut by {cut:g} dB"
        case FrequencySeparation(track1=a, track2=b, band=band):
            return f"{a} and {b} separated in the {band}"
        case RelativeLevel(louder=a, quieter=b, band=band):
            where = f" in the {band}" if band else ""
            return f"{a} louder than {b}{where}"
    return condition.type


def evaluate_conditions(conditions: list[MixCondition], state: MixState) -> list[ConditionResult]:
    return [ConditionResult(describe_condition(c), check_condition(c, state)) for c in conditions]


def add_conditions_axis(breakdown: ScoreBreakdown, results: list[ConditionResult]) -> None:
    """Fold pass/fail goals into a single satisfaction-ratio axis."""
    if not results:
        return
    met = sum(1 for r in results if r.passed)
    breakdown.conditions.extend(results)
    missed = [r.description for r in results if not r.passed]
    feedback = "All goals met" if not missed else "Missing: " + "; ".join(missed)
    breakdown.add("conditions", met / len(results) * 100.0, feedback)


# ── Evaluator ────────────────────────────────────────────


def _exact(breakdown: ScoreBreakdown, axis: str, actual: float | None, target: float | None, tol: float) -> None:
    if target is None:
        return
    if actual is None:
        breakdown.add(axis, 0.0, "Not set")
        return
    score = tolerance_similarity(actual, target, tol) * 100.0
    diff = actual - target
    feedback = "On target" if score >= 90 else f"{'Too high' if diff > 0 else 'Too low'} by {abs(diff):.2g}"
    breakdown.add(axis, score, feedback)


def _ranged(breakdown: ScoreBreakdown, axis: str, actual: float, target: Range | None, falloff: float) -> None:
    if target is None:
        return
    score = range_similarity(actual, target.min, target.max, falloff) * 100.0
    breakdown.add(axis, score, "In range" if target.contains(actual) else "Out of range")


def evaluate_mixing(target: MixingTarget, actual: MixState) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()

    if target.eq is not None:
        for band in BANDS:
            _exact(breakdown, f"eq.{band}", actual.eq.gain(band), getattr(target.eq, band), EQ_TOLERANCE)

    comp = target.compressor
    if comp is not None:
        _exact(breakdown, "compressor.threshold", actual.compressor.threshold, comp.threshold, THRESHOLD_TOLERANCE)
        _exact(breakdown, "compressor.amount", actual.compressor.amount, comp.amount, AMOUNT_TOLERANCE)
        _exact(breakdown, "compressor.attack", actual.compressor.attack, comp.attack, ATTACK_TOLERANCE)
        _exact(breakdown, "compressor.release", actual.compressor.release, comp.release, RELEASE_TOLERANCE)
        if comp.threshold is not None and comp.amount is not None:
            distance = curve_distance(
                (comp.threshold, amount_to_ratio(comp.amount)),
                (actual.compressor.threshold, amount_to_ratio(actual.compressor.amount)),
                knee_db=DEFAULT_KNEE_DB,
            )
            breakdown.add(
                "compressor.curve",
                linear_similarity(distance, 0.0, CURVE_TOLERANCE) * 100.0,
                f"Curves differ by {distance:.1f} dB on average",
            )

    problem = target.problem
    if problem is not None:
        for band in BANDS:
            _ranged(breakdown, f"eq.{band}", actual.eq.gain(band), getattr(problem, band), EQ_RANGE_FALLOFF)
        _ranged(breakdown, "compressor.threshold", actual.compressor.threshold, problem.threshold, EQ_RANGE_FALLOFF)
        _ranged(breakdown, "compressor.amount", actual.compressor.amount, problem.amount, AMOUNT_RANGE_FALLOFF)

    add_conditions_axis(breakdown, evaluate_conditions(target.conditions, actual))
    return breakdown
