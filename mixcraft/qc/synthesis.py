"""MIXCRAFT QC Synthesis — subtractive, FM and additive patch matching.

Target and actual patches share one shape per engine. A ``None`` field on
the target means "not part of this challenge" and is excluded; a ``None``
on the actual side scores zero for that parameter.
"""

from __future__ import annotations

import math
from typing import Literal

import numpy as np
from pydantic import BaseModel, Field

from mixcraft.qc.scoring import AxisAccumulator, ScoreBreakdown, ScoringPolicy, StarBands, log_similarity

# ── Tolerances ───────────────────────────────────────────

OCTAVE_TOLERANCE = 2.0  # octave switch steps
DETUNE_TOLERANCE = 100.0  # cents
CUTOFF_OCTAVES = 2.0
RESONANCE_TOLERANCE = 10.0
TIME_OCTAVES = 2.0  # envelope segment times
ATTACK_OCTAVES = 1.0
SUSTAIN_TOLERANCE = 1.0
ENV_AMOUNT_TOLERANCE = 4.0  # octaves of filter sweep
LFO_RATE_OCTAVES = 2.0
DEPTH_TOLERANCE = 1.0
MIX_TOLERANCE = 0.5
HARMONICITY_OCTAVES = 1.0
MOD_INDEX_TOLERANCE = 5.0
HARMONIC_TOLERANCE = 0.5
HARMONIC_COUNT = 16

RELATED_WAVEFORMS = (frozenset({"sine", "triangle"}), frozenset({"sawtooth", "square"}))
RELATED_FILTERS = (frozenset({"lowpass", "bandpass"}), frozenset({"highpass", "bandpass"}))

SYNTH_STARS = StarBands(one=60.0, two=80.0, three=95.0)

SUBTRACTIVE_POLICY = ScoringPolicy(
    weights={
        "filter": 0.25,
        "oscillator": 0.2,
        "brightness": 0.15,
        "envelope": 0.15,
        "attack": 0.1,
        "filter_envelope": 0.05,
        "lfo": 0.05,
        "effects": 0.05,
    },
    pass_threshold=60.0,
    star_bands=SYNTH_STARS,
)
FM_POLICY = ScoringPolicy(
    weights={
        "harmonicity": 0.3,
        "modulation_index": 0.25,
        "brightness": 0.15,
        "envelope": 0.15,
        "waveforms": 0.15,
    },
    pass_threshold=60.0,
    star_bands=SYNTH_STARS,
)
ADDITIVE_POLICY = ScoringPolicy(
    weights={"harmonics": 0.5, "brightness": 0.25, "envelope": 0.25},
    pass_threshold=60.0,
    star_bands=SYNTH_STARS,
)

Waveform = Literal["sine", "square", "sawtooth", "triangle"]
FilterType = Literal["lowpass", "highpass", "bandpass", "notch"]


# ── Patches ──────────────────────────────────────────────


class Envelope(BaseModel):
    """ADSR in seconds (sustain is a 0–1 level)."""

    attack: float | None = None
    decay: float | None = None
    sustain: float | None = Field(default=None, ge=0.0, le=1.0)
    release: float | None = None


class SubtractivePatch(BaseModel):
    domain: Literal["subtractive"] = "subtractive"
    oscillator_type: Waveform | None = None
    octave: int | None = None
    detune: float | None = None
    filter_type: FilterType | None = None
    filter_cutoff: float | None = Field(default=None, gt=0)
    filter_resonance: float | None = None
    filter_env_amount: float | None = None
    filter_env_attack: float | None = None
    filter_env_decay: float | None = None
    filter_env_sustain: float | None = Field(default=None, ge=0.0, le=1.0)
    amp_envelope: Envelope = Field(default_factory=Envelope)
    lfo_waveform: Waveform | None = None
    lfo_rate: float | None = None
    lfo_depth: float | None = None
    reverb_mix: float | None = None
    delay_mix: float | None = None
    distortion_amount: float | None = None


class FMPatch(BaseModel):
    domain: Literal["fm"] = "fm"
    carrier_type: Waveform | None = None
    modulator_type: Waveform | None = None
    harmonicity: float | None = Field(default=None, gt=0)
    modulation_index: float | None = Field(default=None, ge=0)
    amp_envelope: Envelope = Field(default_factory=Envelope)


class AdditivePatch(BaseModel):
    domain: Literal["additive"] = "additive"
    harmonics: list[float] | None = Field(default=None, max_length=HARMONIC_COUNT)
    amp_envelope: Envelope = Field(default_factory=Envelope)


# ── Shared Axes ──────────────────────────────────────────


def _envelope_axis(target: Envelope, actual: Envelope, include_attack: bool = True) -> AxisAccumulator:
    acc = AxisAccumulator("envelope")
    if include_attack:
        acc.log("attack", actual.attack, target.attack, TIME_OCTAVES)
    acc.log("decay", actual.decay, target.decay, TIME_OCTAVES)
    acc.linear("sustain", actual.sustain, target.sustain, SUSTAIN_TOLERANCE)
    acc.log("release", actual.release, target.release, TIME_OCTAVES)
    return acc


def steady_state_cutoff(patch: SubtractivePatch, with_envelope: bool = True) -> float | None:
    """Cutoff the filter settles at while a note is held."""
    if patch.filter_cutoff is None:
        return None
    if not with_envelope:
        return patch.filter_cutoff
    amount = patch.filter_env_amount or 0.0
    sustain = patch.filter_env_sustain if patch.filter_env_sustain is not None else 0.0
    return patch.filter_cutoff * 2.0 ** (amount * sustain)


# ── Evaluators ───────────────────────────────────────────


def evaluate_subtractive(target: SubtractivePatch, actual: SubtractivePatch) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()

    osc = AxisAccumulator("oscillator")
    osc.category("waveform", actual.oscillator_type, target.oscillator_type, RELATED_WAVEFORMS)
    osc.linear("octave", actual.octave, target.octave, OCTAVE_TOLERANCE)
    osc.linear("detune", actual.detune, target.detune, DETUNE_TOLERANCE)
    osc.emit(breakdown)

    flt = AxisAccumulator("filter")
    flt.category("filter type", actual.filter_type, target.filter_type, RELATED_FILTERS)
    flt.log("cutoff", actual.filter_cutoff, target.filter_cutoff, CUTOFF_OCTAVES)
    flt.linear("resonance", actual.filter_resonance, target.filter_resonance, RESONANCE_TOLERANCE)
    flt.emit(breakdown)

    # the envelope term only counts when the target scores the filter envelope
    with_envelope = target.filter_env_amount is not None
    target_bright = steady_state_cutoff(target, with_envelope)
    if target_bright is not None:
        actual_bright = steady_state_cutoff(actual, with_envelope)
        sim = 0.0 if actual_bright is None else log_similarity(actual_bright, target_bright, CUTOFF_OCTAVES)
        bright = AxisAccumulator("brightness")
        bright.value("brightness", sim)
        bright.emit(breakdown)

    attack = AxisAccumulator("attack")
    attack.log("attack", actual.amp_envelope.attack, target.amp_envelope.attack, ATTACK_OCTAVES)
    attack.emit(breakdown)

    _envelope_axis(target.amp_envelope, actual.amp_envelope, include_attack=False).emit(breakdown)

    fenv = AxisAccumulator("filter_envelope")
    fenv.linear("env amount", actual.filter_env_amount, target.filter_env_amount, ENV_AMOUNT_TOLERANCE)
    fenv.log("env attack", actual.filter_env_attack, target.filter_env_attack, TIME_OCTAVES)
    fenv.log("env decay", actual.filter_env_decay, target.filter_env_decay, TIME_OCTAVES)
    fenv.linear("env sustain", actual.filter_env_sustain, target.filter_env_sustain, SUSTAIN_TOLERANCE)
    fenv.emit(breakdown)

    lfo = AxisAccumulator("lfo")
    lfo.category("lfo shape", actual.lfo_waveform, target.lfo_waveform, RELATED_WAVEFORMS)
    lfo.log("lfo rate", actual.lfo_rate, target.lfo_rate, LFO_RATE_OCTAVES)
    lfo.linear("lfo depth", actual.lfo_depth, target.lfo_depth, DEPTH_TOLERANCE)
    lfo.emit(breakdown)

    fx = AxisAccumulator("effects")
    fx.linear("reverb", actual.reverb_mix, target.reverb_mix, MIX_TOLERANCE)
    fx.linear("delay", actual.delay_mix, target.delay_mix, MIX_TOLERANCE)
    fx.linear("distortion", actual.distortion_amount, target.distortion_amount, MIX_TOLERANCE)
    fx.emit(breakdown)

    return breakdown


def sideband_spread(patch: FMPatch) -> float | None:
    """Rough spectral reach of an FM voice (Carson's rule, in carrier units)."""
    if patch.harmonicity is None or patch.modulation_index is None:
        return None
    return patch.harmonicity * (patch.modulation_index + 1.0)


def evaluate_fm(target: FMPatch, actual: FMPatch) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()

    harm = AxisAccumulator("harmonicity")
    harm.log("harmonicity", actual.harmonicity, target.harmonicity, HARMONICITY_OCTAVES)
    harm.emit(breakdown)

    index = AxisAccumulator("modulation_index")
    index.linear("modulation index", actual.modulation_index, target.modulation_index, MOD_INDEX_TOLERANCE)
    index.emit(breakdown)

    waves = AxisAccumulator("waveforms")
    waves.category("carrier", actual.carrier_type, target.carrier_type, RELATED_WAVEFORMS)
    waves.category("modulator", actual.modulator_type, target.modulator_type, RELATED_WAVEFORMS)
    waves.emit(breakdown)

    target_spread = sideband_spread(target)
    if target_spread is not None:
        actual_spread = sideband_spread(actual)
        bright = AxisAccumulator("brightness")
        bright.value(
            "sideband spread",
            0.0 if actual_spread is None else log_similarity(actual_spread, target_spread, CUTOFF_OCTAVES),
        )
        bright.emit(breakdown)

    _envelope_axis(target.amp_envelope, actual.amp_envelope).emit(breakdown)
    return breakdown


def _padded(harmonics: list[float] | None) -> np.ndarray:
    values = np.zeros(HARMONIC_COUNT, dtype=np.float64)
    if harmonics:
        values[: len(harmonics)] = np.clip(harmonics, 0.0, 1.0)
    return values


def harmonic_centroid(harmonics: list[float] | None) -> float:
    """Amplitude-weighted mean partial number (1 = fundamental)."""
    amps = _padded(harmonics)
    total = float(amps.sum())
    if total == 0.0:
        return 0.0
    return float(np.dot(np.arange(1, HARMONIC_COUNT + 1), amps) / total)


def evaluate_additive(target: AdditivePatch, actual: AdditivePatch) -> ScoreBreakdown:
    breakdown = ScoreBreakdown()

    if target.harmonics is not None:
        distance = float(np.mean(np.abs(_padded(target.harmonics) - _padded(actual.harmonics))))
        harm = AxisAccumulator("harmonics")
        harm.value("partial amplitudes", 1.0 - distance / HARMONIC_TOLERANCE if actual.harmonics is not None else 0.0)
        harm.emit(breakdown)

        target_centroid = harmonic_centroid(target.harmonics)
        actual_centroid = harmonic_centroid(actual.harmonics)
        bright = AxisAccumulator("brightness")
        if math.isclose(target_centroid, actual_centroid):
            bright.value("spectral centroid", 1.0)
        else:
            bright.value("spectral centroid", log_similarity(actual_centroid, target_centroid, ATTACK_OCTAVES))
        bright.emit(breakdown)

    _envelope_axis(target.amp_envelope, actual.amp_envelope).emit(breakdown)
    return breakdown
