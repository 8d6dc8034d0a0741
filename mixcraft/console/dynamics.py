"""MIXCRAFT Dynamics — static compressor transfer function.

Pure level math in dBFS: the soft-knee compression law, its inverse
(estimate the input level that produced an observed gain reduction) and a
vectorised curve used to score compressor-matching challenges.
"""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt

# ── Constants ────────────────────────────────────────────

MIN_LEVEL_DB = -60.0
MAX_LEVEL_DB = 0.0
DEFAULT_KNEE_DB = 6.0
MAX_RATIO = 20.0


# ── Transfer Function ────────────────────────────────────


def output_level(input_db: float, threshold_db: float, ratio: float, knee_db: float = 0.0) -> float:
    """Compressed output level for a static input level.

    Below the knee the signal passes untouched, above it the classic
    ``threshold + (in - threshold) / ratio`` law applies, and inside the
    knee a quadratic blends the two with matching value and slope.
    """
    if ratio <= 1.0:
        return input_db

    knee = max(knee_db, 0.0)
    half = knee / 2.0
    if input_db < threshold_db - half:
        return input_db
    if input_db > threshold_db + half or knee == 0.0:
        if input_db <= threshold_db:
            return input_db
        return threshold_db + (input_db - threshold_db) / ratio

    x = input_db - threshold_db + half
    slope = 1.0 - 1.0 / ratio
    return input_db - slope / (2.0 * knee) * x * x


def gain_reduction(input_db: float, threshold_db: float, ratio: float, knee_db: float = 0.0) -> float:
    """Gain change applied at this input level (always <= 0 dB)."""
    return output_level(input_db, threshold_db, ratio, knee_db) - input_db


def estimate_input_from_gain_reduction(
    gain_reduction_db: float,
    threshold_db: float,
    ratio: float,
) -> float:
    """Invert the hard-knee law: which input level produced this reduction?

    Zero (or non-finite) reduction or a ratio of 1 cannot locate the input
    above threshold, so these map back to the threshold itself. Results are
    clamped to the meter range.
    """
    if ratio <= 1.0 or gain_reduction_db == 0.0 or not math.isfinite(gain_reduction_db):
        return threshold_db

    slope = 1.0 - 1.0 / ratio if math.isfinite(ratio) else 1.0
    estimate = threshold_db + abs(gain_reduction_db) / slope
    return float(min(max(estimate, MIN_LEVEL_DB), MAX_LEVEL_DB))


def amount_to_ratio(amount: float) -> float:
    """Map the 0–100 % "amount" control onto a 1:1 … 20:1 ratio."""
    amount = min(max(amount, 0.0), 100.0)
    return 1.0 + amount / 100.0 * (MAX_RATIO - 1.0)


# ── Curves ───────────────────────────────────────────────


def transfer_curve(
    levels: npt.ArrayLike,
    threshold_db: float,
    ratio: float,
    knee_db: float = DEFAULT_KNEE_DB,
) -> npt.NDArray[np.float64]:
    """Vectorised :func:`output_level` over an array of input levels."""
    x_in = np.asarray(levels, dtype=np.float64)
    if ratio <= 1.0:
        return x_in.copy()

    knee = max(knee_db, 0.0)
    half = knee / 2.0
    slope = 1.0 - 1.0 / ratio
    above = threshold_db + (x_in - threshold_db) / ratio

    if knee == 0.0:
        return np.where(x_in > threshold_db, above, x_in)

    x = x_in - threshold_db + half
    inside = x_in - slope / (2.0 * knee) * x * x
    return np.where(
        x_in < threshold_db - half,
        x_in,
        np.where(x_in > threshold_db + half, above, inside),
    )


def curve_distance(
    target: tuple[float, float],
    actual: tuple[float, float],
    knee_db: float = DEFAULT_KNEE_DB,
    points: int = 61,
) -> float:
    """Mean absolute difference (dB) between two (threshold, ratio) curves."""
    levels = np.linspace(MIN_LEVEL_DB, MAX_LEVEL_DB, points)
    t_curve = transfer_curve(levels, target[0], target[1], knee_db)
    a_curve = transfer_curve(levels, actual[0], actual[1], knee_db)
    return float(np.mean(np.abs(t_curve - a_curve)))
