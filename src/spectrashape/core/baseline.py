"""
Baseline removal.

Two independent debiasing passes over the spatially smoothed spectrum:
a global baseline read from a per-frame histogram percentile, and a
slow per-bin floor that exposes only the transient part of each bin.
"""

import numpy as np

from spectrashape.core.config import ShapingConfig
from spectrashape.core.envelope import follow
from spectrashape.core.frame import ShapingState

# Fraction of display bins (from the bottom) using the low-region floor rates.
LOW_REGION = 0.20


def build_histogram(values: np.ndarray, out: np.ndarray) -> np.ndarray:
    """
    Count values over [0, 1] into ``len(out)`` buckets.

    Bucket ``b = min(B-1, floor(v * (B-1)))``, so only an exact 1.0 lands
    in the top bucket.
    """
    top = out.size - 1
    buckets = np.minimum(top, np.floor(np.clip(values, 0.0, 1.0) * top)).astype(np.intp)
    counts = np.bincount(buckets, minlength=out.size)[: out.size]
    # Saturate instead of wrapping when the counts outgrow the dtype
    if np.issubdtype(out.dtype, np.integer):
        counts = np.minimum(counts, np.iinfo(out.dtype).max)
    out[:] = counts
    return out


def percentile_baseline(histogram: np.ndarray, count: int, percentile: float) -> float:
    """
    Normalized bucket index at which the running count reaches the percentile.

    Args:
        histogram: Bucket counts.
        count: Total number of values histogrammed (W).
        percentile: Fraction of values to accumulate, 0..1.

    Returns:
        Baseline level in [0, 1].
    """
    target = int(np.floor(count * percentile))
    cumulative = np.cumsum(histogram, dtype=np.int64)
    idx = int(np.searchsorted(cumulative, target, side="left"))
    idx = min(max(idx, 0), histogram.size - 1)
    return idx / max(1, histogram.size - 1)


def region_params(config: ShapingConfig, positions: np.ndarray):
    """Per-bin floor attack, release and strength for the low/high split."""
    is_low = positions < LOW_REGION
    attack = np.where(is_low, config.floor_atk_low, config.floor_atk_hi)
    release = np.where(is_low, config.floor_rel_low, config.floor_rel_hi)
    strength = np.where(is_low, config.floor_strength_low, config.floor_strength_hi)
    return attack, release, strength


def update_bin_floor(spatial: np.ndarray, config: ShapingConfig, state: ShapingState) -> np.ndarray:
    """
    Track the slow per-bin floor and return the transient above it.

    The floor keeps following the spectrum while the subtraction is
    disabled, so toggling ``useBinFloor`` does not start from a stale floor.
    """
    attack, release, strength = region_params(config, state.bin_positions)
    state.bin_floor[:] = follow(state.bin_floor, spatial, attack, release)
    if not config.use_bin_floor:
        return spatial
    return np.maximum(0.0, spatial - state.bin_floor * strength)


def process(spatial: np.ndarray, config: ShapingConfig, state: ShapingState) -> np.ndarray:
    """
    Remove both baselines from the smoothed spectrum.

    Updates ``state.histogram`` and ``state.bin_floor``.

    Returns:
        Debiased per-bin values, >= 0.
    """
    build_histogram(spatial, state.histogram)
    baseline = percentile_baseline(state.histogram, state.width, config.baseline_percentile)
    transient = update_bin_floor(spatial, config, state)
    return np.maximum(0.0, transient - baseline * config.baseline_strength)
