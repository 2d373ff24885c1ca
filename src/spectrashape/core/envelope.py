"""
Temporal envelope shaping.

Fast-rise / slow-decay smoothing per display bin, noise floor removal,
peak emphasis, and a light 3-tap spatial pass across neighbouring bins.
"""

import numpy as np

from spectrashape.core.config import ShapingConfig, SpatialKernel
from spectrashape.core.frame import ShapingState

# (left, centre, right) weights
SPATIAL_KERNELS = {
    SpatialKernel.NARROW: (0.05, 0.90, 0.05),
    SpatialKernel.WIDE: (0.25, 0.50, 0.25),
}


def follow(current, target, attack, release):
    """
    Asymmetric exponential step of ``current`` towards ``target``.

    Moves by ``attack`` of the gap when the target is above, by
    ``release`` otherwise. Works on scalars and arrays; ``attack`` and
    ``release`` may be per-element arrays.
    """
    rate = np.where(target > current, attack, release)
    return current + (target - current) * rate


def shape_peaks(envelope: np.ndarray, noise_floor: float, peak_curve: float) -> np.ndarray:
    """Subtract the noise floor, rescale to [0, 1], then apply the peak curve."""
    floored = (envelope - noise_floor) / max(1.0 - noise_floor, 1e-6)
    return np.power(np.clip(floored, 0.0, 1.0), peak_curve)


def spatial_smooth(values: np.ndarray, kernel: SpatialKernel, out: np.ndarray | None = None) -> np.ndarray:
    """
    3-tap smoothing across neighbouring bins; edge bins reuse themselves.

    Args:
        values: Per-bin values.
        kernel: Kernel selection.
        out: Optional destination array of the same length.

    Returns:
        Smoothed array (``out`` when given).
    """
    w_left, w_centre, w_right = SPATIAL_KERNELS[kernel]
    padded = np.pad(values, 1, mode="edge")
    smoothed = w_left * padded[:-2] + w_centre * padded[1:-1] + w_right * padded[2:]
    if out is None:
        return smoothed.astype(np.float32)
    out[:] = smoothed
    return out


def process(raw: np.ndarray, config: ShapingConfig, state: ShapingState) -> np.ndarray:
    """
    Advance the per-bin envelope by one frame and shape it.

    Updates ``state.envelope`` and ``state.spatial`` in place.

    Returns:
        ``state.spatial``.
    """
    state.envelope[:] = follow(state.envelope, raw, config.attack, config.release)
    shaped = shape_peaks(state.envelope, config.noise_floor, config.peak_curve)
    return spatial_smooth(shaped, config.spatial_kernel, out=state.spatial)
