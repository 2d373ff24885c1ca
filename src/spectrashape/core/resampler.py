"""
Analysis-bin to display-bin resampling.

Maps the N analyser bins onto W display bins through a monotonic
perceptual warp that spends more display resolution on low frequencies.
"""

from functools import lru_cache

import numpy as np

from spectrashape.core.config import ShapingConfig
from spectrashape.core.frame import SpectrumFrame

# Smallest dB window accepted before the normalization saturates.
DB_SPAN_EPSILON = 1e-6


@lru_cache(maxsize=32)
def source_indices(n_bins: int, width: int, gamma: float) -> np.ndarray:
    """
    Nearest source bin for every display bin.

    Args:
        n_bins: Number of analyser bins (N >= 1).
        width: Number of display bins (W >= 1).
        gamma: Warp exponent; values above 1 favour low frequencies.

    Returns:
        Read-only int array of length W with values in [0, N-1].
    """
    x = (np.arange(width, dtype=np.float64) + 0.5) / width
    warped = np.power(x, gamma)
    idx = np.floor(warped * (n_bins - 1) + 0.5).astype(np.intp)
    idx = np.clip(idx, 0, n_bins - 1)
    idx.setflags(write=False)
    return idx


def normalize(values: np.ndarray, is_float_db: bool, min_db: float, max_db: float) -> np.ndarray:
    """
    Convert analyser magnitudes to [0, 1].

    dB input is mapped through the fixed window ``[min_db, max_db]``;
    bytes are divided by 255; normalized floats are clamped.
    """
    if is_float_db:
        span = max(max_db - min_db, DB_SPAN_EPSILON)
        raw = (values.astype(np.float32) - np.float32(min_db)) / np.float32(span)
    elif values.dtype == np.uint8:
        raw = values.astype(np.float32) / np.float32(255.0)
    else:
        raw = values.astype(np.float32)
    # NaN from a misbehaving source reads as silence
    return np.clip(np.nan_to_num(raw, nan=0.0, posinf=1.0, neginf=0.0), 0.0, 1.0)


def resample(
    frame: SpectrumFrame,
    width: int,
    config: ShapingConfig,
    gamma: float = 1.0,
) -> np.ndarray:
    """
    Produce one normalized raw value per display bin.

    N < W is legal and upsamples by repeating the nearest bin.

    Args:
        frame: Analyser snapshot.
        width: Display bin count.
        config: Supplies the dB window.
        gamma: Perceptual warp exponent of the active weighting strategy.

    Returns:
        float32 array of length ``width`` in [0, 1].
    """
    idx = source_indices(frame.n_bins, width, float(gamma))
    return normalize(frame.bins[idx], frame.is_float_db, config.min_db, config.max_db)
