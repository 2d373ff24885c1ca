"""
Automatic gain control.

A slow, bounded global gain driven by the frame peak. Asymmetric
smoothing keeps the spectrum from pumping on every loud frame while
still lifting quiet passages.
"""

import numpy as np

from spectrashape.core.config import ShapingConfig
from spectrashape.core.envelope import follow

# Frame peaks at or below this are treated as silence (gain falls back to 1).
PEAK_EPSILON = 1e-4


def desired_gain(frame_peak: float, config: ShapingConfig) -> float:
    """Instantaneous gain that would bring ``frame_peak`` to ``targetPeak``."""
    desired = config.target_peak / frame_peak if frame_peak > PEAK_EPSILON else 1.0
    return min(config.max_gain, max(config.min_gain, desired))


def update_gain(current: float, frame_peak: float, config: ShapingConfig) -> float:
    """
    Step the persisted gain towards the desired gain.

    The result is clamped to [minGain, maxGain], which also pulls a gain
    left over from a previous configuration back into range.
    """
    target = desired_gain(frame_peak, config)
    stepped = float(follow(current, target, config.agc_attack, config.agc_release))
    return min(config.max_gain, max(config.min_gain, stepped))


def level(weighted: np.ndarray, gain: float) -> np.ndarray:
    return np.clip(weighted * np.float32(gain), 0.0, 1.0)
