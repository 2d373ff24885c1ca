"""
Beat accent and output quantization.
"""

from functools import lru_cache

import numpy as np

from spectrashape.core.config import ShapingConfig
from spectrashape.core.frame import BEAT_GATE_FRAMES, ShapingState

# Accent weight at the highest display bin (the lowest bin always gets 1.0).
ACCENT_TOP_WEIGHT = 0.25


@lru_cache(maxsize=8)
def accent_weights(width: int) -> np.ndarray:
    """Bass-leaning accent weighting, 1.0 at the bottom falling to 0.25 at the top."""
    positions = np.arange(width, dtype=np.float64) / max(1, width - 1)
    weights = (1.0 - (1.0 - ACCENT_TOP_WEIGHT) * np.sqrt(positions)).astype(np.float32)
    weights.setflags(write=False)
    return weights


def trigger(state: ShapingState, config: ShapingConfig, beat: bool) -> bool:
    """
    Arm the accent on a beat, at most once per gate interval.

    Returns:
        True when the beat was accepted.
    """
    state.frames_since_beat += 1
    if not (beat and config.beat_boost_enabled):
        return False
    if state.frames_since_beat < BEAT_GATE_FRAMES:
        return False
    state.accent = config.beat_boost
    state.frames_since_beat = 0
    return True


def process(leveled: np.ndarray, config: ShapingConfig, state: ShapingState, beat: bool) -> np.ndarray:
    """
    Add the decaying beat accent to the leveled spectrum.

    The accent decays by the envelope ``release`` rate each frame, so a
    single beat fades within the release time constant.
    """
    trigger(state, config, beat)
    if not config.beat_boost_enabled:
        state.accent = 0.0
    if state.accent <= 0.0:
        return leveled
    accented = np.clip(leveled + state.accent * accent_weights(state.width), 0.0, 1.0)
    state.accent *= 1.0 - config.release
    if state.accent < 1e-4:
        state.accent = 0.0
    return accented


def quantize(values: np.ndarray, out: np.ndarray) -> np.ndarray:
    """Round [0, 1] values to bytes in place."""
    scaled = np.floor(np.clip(values, 0.0, 1.0) * 255.0 + 0.5)
    out[:] = np.clip(scaled, 0, 255).astype(np.uint8)
    return out
