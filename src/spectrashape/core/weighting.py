"""
Frequency weighting / EQ.

Each weighting mode is a strategy that turns a configuration into a
per-bin linear gain curve. The curve only depends on the configuration,
the display width and the sample rate, so it is built once per
configuration and reused every frame.
"""

import abc
from functools import lru_cache

import numpy as np

from spectrashape.core.config import ShapingConfig, WeightingMode

# Gaussian FWHM in units of sigma
FWHM_TO_SIGMA = 2.355

SUB_SHELF_START_HZ = 120.0
SUB_SHELF_END_HZ = 220.0
TILT_CURVE = 0.55
HI_ROLLOFF_START_HZ = 4000.0


def db_to_linear(db):
    return np.power(10.0, np.asarray(db, dtype=np.float64) / 20.0)


def smoothstep(edge0: float, edge1: float, x):
    """Hermite smoothstep; a degenerate edge pair acts as a hard step."""
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / max(edge1 - edge0, 1e-9), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def kick_bell(freqs: np.ndarray, config: ShapingConfig) -> np.ndarray:
    """Gaussian boost in octaves around ``kickHz``."""
    octaves = np.log2(np.maximum(freqs, 1e-6) / config.kick_hz)
    sigma = config.kick_width_oct / FWHM_TO_SIGMA
    bell = np.exp(-(octaves * octaves) / (2.0 * sigma * sigma))
    return db_to_linear(config.kick_boost_db * bell)


def sub_shelf(freqs: np.ndarray, config: ShapingConfig) -> np.ndarray:
    """Lift below ~120 Hz, faded out by ~220 Hz."""
    amount = 1.0 - smoothstep(SUB_SHELF_START_HZ, SUB_SHELF_END_HZ, freqs)
    return db_to_linear(config.sub_shelf_db * amount)


def tilt(positions: np.ndarray, config: ShapingConfig) -> np.ndarray:
    """Power-curve ramp from ``tiltLo`` at the lowest bin to ``tiltHi`` at the highest."""
    return config.tilt_lo + (config.tilt_hi - config.tilt_lo) * np.power(positions, TILT_CURVE)


class WeightingStrategy(abc.ABC):
    """Resampler warp and EQ curve for one weighting mode."""

    mode: WeightingMode
    warp_gamma: float = 1.0

    def bin_frequencies(self, width: int, nyquist: float) -> np.ndarray:
        """Centre frequency in Hz assigned to each display bin."""
        return self.positions(width) * nyquist

    @staticmethod
    def positions(width: int) -> np.ndarray:
        return np.arange(width, dtype=np.float64) / max(1, width - 1)

    @abc.abstractmethod
    def gains(self, config: ShapingConfig, width: int, nyquist: float) -> np.ndarray:
        """Per-bin linear gain."""


class Fv2Weighting(WeightingStrategy):
    """Kick bell, sub shelf and tilt over a linear frequency axis."""

    mode = WeightingMode.FV2
    warp_gamma = 1.0

    def gains(self, config: ShapingConfig, width: int, nyquist: float) -> np.ndarray:
        freqs = self.bin_frequencies(width, nyquist)
        positions = self.positions(width)
        return sub_shelf(freqs, config) * kick_bell(freqs, config) * tilt(positions, config)


class AeWeighting(Fv2Weighting):
    """
    FV2 weighting plus a bass boost bell and a high-frequency rolloff.

    Bins are warped towards the lows, so the bin frequencies follow the
    same warp to keep the EQ aligned with what each bin actually samples.
    """

    mode = WeightingMode.AE
    warp_gamma = 1.3

    def bin_frequencies(self, width: int, nyquist: float) -> np.ndarray:
        return np.power(self.positions(width), self.warp_gamma) * nyquist

    def gains(self, config: ShapingConfig, width: int, nyquist: float) -> np.ndarray:
        freqs = self.bin_frequencies(width, nyquist)
        bass = np.exp(-0.5 * ((freqs - config.bass_freq_hz) / config.bass_width_hz) ** 2)
        rolloff = smoothstep(HI_ROLLOFF_START_HZ, nyquist, freqs)
        eq_db = config.bass_gain_db * bass + config.hi_rolloff_db * rolloff
        return super().gains(config, width, nyquist) * db_to_linear(eq_db)


STRATEGIES: dict[WeightingMode, WeightingStrategy] = {
    WeightingMode.AE: AeWeighting(),
    WeightingMode.FV2: Fv2Weighting(),
}


def strategy_for(mode: WeightingMode) -> WeightingStrategy:
    return STRATEGIES[WeightingMode(mode)]


@lru_cache(maxsize=16)
def resolve_gains(config: ShapingConfig, width: int, sample_rate: float) -> np.ndarray:
    """
    Per-bin gain curve for a configuration, cached per config load.

    Returns:
        Read-only float32 array of length ``width``.
    """
    strategy = strategy_for(config.weighting_mode)
    gains = strategy.gains(config, width, sample_rate * 0.5).astype(np.float32)
    gains.setflags(write=False)
    return gains


def apply(de_biased: np.ndarray, gains: np.ndarray, threshold: float) -> tuple[np.ndarray, float]:
    """
    Weight the debiased spectrum and gate it by the display threshold.

    Returns:
        Tuple of (weighted values >= 0, frame peak).
    """
    weighted = np.maximum(0.0, de_biased * gains - threshold).astype(np.float32)
    return weighted, float(weighted.max())
