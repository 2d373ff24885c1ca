"""
Spectrum shaping entry point.

Runs the six shaping stages once per call and owns the Idle/Active
lifecycle of a single visual effect's spectrum texture.
"""

import logging
import threading
from enum import Enum

import numpy as np

from spectrashape.core import accent, agc, baseline, envelope, resampler, weighting
from spectrashape.core.config import ShapingConfig
from spectrashape.core.frame import ShapingState, SpectrumFrame

logger = logging.getLogger(__name__)


def shape(
    frame: SpectrumFrame,
    config: ShapingConfig,
    state: ShapingState,
    beat_this_frame: bool = False,
) -> np.ndarray:
    """
    Transform one analyser snapshot into the display spectrum.

    Advances ``state`` exactly once. The returned array is
    ``state.output`` itself; copy it to keep a frame beyond the next call.

    Args:
        frame: Analyser snapshot for this frame.
        config: Parameters, read-only for the duration of the call.
        state: Pipeline memory, mutated in place.
        beat_this_frame: Whether the beat detector fired this frame.

    Returns:
        uint8 array of length ``state.width``.
    """
    strategy = weighting.strategy_for(config.weighting_mode)

    raw = resampler.resample(frame, state.width, config, strategy.warp_gamma)
    spatial = envelope.process(raw, config, state)
    de_biased = baseline.process(spatial, config, state)

    gains = weighting.resolve_gains(config, state.width, frame.sample_rate)
    weighted, frame_peak = weighting.apply(de_biased, gains, config.display_threshold)

    state.agc_gain = agc.update_gain(state.agc_gain, frame_peak, config)
    leveled = agc.level(weighted, state.agc_gain)

    leveled = accent.process(leveled, config, state, beat_this_frame)
    accent.quantize(leveled, out=state.output)
    state.frames_processed += 1
    return state.output


class ShaperMode(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class SpectrumShaper:
    """
    Owns one pipeline instance: its configuration, state and mode.

    Configuration updates may arrive from another thread through
    ``submit_config``/``patch_config``; they are parked in a single
    pending slot and applied at the start of the next ``process`` call,
    so a frame never mixes two configurations. Swapping configuration
    does not reset state.
    """

    def __init__(self, width: int = 512, config: ShapingConfig | None = None):
        """
        Initialize the shaper in the Idle state.

        Args:
            width: Display bin count (W), fixed for the shaper's lifetime.
            config: Initial configuration (defaults when omitted).
        """
        self.config = config or ShapingConfig()
        self.state = ShapingState.create(width)
        self.mode = ShaperMode.IDLE
        self._pending: ShapingConfig | None = None
        self._pending_lock = threading.Lock()

    @property
    def width(self) -> int:
        return self.state.width

    @property
    def output(self) -> np.ndarray:
        """Most recent display spectrum (held while Idle)."""
        return self.state.output

    @property
    def is_active(self) -> bool:
        return self.mode is ShaperMode.ACTIVE

    def activate(self):
        """Playback started or live input connected."""
        if self.mode is not ShaperMode.ACTIVE:
            logger.debug("Spectrum shaper active")
        self.mode = ShaperMode.ACTIVE

    def deactivate(self):
        """Playback paused/stopped or input disconnected; output is held."""
        if self.mode is not ShaperMode.IDLE:
            logger.debug("Spectrum shaper idle")
        self.mode = ShaperMode.IDLE

    def submit_config(self, config: ShapingConfig):
        """Queue a whole configuration (preset load) for the next frame."""
        with self._pending_lock:
            self._pending = config

    def patch_config(self, **changes) -> ShapingConfig:
        """
        Queue a partial edit of the most recent configuration.

        Returns:
            The patched configuration that will apply on the next frame.
        """
        with self._pending_lock:
            latest = self._pending or self.config
            self._pending = latest.patch(**changes)
            return self._pending

    def _apply_pending(self):
        # patch_config reads self.config under the same lock
        with self._pending_lock:
            pending, self._pending = self._pending, None
            if pending is None or pending == self.config:
                return
            self.config = pending
        logger.debug("Applying new shaping configuration")

    def process(self, frame: SpectrumFrame | None, beat: bool = False) -> np.ndarray:
        """
        Advance one frame.

        A ``None`` frame means the analyser is gone: the shaper drops to
        Idle and keeps showing the last output instead of flashing to zero.

        Args:
            frame: Analyser snapshot, or None when the source is lost.
            beat: Whether a beat was detected this frame.

        Returns:
            The display spectrum (uint8, length W).
        """
        self._apply_pending()

        if frame is None:
            if self.is_active:
                logger.warning("Analyser frame missing, holding last spectrum")
                self.deactivate()
            return self.state.output

        if not self.is_active:
            return self.state.output

        return shape(frame, self.config, self.state, beat)

    def reset(self):
        """Forget all temporal memory (used when an effect is re-activated)."""
        self.state.reset()
