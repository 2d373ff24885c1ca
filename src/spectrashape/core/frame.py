"""
Per-frame input and persistent pipeline state.
"""

from dataclasses import dataclass, field

import numpy as np

# Histogram resolution used by the percentile baseline.
HISTOGRAM_BUCKETS = 64

# Minimum number of frames between two accepted beat accents (~100ms at 60fps).
BEAT_GATE_FRAMES = 6

# Largest display width whose bin counts fit the uint16 histogram.
MAX_WIDTH = int(np.iinfo(np.uint16).max)


@dataclass(frozen=True, eq=False)
class SpectrumFrame:
    """
    One FFT magnitude snapshot supplied by the analyser each frame.

    ``bins`` are ordered by increasing frequency. When ``is_float_db`` is
    set they are decibel magnitudes. Otherwise integer arrays are byte
    magnitudes (0..255, clipped and stored as uint8) and float arrays are
    already normalized to 0..1.
    """

    bins: np.ndarray
    sample_rate: float
    is_float_db: bool = True

    def __post_init__(self):
        bins = np.array(self.bins, copy=True)
        if bins.ndim != 1 or bins.size == 0:
            raise ValueError("SpectrumFrame needs a non-empty 1-D bins array")
        if not (self.sample_rate > 0):
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.is_float_db and np.issubdtype(bins.dtype, np.integer):
            if bins.dtype != np.uint8:
                bins = np.clip(bins, 0, 255).astype(np.uint8)
        elif bins.dtype != np.float32:
            bins = bins.astype(np.float32)
        bins.setflags(write=False)
        object.__setattr__(self, "bins", bins)
        object.__setattr__(self, "sample_rate", float(self.sample_rate))

    @property
    def n_bins(self) -> int:
        return int(self.bins.size)

    @property
    def nyquist(self) -> float:
        return self.sample_rate * 0.5

    @classmethod
    def from_db(cls, bins, sample_rate: float) -> "SpectrumFrame":
        """Frame of decibel magnitudes."""
        return cls(bins=bins, sample_rate=sample_rate, is_float_db=True)

    @classmethod
    def from_bytes(cls, bins, sample_rate: float) -> "SpectrumFrame":
        """Frame of byte magnitudes; values outside 0..255 are clipped."""
        values = np.nan_to_num(np.asarray(bins, dtype=np.float64), nan=0.0)
        return cls(
            bins=np.clip(np.rint(values), 0, 255).astype(np.uint8),
            sample_rate=sample_rate,
            is_float_db=False,
        )


@dataclass(eq=False)
class ShapingState:
    """
    Mutable memory carried between frames by one pipeline instance.

    All per-bin arrays share the fixed display width chosen at creation.
    """

    width: int
    envelope: np.ndarray
    spatial: np.ndarray
    bin_floor: np.ndarray
    histogram: np.ndarray
    output: np.ndarray
    # Unity is the neutral starting gain; the AGC clamps it into
    # [minGain, maxGain] on the first processed frame.
    agc_gain: float = 1.0
    accent: float = 0.0
    frames_since_beat: int = BEAT_GATE_FRAMES
    frames_processed: int = 0
    bin_positions: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        # Normalized position of each display bin, 0 at the lowest, 1 at the highest.
        self.bin_positions = np.arange(self.width, dtype=np.float64) / max(1, self.width - 1)

    @classmethod
    def create(cls, width: int = 512) -> "ShapingState":
        """
        Allocate zero-initialized state for ``width`` display bins.

        Args:
            width: Number of display bins (W), 1..MAX_WIDTH.

        Returns:
            Fresh ShapingState.
        """
        width = int(width)
        if not 1 <= width <= MAX_WIDTH:
            raise ValueError(f"width must be in [1, {MAX_WIDTH}], got {width}")
        return cls(
            width=width,
            envelope=np.zeros(width, dtype=np.float32),
            spatial=np.zeros(width, dtype=np.float32),
            bin_floor=np.zeros(width, dtype=np.float32),
            histogram=np.zeros(HISTOGRAM_BUCKETS, dtype=np.uint16),
            output=np.zeros(width, dtype=np.uint8),
        )

    def reset(self):
        """Return to the freshly created condition without reallocating."""
        self.envelope.fill(0.0)
        self.spatial.fill(0.0)
        self.bin_floor.fill(0.0)
        self.histogram.fill(0)
        self.output.fill(0)
        self.agc_gain = 1.0
        self.accent = 0.0
        self.frames_since_beat = BEAT_GATE_FRAMES
        self.frames_processed = 0
