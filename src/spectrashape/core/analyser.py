"""
Analyser frame source.

Produces per-frame FFT magnitude snapshots from a decoded signal the way
a browser AnalyserNode does: a Blackman-windowed FFT of the most recent
``fft_size`` samples, inter-frame magnitude smoothing, and either float
decibels or bytes scaled over a fixed dB window. Beat flags come from
librosa's beat tracker on the same frame grid.
"""

from pathlib import Path
from typing import Iterator, Union

import librosa
import numpy as np
from scipy import signal as scipy_signal

from spectrashape.core.frame import SpectrumFrame

DEFAULT_FFT_SIZE = 2048

# AnalyserNode defaults for byte output
ANALYSER_MIN_DB = -100.0
ANALYSER_MAX_DB = -30.0

# Magnitude floor, keeps log10 finite for digital silence (~ -240 dB)
_MAGNITUDE_FLOOR = 1e-12


class AnalyserSource:
    """
    Frame-by-frame spectrum analyser.

    Smoothing state is carried between calls to ``analyse``, so frames
    must be requested in time order.
    """

    def __init__(
        self,
        sample_rate: int,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing: float = 0.0,
        byte_output: bool = False,
        min_decibels: float = ANALYSER_MIN_DB,
        max_decibels: float = ANALYSER_MAX_DB,
    ):
        """
        Initialize the analyser.

        Args:
            sample_rate: Signal sample rate in Hz.
            fft_size: FFT window length (power of two).
            smoothing: Inter-frame smoothing time constant, 0..1.
            byte_output: Emit bytes instead of float decibels.
            min_decibels: Byte scale lower bound.
            max_decibels: Byte scale upper bound.
        """
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.smoothing = float(np.clip(smoothing, 0.0, 1.0))
        self.byte_output = byte_output
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._window = scipy_signal.get_window("blackman", fft_size).astype(np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self):
        self._smoothed.fill(0.0)

    def analyse(self, block: np.ndarray) -> SpectrumFrame:
        """
        Analyse the most recent ``fft_size`` samples of ``block``.

        Shorter blocks are zero-padded at the front.

        Args:
            block: Mono samples ending at the analysis instant.

        Returns:
            SpectrumFrame in float dB or bytes.
        """
        block = np.asarray(block, dtype=np.float32)[-self.fft_size:]
        if block.size < self.fft_size:
            block = np.pad(block, (self.fft_size - block.size, 0))

        spectrum = np.fft.rfft(block * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        tau = self.smoothing
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude
        db = 20.0 * np.log10(np.maximum(self._smoothed, _MAGNITUDE_FLOOR))

        if self.byte_output:
            span = self.max_decibels - self.min_decibels
            scaled = np.floor(255.0 / span * (db - self.min_decibels))
            return SpectrumFrame.from_bytes(np.clip(scaled, 0, 255), self.sample_rate)
        return SpectrumFrame.from_db(db, self.sample_rate)

    def frames(self, y: np.ndarray, hop_length: int) -> Iterator[SpectrumFrame]:
        """
        Iterate analyser frames centred every ``hop_length`` samples.

        Frame ``j`` is centred at sample ``j * hop_length``, matching
        librosa's frame grid, for ``1 + len(y) // hop_length`` frames.
        """
        half = self.fft_size // 2
        padded = np.pad(np.asarray(y, dtype=np.float32), (half, half))
        n_frames = 1 + len(y) // hop_length
        for j in range(n_frames):
            start = j * hop_length
            yield self.analyse(padded[start:start + self.fft_size])


def load_audio(audio_path: Union[str, Path], sr: int | None = None) -> tuple[np.ndarray, int]:
    """
    Load a mono signal.

    Args:
        audio_path: Audio file (wav, mp3, flac).
        sr: Target sample rate, or None to keep the file's rate.

    Returns:
        Tuple of (samples, sample_rate).
    """
    y, sample_rate = librosa.load(str(audio_path), sr=sr, mono=True)
    return y, int(sample_rate)


def detect_beats(y: np.ndarray, sr: int, hop_length: int, n_frames: int) -> tuple[np.ndarray, float]:
    """
    Beat flags on the analyser frame grid.

    Args:
        y: Mono samples.
        sr: Sample rate.
        hop_length: Samples between analyser frames.
        n_frames: Number of analyser frames.

    Returns:
        Tuple of (boolean array of length n_frames, tempo in BPM).
    """
    tempo, beat_frames = librosa.beat.beat_track(y=y, sr=sr, hop_length=hop_length)
    tempo = float(np.atleast_1d(tempo)[0])

    is_beat = np.zeros(n_frames, dtype=bool)
    beat_frames = np.asarray(beat_frames, dtype=int)
    valid = beat_frames[(beat_frames >= 0) & (beat_frames < n_frames)]
    is_beat[valid] = True
    return is_beat, tempo
