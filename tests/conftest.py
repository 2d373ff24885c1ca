"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from spectrashape.core.config import ShapingConfig
from spectrashape.core.frame import ShapingState, SpectrumFrame

# Default sample rate for test audio
TEST_SR = 22050

# Analyser frames in tests look like a 2048-point FFT at 48kHz
FRAME_SR = 48000
FRAME_BINS = 1024


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def config() -> ShapingConfig:
    """Default shaping configuration."""
    return ShapingConfig()


@pytest.fixture
def state() -> ShapingState:
    """Fresh state for 512 display bins."""
    return ShapingState.create(512)


@pytest.fixture
def silent_frame() -> SpectrumFrame:
    """Analyser frame at the bottom of the default dB window."""
    return SpectrumFrame.from_db(np.full(FRAME_BINS, -90.0), FRAME_SR)


@pytest.fixture
def make_db_frame():
    """
    Factory for dB frames.

    ``make_db_frame(level, peaks={bin: db})`` fills every bin with
    ``level`` and overrides the given bins.
    """
    def _make(level: float = -90.0, peaks: dict | None = None, n_bins: int = FRAME_BINS):
        bins = np.full(n_bins, level, dtype=np.float32)
        for index, db in (peaks or {}).items():
            bins[index] = db
        return SpectrumFrame.from_db(bins, FRAME_SR)

    return _make


@pytest.fixture
def noisy_frames():
    """Sixty random dB frames, reproducible."""
    rng = np.random.default_rng(42)
    return [
        SpectrumFrame.from_db(rng.uniform(-110.0, -10.0, FRAME_BINS), FRAME_SR)
        for _ in range(60)
    ]


@pytest.fixture
def pure_sine(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a pure 440Hz sine wave (A4 note).

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    return y.astype(np.float32), sample_rate


@pytest.fixture
def click_track(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a simple click track at 120 BPM.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    bpm = 120
    samples_per_beat = int(sample_rate * 60 / bpm)
    total_samples = int(sample_rate * duration)

    y = np.zeros(total_samples, dtype=np.float32)

    # Add clicks (short impulses) at each beat
    click_duration = int(sample_rate * 0.01)  # 10ms click
    for beat_start in range(0, total_samples, samples_per_beat):
        click_end = min(beat_start + click_duration, total_samples)
        click_samples = click_end - beat_start
        decay = np.exp(-np.linspace(0, 5, click_samples))
        y[beat_start:click_end] = 0.8 * decay

    return y, sample_rate


@pytest.fixture
def mixed_signal(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a signal with a bass line, a chord and a kick pattern.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)

    tonal = (
        0.3 * np.sin(2 * np.pi * 65.41 * t) +   # C2 bass
        0.15 * np.sin(2 * np.pi * 261.63 * t) +  # C4
        0.15 * np.sin(2 * np.pi * 392.00 * t)    # G4
    )

    # Kick-like decaying 60Hz bursts at 120 BPM
    bpm = 120
    samples_per_beat = int(sample_rate * 60 / bpm)
    total_samples = len(t)
    kicks = np.zeros(total_samples)

    kick_duration = int(sample_rate * 0.08)
    for beat_start in range(0, total_samples, samples_per_beat):
        kick_end = min(beat_start + kick_duration, total_samples)
        n = kick_end - beat_start
        tk = np.arange(n) / sample_rate
        kicks[beat_start:kick_end] = 0.6 * np.exp(-tk * 40) * np.sin(2 * np.pi * 60 * tk)

    y = (tonal + kicks).astype(np.float32)
    return y, sample_rate


@pytest.fixture
def temp_audio_file(tmp_path, mixed_signal):
    """Create a temporary audio file for testing file I/O."""
    import soundfile as sf

    y, sr = mixed_signal
    audio_path = tmp_path / "test_audio.wav"
    sf.write(audio_path, y, sr)
    return audio_path
