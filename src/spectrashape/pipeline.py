"""
Offline replay pipeline.

Orchestrates the flow from audio file to a manifest of shaped spectrum
textures: analyser frames and beat flags are derived from the decoded
signal and fed through a SpectrumShaper exactly as a live host would,
one frame per call.
"""

import hashlib
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Union

import numpy as np

from spectrashape.core.analyser import AnalyserSource, detect_beats, load_audio
from spectrashape.core.config import ShapingConfig
from spectrashape.io.exporter import TextureExporter, TextureSequence
from spectrashape.shaper import SpectrumShaper

logger = logging.getLogger(__name__)


class ReplayPipeline:
    """
    Complete audio-to-texture-manifest pipeline.

    Combines decoding, analysis, shaping and export into a single
    interface, with an on-disk manifest cache.
    """

    # Version of the shaping logic/schema.
    # Increment this whenever the shaping stages or manifest layout change
    # so cached manifests are invalidated and re-generated.
    SHAPING_VERSION = "1.0"

    def __init__(
        self,
        target_fps: int = 60,
        sample_rate: int | None = 48000,
        width: int = 512,
        config: ShapingConfig | None = None,
        byte_input: bool = False,
    ):
        """
        Initialize the pipeline.

        Args:
            target_fps: Frames per second of the replay.
            sample_rate: Decode sample rate (None keeps the file's rate).
            width: Display bin count of the shaped spectra.
            config: Shaping configuration.
            byte_input: Feed the shaper byte frames instead of float dB.
        """
        self.target_fps = target_fps or 60
        self.sample_rate = sample_rate
        self.width = width
        self.config = config or ShapingConfig()
        self.byte_input = byte_input
        self.exporter = TextureExporter()

    def _get_cache_dir(self) -> Path:
        """Return the directory for caching manifests."""
        cache_dir = Path.home() / ".cache" / "spectrashape" / "manifests"
        cache_dir.mkdir(parents=True, exist_ok=True)
        return cache_dir

    def _calculate_file_hash(self, file_path: Path) -> str:
        """Calculate SHA256 hash of the file."""
        sha256_hash = hashlib.sha256()
        with open(file_path, "rb") as f:
            for byte_block in iter(lambda: f.read(4096), b""):
                sha256_hash.update(byte_block)
        return sha256_hash.hexdigest()

    def _get_config_hash(self) -> str:
        """Calculate hash of the pipeline configuration."""
        config = {
            "version": self.SHAPING_VERSION,
            "fps": self.target_fps,
            "sr": self.sample_rate,
            "width": self.width,
            "byte_input": self.byte_input,
            "controls": self.config.to_dict(),
        }
        return hashlib.md5(json.dumps(config, sort_keys=True).encode("utf-8")).hexdigest()

    def _get_cache_path(self, audio_path: Path) -> Path:
        file_hash = self._calculate_file_hash(audio_path)
        config_hash = self._get_config_hash()
        return self._get_cache_dir() / f"textures_{file_hash}_{config_hash}.json"

    def clear_cache(self):
        """Clear the manifest cache."""
        cache_dir = self._get_cache_dir()
        if cache_dir.exists():
            shutil.rmtree(cache_dir)
            cache_dir.mkdir(parents=True, exist_ok=True)

    def compute_hop_length(self, sr: int) -> int:
        """Samples between consecutive frames at the target FPS."""
        return max(1, int(sr / self.target_fps))

    def load(self, audio_path: Union[str, Path]) -> tuple[np.ndarray, int]:
        """Phase A: decode audio to a mono signal."""
        return load_audio(audio_path, sr=self.sample_rate)

    def shape(self, y: np.ndarray, sr: int) -> tuple[TextureSequence, float]:
        """
        Phase B: analyse the signal frame by frame and shape every frame.

        Args:
            y: Mono samples.
            sr: Sample rate.

        Returns:
            Tuple of (shaped texture sequence, tempo in BPM).
        """
        hop_length = self.compute_hop_length(sr)
        source = AnalyserSource(
            sample_rate=sr,
            smoothing=self.config.analyser_smoothing,
            byte_output=self.byte_input,
        )
        n_frames = 1 + len(y) // hop_length
        is_beat, bpm = detect_beats(y, sr, hop_length, n_frames)

        shaper = SpectrumShaper(width=self.width, config=self.config)
        shaper.activate()

        textures = np.zeros((n_frames, self.width), dtype=np.uint8)
        for i, frame in enumerate(source.frames(y, hop_length)):
            textures[i] = shaper.process(frame, beat=bool(is_beat[i]))

        sequence = TextureSequence(
            textures=textures,
            is_beat=is_beat,
            fps=self.target_fps,
            sample_rate=sr,
            config=self.config,
        )
        return sequence, bpm

    def export(
        self,
        sequence: TextureSequence,
        bpm: float,
        duration: float,
        output_path: Union[str, Path],
        format: str = "json",
    ) -> Path:
        """Phase C: write the textures to disk ("json" or "numpy")."""
        if format == "numpy":
            return self.exporter.export_numpy(sequence, output_path)
        return self.exporter.export_json(sequence, bpm, duration, output_path)

    def process(
        self,
        audio_path: Union[str, Path],
        output_path: Union[str, Path] | None = None,
        format: str = "json",
        use_cache: bool = True,
    ) -> dict[str, Any]:
        """
        Run the complete pipeline from audio file to texture manifest.

        Args:
            audio_path: Path to input audio file.
            output_path: Path for output manifest. If None, only returns dict.
            format: Output format ("json" or "numpy").
            use_cache: Whether to use a cached manifest if available.

        Returns:
            Dictionary containing the manifest and processing info.
        """
        audio_path = Path(audio_path)

        if use_cache and format == "json":
            try:
                cache_path = self._get_cache_path(audio_path)
                if cache_path.exists():
                    with open(cache_path, "r", encoding="utf-8") as f:
                        manifest = json.load(f)
                    logger.info("Loaded textures from cache: %s", cache_path)

                    metadata = manifest.get("metadata", {})
                    result = {
                        "manifest": manifest,
                        "bpm": metadata.get("bpm", 0.0),
                        "duration": metadata.get("duration", 0.0),
                        "n_frames": metadata.get("n_frames", 0),
                        "fps": self.target_fps,
                    }
                    if output_path:
                        with open(output_path, "w", encoding="utf-8") as f:
                            json.dump(manifest, f)
                        result["output_path"] = str(output_path)
                    return result
            except (OSError, ValueError) as e:
                logger.warning("Failed to load cache: %s. Re-shaping.", e)

        # Phase A: Load
        y, sr = self.load(audio_path)
        duration = len(y) / sr

        # Phase B: Analyse + shape
        sequence, bpm = self.shape(y, sr)

        manifest = self.exporter.build_manifest(sequence, bpm=bpm, duration=duration)

        if use_cache:
            try:
                cache_path = self._get_cache_path(audio_path)
                with open(cache_path, "w", encoding="utf-8") as f:
                    json.dump(manifest, f)
            except OSError as e:
                logger.warning("Failed to save cache: %s", e)

        result = {
            "manifest": manifest,
            "bpm": bpm,
            "duration": duration,
            "n_frames": sequence.n_frames,
            "fps": self.target_fps,
        }

        # Phase C: Export if path provided
        if output_path:
            written_path = self.export(sequence, bpm, duration, output_path, format)
            result["output_path"] = str(written_path)

        return result
