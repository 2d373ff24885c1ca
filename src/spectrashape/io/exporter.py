"""
Spectrum texture serialization.

Exports a sequence of shaped display spectra to a JSON manifest or a
NumPy archive, aligned to the replay frame rate.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import numpy as np

from spectrashape.core.config import ShapingConfig


@dataclass
class TextureSequence:
    """Shaped spectra for a whole replay, one row per frame."""

    textures: np.ndarray  # Shape: (n_frames, width), uint8
    is_beat: np.ndarray  # Shape: (n_frames,)
    fps: int
    sample_rate: int
    config: ShapingConfig
    frame_times: np.ndarray = field(default_factory=lambda: np.array([]))

    def __post_init__(self):
        if len(self.frame_times) == 0:
            self.frame_times = np.arange(self.n_frames, dtype=np.float64) / self.fps

    @property
    def n_frames(self) -> int:
        return int(self.textures.shape[0])

    @property
    def width(self) -> int:
        return int(self.textures.shape[1])


@dataclass
class ManifestMetadata:
    """Metadata header for the texture manifest."""

    bpm: float
    duration: float
    fps: int
    n_frames: int
    width: int
    sample_rate: int
    schema_version: str = "1.0"


class TextureExporter:
    """Exports shaped spectra to manifest formats."""

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _round(self, value: float) -> float:
        return round(float(value), self.precision)

    def _build_frame(self, index: int, sequence: TextureSequence) -> dict[str, Any]:
        texture = sequence.textures[index]
        return {
            "frame_index": index,
            "time": self._round(sequence.frame_times[index]),
            "is_beat": bool(sequence.is_beat[index]),
            "peak": int(texture.max()) if texture.size else 0,
            "energy": self._round(texture.mean() / 255.0) if texture.size else 0.0,
            "bins": texture.astype(int).tolist(),
        }

    def build_manifest(self, sequence: TextureSequence, bpm: float, duration: float) -> dict[str, Any]:
        """
        Build the complete manifest dictionary.

        Args:
            sequence: Shaped spectra.
            bpm: Detected tempo.
            duration: Audio duration in seconds.

        Returns:
            Manifest dictionary ready for JSON serialization.
        """
        metadata = ManifestMetadata(
            bpm=self._round(bpm),
            duration=self._round(duration),
            fps=sequence.fps,
            n_frames=sequence.n_frames,
            width=sequence.width,
            sample_rate=sequence.sample_rate,
        )

        return {
            "metadata": {
                "bpm": metadata.bpm,
                "duration": metadata.duration,
                "fps": metadata.fps,
                "n_frames": metadata.n_frames,
                "width": metadata.width,
                "sample_rate": metadata.sample_rate,
                "schema_version": metadata.schema_version,
            },
            "controls": sequence.config.to_dict(),
            "frames": [self._build_frame(i, sequence) for i in range(sequence.n_frames)],
        }

    def export_json(
        self,
        sequence: TextureSequence,
        bpm: float,
        duration: float,
        output_path: Union[str, Path],
        indent: int | None = None,
    ) -> Path:
        """Export the manifest to a JSON file."""
        manifest = self.build_manifest(sequence, bpm, duration)
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=indent)

        return output_path

    def export_numpy(self, sequence: TextureSequence, output_path: Union[str, Path]) -> Path:
        """
        Export spectra as a NumPy .npz archive.

        The controls map is stored as a JSON string under ``controls``.
        """
        output_path = Path(output_path)
        # numpy appends .npz otherwise
        if output_path.suffix != ".npz":
            output_path = output_path.with_suffix(".npz")

        np.savez_compressed(
            output_path,
            textures=sequence.textures,
            is_beat=sequence.is_beat,
            frame_times=sequence.frame_times,
            fps=sequence.fps,
            sample_rate=sequence.sample_rate,
            n_frames=sequence.n_frames,
            controls=json.dumps(sequence.config.to_dict()),
        )

        return output_path

    @staticmethod
    def load_numpy(path: Union[str, Path]) -> TextureSequence:
        """Read back an archive written by ``export_numpy``."""
        with np.load(path) as data:
            return TextureSequence(
                textures=data["textures"],
                is_beat=data["is_beat"],
                fps=int(data["fps"]),
                sample_rate=int(data["sample_rate"]),
                config=ShapingConfig.from_dict(json.loads(str(data["controls"]))),
                frame_times=data["frame_times"],
            )
