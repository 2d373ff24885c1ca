"""Audio spectrum shaping for reactive visual effects."""

from spectrashape.core.config import ShapingConfig, SpatialKernel, WeightingMode
from spectrashape.core.frame import ShapingState, SpectrumFrame
from spectrashape.io.exporter import TextureExporter
from spectrashape.io.presets import PresetStore
from spectrashape.pipeline import ReplayPipeline
from spectrashape.shaper import ShaperMode, SpectrumShaper, shape

__version__ = "0.1.0"
__all__ = [
    "ShapingConfig",
    "ShapingState",
    "SpatialKernel",
    "SpectrumFrame",
    "WeightingMode",
    "TextureExporter",
    "PresetStore",
    "ReplayPipeline",
    "ShaperMode",
    "SpectrumShaper",
    "shape",
]
