"""Core spectrum shaping stages."""

from spectrashape.core.config import ShapingConfig, SpatialKernel, WeightingMode
from spectrashape.core.frame import ShapingState, SpectrumFrame

__all__ = [
    "ShapingConfig",
    "ShapingState",
    "SpatialKernel",
    "SpectrumFrame",
    "WeightingMode",
]
