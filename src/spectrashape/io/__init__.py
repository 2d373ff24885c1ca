"""Preset persistence and texture export."""

from spectrashape.io.exporter import TextureExporter
from spectrashape.io.presets import PresetError, PresetStore

__all__ = ["PresetError", "PresetStore", "TextureExporter"]
