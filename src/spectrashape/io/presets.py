"""
Preset management: built-in presets, preset libraries and user presets.

A preset document is ``{"name": ..., "visualizer": ..., "controls": {...}}``
where ``controls`` is the flat preset-key map of a ShapingConfig. Bare
controls maps are accepted on import.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union
from urllib.parse import quote

from spectrashape.core.config import ShapingConfig

logger = logging.getLogger(__name__)

PRESET_VISUALIZER = "spectrum-shaper"

INDEX_FILE = "index.json"
DEFAULT_FILE = "default.json"

BUILTIN: dict[str, dict[str, Any]] = {
    "Default": {
        "weightingMode": "ae",
        "spatialKernel": "wide",
        "bassFreqHz": 130,
        "bassWidthHz": 40,
        "bassGainDb": 8,
        "hiRolloffDb": -6,
        "attack": 0.75,
        "release": 0.12,
        "noiseFloor": 0.02,
        "peakCurve": 1.25,
        "beatBoost": 0.65,
        "minDb": -80,
        "maxDb": -18,
        "baselinePercentile": 0.18,
        "baselineStrength": 0.48,
        "displayThreshold": 0.005,
        "targetPeak": 0.95,
        "minGain": 0.9,
        "maxGain": 1.22,
        "agcAttack": 0.18,
        "agcRelease": 0.07,
    },
    "FV2 Classic": ShapingConfig().to_dict(),
    "Live Input": {
        "weightingMode": "fv2",
        "spatialKernel": "wide",
        "analyserSmoothing": 0.35,
        "noiseFloor": 0.04,
        "minDb": -80,
        "maxDb": -20,
        "baselineStrength": 0.5,
        "maxGain": 1.8,
        "agcRelease": 0.05,
        "beatBoostEnabled": False,
    },
}


class PresetError(ValueError):
    """Invalid preset operation (unknown name, built-in modification)."""


def round_controls(controls: dict[str, Any]) -> dict[str, Any]:
    """Round float values to 6 decimals, leaving everything else untouched."""
    return {
        key: round(value, 6) if isinstance(value, float) else value
        for key, value in controls.items()
    }


def preset_filename(name: str) -> str:
    """
    File name for a user preset.

    The name is kept as is, with path-unsafe characters, non-ASCII and
    '%' percent-escaped, so distinct names never share a file.
    """
    return quote(name, safe=" !#$&'()+,-.;=@[]^_{}~") + ".json"


def to_document(name: str, config: ShapingConfig) -> dict[str, Any]:
    return {
        "name": name,
        "visualizer": PRESET_VISUALIZER,
        "controls": round_controls(config.to_dict()),
    }


def parse_document(data: Any, fallback_name: str) -> tuple[str, dict[str, Any]]:
    """
    Extract (name, controls) from a preset document or bare controls map.

    Raises:
        PresetError: If no controls map can be found.
    """
    if not isinstance(data, dict):
        raise PresetError("Preset must be a JSON object")
    controls = data.get("controls")
    if not isinstance(controls, dict):
        controls = data
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        name = fallback_name
    controls = {k: v for k, v in controls.items() if k not in ("name", "visualizer")}
    return name.strip(), controls


def read_preset_file(path: Union[str, Path]) -> tuple[str, dict[str, Any]]:
    """Read a preset JSON file; the file stem names presets without a name."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return parse_document(data, fallback_name=path.stem)


def write_preset_file(path: Union[str, Path], name: str, config: ShapingConfig) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_document(name, config), f, indent=2)
    return path


def load_library(directory: Union[str, Path]) -> dict[str, dict[str, Any]]:
    """
    Load a preset library directory.

    Reads the files listed in ``index.json``; files that fail to load are
    skipped. When nothing loads, falls back to ``default.json``, then to
    the built-in ``Default`` preset. Never raises.

    Args:
        directory: Library directory.

    Returns:
        Mapping of preset name to controls map.
    """
    directory = Path(directory)
    result: dict[str, dict[str, Any]] = {}

    try:
        with open(directory / INDEX_FILE, "r", encoding="utf-8") as f:
            files = json.load(f) or []
        if not isinstance(files, list):
            raise ValueError(f"{INDEX_FILE} must list preset files")
    except (OSError, ValueError) as e:
        logger.warning("Preset library index load failed: %s", e)
        files = []

    for file in files:
        try:
            name, controls = read_preset_file(directory / str(file))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load preset %s: %s", file, e)
            continue
        if name and controls:
            result[name] = controls

    if result:
        return result

    try:
        name, controls = read_preset_file(directory / DEFAULT_FILE)
        return {name if name != Path(DEFAULT_FILE).stem else "Default": controls}
    except (OSError, ValueError) as e:
        logger.warning("Default preset load failed: %s", e)
        return {"Default": dict(BUILTIN["Default"])}


class PresetStore:
    """
    Built-in, library and user presets under one namespace.

    User presets live one JSON document per file in ``user_dir`` and
    shadow library presets of the same name; built-ins cannot be
    overwritten or deleted.
    """

    def __init__(
        self,
        user_dir: Union[str, Path, None] = None,
        library_dir: Union[str, Path, None] = None,
    ):
        """
        Initialize the store.

        Args:
            user_dir: Writable directory for user presets
                (default: ~/.config/spectrashape/presets).
            library_dir: Optional read-only preset library with an index.json.
        """
        if user_dir is None:
            user_dir = Path.home() / ".config" / "spectrashape" / "presets"
        self.user_dir = Path(user_dir)
        self.library: dict[str, dict[str, Any]] = {}
        if library_dir is not None:
            self.library = load_library(library_dir)

    def _user_path(self, name: str) -> Path:
        return self.user_dir / preset_filename(name)

    def _user_presets(self) -> dict[str, dict[str, Any]]:
        if not self.user_dir.is_dir():
            return {}
        presets = {}
        for path in sorted(self.user_dir.glob("*.json")):
            try:
                name, controls = read_preset_file(path)
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable preset %s: %s", path, e)
                continue
            if name not in BUILTIN:
                presets[name] = controls
        return presets

    def names(self) -> list[str]:
        """Built-in names first, then library and user presets alphabetically."""
        names = list(BUILTIN)
        extra = set(self.library) | set(self._user_presets())
        names.extend(sorted(extra - set(BUILTIN)))
        return names

    def controls(self, name: str) -> dict[str, Any] | None:
        """Raw controls map for ``name``, or None."""
        if name in BUILTIN:
            return dict(BUILTIN[name])
        user = self._user_presets()
        if name in user:
            return user[name]
        if name in self.library:
            return dict(self.library[name])
        return None

    def load(self, name: str) -> ShapingConfig | None:
        """Load a preset as a clamped ShapingConfig, or None if unknown."""
        controls = self.controls(name)
        if controls is None:
            return None
        return ShapingConfig.from_dict(controls)

    def save(self, name: str, config: ShapingConfig) -> Path:
        """Save ``config`` as a user preset."""
        name = name.strip()
        if not name:
            raise PresetError("Preset name must not be empty")
        if name in BUILTIN:
            raise PresetError(f"Built-in preset {name!r} cannot be overwritten")
        path = self._user_path(name)
        stored = self._stored_name(path)
        if stored is not None and stored != name:
            # Case-insensitive filesystems fold "Bass" and "bass" together
            raise PresetError(f"Preset {name!r} would overwrite preset {stored!r}")
        return write_preset_file(path, name, config)

    def delete(self, name: str):
        """Delete a user preset."""
        if name in BUILTIN:
            raise PresetError(f"Built-in preset {name!r} cannot be deleted")
        path = self._user_path(name)
        if not path.is_file() or self._stored_name(path) not in (None, name):
            raise PresetError(f"Preset not found: {name!r}")
        path.unlink()

    @staticmethod
    def _stored_name(path: Path) -> str | None:
        """Name recorded in an existing preset file, or None if absent or unreadable."""
        if not path.is_file():
            return None
        try:
            name, _ = read_preset_file(path)
        except (OSError, ValueError):
            return None
        return name

    def export(self, name: str, output_path: Union[str, Path]) -> Path:
        """Write any known preset to a standalone preset document."""
        config = self.load(name)
        if config is None:
            raise PresetError(f"Preset not found: {name!r}")
        return write_preset_file(output_path, name, config)

    def import_file(self, path: Union[str, Path]) -> str:
        """
        Import a preset document as a user preset.

        Returns:
            The imported preset's name.
        """
        name, controls = read_preset_file(path)
        if name in BUILTIN:
            name = f"{name} (imported)"
        self.save(name, ShapingConfig.from_dict(controls))
        return name
