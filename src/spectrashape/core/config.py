"""
Shaping configuration.

A flat record of every tunable parameter of the spectrum shaping
pipeline. Instances are immutable and always valid: numeric fields are
clamped into their documented range on construction, never rejected.
Preset files address each field by its camelCase key.
"""

import logging
import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)


class WeightingMode(str, Enum):
    """Pipeline generation selecting the resampler warp and EQ strategy."""

    AE = "ae"
    FV2 = "fv2"


class SpatialKernel(str, Enum):
    """3-tap spatial smoothing kernel."""

    WIDE = "wide"
    NARROW = "narrow"


def _param(default: float, key: str, lo: float, hi: float):
    return field(default=default, metadata={"key": key, "range": (lo, hi)})


def _option(default: Any, key: str):
    return field(default=default, metadata={"key": key})


_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ShapingConfig:
    """Tunable parameters for the spectrum shaping pipeline."""

    # Strategy switches
    weighting_mode: WeightingMode = _option(WeightingMode.FV2, "weightingMode")
    spatial_kernel: SpatialKernel = _option(SpatialKernel.NARROW, "spatialKernel")
    use_bin_floor: bool = _option(True, "useBinFloor")
    beat_boost_enabled: bool = _option(True, "beatBoostEnabled")

    # Consumed by the analyser frame source, not the shaping stages
    analyser_smoothing: float = _param(0.0, "analyserSmoothing", 0.0, 1.0)

    # Kick bell / sub shelf / tilt
    kick_hz: float = _param(70.0, "kickHz", 20.0, 200.0)
    kick_width_oct: float = _param(0.65, "kickWidthOct", 0.1, 2.0)
    kick_boost_db: float = _param(8.0, "kickBoostDb", -12.0, 24.0)
    sub_shelf_db: float = _param(4.0, "subShelfDb", -12.0, 24.0)
    tilt_lo: float = _param(1.35, "tiltLo", 0.1, 3.0)
    tilt_hi: float = _param(1.0, "tiltHi", 0.1, 2.5)

    # Per-bin adaptive floor, split at the low 20% of bins
    floor_atk_low: float = _param(0.18, "floorAtkLow", 0.0, 1.0)
    floor_rel_low: float = _param(0.03, "floorRelLow", 0.0, 1.0)
    floor_atk_hi: float = _param(0.10, "floorAtkHi", 0.0, 1.0)
    floor_rel_hi: float = _param(0.015, "floorRelHi", 0.0, 1.0)
    floor_strength_low: float = _param(0.80, "floorStrengthLow", 0.0, 1.5)
    floor_strength_hi: float = _param(0.60, "floorStrengthHi", 0.0, 1.5)

    # AE-mode bass boost and high rolloff
    bass_freq_hz: float = _param(130.0, "bassFreqHz", 20.0, 140.0)
    bass_width_hz: float = _param(40.0, "bassWidthHz", 1.0, 50.0)
    bass_gain_db: float = _param(8.0, "bassGainDb", -6.0, 30.0)
    hi_rolloff_db: float = _param(-6.0, "hiRolloffDb", -24.0, 0.0)

    beat_boost: float = _param(0.65, "beatBoost", 0.0, 2.0)

    # Temporal envelope
    attack: float = _param(0.92, "attack", 0.01, 1.0)
    release: float = _param(0.78, "release", 0.01, 1.0)
    noise_floor: float = _param(0.01, "noiseFloor", 0.0, 0.2)
    peak_curve: float = _param(1.22, "peakCurve", 0.5, 4.0)

    # dB window for float input
    min_db: float = _param(-90.0, "minDb", -120.0, -10.0)
    max_db: float = _param(-25.0, "maxDb", -60.0, 0.0)

    # Baseline removal
    baseline_percentile: float = _param(0.18, "baselinePercentile", 0.01, 0.5)
    baseline_strength: float = _param(0.32, "baselineStrength", 0.0, 1.0)
    display_threshold: float = _param(0.005, "displayThreshold", 0.0, 0.05)

    # Automatic gain control
    target_peak: float = _param(0.95, "targetPeak", 0.1, 1.5)
    min_gain: float = _param(0.90, "minGain", 0.05, 3.0)
    max_gain: float = _param(1.35, "maxGain", 0.1, 5.0)
    agc_attack: float = _param(0.18, "agcAttack", 0.0, 1.0)
    agc_release: float = _param(0.18, "agcRelease", 0.0, 1.0)

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            coerced = _coerce(f, value, f.default)
            if "range" in f.metadata:
                lo, hi = f.metadata["range"]
                clamped = min(hi, max(lo, coerced))
                if clamped != coerced:
                    logger.warning(
                        "%s=%r outside [%g, %g], clamped to %g",
                        f.metadata["key"], coerced, lo, hi, clamped,
                    )
                coerced = clamped
            object.__setattr__(self, f.name, coerced)

        if self.min_gain > self.max_gain:
            logger.warning(
                "minGain %g exceeds maxGain %g, raising maxGain",
                self.min_gain, self.max_gain,
            )
            object.__setattr__(self, "max_gain", self.min_gain)

        if self.max_db <= self.min_db:
            logger.warning(
                "dB window is empty (minDb=%g, maxDb=%g); float input will saturate",
                self.min_db, self.max_db,
            )

    @classmethod
    def keys(cls) -> list[str]:
        """Preset keys in declaration order."""
        return [f.metadata["key"] for f in fields(cls)]

    @classmethod
    def param_ranges(cls) -> dict[str, tuple[float, float]]:
        """Valid range per numeric preset key."""
        return {
            f.metadata["key"]: f.metadata["range"]
            for f in fields(cls)
            if "range" in f.metadata
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        base: "ShapingConfig | None" = None,
    ) -> "ShapingConfig":
        """
        Build a config from a preset controls map.

        Keys may be preset keys (``kickHz``) or attribute names
        (``kick_hz``). Unknown keys are logged and ignored; missing keys
        keep the value from ``base`` (or the defaults).

        Args:
            data: Flat key -> value map.
            base: Config supplying values for keys absent from ``data``.

        Returns:
            A clamped, valid ShapingConfig.
        """
        by_key = {}
        for f in fields(cls):
            by_key[f.metadata["key"]] = f.name
            by_key[f.name] = f.name

        changes = {}
        for key, value in data.items():
            name = by_key.get(key)
            if name is None:
                logger.warning("Ignoring unknown shaping parameter %r", key)
                continue
            changes[name] = value

        return replace(base or cls(), **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a flat preset-key map (numbers rounded to 6 decimals)."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, float):
                value = round(value, 6)
            out[f.metadata["key"]] = value
        return out

    def patch(self, **changes: Any) -> "ShapingConfig":
        """Return a copy with attribute-name changes applied and clamped."""
        return replace(self, **changes)

    def patch_dict(self, data: Mapping[str, Any]) -> "ShapingConfig":
        """Return a copy with preset-key changes applied and clamped."""
        return type(self).from_dict(data, base=self)


def _coerce(f, value: Any, default: Any) -> Any:
    """Coerce a raw field value to the field's type, falling back to default."""
    key = f.metadata["key"]

    if isinstance(default, Enum):
        enum_type = type(default)
        if isinstance(value, enum_type):
            return value
        try:
            return enum_type(str(value).strip().lower())
        except ValueError:
            logger.warning("%s=%r is not one of %s, using %s", key, value,
                           [m.value for m in enum_type], default.value)
            return default

    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            text = value.strip().lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
        logger.warning("%s=%r is not a boolean, using %s", key, value, default)
        return default

    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("%s=%r is not numeric, using %g", key, value, default)
        return float(default)
    if not math.isfinite(number):
        logger.warning("%s=%r is not finite, using %g", key, value, default)
        return float(default)
    return number
