"""Tests for ShapingConfig validation and serialization."""

import dataclasses
import logging

import pytest

from spectrashape.core.config import ShapingConfig, SpatialKernel, WeightingMode


class TestDefaults:
    """Default values and metadata."""

    def test_defaults_are_fv2_narrow(self):
        """Defaults select fv2 weighting with the narrow kernel."""
        config = ShapingConfig()

        assert config.weighting_mode is WeightingMode.FV2
        assert config.spatial_kernel is SpatialKernel.NARROW
        assert config.use_bin_floor is True
        assert config.beat_boost_enabled is True

    def test_every_key_is_unique(self):
        """Preset keys are unique across fields."""
        keys = ShapingConfig.keys()
        assert len(keys) == len(set(keys))
        assert "kickHz" in keys
        assert "agcRelease" in keys

    def test_defaults_inside_their_ranges(self):
        """Every default sits inside its own range."""
        config = ShapingConfig().to_dict()
        for key, (lo, hi) in ShapingConfig.param_ranges().items():
            assert lo <= config[key] <= hi, key

    def test_frozen(self):
        """Configs cannot be mutated in place."""
        config = ShapingConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.attack = 0.5

    def test_hashable(self):
        """Configs are used as cache keys for the gain curve."""
        assert hash(ShapingConfig()) == hash(ShapingConfig())
        assert ShapingConfig() == ShapingConfig()


class TestClamping:
    """Out-of-range values are clamped, never rejected."""

    def test_numeric_clamped_high(self, caplog):
        """Values above range are clamped and logged."""
        with caplog.at_level(logging.WARNING):
            config = ShapingConfig(kick_hz=500.0)

        assert config.kick_hz == 200.0
        assert "kickHz" in caplog.text

    def test_numeric_clamped_low(self):
        """Values below range are clamped to the minimum."""
        config = ShapingConfig(release=0.0)
        assert config.release == 0.01

    def test_from_dict_clamps(self):
        """Preset maps are clamped like constructor arguments."""
        config = ShapingConfig.from_dict({"maxGain": 99, "noiseFloor": -1})

        assert config.max_gain == 5.0
        assert config.noise_floor == 0.0

    def test_min_gain_above_max_gain_is_repaired(self):
        """An inverted gain range is widened to keep min <= max."""
        config = ShapingConfig(min_gain=2.0, max_gain=1.0)

        assert config.min_gain == 2.0
        assert config.max_gain == 2.0
        assert config.min_gain <= config.max_gain

    def test_empty_db_window_warns(self, caplog):
        """An empty dB window is kept but logged."""
        with caplog.at_level(logging.WARNING):
            config = ShapingConfig(min_db=-20.0, max_db=-40.0)

        assert config.min_db == -20.0
        assert "dB window" in caplog.text


class TestCoercion:
    """Loosely typed preset values are coerced to field types."""

    def test_numeric_strings(self):
        """Numeric strings are parsed."""
        config = ShapingConfig.from_dict({"kickBoostDb": "12"})
        assert config.kick_boost_db == 12.0

    def test_non_numeric_falls_back_to_default(self):
        """Unparseable numbers fall back to the default."""
        config = ShapingConfig.from_dict({"attack": "fast"})
        assert config.attack == ShapingConfig().attack

    def test_non_finite_falls_back_to_default(self):
        """NaN and infinity fall back to the default."""
        config = ShapingConfig.from_dict({"peakCurve": float("nan"), "maxDb": float("inf")})

        assert config.peak_curve == ShapingConfig().peak_curve
        assert config.max_db == ShapingConfig().max_db

    def test_enum_from_string(self):
        """Enum values are matched case-insensitively."""
        config = ShapingConfig.from_dict({"weightingMode": "AE", "spatialKernel": "wide"})

        assert config.weighting_mode is WeightingMode.AE
        assert config.spatial_kernel is SpatialKernel.WIDE

    def test_unknown_enum_falls_back(self):
        """Unknown enum values fall back to the default."""
        config = ShapingConfig.from_dict({"weightingMode": "fv3"})
        assert config.weighting_mode is WeightingMode.FV2

    @pytest.mark.parametrize("raw, expected", [
        (False, False),
        (0, False),
        ("off", False),
        ("true", True),
        (1, True),
    ])
    def test_booleans(self, raw, expected):
        """Booleans accept bools, numbers and on/off words."""
        config = ShapingConfig.from_dict({"useBinFloor": raw})
        assert config.use_bin_floor is expected

    def test_unknown_key_ignored(self, caplog):
        """Unknown keys are skipped with a warning."""
        with caplog.at_level(logging.WARNING):
            config = ShapingConfig.from_dict({"sparkle": 3, "attack": 0.5})

        assert config.attack == 0.5
        assert "sparkle" in caplog.text

    def test_attribute_names_accepted(self):
        """Python attribute names work as keys too."""
        config = ShapingConfig.from_dict({"kick_hz": 90})
        assert config.kick_hz == 90.0


class TestSerialization:
    """Preset-key serialization."""

    def test_to_dict_uses_preset_keys(self):
        """to_dict emits preset keys in field order."""
        data = ShapingConfig().to_dict()

        assert list(data) == ShapingConfig.keys()
        assert data["weightingMode"] == "fv2"
        assert data["spatialKernel"] == "narrow"

    def test_round_trip_within_precision(self):
        """Serialized configs restore to within 1e-6."""
        config = ShapingConfig(attack=1 / 3, kick_hz=71.23456789, weighting_mode=WeightingMode.AE)
        restored = ShapingConfig.from_dict(config.to_dict())

        for f in dataclasses.fields(ShapingConfig):
            original = getattr(config, f.name)
            value = getattr(restored, f.name)
            if isinstance(original, float):
                assert value == pytest.approx(original, abs=1e-6), f.name
            else:
                assert value == original, f.name

    def test_from_dict_keeps_base_values(self):
        """Fields missing from the map keep the base config's values."""
        base = ShapingConfig(attack=0.5)
        config = ShapingConfig.from_dict({"release": 0.2}, base=base)

        assert config.attack == 0.5
        assert config.release == 0.2

    def test_patch_clamps(self):
        """Patched values are clamped."""
        config = ShapingConfig().patch(beat_boost=9.0)
        assert config.beat_boost == 2.0

    def test_patch_dict(self):
        """patch_dict changes only the keys it names."""
        config = ShapingConfig().patch_dict({"tiltLo": 2.0})

        assert config.tilt_lo == 2.0
        assert config.tilt_hi == ShapingConfig().tilt_hi
