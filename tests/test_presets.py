"""Tests for preset libraries and the PresetStore."""

import json

import pytest

from spectrashape.core.config import ShapingConfig, WeightingMode
from spectrashape.io.presets import (
    BUILTIN,
    PRESET_VISUALIZER,
    PresetError,
    PresetStore,
    load_library,
    parse_document,
    preset_filename,
    read_preset_file,
    round_controls,
)


def write_json(path, data):
    path.write_text(json.dumps(data))
    return path


class TestDocuments:
    """Preset document parsing."""

    def test_parse_full_document(self):
        """Full documents yield their name and controls."""
        name, controls = parse_document(
            {"name": "Punchy", "visualizer": PRESET_VISUALIZER, "controls": {"kickBoostDb": 14}},
            fallback_name="file",
        )

        assert name == "Punchy"
        assert controls == {"kickBoostDb": 14}

    def test_parse_bare_controls(self):
        """Bare controls maps take the fallback name."""
        name, controls = parse_document({"attack": 0.4}, fallback_name="soft")

        assert name == "soft"
        assert controls == {"attack": 0.4}

    def test_parse_rejects_non_object(self):
        """Non-object documents are rejected."""
        with pytest.raises(PresetError):
            parse_document([1, 2, 3], fallback_name="x")

    def test_round_controls(self):
        """Floats are rounded to 6 decimals, other values left alone."""
        assert round_controls({"a": 0.1234567891, "b": "ae", "c": True}) == {
            "a": 0.123457, "b": "ae", "c": True,
        }

    def test_preset_filename_keeps_name(self):
        """Plain names are used as file names unchanged."""
        assert preset_filename("My Preset #1") == "My Preset #1.json"

    def test_preset_filename_escapes_unsafe_characters(self):
        """Path separators and percent signs are escaped, never dropped."""
        assert "/" not in preset_filename("a/b")
        assert preset_filename("50%") != preset_filename("50")
        assert preset_filename("\u00e9t\u00e9").isascii()

    def test_preset_filename_is_injective(self):
        """Distinct names never share a file."""
        names = ["Bass+", "Bass-", "Bass", "bass", "\u00e9t\u00e9", "\u0431\u0430\u0441", "a/b", "a%2Fb", "!!!"]
        assert len({preset_filename(name) for name in names}) == len(names)

    def test_builtins_are_valid(self):
        """Every built-in preset loads into a config."""
        for name, controls in BUILTIN.items():
            config = ShapingConfig.from_dict(controls)
            assert isinstance(config, ShapingConfig), name
        assert ShapingConfig.from_dict(BUILTIN["Default"]).weighting_mode is WeightingMode.AE


class TestLibrary:
    """index.json -> default.json -> built-in fallback chain."""

    def test_index_lists_presets(self, tmp_path):
        """Presets listed in index.json are loaded by name."""
        write_json(tmp_path / "a.json", {"name": "Alpha", "controls": {"attack": 0.3}})
        write_json(tmp_path / "b.json", {"name": "Beta", "controls": {"release": 0.2}})
        write_json(tmp_path / "index.json", ["a.json", "b.json"])

        library = load_library(tmp_path)

        assert library == {"Alpha": {"attack": 0.3}, "Beta": {"release": 0.2}}

    def test_broken_entries_skipped(self, tmp_path):
        """Broken or missing entries are skipped."""
        write_json(tmp_path / "a.json", {"name": "Alpha", "controls": {"attack": 0.3}})
        (tmp_path / "broken.json").write_text("{nope")
        write_json(tmp_path / "index.json", ["a.json", "broken.json", "missing.json"])

        assert list(load_library(tmp_path)) == ["Alpha"]

    def test_falls_back_to_default_file(self, tmp_path):
        """An unusable index falls back to default.json."""
        (tmp_path / "index.json").write_text("garbage")
        write_json(tmp_path / "default.json", {"controls": {"noiseFloor": 0.05}})

        assert load_library(tmp_path) == {"Default": {"noiseFloor": 0.05}}

    def test_falls_back_to_builtin(self, tmp_path):
        """A missing library falls back to the built-in Default."""
        library = load_library(tmp_path / "does-not-exist")
        assert library == {"Default": BUILTIN["Default"]}


class TestPresetStore:
    """User preset persistence."""

    @pytest.fixture
    def store(self, tmp_path):
        return PresetStore(user_dir=tmp_path / "user")

    def test_builtins_listed_first(self, store):
        """Built-in names come first."""
        assert store.names()[: len(BUILTIN)] == list(BUILTIN)

    def test_load_builtin(self, store):
        """Built-ins load as configs."""
        config = store.load("Default")
        assert config.weighting_mode is WeightingMode.AE

    def test_unknown_preset(self, store):
        """Unknown names load as None."""
        assert store.load("Nope") is None
        assert store.controls("Nope") is None

    def test_save_and_load(self, store):
        """Saved presets load back within rounding."""
        config = ShapingConfig(kick_boost_db=15.0, attack=1 / 3)
        path = store.save("Punchy", config)

        assert path.exists()
        assert "Punchy" in store.names()
        loaded = store.load("Punchy")
        assert loaded.kick_boost_db == 15.0
        assert loaded.attack == pytest.approx(1 / 3, abs=1e-6)

    def test_saved_document_layout(self, store):
        """Saved files hold a full preset document."""
        path = store.save("Layout", ShapingConfig())
        with open(path) as f:
            data = json.load(f)

        assert data["name"] == "Layout"
        assert data["visualizer"] == PRESET_VISUALIZER
        assert data["controls"] == ShapingConfig().to_dict()

    def test_builtin_cannot_be_overwritten(self, store):
        """Saving over a built-in is refused."""
        with pytest.raises(PresetError):
            store.save("Default", ShapingConfig())

    def test_empty_name_rejected(self, store):
        """Blank names are refused."""
        with pytest.raises(PresetError):
            store.save("   ", ShapingConfig())

    def test_delete(self, store):
        """Deleted presets are gone and cannot be deleted twice."""
        store.save("Temp", ShapingConfig())
        store.delete("Temp")

        assert store.load("Temp") is None
        with pytest.raises(PresetError):
            store.delete("Temp")

    def test_builtin_cannot_be_deleted(self, store):
        """Built-ins cannot be deleted."""
        with pytest.raises(PresetError):
            store.delete("FV2 Classic")

    def test_user_shadows_library(self, tmp_path):
        """A user preset shadows the library preset of the same name."""
        library_dir = tmp_path / "library"
        library_dir.mkdir()
        write_json(library_dir / "x.json", {"name": "Shared", "controls": {"attack": 0.2}})
        write_json(library_dir / "index.json", ["x.json"])
        store = PresetStore(user_dir=tmp_path / "user", library_dir=library_dir)

        assert store.load("Shared").attack == 0.2
        store.save("Shared", ShapingConfig(attack=0.6))
        assert store.load("Shared").attack == 0.6

    def test_export_and_import(self, store, tmp_path):
        """Exported built-ins import under a new name."""
        exported = store.export("Default", tmp_path / "exported.json")
        name, controls = read_preset_file(exported)
        assert name == "Default"

        imported = store.import_file(exported)

        assert imported == "Default (imported)"
        assert store.load(imported) == store.load("Default")

    def test_import_bare_controls(self, store, tmp_path):
        """Bare controls files import under their file stem."""
        path = write_json(tmp_path / "loud.json", {"maxGain": 2.5})

        name = store.import_file(path)

        assert name == "loud"
        assert store.load("loud").max_gain == 2.5

    def test_similar_names_do_not_collide(self, store):
        """Names differing only in punctuation or script get separate files."""
        store.save("Bass+", ShapingConfig(kick_hz=50.0))
        store.save("Bass-", ShapingConfig(kick_hz=90.0))
        store.save("\u00e9t\u00e9", ShapingConfig(kick_hz=60.0))
        store.save("\u51ac", ShapingConfig(kick_hz=80.0))

        assert store.load("Bass+").kick_hz == 50.0
        assert store.load("Bass-").kick_hz == 90.0
        assert store.load("\u00e9t\u00e9").kick_hz == 60.0
        assert store.load("\u51ac").kick_hz == 80.0
        assert {"Bass+", "Bass-", "\u00e9t\u00e9", "\u51ac"} <= set(store.names())

    def test_save_refuses_to_replace_other_preset(self, store):
        """A file already holding a different preset name is never overwritten."""
        store.user_dir.mkdir(parents=True)
        target = store.user_dir / preset_filename("bass")
        write_json(target, {"name": "Bass", "controls": {"kickHz": 55}})

        with pytest.raises(PresetError):
            store.save("bass", ShapingConfig())
        with pytest.raises(PresetError):
            store.delete("bass")

        assert store.load("Bass").kick_hz == 55.0

    def test_resave_same_name_overwrites(self, store):
        """Saving under an existing name updates that preset."""
        store.save("Bass+", ShapingConfig(kick_hz=50.0))
        store.save("Bass+", ShapingConfig(kick_hz=65.0))

        assert store.load("Bass+").kick_hz == 65.0

    def test_unreadable_user_file_skipped(self, store):
        """Unreadable files in the user dir are skipped."""
        store.save("Good", ShapingConfig())
        (store.user_dir / "bad.json").write_text("{")

        assert "Good" in store.names()
