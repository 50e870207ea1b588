"""
Unit tests for config loading and validation.
"""

import pytest

from autodeck.config import Config, ConfigError


def write_config(tmp_path, text):
    path = tmp_path / "autodeck.toml"
    path.write_text(text)
    return path


class TestConfigLoad:
    def test_defaults(self):
        config = Config.default()
        assert config.get("mixer", "crossfade_seconds") == 8
        assert config.get("analysis", "bpm_min") == 60
        assert config.get("announce", "enabled") is True

    def test_default_is_a_copy(self):
        config = Config.default()
        config["mixer"]["crossfade_seconds"] = 15
        assert Config.default()["mixer"]["crossfade_seconds"] == 8

    def test_missing_file_uses_defaults(self, tmp_path):
        config = Config.load(str(tmp_path / "nope.toml"))
        assert config.get("mixer", "guard_margin_seconds") == 0.25

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, "[mixer]\ncrossfade_seconds = 12\n")
        monkeypatch.setenv("AUTODECK_CONFIG_PATH", str(path))
        assert Config.load()["mixer"]["crossfade_seconds"] == 12

    def test_partial_file_filled_from_defaults(self, tmp_path):
        path = write_config(tmp_path, "[analysis]\nbpm_max = 180\n")
        config = Config.load(str(path))
        assert config.get("analysis", "bpm_max") == 180
        assert config.get("analysis", "hop_size") == 512
        assert config.get("mixer", "fallback_bpm") == 120
        assert config.get("announce", "enabled") is True

    def test_announcements_disabled(self, tmp_path):
        path = write_config(tmp_path, "[announce]\nenabled = false\n")
        assert Config.load(str(path)).get("announce", "enabled") is False

    def test_invalid_toml(self, tmp_path):
        path = write_config(tmp_path, "[mixer\ncrossfade_seconds = ")
        with pytest.raises(ConfigError):
            Config.load(str(path))

    def test_shipped_config_is_valid(self):
        from pathlib import Path

        path = Path(__file__).resolve().parent.parent / "configs" / "autodeck.toml"
        config = Config.load(str(path))
        assert config["mixer"] == Config.DEFAULT_CONFIG["mixer"]


class TestConfigValidation:
    @pytest.mark.parametrize("section,param,value", [
        ("mixer", "crossfade_seconds", 1),
        ("mixer", "crossfade_seconds", 25),
        ("analysis", "hop_size", 64),
        ("analysis", "confidence_threshold", 1.5),
        ("mixer", "fallback_bpm", 20),
    ])
    def test_out_of_bounds(self, section, param, value):
        data = {section: {param: value}}
        with pytest.raises(ConfigError, match="out of bounds"):
            Config(data)

    @pytest.mark.parametrize("value", ["eight", True, None, [8]])
    def test_not_numeric(self, value):
        with pytest.raises(ConfigError, match="not numeric"):
            Config({"mixer": {"crossfade_seconds": value}})

    def test_bpm_range_must_be_ordered(self):
        with pytest.raises(ConfigError, match="bpm_min"):
            Config({"analysis": {"bpm_min": 120, "bpm_max": 120}})

    def test_get_missing_returns_default(self):
        config = Config.default()
        assert config.get("mixer", "nope", 3) == 3
        assert config.get("nope", "x") is None
        assert config["nope"] == {}

    def test_repr(self):
        assert repr(Config.default()) == "Config(version=1.0)"
