"""
Tests for settings loading.
"""

import json
from pathlib import Path

import pytest

from idenguefy.config import Settings, load_settings


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings.proximity_threshold_m == 500
        assert settings.cooldown_s == 60.0
        assert settings.zoom == 15
        assert settings.cache_dir.name == "Cache"
        assert settings.data_dir.name == "Data"

    def test_json_file_overrides(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "proximity_threshold_m": 300,
            "cooldown_s": 120,
            "cache_dir": str(tmp_path / "tiles"),
        }), encoding="utf-8")

        settings = load_settings(path, environ={})

        assert settings.proximity_threshold_m == 300
        assert settings.cooldown_s == 120.0
        assert isinstance(settings.cooldown_s, float)
        assert settings.cache_dir == tmp_path / "tiles"

    def test_environment_wins_over_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"proximity_threshold_m": 300}), encoding="utf-8")

        settings = load_settings(path, environ={
            "IDENGUEFY_THRESHOLD_M": "1000",
            "MAPTILER_API_KEY": "abc123",
            "IDENGUEFY_DATA_DIR": str(tmp_path / "data"),
        })

        assert settings.proximity_threshold_m == 1000
        assert settings.maptiler_api_key == "abc123"
        assert settings.data_dir == Path(tmp_path / "data")

    def test_config_path_from_environment(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"zoom": 14}), encoding="utf-8")
        assert load_settings(environ={"IDENGUEFY_CONFIG": str(path)}).zoom == 14

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"theme": "dark", "zoom": 13}), encoding="utf-8")
        settings = load_settings(path, environ={})
        assert settings.zoom == 13
        assert not hasattr(settings, "theme")

    def test_bad_value_rejected(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"proximity_threshold_m": "far"}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(path, environ={})

    def test_non_object_file_rejected(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(path, environ={})


class TestValidate:

    @pytest.mark.parametrize(
        "field, value",
        [
            ("proximity_threshold_m", 0),
            ("cooldown_s", -1.0),
            ("eval_interval_s", 0.0),
            ("zoom", 23),
            ("tile_batch_pace_size", 0),
            ("max_fetch_workers", 0),
            ("search_limit", 0),
        ],
    )
    def test_invalid(self, field, value):
        settings = Settings(**{field: value})
        with pytest.raises(ValueError):
            settings.validate()

    def test_defaults_are_valid(self):
        Settings().validate()
