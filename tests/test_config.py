"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from cairn.config import DEFAULT_CONFIG, config_from_mapping, load_config


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "config.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == DEFAULT_CONFIG

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "leaderboard_size: 50\nnotify_url: https://example.test/\nunknown_key: 1\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.leaderboard_size == 50
        assert cfg.notify_url == "https://example.test"
        assert cfg.journey_ttl_seconds == 172800


class TestDefaults:
    def test_values(self):
        assert DEFAULT_CONFIG.journey_ttl_seconds == 2 * 24 * 60 * 60
        assert DEFAULT_CONFIG.leaderboard_size == 250
        assert DEFAULT_CONFIG.leaderboard_cache_seconds == 4 * 60 * 60
        assert DEFAULT_CONFIG.journey_increment_points == 5
        assert (DEFAULT_CONFIG.leaderboard_bonus_min, DEFAULT_CONFIG.leaderboard_bonus_max) == (10, 260)


class TestValidation:
    def test_coerces_numeric_strings(self):
        assert config_from_mapping({"leaderboard_size": "20"}).leaderboard_size == 20

    @pytest.mark.parametrize("value", ["many", [1], {}])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValueError, match="must be an integer"):
            config_from_mapping({"leaderboard_size": value})

    @pytest.mark.parametrize("value", [0, -5])
    def test_rejects_non_positive(self, value):
        with pytest.raises(ValueError, match="must be positive"):
            config_from_mapping({"journey_ttl_seconds": value})

    def test_bonus_bounds(self):
        with pytest.raises(ValueError):
            config_from_mapping({"leaderboard_bonus_min": 300})
