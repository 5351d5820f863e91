"""Tests for configuration management."""

import json
from pathlib import Path

import pytest

from meter_gateway.config import (
    DEFAULT_CONFIG,
    DEFAULT_GENERATOR_CONFIG,
    GENERATOR_PRESETS,
    CacheConfig,
    GatewayConfig,
    GeneratorConfig,
    RemoteConfig,
    get_generator_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "METER_PRESET",
        "METER_INTERVAL_SECONDS",
        "METER_CACHE_DIR",
        "METER_CACHE_MAX_SAMPLES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestGeneratorPresets:
    """Tests for generator presets."""

    def test_defaults(self):
        """Test default values."""
        config = GeneratorConfig()
        assert config.solar_capacity_kw == 5.0
        assert config.base_consumption_kw == 0.5
        assert config.peak_consumption_kw == 2.0
        assert config.weather_variation_enabled is True
        assert config.weather_variation_percent == 20.0

    @pytest.mark.parametrize(
        "preset,capacity,base,peak,weather",
        [
            ("small", 3.0, 0.3, 1.5, 20.0),
            ("medium", 5.0, 0.5, 2.0, 20.0),
            ("large", 10.0, 1.0, 4.0, 20.0),
            ("commercial", 50.0, 5.0, 20.0, 15.0),
        ],
    )
    def test_preset_values(self, preset, capacity, base, peak, weather):
        """Test each named preset resolves to its profile."""
        config = get_generator_config(preset)
        assert config.solar_capacity_kw == capacity
        assert config.base_consumption_kw == base
        assert config.peak_consumption_kw == peak
        assert config.weather_variation_percent == weather

    @pytest.mark.parametrize("preset", [None, "", "huge"])
    def test_unknown_preset_falls_back(self, preset):
        """Test missing or unknown names resolve to the default profile."""
        assert get_generator_config(preset) == DEFAULT_GENERATOR_CONFIG

    def test_returns_copies(self):
        """Test resolved configs are not the shared preset objects."""
        assert get_generator_config("large") is not GENERATOR_PRESETS["large"]
        assert get_generator_config() is not DEFAULT_GENERATOR_CONFIG


class TestRemoteConfig:
    """Tests for RemoteConfig."""

    def test_env_overrides(self, monkeypatch):
        """Test credentials are read from the environment."""
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "env-key")

        config = RemoteConfig()

        assert config.supabase_url == "https://env.supabase.co"
        assert config.supabase_key == "env-key"

    def test_explicit_beats_env(self, monkeypatch):
        """Test explicit arguments take precedence over the environment."""
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        config = RemoteConfig(supabase_url="https://explicit.supabase.co")
        assert config.supabase_url == "https://explicit.supabase.co"

    def test_validate(self):
        """Test validation requires both URL and key."""
        with pytest.raises(ValueError, match="URL"):
            RemoteConfig().validate()
        with pytest.raises(ValueError, match="key"):
            RemoteConfig(supabase_url="https://x.supabase.co").validate()
        RemoteConfig(supabase_url="https://x.supabase.co", supabase_key="k").validate()


class TestCacheConfig:
    """Tests for CacheConfig."""

    def test_defaults(self):
        """Test default values."""
        config = CacheConfig()
        assert config.directory == ".meter_cache"
        assert config.max_samples == 96

    def test_env_overrides(self, monkeypatch):
        """Test cache location and size from the environment."""
        monkeypatch.setenv("METER_CACHE_DIR", "/tmp/meters")
        monkeypatch.setenv("METER_CACHE_MAX_SAMPLES", "48")

        config = CacheConfig()

        assert config.directory == "/tmp/meters"
        assert config.max_samples == 48


class TestGatewayConfig:
    """Tests for GatewayConfig."""

    def test_defaults(self):
        """Test default configuration values."""
        config = GatewayConfig()
        assert config.interval_seconds == 900
        assert config.interval_minutes == 15
        assert config.window_days == 7
        assert config.preset is None
        assert config.generator == DEFAULT_GENERATOR_CONFIG

    def test_env_overrides(self, monkeypatch):
        """Test preset and interval from the environment."""
        monkeypatch.setenv("METER_PRESET", "large")
        monkeypatch.setenv("METER_INTERVAL_SECONDS", "60")

        config = GatewayConfig()

        assert config.preset == "large"
        assert config.interval_seconds == 60.0
        assert config.generator.solar_capacity_kw == 10.0

    def test_to_dict_omits_key(self):
        """Test the Supabase key is never serialized."""
        config = GatewayConfig(
            remote=RemoteConfig(supabase_url="https://x.supabase.co", supabase_key="secret")
        )
        d = config.to_dict()

        assert d["remote"]["supabase_url"] == "https://x.supabase.co"
        assert "supabase_key" not in d["remote"]
        assert "cache" in d

    def test_from_dict(self):
        """Test config can be created from dictionary."""
        data = {
            "user_id": "user-1",
            "preset": "small",
            "interval_seconds": 60,
            "cache": {"directory": "/tmp/c", "max_samples": 10},
        }

        config = GatewayConfig.from_dict(data)

        assert config.user_id == "user-1"
        assert config.preset == "small"
        assert config.interval_seconds == 60
        assert config.cache.directory == "/tmp/c"
        assert config.cache.max_samples == 10
        assert config.remote.meters_table == "meters"

    def test_from_dict_invalid_structure(self):
        """Test unknown nested keys are reported as ValueError."""
        with pytest.raises(ValueError, match="Invalid configuration format"):
            GatewayConfig.from_dict({"cache": {"unknown_key": 1}})

    def test_to_file_and_from_file(self, tmp_path):
        """Test config can be saved and loaded from file."""
        config = GatewayConfig(user_id="user-1", preset="medium", seed=42)

        config_path = tmp_path / "config.json"
        config.to_file(config_path)

        with open(config_path) as f:
            data = json.load(f)
        assert data["user_id"] == "user-1"

        loaded = GatewayConfig.from_file(config_path)
        assert loaded.user_id == "user-1"
        assert loaded.preset == "medium"
        assert loaded.seed == 42

    def test_default_config_exists(self):
        """Test DEFAULT_CONFIG is available."""
        assert isinstance(DEFAULT_CONFIG, GatewayConfig)

    def test_from_file_missing_file_raises_error(self):
        """Test from_file raises FileNotFoundError for missing file."""
        with pytest.raises(FileNotFoundError, match="does_not_exist.json"):
            GatewayConfig.from_file(Path("does_not_exist.json"))

    def test_to_file_unwritable_path_raises_error(self, tmp_path):
        """Test to_file raises RuntimeError for unwritable path."""
        with pytest.raises(RuntimeError, match="Failed to save configuration"):
            GatewayConfig().to_file(tmp_path)

    def test_from_file_invalid_json_raises_error(self, tmp_path):
        """Test from_file raises ValueError for invalid JSON."""
        invalid_json = tmp_path / "invalid.json"
        invalid_json.write_text("{ invalid json content }")

        with pytest.raises(ValueError, match="Invalid JSON in configuration file"):
            GatewayConfig.from_file(invalid_json)

    def test_from_file_invalid_config_structure_raises_error(self, tmp_path):
        """Test from_file raises RuntimeError for invalid config structure."""
        invalid_config = tmp_path / "bad_config.json"
        invalid_config.write_text('{"remote": {"unknown_key": 123}}')

        with pytest.raises(RuntimeError, match="Failed to load configuration"):
            GatewayConfig.from_file(invalid_config)
