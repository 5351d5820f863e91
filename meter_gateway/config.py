"""Configuration management for the meter telemetry gateway."""

import json
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class GeneratorConfig:
    """Simulated meter profile used by the telemetry generator."""

    solar_capacity_kw: float = 5.0
    daily_target_kwh: float = 25.0
    base_consumption_kw: float = 0.5
    peak_consumption_kw: float = 2.0
    weather_variation_enabled: bool = True
    weather_variation_percent: float = 20.0


DEFAULT_GENERATOR_CONFIG = GeneratorConfig()

GENERATOR_PRESETS: dict[str, GeneratorConfig] = {
    "small": GeneratorConfig(
        solar_capacity_kw=3.0,
        daily_target_kwh=15.0,
        base_consumption_kw=0.3,
        peak_consumption_kw=1.5,
    ),
    "medium": GeneratorConfig(
        solar_capacity_kw=5.0,
        daily_target_kwh=25.0,
        base_consumption_kw=0.5,
        peak_consumption_kw=2.0,
    ),
    "large": GeneratorConfig(
        solar_capacity_kw=10.0,
        daily_target_kwh=50.0,
        base_consumption_kw=1.0,
        peak_consumption_kw=4.0,
    ),
    "commercial": GeneratorConfig(
        solar_capacity_kw=50.0,
        daily_target_kwh=250.0,
        base_consumption_kw=5.0,
        peak_consumption_kw=20.0,
        weather_variation_percent=15.0,
    ),
}


def get_generator_config(preset: Optional[str] = None) -> GeneratorConfig:
    """Resolve a preset name to a generator config.

    Unknown or missing names fall back to DEFAULT_GENERATOR_CONFIG
    (5 kW solar, 0.5 kW base, 2.0 kW peak, +/-20% weather).
    """
    if preset and preset in GENERATOR_PRESETS:
        return replace(GENERATOR_PRESETS[preset])
    return replace(DEFAULT_GENERATOR_CONFIG)


@dataclass
class RemoteConfig:
    """Connection settings for the remote meter repository (Supabase).

    Supports environment variable overrides:
    - SUPABASE_URL: Supabase project URL
    - SUPABASE_KEY: Supabase API key (anon or service role)
    """

    supabase_url: str = ""
    supabase_key: str = ""
    meters_table: str = "meters"
    energy_table: str = "energy_data"

    def __post_init__(self) -> None:
        """Apply environment variable overrides only when values are at defaults.

        Precedence: explicit args > env vars > defaults
        """
        if self.supabase_url == "":
            self.supabase_url = os.environ.get("SUPABASE_URL", self.supabase_url)
        if self.supabase_key == "":
            self.supabase_key = os.environ.get("SUPABASE_KEY", self.supabase_key)

    def validate(self) -> None:
        if not self.supabase_url:
            raise ValueError("Supabase URL is required for the remote repository")
        if not self.supabase_key:
            raise ValueError("Supabase key is required for the remote repository")


@dataclass
class CacheConfig:
    """Offline cache settings.

    Supports environment variable overrides:
    - METER_CACHE_DIR: Directory holding the cache files
    - METER_CACHE_MAX_SAMPLES: Snapshot size (default 96 = 24h of 15-min samples)
    """

    directory: str = ".meter_cache"
    max_samples: int = 96
    key_prefix: str = "meter_gateway_"

    def __post_init__(self) -> None:
        if self.directory == ".meter_cache":
            self.directory = os.environ.get("METER_CACHE_DIR", self.directory)
        if self.max_samples == 96:
            env_max = os.environ.get("METER_CACHE_MAX_SAMPLES")
            if env_max:
                self.max_samples = int(env_max)


@dataclass
class GatewayConfig:
    """Main gateway configuration."""

    user_id: str = ""
    preset: Optional[str] = None
    interval_seconds: float = 900  # 15 minutes
    interval_minutes: int = 15
    window_days: int = 7
    seed: Optional[int] = None
    output_file: Optional[str] = None

    remote: RemoteConfig = field(default_factory=RemoteConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    def __post_init__(self) -> None:
        if self.preset is None:
            self.preset = os.environ.get("METER_PRESET")
        if self.interval_seconds == 900:
            env_interval = os.environ.get("METER_INTERVAL_SECONDS")
            if env_interval:
                self.interval_seconds = float(env_interval)

    @property
    def generator(self) -> GeneratorConfig:
        return get_generator_config(self.preset)

    @classmethod
    def from_dict(cls, data: dict) -> "GatewayConfig":
        """Create config from dictionary."""
        try:
            return cls(
                user_id=data.get("user_id", ""),
                preset=data.get("preset"),
                interval_seconds=data.get("interval_seconds", 900),
                interval_minutes=data.get("interval_minutes", 15),
                window_days=data.get("window_days", 7),
                seed=data.get("seed"),
                output_file=data.get("output_file"),
                remote=RemoteConfig(**data.get("remote", {})),
                cache=CacheConfig(**data.get("cache", {})),
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration format: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "GatewayConfig":
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.from_dict(data)
        except FileNotFoundError as exc:
            raise FileNotFoundError(
                f"Configuration file not found: {path}",
            ) from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file {path}: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise RuntimeError(
                f"Failed to load configuration from {path}: {exc}",
            ) from exc

    def to_dict(self) -> dict:
        """Convert config to dictionary, leaving out the Supabase key."""
        data = asdict(self)
        data["remote"].pop("supabase_key", None)
        return data

    def to_file(self, path: Path) -> None:
        """Save config to JSON file."""
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to save configuration to {path}: {exc}",
            ) from exc


# Default configuration template
DEFAULT_CONFIG = GatewayConfig()
