"""Configuration settings for the YouTube sync engine."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from ytsync.core.constants import DEFAULT_FREQUENCY_TIERS

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and config.yaml."""

    model_config = SettingsConfigDict(  # type: ignore[assignment]
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Allow extra env vars not defined in model
    )

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "youtube_sync"
    mongodb_timeout_ms: int = 5000

    # Redis (event transport)
    redis_url: str = "redis://localhost:6379"
    redis_db: int = 0
    redis_key_prefix: str = "ytsync"
    redis_enabled: bool = True
    redis_stream_maxlen: int = 100_000

    # YouTube Data API
    youtube_client_id: str = ""
    youtube_client_secret: str = ""
    youtube_api_base_url: str = "https://www.googleapis.com/youtube/v3"
    youtube_token_url: str = "https://oauth2.googleapis.com/token"
    youtube_api_timeout: int = 30

    # Publishing backend
    publisher_url: str = "http://localhost:3001"
    publisher_api_key: str = ""
    publisher_timeout: int = 120

    # Sync engine
    sync_max_workers: int = 10
    sync_max_videos_per_channel: int = 100
    sync_external_call_timeout: float = 60.0

    # Frequency tiers (bucket -> minimum subscriber count)
    frequency_tiers: dict[str, int] = dict(DEFAULT_FREQUENCY_TIERS)

    # Signed channel commands
    command_owner_key: str = ""
    command_operator_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_yaml_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to ./config.yaml or ./config.yml

    Returns:
        Dictionary with configuration values
    """

    if config_path is None:
        possible_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
            Path(__file__).parent.parent.parent / "config.yml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not Path(config_path).exists():
        return {}

    try:
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config file %s: %s", config_path, e)
        return {}


def apply_yaml_config(settings: Settings, config: dict[str, Any]) -> Settings:
    """
    Apply YAML configuration to settings object.

    Environment variables take precedence over YAML config: a YAML value is only
    applied while the corresponding field still holds its default.

    Args:
        settings: Settings object to update
        config: Configuration dictionary from YAML

    Returns:
        Updated Settings object
    """
    defaults = Settings.model_fields

    def _apply(section: str, mapping: dict[str, str], cast: dict[str, Any] | None = None) -> None:
        values = config.get(section)
        if not isinstance(values, dict):
            return
        for yaml_key, field_name in mapping.items():
            if yaml_key not in values:
                continue
            if getattr(settings, field_name) != defaults[field_name].default:
                continue
            value = values[yaml_key]
            if cast and field_name in cast:
                value = cast[field_name](value)
            setattr(settings, field_name, value)

    _apply("mongodb", {"url": "mongodb_url", "database": "mongodb_database"})
    _apply(
        "redis",
        {
            "url": "redis_url",
            "db": "redis_db",
            "key_prefix": "redis_key_prefix",
            "stream_maxlen": "redis_stream_maxlen",
        },
        {"redis_db": int, "redis_stream_maxlen": int},
    )
    _apply(
        "youtube_api",
        {"base_url": "youtube_api_base_url", "timeout": "youtube_api_timeout"},
        {"youtube_api_timeout": int},
    )
    _apply(
        "publisher",
        {"url": "publisher_url", "timeout": "publisher_timeout"},
        {"publisher_timeout": int},
    )
    _apply(
        "sync",
        {
            "max_workers": "sync_max_workers",
            "max_videos_per_channel": "sync_max_videos_per_channel",
            "external_call_timeout": "sync_external_call_timeout",
        },
        {
            "sync_max_workers": int,
            "sync_max_videos_per_channel": int,
            "sync_external_call_timeout": float,
        },
    )

    # Frequency tiers are a whole mapping, YAML replaces them unless env overrode them
    frequency = config.get("frequency")
    tiers = frequency.get("tiers") if isinstance(frequency, dict) else None
    if tiers and settings.frequency_tiers == DEFAULT_FREQUENCY_TIERS:
        settings.frequency_tiers = {str(k): int(v) for k, v in tiers.items()}

    return settings


def get_settings_with_yaml(config_path: Path | str | None = None) -> Settings:
    """
    Get settings with YAML configuration applied.

    Priority: Environment Variables > YAML Config > Defaults

    Args:
        config_path: Optional path to config file

    Returns:
        Settings object with YAML configuration applied
    """
    settings = Settings()
    config = load_yaml_config(config_path)
    return apply_yaml_config(settings, config)
