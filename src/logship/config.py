"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation;
an optional config.yaml supplies defaults that environment variables override.
"""

import json
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_LOG_GROUP = "test-group"
DEFAULT_LOG_STREAM = "test-stream"


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = os.environ.get("LOGSHIP_CONFIG_FILE")

    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/logship
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class StreamSettings(BaseSettings):
    """Remote log stream destination and shipping behaviour."""

    backend: str = Field(default="cloudwatch", description="Backend client: cloudwatch or memory")
    endpoint_url: str = Field(
        default="https://logs.ap-northeast-1.amazonaws.com",
        description="CloudWatch Logs endpoint (signing proxy or emulator)",
    )
    log_group: str = Field(default=DEFAULT_LOG_GROUP, description="Target log group")
    log_stream: str = Field(default=DEFAULT_LOG_STREAM, description="Target log stream")
    timeout_seconds: float = Field(default=30, description="Per-request timeout")
    extra_headers: Dict[str, str] = Field(default_factory=dict, description="Headers added to every request")
    max_in_flight: Optional[int] = Field(default=None, description="Cap on concurrent shipping tasks (unbounded if unset)")
    drain_timeout_seconds: float = Field(default=10, description="Shutdown wait for in-flight tasks")
    exclude_targets: List[str] = Field(
        default=["logship.core", "aiohttp", "asyncio"],
        description="Logger prefixes printed locally but never shipped",
    )

    @field_validator("backend")
    def validate_backend(cls, v: str) -> str:
        """Only the known backends are accepted."""
        v = v.lower()
        if v not in {"cloudwatch", "memory"}:
            raise ValueError(f"Unknown backend '{v}', expected cloudwatch or memory")
        return v

    @field_validator("max_in_flight")
    def validate_max_in_flight(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("max_in_flight must be at least 1")
        return v

    class Config:
        env_prefix = "LOGSHIP_STREAM_"


class RetrySettings(BaseSettings):
    """Backoff configuration for one retry call site."""

    base_delay_seconds: float = Field(default=1.0, description="Delay after the first failure")
    max_delay_seconds: float = Field(default=60.0, description="Upper bound on any delay")
    max_attempts: int = Field(default=4, description="Attempts before giving up")
    jitter: bool = Field(default=False, description="Randomize delays")

    @field_validator("max_attempts")
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v


class OuterRetrySettings(RetrySettings):
    """Retries of the full describe + append sequence."""

    max_attempts: int = Field(default=4, description="Attempts before a record is dropped")

    class Config:
        env_prefix = "LOGSHIP_OUTER_RETRY_"


class InnerRetrySettings(RetrySettings):
    """Retries of the describe step alone."""

    max_attempts: int = Field(default=10, description="Describe attempts per outer attempt")

    class Config:
        env_prefix = "LOGSHIP_INNER_RETRY_"


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="127.0.0.1", description="Demo server host")
    port: int = Field(default=3001, description="Demo server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_filter: str = Field(default="info", description="Level filter directives, env-logger style")
    color: Optional[bool] = Field(default=None, description="Force terminal colours on or off")

    # Component settings
    stream: StreamSettings = Field(default_factory=StreamSettings)
    outer_retry: OuterRetrySettings = Field(default_factory=OuterRetrySettings)
    inner_retry: InnerRetrySettings = Field(default_factory=InnerRetrySettings)

    class Config:
        env_prefix = "LOGSHIP_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    # Load config file data
    config_data = load_config_file()

    # Config file values become env defaults; real env vars win
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "host"): "LOGSHIP_HOST",
        ("server", "port"): "LOGSHIP_PORT",
        ("server", "debug"): "LOGSHIP_DEBUG",
        ("logging", "filter"): "LOGSHIP_LOG_FILTER",
        ("logging", "color"): "LOGSHIP_COLOR",
        ("stream", "backend"): "LOGSHIP_STREAM_BACKEND",
        ("stream", "endpoint_url"): "LOGSHIP_STREAM_ENDPOINT_URL",
        ("stream", "log_group"): "LOGSHIP_STREAM_LOG_GROUP",
        ("stream", "log_stream"): "LOGSHIP_STREAM_LOG_STREAM",
        ("stream", "timeout_seconds"): "LOGSHIP_STREAM_TIMEOUT_SECONDS",
        ("stream", "max_in_flight"): "LOGSHIP_STREAM_MAX_IN_FLIGHT",
        ("stream", "drain_timeout_seconds"): "LOGSHIP_STREAM_DRAIN_TIMEOUT_SECONDS",
    }

    for section in ("outer_retry", "inner_retry"):
        prefix = f"LOGSHIP_{section.upper()}_"
        for key in ("base_delay_seconds", "max_delay_seconds", "max_attempts", "jitter"):
            mappings[(section, key)] = prefix + key.upper()

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value)

    # Complex values go through the environment as JSON
    for key, env_var in (
        ("extra_headers", "LOGSHIP_STREAM_EXTRA_HEADERS"),
        ("exclude_targets", "LOGSHIP_STREAM_EXCLUDE_TARGETS"),
    ):
        if env_var not in os.environ:
            value = (config_data.get("stream") or {}).get(key)
            if value:
                os.environ[env_var] = json.dumps(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
