"""Configuration management for the ingestion pipeline, manager and logging."""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from ufcdata.core.exceptions.base import ConfigurationError


@dataclass
class PipelineConfig:
    """DataIngestionService settings."""

    latest_resolution_mode: str = "last_folded"
    default_strategy: str = "highest_quality"


@dataclass
class ManagerConfig:
    """IngestionManager settings."""

    sync_error_backoff_ms: int = 300_000
    default_interval_ms: int = 3_600_000


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: str | None = None
    rotation: str | None = None


@dataclass
class UfcDataConfig:
    """Top-level ufcdata configuration."""

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    manager: ManagerConfig = field(default_factory=ManagerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "UfcDataConfig":
        """Build a configuration from a nested mapping."""
        return cls(
            pipeline=PipelineConfig(**config_dict.get("pipeline", {})),
            manager=ManagerConfig(**config_dict.get("manager", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pipeline": asdict(self.pipeline),
            "manager": asdict(self.manager),
            "logging": asdict(self.logging),
        }


class ConfigManager:
    """Loads configuration from a TOML file, falling back to defaults."""

    def __init__(self, config_path: Path | None = None):
        """Initialise the manager.

        Args:
            config_path: TOML file path; defaults to ``~/.ufcdata/config.toml``
        """
        self.config_path = config_path or Path.home() / ".ufcdata" / "config.toml"
        self.config = self._load_config()

    def _load_config(self) -> UfcDataConfig:
        if not self.config_path.exists():
            return UfcDataConfig()

        try:
            with open(self.config_path, "rb") as f:
                config_dict = tomllib.load(f)
            return UfcDataConfig.from_dict(config_dict)
        except (OSError, tomllib.TOMLDecodeError, TypeError) as e:
            logger.warning("Failed to load config from {}: {}", self.config_path, e)
            return UfcDataConfig()

    def get_config(self) -> UfcDataConfig:
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Deep-merge ``updates`` into the current configuration."""
        config_dict = self.config.to_dict()

        def deep_update(d: dict[str, Any], u: dict[str, Any]) -> dict[str, Any]:
            for k, v in u.items():
                if isinstance(v, dict):
                    d[k] = deep_update(d.get(k, {}), v)
                else:
                    d[k] = v
            return d

        deep_update(config_dict, updates)
        self.config = UfcDataConfig.from_dict(config_dict)


def get_default_config() -> UfcDataConfig:
    return UfcDataConfig()


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'", {"variable": name}) from None


def load_config_from_env() -> dict[str, Any]:
    """Collect ``UFCDATA_*`` environment overrides into a nested mapping."""
    config: dict[str, Any] = {}

    pipeline_config: dict[str, Any] = {}
    latest_mode = os.getenv("UFCDATA_LATEST_RESOLUTION_MODE")
    if latest_mode is not None:
        pipeline_config["latest_resolution_mode"] = latest_mode
    default_strategy = os.getenv("UFCDATA_DEFAULT_STRATEGY")
    if default_strategy is not None:
        pipeline_config["default_strategy"] = default_strategy
    if pipeline_config:
        config["pipeline"] = pipeline_config

    manager_config: dict[str, Any] = {}
    backoff = _env_int("UFCDATA_SYNC_ERROR_BACKOFF_MS")
    if backoff is not None:
        manager_config["sync_error_backoff_ms"] = backoff
    interval = _env_int("UFCDATA_DEFAULT_INTERVAL_MS")
    if interval is not None:
        manager_config["default_interval_ms"] = interval
    if manager_config:
        config["manager"] = manager_config

    logging_config: dict[str, Any] = {}
    level = os.getenv("UFCDATA_LOGGING_LEVEL")
    if level is not None:
        logging_config["level"] = level
    log_file = os.getenv("UFCDATA_LOGGING_FILE")
    if log_file is not None:
        logging_config["file"] = log_file
    rotation = os.getenv("UFCDATA_LOGGING_ROTATION")
    if rotation is not None:
        logging_config["rotation"] = rotation
    if logging_config:
        config["logging"] = logging_config

    return config
