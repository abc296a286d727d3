"""Configuration management module."""

from ufcdata.core.config.settings import (
    ConfigManager,
    LoggingConfig,
    ManagerConfig,
    PipelineConfig,
    UfcDataConfig,
    get_default_config,
    load_config_from_env,
)

__all__ = [
    "ConfigManager",
    "UfcDataConfig",
    "PipelineConfig",
    "ManagerConfig",
    "LoggingConfig",
    "get_default_config",
    "load_config_from_env",
]
