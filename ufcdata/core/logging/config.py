"""Settings model for structured JSON logging."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ufcdata.core.config.settings import LoggingConfig

_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class LogConfig(BaseModel):
    """Where records go and which extra keys become top-level JSON fields.

    A file sink is added whenever ``file_path`` is set; ``rotation`` accepts
    any loguru rotation value such as ``"10 MB"`` or ``"1 day"``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = "INFO"
    console_output: bool = True
    console_stream: Any = None
    file_path: Path | None = None
    rotation: str | None = None
    promoted_keys: tuple[str, ...] = ("source_id", "error_code")
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @classmethod
    def from_settings(cls, settings: LoggingConfig, **overrides: Any) -> LogConfig:
        values: dict[str, Any] = {"level": settings.level, "file_path": settings.file, "rotation": settings.rotation}
        values.update(overrides)
        return cls(**values)


__all__ = ["LogConfig"]
