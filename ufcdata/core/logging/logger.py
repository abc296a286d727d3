"""Structured JSON logging on top of loguru with trace propagation.

Every record is rendered once by a patcher into a single JSON line; the
handlers only print that pre-rendered line.
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Iterator
from uuid import uuid4

from loguru import logger

from ufcdata.core.logging.config import LogConfig

_TRACE_ID_VAR: ContextVar[str | None] = ContextVar("ufcdata_trace_id", default=None)
_CONTEXT_VAR: ContextVar[dict[str, Any]] = ContextVar("ufcdata_log_context", default={})

_RENDERED_KEY = "_json"


def _ensure_trace_id() -> str:
    trace_id = _TRACE_ID_VAR.get()
    if trace_id is None:
        trace_id = uuid4().hex
        _TRACE_ID_VAR.set(trace_id)
    return trace_id


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _line_format(record: dict[str, Any]) -> str:
    # Callable format: loguru appends no exception block of its own.
    return "{extra[" + _RENDERED_KEY + "]}\n"


class _JsonRenderer:
    """Patcher filling trace and context fields, then rendering the payload."""

    def __init__(self, promoted_keys: tuple[str, ...]) -> None:
        self.promoted_keys = promoted_keys

    def __call__(self, record: dict[str, Any]) -> None:
        extra = record["extra"]
        if extra.get("trace_id"):
            _TRACE_ID_VAR.set(extra["trace_id"])
        else:
            extra["trace_id"] = _ensure_trace_id()
        for key, value in _CONTEXT_VAR.get().items():
            if extra.get(key) is None:
                extra[key] = value

        payload: dict[str, Any] = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name,
            "message": record["message"],
            "trace_id": extra["trace_id"],
        }
        for key in self.promoted_keys:
            payload[key] = extra.get(key)
        context = {k: v for k, v in extra.items() if k not in payload and not k.startswith("_")}
        if context:
            payload["context"] = context
        exception = record["exception"]
        if exception is not None and exception.type is not None:
            payload["exception"] = f"{exception.type.__name__}: {exception.value}"

        extra[_RENDERED_KEY] = json.dumps(payload, default=_encode, ensure_ascii=False)


def _apply(config: LogConfig) -> None:
    handlers: list[dict[str, Any]] = []
    if config.console_output:
        handlers.append(
            {
                "sink": config.console_stream or sys.stderr,
                "level": config.level,
                "format": _line_format,
                "colorize": False,
            }
        )
    if config.file_path is not None:
        handlers.append(
            {
                "sink": str(config.file_path),
                "level": config.level,
                "format": _line_format,
                "rotation": config.rotation,
                "encoding": "utf-8",
            }
        )
    logger.configure(handlers=handlers, patcher=_JsonRenderer(config.promoted_keys), extra=config.extra)


def configure_logging(level: str | None = None, *, config: LogConfig | None = None, **overrides: Any) -> LogConfig:
    """Reconfigure the global logger and return the effective settings.

    ``level`` and ``overrides`` take precedence over ``config``.
    """

    values = dict(config or LogConfig())
    values.update(overrides)
    if level is not None:
        values["level"] = level
    effective = LogConfig(**values)
    _apply(effective)
    return effective


class StructuredLogger:
    """Owns a logging configuration and exposes trace-aware helpers."""

    def __init__(self, config: LogConfig | None = None) -> None:
        self.config = configure_logging(config=config)
        self.logger = logger

    def configure(self, **kwargs: Any) -> None:
        self.config = configure_logging(config=self.config, **kwargs)

    @contextmanager
    def context(self, *, trace_id: str | None = None, **extra: Any) -> Iterator[str]:
        with log_context(trace_id=trace_id, **extra) as active_trace:
            yield active_trace


def get_logger(name: str | None = None):
    if name:
        return logger.bind(logger_name=name)
    return logger


def bind(**kwargs: Any):
    return logger.bind(**kwargs)


@contextmanager
def log_context(*, trace_id: str | None = None, **extra: Any) -> Iterator[str]:
    """Attach a trace id and ``extra`` fields to every record logged inside the block."""

    context_token = _CONTEXT_VAR.set({**_CONTEXT_VAR.get(), **extra})
    active_trace = trace_id or uuid4().hex
    trace_token = _TRACE_ID_VAR.set(active_trace)
    try:
        yield active_trace
    finally:
        _TRACE_ID_VAR.reset(trace_token)
        _CONTEXT_VAR.reset(context_token)


def current_trace_id() -> str:
    return _ensure_trace_id()


configure_logging()


__all__ = [
    "StructuredLogger",
    "bind",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
]
