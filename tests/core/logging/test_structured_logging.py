"""Tests for structured logging with trace propagation."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from ufcdata.core.config.settings import LoggingConfig
from ufcdata.core.logging import LogConfig, StructuredLogger, configure_logging, current_trace_id, log_context, logger


def _read_records(stream: io.StringIO) -> list[dict[str, object]]:
    stream.seek(0)
    lines = [line for line in stream.getvalue().splitlines() if line.strip()]
    return [json.loads(line) for line in lines]


def test_log_config_defaults() -> None:
    config = LogConfig()

    assert config.level == "INFO"
    assert config.console_output is True
    assert config.file_path is None
    assert config.promoted_keys == ("source_id", "error_code")


def test_log_config_normalizes_and_rejects_levels() -> None:
    assert LogConfig(level=" debug ").level == "DEBUG"

    with pytest.raises(ValidationError):
        LogConfig(level="loud")


def test_log_config_from_settings() -> None:
    config = LogConfig.from_settings(LoggingConfig(level="warning", file="logs/app.log", rotation="10 MB"), level="ERROR")

    assert config.level == "ERROR"
    assert str(config.file_path) == "logs/app.log"
    assert config.rotation == "10 MB"


def test_structured_log_promotes_source_and_error_code() -> None:
    buffer = io.StringIO()
    structured = StructuredLogger(LogConfig(console_stream=buffer))

    with structured.context(trace_id="trace-ufc-300", source_id="espn", error_code="SOURCE_READ_ERROR", batch="b-1"):
        structured.logger.warning("sync failed", attempt=2)

    records = _read_records(buffer)
    assert len(records) == 1
    record = records[0]
    assert record["level"] == "WARNING"
    assert record["message"] == "sync failed"
    assert record["trace_id"] == "trace-ufc-300"
    assert record["source_id"] == "espn"
    assert record["error_code"] == "SOURCE_READ_ERROR"
    assert record["context"] == {"batch": "b-1", "attempt": 2}


def test_trace_id_is_shared_inside_context_only() -> None:
    buffer = io.StringIO()
    configure_logging("DEBUG", console_stream=buffer)

    with log_context() as trace_id:
        logger.info("first")
        logger.debug("second")
        assert current_trace_id() == trace_id
    logger.info("outside")

    records = _read_records(buffer)
    assert [record["trace_id"] for record in records[:2]] == [trace_id, trace_id]
    assert records[2]["trace_id"] != trace_id
    assert len(records[2]["trace_id"]) == 32


def test_level_filters_records() -> None:
    buffer = io.StringIO()
    configure_logging("warning", console_stream=buffer)

    logger.info("hidden")
    logger.error("shown")

    assert [record["message"] for record in _read_records(buffer)] == ["shown"]


def test_file_sink_writes_json_lines(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "ufcdata.log"
    configure_logging("INFO", console_output=False, file_path=log_file)

    logger.bind(source_id="ufcstats").info("batch stored")

    lines = log_file.read_text(encoding="utf-8").splitlines()
    payload = json.loads(lines[-1])
    assert payload["message"] == "batch stored"
    assert payload["source_id"] == "ufcstats"


def test_custom_promoted_keys_and_exceptions() -> None:
    buffer = io.StringIO()
    configure_logging(console_stream=buffer, promoted_keys=("entity_type",))

    try:
        raise ValueError("weight out of range")
    except ValueError:
        logger.bind(entity_type="fighter", source_id="espn").exception("validation crashed")

    record = _read_records(buffer)[0]
    assert record["entity_type"] == "fighter"
    assert "error_code" not in record
    assert record["context"] == {"source_id": "espn"}
    assert record["exception"] == "ValueError: weight out of range"
