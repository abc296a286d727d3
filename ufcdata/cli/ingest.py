"""``ufcdata ingest``: run the ingestion pipeline over a local file."""

from __future__ import annotations

import asyncio
import json
from contextlib import ExitStack
from pathlib import Path
from typing import Any

import typer

from ufcdata.core.config.settings import PipelineConfig
from ufcdata.core.data.connectors.file import load_records
from ufcdata.core.data.ingestion.config import NormalizationConfig
from ufcdata.core.data.ingestion.models import ProcessedData
from ufcdata.core.data.ingestion.service import DataIngestionService
from ufcdata.core.data.storage import DuckDBFactory, DuckDBFactoryConfig, ProcessedDataRepository
from ufcdata.core.exceptions.base import UfcDataError

from .constants import SOURCE_EXIT_CODE, SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import CLIOptions, emit_error, open_output, read_json_file

DEFAULT_COLUMNS = ["id", "source_id", "quality_score", "error_count", "conflict_count", "normalized_data"]


def register(app: typer.Typer) -> None:
    app.command("ingest")(ingest_command)


def get_ingestion_service(
    config: PipelineConfig, repository: ProcessedDataRepository | None = None
) -> DataIngestionService:
    """Factory hook for obtaining a :class:`DataIngestionService`."""

    return DataIngestionService(config=config, repository=repository)


def ingest_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON array, JSON object or JSON Lines file of raw records."),
    source: str = typer.Option(..., "--source", "-s", help="Source id the records come from."),
    normalization: Path | None = typer.Option(
        None,
        "--normalization",
        "-n",
        help="Normalization config (JSON) applied to the source.",
    ),
    database: Path | None = typer.Option(
        None,
        "--database",
        help="DuckDB file receiving the resolved records.",
    ),
) -> None:
    """Normalize, score and resolve the records of FILE."""

    try:
        records = load_records(file)
    except (OSError, json.JSONDecodeError) as exc:
        emit_error(f"Unable to read records from '{file}': {exc}", "INPUT_READ_ERROR")
        raise typer.Exit(code=SOURCE_EXIT_CODE) from exc

    normalization_config = _load_normalization(normalization, source) if normalization else None

    with ExitStack() as stack:
        repository: ProcessedDataRepository | None = None
        if database is not None:
            repository = stack.enter_context(DuckDBFactory(DuckDBFactoryConfig(database=database)).repository())

        try:
            service = get_ingestion_service(CLIOptions.from_context(ctx).config.pipeline, repository)
        except UfcDataError as error:
            emit_error(error.message, error.error_code, details=error.details)
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
        if normalization_config is not None:
            service.register_normalization_config(normalization_config)

        try:
            processed = asyncio.run(service.process_data(source, records))
        except UfcDataError as error:
            emit_error(error.message, error.error_code, details=error.details)
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
        except Exception as error:  # pragma: no cover - safety net
            emit_error(str(error), "UNEXPECTED_ERROR")
            raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

        formatter, stream = stack.enter_context(open_output(ctx))
        formatter.render([_to_row(item) for item in processed], stream=stream, columns=DEFAULT_COLUMNS)


def _load_normalization(path: Path, source: str) -> NormalizationConfig:
    try:
        payload: Any = read_json_file(path)
    except (OSError, json.JSONDecodeError) as exc:
        emit_error(f"Unable to read normalization config '{path}': {exc}", "CONFIG_READ_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    if not isinstance(payload, dict):
        emit_error("Normalization config must be a JSON object", "CONFIGURATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    try:
        return NormalizationConfig.from_dict({**payload, "source": source})
    except UfcDataError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error


def _to_row(item: ProcessedData) -> dict[str, object]:
    return {
        "id": item.id,
        "source_id": item.source_id,
        "quality_score": round(item.quality_score, 4),
        "error_count": item.error_count,
        "conflict_count": len(item.conflicts or []),
        "normalized_data": item.normalized_data,
    }


__all__ = ["get_ingestion_service", "ingest_command", "register"]
