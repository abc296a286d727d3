"""``ufcdata transform``: run a transformation pipeline over a local file."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer

from ufcdata.core.data.connectors.file import load_records
from ufcdata.core.data.ingestion.pipelines import DataTransformationService, TransformationPipeline, load_pipeline
from ufcdata.core.exceptions.base import UfcDataError

from .constants import INVALID_RECORDS_EXIT_CODE, SOURCE_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import emit_error, open_output, read_json_file


def register(app: typer.Typer) -> None:
    app.command("transform")(transform_command)


def transform_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON array, JSON object or JSON Lines file of records."),
    pipeline_path: Path = typer.Option(..., "--pipeline", "-p", help="Transformation pipeline (JSON)."),
    source: str | None = typer.Option(None, "--source", "-s", help="Source id; defaults to the pipeline's."),
    entity: str | None = typer.Option(None, "--entity", "-e", help="Entity type; defaults to the pipeline's."),
) -> None:
    """Run the steps of a pipeline over FILE; exit 1 if any step failed."""

    try:
        records = load_records(file)
    except (OSError, json.JSONDecodeError) as exc:
        emit_error(f"Unable to read records from '{file}': {exc}", "INPUT_READ_ERROR")
        raise typer.Exit(code=SOURCE_EXIT_CODE) from exc

    pipeline = _load_pipeline(pipeline_path)
    service = DataTransformationService()
    service.register_pipeline(pipeline)
    result = asyncio.run(
        service.transform_data(source or pipeline.source_id, entity or pipeline.entity_type, records)
    )

    with open_output(ctx) as (formatter, stream):
        formatter.render([_to_row(record) for record in result.transformed_data], stream=stream)

    for failure in result.errors:
        emit_error(failure.message, "TRANSFORMATION_ERROR", details={"step_id": failure.step_id})
    if result.errors:
        raise typer.Exit(code=INVALID_RECORDS_EXIT_CODE)


def _load_pipeline(path: Path) -> TransformationPipeline:
    try:
        payload: Any = read_json_file(path)
    except (OSError, json.JSONDecodeError) as exc:
        emit_error(f"Unable to read pipeline '{path}': {exc}", "CONFIG_READ_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    try:
        return load_pipeline(payload)
    except UfcDataError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error


def _to_row(record: Any) -> dict[str, object]:
    return record if isinstance(record, dict) else {"value": record}


__all__ = ["register", "transform_command"]
