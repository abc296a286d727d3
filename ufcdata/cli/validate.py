"""``ufcdata validate``: clean and validate records with the real-time validator."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer

from ufcdata.core.data.connectors.file import load_records
from ufcdata.core.exceptions.base import UfcDataError
from ufcdata.core.validation.realtime import RealTimeValidatorService, ValidationConfig, ValidationResult

from .constants import INVALID_RECORDS_EXIT_CODE, SOURCE_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import emit_error, open_output, read_json_file

DEFAULT_COLUMNS = ["index", "is_valid", "errors", "warnings", "cleaned_data"]


def register(app: typer.Typer) -> None:
    app.command("validate")(validate_command)


def validate_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON array, JSON object or JSON Lines file of records."),
    source: str = typer.Option(..., "--source", "-s", help="Source id the records come from."),
    entity: str = typer.Option(..., "--entity", "-e", help="Entity type, e.g. fighter or event."),
    rules: Path = typer.Option(..., "--rules", "-r", help="Validation config (JSON) with rules and cleaningRules."),
    strict: bool = typer.Option(False, "--strict", help="Reject records with error-severity issues."),
) -> None:
    """Clean and validate every record of FILE; exit 1 if any record is invalid."""

    try:
        records = load_records(file)
    except (OSError, json.JSONDecodeError) as exc:
        emit_error(f"Unable to read records from '{file}': {exc}", "INPUT_READ_ERROR")
        raise typer.Exit(code=SOURCE_EXIT_CODE) from exc

    config = _load_validation_config(rules, source, entity, strict)
    service = RealTimeValidatorService()
    service.register_validation_config(config)

    results = asyncio.run(_validate_all(service, source, entity, records))

    with open_output(ctx) as (formatter, stream):
        formatter.render(
            [_to_row(index, result) for index, result in enumerate(results)],
            stream=stream,
            columns=DEFAULT_COLUMNS,
        )

    if any(not result.is_valid for result in results):
        raise typer.Exit(code=INVALID_RECORDS_EXIT_CODE)


async def _validate_all(
    service: RealTimeValidatorService, source: str, entity: str, records: list[Any]
) -> list[ValidationResult]:
    return [await service.validate_and_clean(source, entity, record) for record in records]


def _load_validation_config(path: Path, source: str, entity: str, strict: bool) -> ValidationConfig:
    try:
        payload: Any = read_json_file(path)
    except (OSError, json.JSONDecodeError) as exc:
        emit_error(f"Unable to read validation rules '{path}': {exc}", "CONFIG_READ_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    if isinstance(payload, list):
        payload = {"rules": payload}
    if not isinstance(payload, dict):
        emit_error("Validation rules must be a JSON object or array", "CONFIGURATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    overrides: dict[str, Any] = {"source_id": source, "entity_type": entity}
    if strict:
        overrides["strict_mode"] = True
    try:
        return ValidationConfig.from_dict(payload, **overrides)
    except UfcDataError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error


def _to_row(index: int, result: ValidationResult) -> dict[str, object]:
    return {
        "index": index,
        "is_valid": result.is_valid,
        "errors": [issue.message for issue in result.errors],
        "warnings": [issue.message for issue in result.warnings],
        "cleaned_data": result.cleaned_data,
    }


__all__ = ["register", "validate_command"]
