"""Main entry point for the ufcdata command line interface."""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path

import typer
from pydantic import ValidationError

from ufcdata.core.config.settings import ConfigManager, UfcDataConfig, load_config_from_env
from ufcdata.core.exceptions.base import UfcDataError
from ufcdata.core.logging import LogConfig, configure_logging

from .constants import VALIDATION_EXIT_CODE
from .ingest import register as register_ingest_command
from .transform import register as register_transform_command
from .utils import emit_error
from .validate import register as register_validate_command


class OutputFormat(str, Enum):
    TABLE = "table"
    JSONL = "jsonl"


def _load_settings(config_path: Path | None) -> UfcDataConfig:
    """File values first, then ``UFCDATA_*`` environment overrides."""

    manager = ConfigManager(config_path)
    try:
        manager.update_config(**load_config_from_env())
    except UfcDataError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    return manager.get_config()


def _setup_logging(level: str | None, settings: UfcDataConfig) -> str:
    # Log lines go to stderr so piped jsonl output stays clean.
    try:
        applied = configure_logging(level, config=LogConfig.from_settings(settings.logging), console_stream=sys.stderr)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    return applied.level


def create_app() -> typer.Typer:
    app = typer.Typer(add_completion=False, help="Ingest, validate and reconcile UFC data feeds.")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: OutputFormat = typer.Option(
            OutputFormat.TABLE, "--format", "-f", case_sensitive=False, help="Result rendering."
        ),
        output: Path | None = typer.Option(None, "--output", "-o", help="Result file; stdout when omitted."),
        log_level: str | None = typer.Option(None, "--log-level", help="Overrides the configured log level."),
        no_color: bool = typer.Option(False, "--no-color", help="Plain table output without styles."),
        config_path: Path | None = typer.Option(
            None, "--config", help="TOML settings file (defaults to ~/.ufcdata/config.toml)."
        ),
    ) -> None:
        settings = _load_settings(config_path)
        ctx.ensure_object(dict)
        ctx.obj.update(
            format=format.value,
            output_path=output,
            log_level=_setup_logging(log_level, settings),
            no_color=no_color,
            config=settings,
        )

    register_ingest_command(app)
    register_validate_command(app)
    register_transform_command(app)
    return app


app = create_app()
