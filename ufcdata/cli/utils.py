"""Helpers shared by CLI commands."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

import typer

from ufcdata.core.config.settings import UfcDataConfig

from .constants import VALIDATION_EXIT_CODE
from .formatters import OutputFormatter, create_formatter


@dataclass(slots=True)
class CLIOptions:
    """Global options stored on the Typer context by the app callback."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    config: UfcDataConfig = field(default_factory=UfcDataConfig)

    @classmethod
    def from_context(cls, ctx: typer.Context) -> CLIOptions:
        data = ctx.ensure_object(dict)
        config = data.get("config")
        return cls(
            format=str(data.get("format", "table")),
            output_path=data.get("output_path"),
            no_color=bool(data.get("no_color", False)),
            config=config if isinstance(config, UfcDataConfig) else UfcDataConfig(),
        )


@contextmanager
def open_output(ctx: typer.Context) -> Iterator[tuple[OutputFormatter, TextIO]]:
    """Yield the formatter and the stream selected by ``--format``/``--output``."""

    options = CLIOptions.from_context(ctx)
    formatter = create_formatter(options.format, no_color=options.no_color)
    if options.output_path is None:
        yield formatter, sys.stdout
        return

    try:
        stream = open(options.output_path, "w", encoding="utf-8")
    except OSError as exc:
        emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    with stream:
        yield formatter, stream


def read_json_file(path: Path) -> Any:
    with open(path, encoding="utf-8") as file:
        return json.load(file)


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print ``{"code", "message", "details"}`` as one JSON line on stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        # Round-trip so non-JSON values (paths, enums, exceptions) print as strings.
        payload["details"] = json.loads(json.dumps(dict(details), default=str))
    typer.echo(json.dumps(payload, ensure_ascii=False), err=True)


__all__ = ["CLIOptions", "emit_error", "open_output", "read_json_file"]
