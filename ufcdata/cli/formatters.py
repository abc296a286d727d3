"""Output formatters for CLI commands."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TextIO

from rich.box import SIMPLE
from rich.console import Console
from rich.table import Table


def _json(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _has_problem(row: Mapping[str, object]) -> bool:
    """Rows of both commands flag trouble differently; either form counts."""

    return row.get("is_valid") is False or bool(row.get("error_count"))


class OutputFormatter:
    """Base class for CLI output formatters."""

    name: str

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        *,
        stream: TextIO,
        columns: Sequence[str] | None = None,
    ) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Rich table; rows carrying errors are highlighted unless color is off."""

    name: str = "table"
    no_color: bool = False

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        *,
        stream: TextIO,
        columns: Sequence[str] | None = None,
    ) -> None:
        console = Console(file=stream, color_system=None if self.no_color else "auto", no_color=self.no_color)
        if not rows:
            console.print("No records.")
            return

        names = list(columns or rows[0].keys())
        table = Table(box=SIMPLE, caption=f"{len(rows)} record(s)")
        for name in names:
            numeric = all(isinstance(row.get(name), (int, float)) for row in rows)
            table.add_column(name, justify="right" if numeric else "left", header_style="" if self.no_color else "bold")
        for row in rows:
            style = "red" if _has_problem(row) and not self.no_color else None
            table.add_row(*(self._cell(row.get(name)) for name in names), style=style)
        console.print(table)

    @staticmethod
    def _cell(value: object) -> str:
        if value is None:
            return "-"
        if isinstance(value, bool):
            return "yes" if value else "no"
        if isinstance(value, float):
            return f"{value:.3f}"
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return "; ".join(value) or "-"
        if isinstance(value, (dict, list)):
            return _json(value)
        return str(value)


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """One JSON object per row, keys restricted to ``columns`` when given."""

    name: str = "jsonl"

    def render(
        self,
        rows: Sequence[Mapping[str, object]],
        *,
        stream: TextIO,
        columns: Sequence[str] | None = None,
    ) -> None:
        for row in rows:
            payload = {name: row.get(name) for name in columns} if columns else dict(row)
            stream.write(_json(payload) + "\n")
        stream.flush()


FORMATTERS: dict[str, type[OutputFormatter]] = {"table": TableFormatter, "jsonl": JSONLFormatter}


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    key = name.strip().lower()
    if key not in FORMATTERS:
        raise ValueError(f"Unsupported format '{name}'. Available formats: {', '.join(FORMATTERS)}.")
    if key == "table":
        return TableFormatter(no_color=no_color)
    return FORMATTERS[key]()


__all__ = ["FORMATTERS", "JSONLFormatter", "OutputFormatter", "TableFormatter", "create_formatter"]
