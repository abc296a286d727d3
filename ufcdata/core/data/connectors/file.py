"""Connector reading raw records from local JSON or JSON Lines files."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from ufcdata.core.data.connectors.base import ApiConnector
from ufcdata.core.exceptions.base import ConnectorError


def load_records(path: Path) -> list[Any]:
    """Load a JSON array, a single JSON object, or JSON Lines."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".jsonl", ".ndjson"}:
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    payload = json.loads(text)
    if isinstance(payload, list):
        return payload
    return [payload]


class JsonFileConnector(ApiConnector):
    def __init__(self, source_id: str, path: Path | str, **kwargs: Any) -> None:
        super().__init__(source_id, **kwargs)
        self.path = Path(path)

    async def fetch_records(self) -> list[Any]:
        try:
            return await asyncio.to_thread(load_records, self.path)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConnectorError(
                f"Unable to read records from {self.path}: {exc}",
                self.source_id,
                "SOURCE_READ_ERROR",
                {"path": str(self.path)},
            ) from exc


__all__ = ["JsonFileConnector", "load_records"]
