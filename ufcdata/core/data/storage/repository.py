"""DuckDB-backed store for resolved ``ProcessedData``."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict
from datetime import UTC
from typing import Any

from duckdb import DuckDBPyConnection
from loguru import logger

from ufcdata.core.data.ingestion.models import ProcessedData
from ufcdata.core.data.storage.schema import PROCESSED_RECORDS_TABLE

_JSON_COLUMNS = ("original_data", "normalized_data", "validation_errors", "conflicts")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class ProcessedDataRepository:
    """Upserts resolved records keyed by identity key.

    Saving a record whose id already exists replaces the stored row, so the
    table mirrors the pipeline cache.
    """

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self.conn = conn
        PROCESSED_RECORDS_TABLE.ensure(conn)

    def save(self, items: Sequence[ProcessedData]) -> int:
        if not items:
            return 0

        rows = [
            (
                item.id,
                item.source_id,
                _dumps(item.original_data),
                _dumps(item.normalized_data),
                item.quality_score,
                _dumps([issue.to_dict() for issue in item.validation_errors]),
                _dumps([asdict(conflict) for conflict in item.conflicts]) if item.conflicts else None,
                item.timestamp.astimezone(UTC).replace(tzinfo=None),
            )
            for item in items
        ]
        self.conn.executemany(PROCESSED_RECORDS_TABLE.upsert_sql(), rows)
        logger.debug("Persisted {} processed records", len(rows))
        return len(rows)

    def get(self, data_id: str) -> dict[str, Any] | None:
        result = self.conn.execute(
            f"SELECT * FROM {PROCESSED_RECORDS_TABLE.name} WHERE id = ?", [data_id]
        ).fetchone()
        if result is None:
            return None
        columns = [desc[0] for desc in self.conn.description]
        return self._decode(dict(zip(columns, result, strict=False)))

    def list_by_source(self, source_id: str) -> list[dict[str, Any]]:
        result = self.conn.execute(
            f"SELECT * FROM {PROCESSED_RECORDS_TABLE.name} WHERE source_id = ? ORDER BY id", [source_id]
        ).fetchall()
        columns = [desc[0] for desc in self.conn.description]
        return [self._decode(dict(zip(columns, row, strict=False))) for row in result]

    def count(self) -> int:
        row = self.conn.execute(f"SELECT COUNT(*) FROM {PROCESSED_RECORDS_TABLE.name}").fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    def _decode(row: dict[str, Any]) -> dict[str, Any]:
        for column in _JSON_COLUMNS:
            if isinstance(row.get(column), str):
                row[column] = json.loads(row[column])
        return row


__all__ = ["ProcessedDataRepository"]
