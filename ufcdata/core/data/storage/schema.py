"""DuckDB table definitions for resolved ingestion output."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    name: str
    data_type: str
    nullable: bool = True

    def render(self) -> str:
        return f"{self.name} {self.data_type}" + ("" if self.nullable else " NOT NULL")


@dataclass(frozen=True)
class TableSchema:
    """Column layout plus the DDL and upsert statements derived from it."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_ddl(self) -> str:
        parts = [column.render() for column in self.columns]
        if self.primary_key:
            parts.append(f"PRIMARY KEY ({', '.join(self.primary_key)})")
        body = ",\n    ".join(parts)
        return f"CREATE TABLE IF NOT EXISTS {self.name} (\n    {body}\n)"

    def upsert_sql(self) -> str:
        """Positional ``INSERT OR REPLACE`` covering every column in declared order."""

        names = self.column_names
        placeholders = ", ".join("?" for _ in names)
        return f"INSERT OR REPLACE INTO {self.name} ({', '.join(names)}) VALUES ({placeholders})"

    def ensure(self, conn: DuckDBPyConnection) -> None:
        conn.execute(self.create_ddl())


PROCESSED_RECORDS_TABLE = TableSchema(
    name="processed_records",
    columns=(
        ColumnDef("id", "VARCHAR", nullable=False),
        ColumnDef("source_id", "VARCHAR", nullable=False),
        ColumnDef("original_data", "JSON"),
        ColumnDef("normalized_data", "JSON"),
        ColumnDef("quality_score", "DOUBLE", nullable=False),
        ColumnDef("validation_errors", "JSON"),
        ColumnDef("conflicts", "JSON"),
        ColumnDef("processed_at", "TIMESTAMP", nullable=False),
    ),
    primary_key=("id",),
)


__all__ = ["ColumnDef", "PROCESSED_RECORDS_TABLE", "TableSchema"]
