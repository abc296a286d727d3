"""DuckDB connections for the processed-records store."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import duckdb
from loguru import logger

from ufcdata.core.data.storage.repository import ProcessedDataRepository

IN_MEMORY = ":memory:"


@dataclass(frozen=True)
class DuckDBFactoryConfig:
    database: str | Path = IN_MEMORY
    read_only: bool = False
    settings: Mapping[str, object] = field(default_factory=lambda: {"threads": 1})


class DuckDBFactory:
    """Opens configured connections; file databases get their directory created."""

    def __init__(self, config: DuckDBFactoryConfig | None = None) -> None:
        self._config = config or DuckDBFactoryConfig()

    def create_connection(self) -> duckdb.DuckDBPyConnection:
        database = str(self._config.database)
        if database != IN_MEMORY and not self._config.read_only:
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        conn = duckdb.connect(database=database, read_only=self._config.read_only)
        for name, value in self._config.settings.items():
            literal = f"'{value}'" if isinstance(value, str) else value
            conn.execute(f"SET {name}={literal}")
        logger.debug("Opened DuckDB database {}", database)
        return conn

    @contextmanager
    def connection(self) -> Iterator[duckdb.DuckDBPyConnection]:
        conn = self.create_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def repository(self) -> Iterator[ProcessedDataRepository]:
        """Repository over a fresh connection, closed on exit."""

        with self.connection() as conn:
            yield ProcessedDataRepository(conn)


__all__ = ["DuckDBFactory", "DuckDBFactoryConfig", "IN_MEMORY"]
