"""Persistence of resolved ingestion output."""

from ufcdata.core.data.storage.factory import DuckDBFactory, DuckDBFactoryConfig
from ufcdata.core.data.storage.repository import ProcessedDataRepository
from ufcdata.core.data.storage.schema import PROCESSED_RECORDS_TABLE, ColumnDef, TableSchema

__all__ = [
    "ColumnDef",
    "DuckDBFactory",
    "DuckDBFactoryConfig",
    "PROCESSED_RECORDS_TABLE",
    "ProcessedDataRepository",
    "TableSchema",
]
