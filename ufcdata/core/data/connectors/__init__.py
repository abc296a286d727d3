"""Source connectors."""

from ufcdata.core.data.connectors.base import ApiConnector
from ufcdata.core.data.connectors.file import JsonFileConnector, load_records

__all__ = ["ApiConnector", "JsonFileConnector", "load_records"]
