"""ufcdata - multi-source fight data ingestion.

Normalizes raw records from heterogeneous sources, scores and validates them,
resolves records describing the same fighter, event or fight across sources,
and reports every step as an event.
"""

from ufcdata.core import (
    ConfigManager,
    DataIngestionService,
    DataTransformationService,
    EventEmitter,
    IngestionManager,
    NormalizationConfig,
    RealTimeValidatorService,
    UfcDataConfig,
    ValidationConfig,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigManager",
    "DataIngestionService",
    "DataTransformationService",
    "EventEmitter",
    "IngestionManager",
    "NormalizationConfig",
    "RealTimeValidatorService",
    "UfcDataConfig",
    "ValidationConfig",
    "__version__",
]
