"""ufcdata core: ingestion pipeline, source manager and real-time validation."""

from ufcdata.core.config.settings import ConfigManager, UfcDataConfig
from ufcdata.core.data.ingestion import (
    DataIngestionService,
    DataTransformationService,
    IngestionManager,
    NormalizationConfig,
)
from ufcdata.core.events import EventEmitter
from ufcdata.core.validation import RealTimeValidatorService, ValidationConfig

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
]
