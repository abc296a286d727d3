"""Batch ingestion: normalization, conflict resolution and source scheduling."""

from __future__ import annotations

from ufcdata.core.data.ingestion.config import (
    BUILTIN_TRANSFORMS,
    ConflictResolutionStrategy,
    ConflictStrategy,
    NormalizationConfig,
    TransformationRule,
)
from ufcdata.core.data.ingestion.conflicts import ConflictResolver, LatestResolutionMode, merged_quality_score
from ufcdata.core.data.ingestion.identity import generate_data_id
from ufcdata.core.data.ingestion.manager import (
    ConnectorStatus,
    IngestionManager,
    IngestionSchedule,
    IngestionStats,
    SourceInfo,
    SourceStatus,
    determine_source_status,
)
from ufcdata.core.data.ingestion.pipelines import (
    DataTransformationService,
    PipelineStats,
    TransformationPipeline,
    TransformationResult,
    TransformationStep,
    load_pipeline,
)
from ufcdata.core.data.ingestion.models import ConflictInfo, ConflictResolution, ProcessedData, ProcessingStats
from ufcdata.core.data.ingestion.quality import CompletenessScorer, QualityScorer, RuleBasedValidator, Validator
from ufcdata.core.data.ingestion.service import DataIngestionService
from ufcdata.core.data.ingestion.transform import TransformationEngine

__all__ = [
    "BUILTIN_TRANSFORMS",
    "CompletenessScorer",
    "ConflictInfo",
    "ConflictResolution",
    "ConflictResolutionStrategy",
    "ConflictResolver",
    "ConflictStrategy",
    "ConnectorStatus",
    "DataIngestionService",
    "DataTransformationService",
    "IngestionManager",
    "IngestionSchedule",
    "IngestionStats",
    "LatestResolutionMode",
    "NormalizationConfig",
    "PipelineStats",
    "ProcessedData",
    "ProcessingStats",
    "QualityScorer",
    "RuleBasedValidator",
    "SourceInfo",
    "SourceStatus",
    "TransformationEngine",
    "TransformationPipeline",
    "TransformationResult",
    "TransformationRule",
    "TransformationStep",
    "Validator",
    "determine_source_status",
    "generate_data_id",
    "load_pipeline",
    "merged_quality_score",
]
