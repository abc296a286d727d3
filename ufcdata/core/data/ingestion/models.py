"""Data models produced by the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ufcdata.core.models import ValidationIssue


class ConflictResolution(str, Enum):
    KEPT_EXISTING = "kept_existing"
    USED_INCOMING = "used_incoming"
    MERGED = "merged"


@dataclass(slots=True, frozen=True)
class ConflictInfo:
    """Audit entry describing one field-level disagreement between sources."""

    field: str
    existing_value: Any
    incoming_value: Any
    resolution: ConflictResolution
    reason: str


@dataclass(slots=True)
class ProcessedData:
    """A raw record after normalization, validation and scoring."""

    id: str
    source_id: str
    original_data: Any
    normalized_data: Any
    quality_score: float
    validation_errors: list[ValidationIssue]
    timestamp: datetime
    conflicts: list[ConflictInfo] | None = None

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.validation_errors if issue.is_error)


@dataclass(slots=True, frozen=True)
class ProcessingStats:
    total_items_processed: int
    average_quality_score: float
    sources_with_configs: int
    last_processing_time: datetime


@dataclass(slots=True)
class ValidationOutcome:
    """Result returned by a pipeline ``Validator`` collaborator."""

    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)


def average_quality(items: list[ProcessedData]) -> float:
    if not items:
        return 0.0
    return sum(item.quality_score for item in items) / len(items)


__all__ = [
    "ConflictInfo",
    "ConflictResolution",
    "ProcessedData",
    "ProcessingStats",
    "ValidationOutcome",
    "average_quality",
]
