"""Types shared by the ingestion pipeline, the manager and the real-time validator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Issue severity. Only ``ERROR`` can block a record."""

    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    """A single field-level finding attached to a record."""

    field: str
    message: str
    value: Any = None
    severity: Severity = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "value": self.value,
            "severity": self.severity.value,
        }


@dataclass(slots=True)
class DataIngestionResult:
    """Outcome of one connector sync."""

    source_id: str
    records_processed: int = 0
    records_skipped: int = 0
    errors: list[ValidationIssue] = field(default_factory=list)
    processing_time_ms: float = 0.0
    next_sync_time: datetime | None = None


__all__ = ["DataIngestionResult", "Severity", "ValidationIssue"]
