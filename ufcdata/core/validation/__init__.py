"""Rule-based record validation and cleaning."""

from ufcdata.core.validation.realtime import (
    RealTimeValidatorService,
    ValidationConfig,
    ValidationResult,
    ValidationStats,
)
from ufcdata.core.validation.rules import (
    CleaningAction,
    DataCleaningRule,
    RuleType,
    ValidationRule,
    clean_value,
    evaluate_rule,
)

__all__ = [
    "CleaningAction",
    "DataCleaningRule",
    "RealTimeValidatorService",
    "RuleType",
    "ValidationConfig",
    "ValidationResult",
    "ValidationRule",
    "ValidationStats",
    "clean_value",
    "evaluate_rule",
]
