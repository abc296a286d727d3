"""Per source/entity validation and cleaning of individual records."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from time import perf_counter
from typing import Any

from loguru import logger

from ufcdata.core.events import EventEmitter
from ufcdata.core.exceptions.base import ConfigurationError, ValidationConfigNotFoundError
from ufcdata.core.models import Severity, ValidationIssue
from ufcdata.core.paths import MISSING, get_nested_value, set_nested_value
from ufcdata.core.validation.rules import DataCleaningRule, ValidationRule, clean_value, evaluate_rule


def config_key(source_id: str, entity_type: str) -> str:
    return f"{source_id}:{entity_type}"


@dataclass(slots=True)
class ValidationConfig:
    source_id: str
    entity_type: str
    rules: list[ValidationRule] = field(default_factory=list)
    cleaning_rules: list[DataCleaningRule] = field(default_factory=list)
    strict_mode: bool = False

    @property
    def key(self) -> str:
        return config_key(self.source_id, self.entity_type)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], **overrides: Any) -> ValidationConfig:
        """Build a config from a mapping using ``rules``, ``cleaningRules`` and ``strictMode``.

        Keyword overrides win over keys found in ``payload``.
        """

        merged = {
            "source_id": payload.get("sourceId"),
            "entity_type": payload.get("entityType"),
            "strict_mode": bool(payload.get("strictMode", False)),
        }
        merged.update(overrides)
        if not merged["source_id"] or not merged["entity_type"]:
            raise ConfigurationError("Validation config requires a source id and an entity type")

        return cls(
            source_id=merged["source_id"],
            entity_type=merged["entity_type"],
            rules=[ValidationRule.from_dict(rule) for rule in payload.get("rules", [])],
            cleaning_rules=[DataCleaningRule.from_dict(rule) for rule in payload.get("cleaningRules", [])],
            strict_mode=merged["strict_mode"],
        )


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    cleaned_data: Any
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    processing_time_ms: float = 0.0


@dataclass(slots=True)
class ValidationStats:
    total_validated: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    average_processing_time: float = 0.0
    last_validation: datetime | None = None


class RealTimeValidatorService:
    """Cleans then validates single records against an explicitly registered config.

    Unlike the batch pipeline there is no passthrough: validating against an
    unregistered ``source_id:entity_type`` pair raises
    ``ValidationConfigNotFoundError``. Every other failure is reported inside
    the returned ``ValidationResult``.
    """

    def __init__(self, events: EventEmitter | None = None) -> None:
        self.events = events or EventEmitter()
        self._configs: dict[str, ValidationConfig] = {}
        self._stats: dict[str, ValidationStats] = {}

    def register_validation_config(self, config: ValidationConfig) -> None:
        self._configs[config.key] = config
        self._stats[config.key] = ValidationStats(last_validation=datetime.now(UTC))
        logger.bind(source_id=config.source_id).debug(
            "Registered validation config for {} ({} rules)", config.entity_type, len(config.rules)
        )
        self.events.emit(
            "validationConfigRegistered", {"sourceId": config.source_id, "entityType": config.entity_type}
        )

    def get_validation_config(self, source_id: str, entity_type: str) -> ValidationConfig | None:
        return self._configs.get(config_key(source_id, entity_type))

    def remove_validation_config(self, source_id: str, entity_type: str) -> bool:
        key = config_key(source_id, entity_type)
        removed = self._configs.pop(key, None) is not None
        self._stats.pop(key, None)
        if removed:
            self.events.emit("validationConfigRemoved", {"sourceId": source_id, "entityType": entity_type})
        return removed

    def get_validation_stats(self) -> dict[str, ValidationStats]:
        return {key: replace(stats) for key, stats in self._stats.items()}

    async def validate_and_clean(self, source_id: str, entity_type: str, record: Any) -> ValidationResult:
        """Clean ``record`` and validate the cleaned copy.

        Raises:
            ValidationConfigNotFoundError: no config registered for the pair
        """

        start = perf_counter()
        key = config_key(source_id, entity_type)
        config = self._configs.get(key)
        if config is None:
            raise ValidationConfigNotFoundError(source_id, entity_type)

        try:
            cleaned = self._clean(record, config.cleaning_rules)
            errors, warnings = self._validate(cleaned, config.rules)
            is_valid = not errors if config.strict_mode else True
            result = ValidationResult(
                is_valid=is_valid,
                cleaned_data=cleaned,
                errors=errors,
                warnings=warnings,
                processing_time_ms=(perf_counter() - start) * 1000,
            )
            self._update_stats(key, result)
        except Exception as exc:
            logger.bind(source_id=source_id).warning("Validation of {} record failed: {}", entity_type, exc)
            self.events.emit("validationError", {"sourceId": source_id, "entityType": entity_type, "error": str(exc)})
            return ValidationResult(
                is_valid=False,
                cleaned_data=record,
                errors=[
                    ValidationIssue(
                        field="validation",
                        message=f"Validation failed: {exc}",
                        value=exc,
                        severity=Severity.ERROR,
                    )
                ],
                processing_time_ms=(perf_counter() - start) * 1000,
            )

        self.events.emit(
            "validationCompleted",
            {
                "sourceId": source_id,
                "entityType": entity_type,
                "isValid": result.is_valid,
                "errorCount": len(result.errors),
                "warningCount": len(result.warnings),
                "processingTimeMs": result.processing_time_ms,
            },
        )
        return result

    @staticmethod
    def _clean(record: Any, cleaning_rules: list[DataCleaningRule]) -> Any:
        cleaned = copy.deepcopy(record)
        for rule in cleaning_rules:
            value = get_nested_value(cleaned, rule.field)
            if value is MISSING or value is None:
                continue
            set_nested_value(cleaned, rule.field, clean_value(rule, value))
        return cleaned

    @staticmethod
    def _validate(
        record: Any, rules: list[ValidationRule]
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        for rule in rules:
            issue = evaluate_rule(rule, get_nested_value(record, rule.field))
            if issue is None:
                continue
            if issue.is_error:
                errors.append(issue)
            else:
                warnings.append(issue)
        return errors, warnings

    def _update_stats(self, key: str, result: ValidationResult) -> None:
        stats = self._stats.get(key)
        if stats is None:
            return
        stats.total_validated += 1
        stats.total_errors += len(result.errors)
        stats.total_warnings += len(result.warnings)
        stats.average_processing_time = (
            stats.average_processing_time * (stats.total_validated - 1) + result.processing_time_ms
        ) / stats.total_validated
        stats.last_validation = datetime.now(UTC)


__all__ = [
    "RealTimeValidatorService",
    "ValidationConfig",
    "ValidationResult",
    "ValidationStats",
    "config_key",
]
