"""Field validation rules and cleaning actions."""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from ufcdata.core.exceptions.base import ConfigurationError
from ufcdata.core.models import Severity, ValidationIssue
from ufcdata.core.paths import MISSING

_HTML_TAG = re.compile(r"<[^>]*>")
_SQL_CHARS = re.compile(r"['\";\\]")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_WORD = re.compile(r"\w\S*")
_NUMERIC_PREFIX = re.compile(r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))")


class RuleType(str, Enum):
    REQUIRED = "required"
    TYPE = "type"
    RANGE = "range"
    FORMAT = "format"
    CUSTOM = "custom"


class CleaningAction(str, Enum):
    TRIM = "trim"
    NORMALIZE = "normalize"
    CONVERT = "convert"
    SANITIZE = "sanitize"
    CUSTOM = "custom"


@dataclass(slots=True)
class ValidationRule:
    """A check applied to the value at ``field`` (a dot path)."""

    field: str
    type: RuleType
    constraint: Any = None
    validator: Callable[[Any], bool] | None = None
    message: str | None = None
    severity: Severity = Severity.ERROR

    def __post_init__(self) -> None:
        self.type = RuleType(self.type)
        self.severity = Severity(self.severity)
        if self.type is RuleType.FORMAT and isinstance(self.constraint, str):
            self.constraint = re.compile(self.constraint)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ValidationRule:
        try:
            return cls(
                field=payload["field"],
                type=payload["type"],
                constraint=payload.get("constraint"),
                message=payload.get("message"),
                severity=payload.get("severity", Severity.ERROR),
            )
        except (KeyError, ValueError, re.error) as exc:
            raise ConfigurationError(f"Invalid validation rule: {exc}", {"rule": dict(payload)}) from exc


@dataclass(slots=True)
class DataCleaningRule:
    """A cleaning action applied to the value at ``field`` before validation."""

    field: str
    action: CleaningAction
    parameters: Mapping[str, Any] | None = None
    cleaner: Callable[[Any], Any] | None = None

    def __post_init__(self) -> None:
        self.action = CleaningAction(self.action)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DataCleaningRule:
        try:
            return cls(field=payload["field"], action=payload["action"], parameters=payload.get("parameters"))
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"Invalid cleaning rule: {exc}", {"rule": dict(payload)}) from exc


def _is_absent(value: Any) -> bool:
    return value is MISSING or value is None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _leading_number(text: str) -> int | float | None:
    """Numeric prefix of ``text`` (``"185 lbs"`` gives 185); None when there is none."""

    match = _NUMERIC_PREFIX.match(text)
    if match is None:
        return None
    literal = match.group(1)
    if literal.lstrip("+-") == "Infinity":
        return -math.inf if literal.startswith("-") else math.inf
    number = float(literal)
    return int(number) if not any(marker in literal for marker in ".eE") else number


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if _is_number(value):
        try:
            return datetime.fromtimestamp(value / 1000, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def check_type(value: Any, expected: str) -> bool:
    """Missing values pass; presence is the ``required`` rule's concern."""

    if _is_absent(value):
        return True
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return _is_number(value) and not (isinstance(value, float) and math.isnan(value))
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    if expected == "date":
        return _parse_datetime(value) is not None
    return True


def check_range(value: Any, bounds: Mapping[str, float] | None) -> bool:
    if _is_absent(value):
        return True
    if _is_number(value):
        number = value
    elif isinstance(value, str):
        number = _leading_number(value)
    else:
        return False
    if number is None or math.isnan(number):
        return False
    bounds = bounds or {}
    if bounds.get("min") is not None and number < bounds["min"]:
        return False
    if bounds.get("max") is not None and number > bounds["max"]:
        return False
    return True


def check_format(value: Any, pattern: re.Pattern[str] | str) -> bool:
    if _is_absent(value):
        return True
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    return regex.search(str(value)) is not None


def evaluate_rule(rule: ValidationRule, value: Any) -> ValidationIssue | None:
    """Return an issue when ``value`` violates ``rule``, otherwise ``None``."""

    if rule.type is RuleType.REQUIRED:
        is_valid = not _is_absent(value) and value != ""
        message = rule.message or f"Field {rule.field} is required"
    elif rule.type is RuleType.TYPE:
        is_valid = check_type(value, rule.constraint)
        message = rule.message or f"Field {rule.field} must be of type {rule.constraint}"
    elif rule.type is RuleType.RANGE:
        is_valid = check_range(value, rule.constraint)
        message = rule.message or f"Field {rule.field} must be within range {json.dumps(rule.constraint)}"
    elif rule.type is RuleType.FORMAT:
        is_valid = check_format(value, rule.constraint)
        message = rule.message or f"Field {rule.field} format is invalid"
    else:
        is_valid = rule.validator(value) if rule.validator is not None else True
        message = rule.message or f"Validation failed for field {rule.field}"

    if is_valid:
        return None
    return ValidationIssue(
        field=rule.field,
        message=message,
        value=None if value is MISSING else value,
        severity=rule.severity,
    )


def _title_case(text: str) -> str:
    return _WORD.sub(lambda match: match.group(0)[0].upper() + match.group(0)[1:].lower(), text)


def normalize_value(value: Any, parameters: Mapping[str, Any] | None) -> Any:
    if not isinstance(value, str):
        return value
    kind = (parameters or {}).get("type")
    if kind == "lowercase":
        return value.lower()
    if kind == "uppercase":
        return value.upper()
    if kind == "title":
        return _title_case(value)
    return value


def convert_value(value: Any, parameters: Mapping[str, Any] | None) -> Any:
    """Convert ``value``; values that cannot be converted are returned as-is."""

    target = (parameters or {}).get("to")
    if target == "number":
        if _is_number(value):
            return value
        number = _leading_number(value) if isinstance(value, str) else None
        return value if number is None else number
    if target == "string":
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    if target == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() == "true" or value == "1"
        return bool(value)
    if target == "date":
        parsed = _parse_datetime(value)
        return parsed if parsed is not None else value
    return value


def sanitize_value(value: Any, parameters: Mapping[str, Any] | None) -> Any:
    if not isinstance(value, str):
        return value
    kind = (parameters or {}).get("type")
    if kind == "html":
        return _HTML_TAG.sub("", value)
    if kind == "sql":
        return _SQL_CHARS.sub("", value)
    if kind == "alphanumeric":
        return _NON_ALNUM.sub("", value)
    return value


def clean_value(rule: DataCleaningRule, value: Any) -> Any:
    if rule.action is CleaningAction.TRIM:
        return value.strip() if isinstance(value, str) else value
    if rule.action is CleaningAction.NORMALIZE:
        return normalize_value(value, rule.parameters)
    if rule.action is CleaningAction.CONVERT:
        return convert_value(value, rule.parameters)
    if rule.action is CleaningAction.SANITIZE:
        return sanitize_value(value, rule.parameters)
    if rule.cleaner is not None:
        return rule.cleaner(value)
    return value


__all__ = [
    "CleaningAction",
    "DataCleaningRule",
    "RuleType",
    "ValidationRule",
    "check_format",
    "check_range",
    "check_type",
    "clean_value",
    "convert_value",
    "evaluate_rule",
    "normalize_value",
    "sanitize_value",
]
