"""Validator and quality-scorer collaborators used by the ingestion pipeline."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from ufcdata.core.data.ingestion.models import ValidationOutcome
from ufcdata.core.models import Severity, ValidationIssue
from ufcdata.core.paths import get_nested_value
from ufcdata.core.validation.rules import ValidationRule, evaluate_rule


class Validator(Protocol):
    async def validate_data(self, record: Any, source_id: str) -> ValidationOutcome: ...


class QualityScorer(Protocol):
    async def calculate_score(self, normalized: Any, errors: Sequence[ValidationIssue]) -> float: ...


class RuleBasedValidator:
    """Evaluates per-source ``ValidationRule`` lists against raw records.

    Sources without rules validate clean. Every rule is evaluated; a record is
    invalid when at least one error-severity issue is found.
    """

    def __init__(self, rules: dict[str, list[ValidationRule]] | None = None) -> None:
        self._rules: dict[str, list[ValidationRule]] = {key: list(value) for key, value in (rules or {}).items()}

    def register_rules(self, source_id: str, rules: Iterable[ValidationRule]) -> None:
        self._rules[source_id] = list(rules)

    def rules_for(self, source_id: str) -> list[ValidationRule]:
        return list(self._rules.get(source_id, ()))

    async def validate_data(self, record: Any, source_id: str) -> ValidationOutcome:
        issues: list[ValidationIssue] = []
        for rule in self._rules.get(source_id, ()):
            issue = evaluate_rule(rule, get_nested_value(record, rule.field))
            if issue is not None:
                issues.append(issue)
        return ValidationOutcome(is_valid=not any(issue.is_error for issue in issues), errors=issues)


def _leaves(value: Any) -> Iterable[Any]:
    if isinstance(value, dict):
        for child in value.values():
            yield from _leaves(child)
    elif isinstance(value, list) and value:
        for child in value:
            yield from _leaves(child)
    else:
        yield value


class CompletenessScorer:
    """Scores a normalized record by the share of populated leaf values.

    Each error-severity issue costs ``error_penalty`` and each warning costs
    ``warning_penalty``; the result is clamped to [0, 1].
    """

    def __init__(self, *, error_penalty: float = 0.1, warning_penalty: float = 0.02) -> None:
        self.error_penalty = error_penalty
        self.warning_penalty = warning_penalty

    async def calculate_score(self, normalized: Any, errors: Sequence[ValidationIssue]) -> float:
        leaves = list(_leaves(normalized))
        if not leaves or normalized in ({}, []):
            return 0.0
        populated = sum(1 for leaf in leaves if leaf is not None and leaf != "" and leaf != [])
        score = populated / len(leaves)
        for issue in errors:
            score -= self.error_penalty if issue.severity is Severity.ERROR else self.warning_penalty
        return min(1.0, max(0.0, score))


__all__ = ["CompletenessScorer", "QualityScorer", "RuleBasedValidator", "Validator"]
