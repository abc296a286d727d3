"""Registered record-set pipelines: ordered map, filter, aggregate, enrich and custom steps.

A pipeline is selected by ``(source_id, entity_type)`` and runs over a whole
batch, unlike :class:`TransformationEngine` which rewrites one record at a
time. Steps run in ``order``; a failing step is recorded and the batch
carries on with the data as it was before that step.
"""

from __future__ import annotations

import copy
import inspect
import json
import math
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from time import perf_counter
from typing import Any, TypeVar

from loguru import logger

from ufcdata.core.data.ingestion.config import Transform, resolve_transform
from ufcdata.core.data.ingestion.formula import evaluate_formula
from ufcdata.core.events import EventEmitter
from ufcdata.core.exceptions.base import ConfigurationError, TransformationError
from ufcdata.core.paths import MISSING, get_nested_value, set_nested_value

E = TypeVar("E", bound=Enum)

Records = list[Any]
CustomStep = Callable[[Records], Records | Awaitable[Records]]
CustomFilter = Callable[[Any, Any], bool]


class StepType(str, Enum):
    MAP = "map"
    FILTER = "filter"
    AGGREGATE = "aggregate"
    ENRICH = "enrich"
    CUSTOM = "custom"


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    REGEX = "regex"
    CUSTOM = "custom"


class AggregateOperation(str, Enum):
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    FIRST = "first"
    LAST = "last"


class EnrichmentType(str, Enum):
    LOOKUP = "lookup"
    CALCULATE = "calculate"
    EXTERNAL_API = "external_api"
    CUSTOM = "custom"


def _coerce(enum_cls: type[E], value: Any, label: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ConfigurationError(
            f"Unknown {label} '{value}'", {"allowed": [member.value for member in enum_cls]}
        ) from None


@dataclass(slots=True)
class FieldMapping:
    source: str
    target: str
    transform: Transform | str | None = None
    default_value: Any = MISSING

    def __post_init__(self) -> None:
        self.transform = resolve_transform(self.transform)


@dataclass(slots=True)
class FilterCondition:
    field: str
    operator: FilterOperator
    value: Any = None
    custom_filter: CustomFilter | None = None

    def __post_init__(self) -> None:
        self.operator = _coerce(FilterOperator, self.operator, "filter operator")


@dataclass(slots=True)
class AggregationRule:
    field: str
    operation: AggregateOperation
    output_field: str

    def __post_init__(self) -> None:
        self.operation = _coerce(AggregateOperation, self.operation, "aggregate operation")


@dataclass(slots=True)
class EnrichmentRule:
    """Computes ``output_field`` for every record.

    ``config`` by type: ``lookup`` takes ``table`` and ``key`` (a field path),
    ``calculate`` takes ``formula`` and ``variables`` (name to field path),
    ``custom`` takes ``function`` (record to value, may be async).
    """

    type: EnrichmentType
    output_field: str
    config: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = _coerce(EnrichmentType, self.type, "enrichment type")


@dataclass(slots=True)
class TransformationStep:
    id: str
    type: StepType
    order: int = 0
    field_mappings: list[FieldMapping] = field(default_factory=list)
    filter_conditions: list[FilterCondition] = field(default_factory=list)
    group_by: list[str] = field(default_factory=list)
    aggregations: list[AggregationRule] = field(default_factory=list)
    enrichment_rules: list[EnrichmentRule] = field(default_factory=list)
    custom_function: CustomStep | None = None

    def __post_init__(self) -> None:
        self.type = _coerce(StepType, self.type, "transformation type")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TransformationStep:
        config = payload.get("config", {})
        try:
            return cls(
                id=payload["id"],
                type=payload["type"],
                order=int(payload.get("order", 0)),
                field_mappings=[
                    FieldMapping(
                        source=raw["source"],
                        target=raw["target"],
                        transform=raw.get("transform"),
                        default_value=raw.get("defaultValue", MISSING),
                    )
                    for raw in config.get("fieldMappings", [])
                ],
                filter_conditions=[
                    FilterCondition(field=raw["field"], operator=raw["operator"], value=raw.get("value"))
                    for raw in config.get("filterConditions", [])
                ],
                group_by=list(config.get("groupBy", [])),
                aggregations=[
                    AggregationRule(field=raw["field"], operation=raw["operation"], output_field=raw["outputField"])
                    for raw in config.get("aggregations", [])
                ],
                enrichment_rules=[
                    EnrichmentRule(
                        type=raw["type"], output_field=raw["outputField"], config=dict(raw.get("config", {}))
                    )
                    for raw in config.get("enrichmentRules", [])
                ],
            )
        except KeyError as exc:
            raise ConfigurationError(
                f"Transformation step is missing {exc.args[0]!r}", {"step": payload.get("id")}
            ) from exc


@dataclass(slots=True)
class TransformationPipeline:
    id: str
    name: str
    source_id: str
    entity_type: str
    steps: list[TransformationStep] = field(default_factory=list)
    enabled: bool = True

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TransformationPipeline:
        """Build a pipeline from a JSON mapping using camelCase keys.

        Custom steps and filters need callables and can only be built in code.
        """

        try:
            return cls(
                id=payload["id"],
                name=payload.get("name", payload["id"]),
                source_id=payload["sourceId"],
                entity_type=payload["entityType"],
                steps=[TransformationStep.from_dict(raw) for raw in payload.get("transformations", [])],
                enabled=bool(payload.get("enabled", True)),
            )
        except KeyError as exc:
            raise ConfigurationError(
                f"Transformation pipeline is missing {exc.args[0]!r}", {"pipeline": payload.get("id")}
            ) from exc


@dataclass(slots=True)
class StepFailure:
    step_id: str
    message: str
    error: Exception


@dataclass(slots=True)
class TransformationResult:
    success: bool
    transformed_data: Records
    original_count: int
    transformed_count: int
    pipeline_id: str
    errors: list[StepFailure] = field(default_factory=list)
    processing_time_ms: float = 0.0


@dataclass(slots=True)
class PipelineStats:
    """Run counters for one pipeline; ``total_runs`` counts batches, not records."""

    total_runs: int = 0
    total_errors: int = 0
    average_processing_time_ms: float = 0.0
    last_execution: datetime | None = None


def _to_number(value: Any) -> int | float:
    """Loose numeric coercion: null and blank text are 0, unparseable input is NaN."""

    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        for parse in (int, float):
            try:
                return parse(text)
            except ValueError:
                continue
    return math.nan


def _as_text(value: Any) -> str:
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _none_if_missing(value: Any, substitute: Any) -> Any:
    return substitute if value is MISSING else value


def _strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def matches_condition(value: Any, condition: FilterCondition) -> bool:
    """Whether a record whose ``condition.field`` holds ``value`` passes ``condition``.

    ``value`` is ``MISSING`` when the field is absent. Ordering comparisons
    coerce both sides to numbers and fail on anything non-numeric.
    """

    op = condition.operator
    if op is FilterOperator.EQUALS:
        return _strict_equals(value, condition.value)
    if op is FilterOperator.NOT_EQUALS:
        return not _strict_equals(value, condition.value)
    if op is FilterOperator.GREATER_THAN:
        return _to_number(_none_if_missing(value, math.nan)) > _to_number(condition.value)
    if op is FilterOperator.LESS_THAN:
        return _to_number(_none_if_missing(value, math.nan)) < _to_number(condition.value)
    if op is FilterOperator.CONTAINS:
        return _as_text(condition.value) in _as_text(value)
    if op is FilterOperator.REGEX:
        return re.search(str(condition.value), _as_text(value)) is not None
    if condition.custom_filter is None:
        return True
    return bool(condition.custom_filter(_none_if_missing(value, None), condition.value))


def aggregate_values(operation: AggregateOperation, values: Sequence[Any]) -> Any:
    """Fold the non-null ``values`` of one group.

    ``sum`` and ``avg`` count non-numeric values as 0; ``min`` and ``max``
    ignore them and return None when nothing numeric is left.
    """

    if operation is AggregateOperation.COUNT:
        return len(values)
    if operation is AggregateOperation.FIRST:
        return values[0] if values else None
    if operation is AggregateOperation.LAST:
        return values[-1] if values else None

    numbers = [_to_number(value) for value in values]
    if operation in (AggregateOperation.SUM, AggregateOperation.AVG):
        total = sum(0 if math.isnan(number) else number for number in numbers)
        if operation is AggregateOperation.SUM:
            return total
        return total / len(numbers) if numbers else 0

    numeric = [number for number in numbers if not math.isnan(number)]
    if not numeric:
        return None
    return min(numeric) if operation is AggregateOperation.MIN else max(numeric)


class DataTransformationService:
    """Keeps transformation pipelines and runs them over record batches.

    Events: ``pipelineRegistered``, ``pipelineUpdated``, ``pipelineRemoved``,
    ``transformationStarted``, ``transformationError`` (one per failed step),
    ``transformationCompleted`` and ``pipelineError``.
    """

    def __init__(
        self,
        *,
        events: EventEmitter | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.events = events or EventEmitter()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._pipelines: dict[str, TransformationPipeline] = {}
        self._stats: dict[str, PipelineStats] = {}
        self._runners: dict[StepType, Callable[[TransformationStep, Records], Awaitable[Records]]] = {
            StepType.MAP: self._run_map,
            StepType.FILTER: self._run_filter,
            StepType.AGGREGATE: self._run_aggregate,
            StepType.ENRICH: self._run_enrich,
            StepType.CUSTOM: self._run_custom,
        }

    def register_pipeline(self, pipeline: TransformationPipeline) -> None:
        """Register ``pipeline`` (replacing one with the same id) and reset its stats."""

        pipeline.steps.sort(key=lambda step: step.order)
        self._pipelines[pipeline.id] = pipeline
        self._stats[pipeline.id] = PipelineStats(last_execution=self._clock())
        logger.bind(source_id=pipeline.source_id).info("Registered transformation pipeline {}", pipeline.id)
        self.events.emit("pipelineRegistered", {"pipelineId": pipeline.id, "sourceId": pipeline.source_id})

    def update_pipeline(self, pipeline: TransformationPipeline) -> bool:
        """Replace a registered pipeline, keeping its stats. Unknown ids are ignored."""

        if pipeline.id not in self._pipelines:
            return False
        pipeline.steps.sort(key=lambda step: step.order)
        self._pipelines[pipeline.id] = pipeline
        self.events.emit("pipelineUpdated", {"pipelineId": pipeline.id})
        return True

    def remove_pipeline(self, pipeline_id: str) -> bool:
        if self._pipelines.pop(pipeline_id, None) is None:
            return False
        self._stats.pop(pipeline_id, None)
        self.events.emit("pipelineRemoved", {"pipelineId": pipeline_id})
        return True

    def get_pipeline(self, pipeline_id: str) -> TransformationPipeline | None:
        return self._pipelines.get(pipeline_id)

    def find_pipeline(self, source_id: str, entity_type: str) -> TransformationPipeline | None:
        """First registered pipeline for the source and entity type, enabled or not."""

        for pipeline in self._pipelines.values():
            if pipeline.source_id == source_id and pipeline.entity_type == entity_type:
                return pipeline
        return None

    def get_transformation_stats(self) -> dict[str, PipelineStats]:
        return {pipeline_id: replace(stats) for pipeline_id, stats in self._stats.items()}

    async def transform_data(self, source_id: str, entity_type: str, records: Sequence[Any]) -> TransformationResult:
        """Run the matching pipeline over ``records``.

        Without an enabled pipeline the records come back unchanged. The
        caller's records are never mutated.
        """

        start = perf_counter()
        pipeline = self.find_pipeline(source_id, entity_type)
        if pipeline is None or not pipeline.enabled:
            return TransformationResult(
                success=True,
                transformed_data=list(records),
                original_count=len(records),
                transformed_count=len(records),
                pipeline_id=pipeline.id if pipeline is not None else "none",
                processing_time_ms=(perf_counter() - start) * 1000,
            )

        bound = logger.bind(source_id=source_id)
        self.events.emit(
            "transformationStarted",
            {"pipelineId": pipeline.id, "sourceId": source_id, "entityType": entity_type, "recordCount": len(records)},
        )

        try:
            data: Records = copy.deepcopy(list(records))
            failures: list[StepFailure] = []
            for step in pipeline.steps:
                try:
                    data = await self._runners[step.type](step, data)
                except Exception as exc:
                    bound.warning("Step {} of pipeline {} failed: {}", step.id, pipeline.id, exc)
                    failures.append(StepFailure(step_id=step.id, message=str(exc), error=exc))
                    self.events.emit(
                        "transformationError",
                        {
                            "pipelineId": pipeline.id,
                            "sourceId": source_id,
                            "transformationId": step.id,
                            "error": str(exc),
                        },
                    )
        except Exception as exc:
            elapsed_ms = (perf_counter() - start) * 1000
            bound.error("Pipeline {} failed: {}", pipeline.id, exc)
            self.events.emit("pipelineError", {"pipelineId": pipeline.id, "sourceId": source_id, "error": str(exc)})
            return TransformationResult(
                success=False,
                transformed_data=[],
                original_count=len(records),
                transformed_count=0,
                pipeline_id=pipeline.id,
                errors=[StepFailure(step_id="pipeline", message=str(exc), error=exc)],
                processing_time_ms=elapsed_ms,
            )

        result = TransformationResult(
            success=not failures,
            transformed_data=data,
            original_count=len(records),
            transformed_count=len(data),
            pipeline_id=pipeline.id,
            errors=failures,
            processing_time_ms=(perf_counter() - start) * 1000,
        )
        self._record_run(pipeline.id, result)
        bound.debug(
            "Pipeline {} turned {} records into {}", pipeline.id, result.original_count, result.transformed_count
        )
        self.events.emit(
            "transformationCompleted",
            {
                "pipelineId": pipeline.id,
                "sourceId": source_id,
                "originalCount": result.original_count,
                "transformedCount": result.transformed_count,
                "errorCount": len(failures),
                "processingTimeMs": result.processing_time_ms,
            },
        )
        return result

    def _record_run(self, pipeline_id: str, result: TransformationResult) -> None:
        stats = self._stats.setdefault(pipeline_id, PipelineStats())
        stats.total_runs += 1
        stats.total_errors += len(result.errors)
        stats.average_processing_time_ms += (
            result.processing_time_ms - stats.average_processing_time_ms
        ) / stats.total_runs
        stats.last_execution = self._clock()

    async def _run_map(self, step: TransformationStep, data: Records) -> Records:
        if not step.field_mappings:
            return data
        return [self._map_record(record, step.field_mappings) for record in data]

    @staticmethod
    def _map_record(record: Any, mappings: Sequence[FieldMapping]) -> dict[str, Any]:
        mapped: dict[str, Any] = {}
        for mapping in mappings:
            value = get_nested_value(record, mapping.source)
            if mapping.transform is not None and value is not MISSING:
                try:
                    value = mapping.transform(value)
                except Exception as exc:
                    logger.debug("Mapping {} -> {} fell back to default: {}", mapping.source, mapping.target, exc)
                    value = mapping.default_value
            if value is MISSING:
                value = mapping.default_value
            if value is not MISSING:
                set_nested_value(mapped, mapping.target, value)
        return mapped

    async def _run_filter(self, step: TransformationStep, data: Records) -> Records:
        return [
            record
            for record in data
            if all(
                matches_condition(get_nested_value(record, condition.field), condition)
                for condition in step.filter_conditions
            )
        ]

    async def _run_aggregate(self, step: TransformationStep, data: Records) -> Records:
        if not step.group_by or not step.aggregations:
            return data

        groups: dict[tuple[str, ...], tuple[list[Any], Records]] = {}
        for record in data:
            key_values = [get_nested_value(record, path) for path in step.group_by]
            key = tuple("" if value is MISSING or value is None else _as_text(value) for value in key_values)
            groups.setdefault(key, (key_values, []))[1].append(record)

        aggregated: Records = []
        for key_values, members in groups.values():
            row: dict[str, Any] = {
                path: _none_if_missing(value, None) for path, value in zip(step.group_by, key_values)
            }
            for rule in step.aggregations:
                values = [get_nested_value(member, rule.field) for member in members]
                present = [value for value in values if value is not MISSING and value is not None]
                row[rule.output_field] = aggregate_values(rule.operation, present)
            aggregated.append(row)
        return aggregated

    async def _run_enrich(self, step: TransformationStep, data: Records) -> Records:
        for record in data:
            if not isinstance(record, dict):
                continue
            for rule in step.enrichment_rules:
                try:
                    record[rule.output_field] = await self._enrichment_value(rule, record)
                except Exception as exc:
                    logger.debug("Enrichment of {} failed: {}", rule.output_field, exc)
                    record[rule.output_field] = None
        return data

    async def _enrichment_value(self, rule: EnrichmentRule, record: dict[str, Any]) -> Any:
        config = rule.config
        if rule.type is EnrichmentType.LOOKUP:
            key = get_nested_value(record, config["key"])
            table = config.get("table", {})
            return None if key is MISSING else table.get(_as_text(key))
        if rule.type is EnrichmentType.CALCULATE:
            formula = config.get("formula")
            if not formula:
                return None
            variables = {}
            for name, path in config.get("variables", {}).items():
                value = get_nested_value(record, path)
                # Absent and falsy fields count as 0.
                variables[name] = _to_number(value) if value else 0
            return evaluate_formula(formula, variables)
        if rule.type is EnrichmentType.CUSTOM:
            function = config.get("function")
            if function is None:
                return None
            value = function(record)
            return await value if inspect.isawaitable(value) else value
        # External API enrichment is not wired to any client.
        return None

    async def _run_custom(self, step: TransformationStep, data: Records) -> Records:
        if step.custom_function is None:
            return data
        try:
            result = step.custom_function(data)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise TransformationError(f"Custom transformation failed: {exc}", step.id) from exc
        if not isinstance(result, list):
            raise TransformationError(
                f"Custom transformation returned {type(result).__name__}, expected a list", step.id
            )
        return result


def load_pipeline(payload: str | Mapping[str, Any]) -> TransformationPipeline:
    """Parse a pipeline from a JSON document or an already decoded mapping."""

    if isinstance(payload, str):
        payload = json.loads(payload)
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Transformation pipeline must be a JSON object")
    return TransformationPipeline.from_dict(payload)


__all__ = [
    "AggregateOperation",
    "AggregationRule",
    "DataTransformationService",
    "EnrichmentRule",
    "EnrichmentType",
    "FieldMapping",
    "FilterCondition",
    "FilterOperator",
    "PipelineStats",
    "StepFailure",
    "StepType",
    "TransformationPipeline",
    "TransformationResult",
    "TransformationStep",
    "aggregate_values",
    "load_pipeline",
    "matches_condition",
]
