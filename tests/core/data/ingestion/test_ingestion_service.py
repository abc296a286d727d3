from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from ufcdata.core.config.settings import PipelineConfig
from ufcdata.core.data.ingestion.config import (
    ConflictResolutionStrategy,
    ConflictStrategy,
    NormalizationConfig,
    TransformationRule,
)
from ufcdata.core.data.ingestion.models import ConflictResolution, ProcessedData, ValidationOutcome
from ufcdata.core.data.ingestion.quality import RuleBasedValidator
from ufcdata.core.data.ingestion.service import DataIngestionService
from ufcdata.core.models import DataIngestionResult, ValidationIssue
from ufcdata.core.validation.rules import RuleType, ValidationRule


class QueuedScorer:
    """Returns pre-seeded scores in call order."""

    def __init__(self, *scores: float) -> None:
        self._scores = list(scores)

    async def calculate_score(self, normalized: Any, errors: Sequence[ValidationIssue]) -> float:
        return self._scores.pop(0)


class ExplodingValidator:
    async def validate_data(self, record: Any, source_id: str) -> ValidationOutcome:
        if record.get("explode"):
            raise RuntimeError("validator offline")
        return ValidationOutcome(is_valid=True)


class RecordingSink:
    def __init__(self) -> None:
        self.batches: list[list[ProcessedData]] = []

    def save(self, items: Sequence[ProcessedData]) -> int:
        self.batches.append(list(items))
        return len(items)


def _fighter_config(strategy: ConflictStrategy = ConflictStrategy.LATEST) -> NormalizationConfig:
    return NormalizationConfig(
        source="s1",
        transformations=[TransformationRule("name", "fighterName", transform=lambda value: value.upper())],
        conflict_resolution=ConflictResolutionStrategy(strategy),
    )


@pytest.mark.asyncio
async def test_unknown_source_passes_record_through(events, clock) -> None:
    service = DataIngestionService(events=events, clock=clock)

    result = await service.process_data("unknown-source", [{"a": 1}])

    assert len(result) == 1
    assert result[0].normalized_data == {"a": 1}
    assert result[0].source_id == "unknown-source"


@pytest.mark.asyncio
async def test_cache_is_isolated_from_caller_mutation(events, clock) -> None:
    service = DataIngestionService(events=events, clock=clock)
    record = {"id": "f1", "stats": {"wins": 10}}

    [item] = await service.process_data("unknown-source", [record])
    record["stats"]["wins"] = 99

    assert item.normalized_data is not item.original_data
    assert service.get_cached(item.id).normalized_data == {"id": "f1", "stats": {"wins": 10}}


@pytest.mark.asyncio
async def test_fighter_name_is_upper_cased(events, clock) -> None:
    service = DataIngestionService(events=events, clock=clock)
    service.register_normalization_config(_fighter_config())

    result = await service.process_data("s1", [{"id": "1", "name": "fighter one"}])

    assert result[0].normalized_data["fighterName"] == "FIGHTER ONE"
    assert result[0].source_id == "s1"
    assert result[0].id == "s1:1"
    assert result[0].original_data == {"id": "1", "name": "fighter one"}


@pytest.mark.asyncio
async def test_failing_transform_uses_default_and_emits_once(events, recorder, clock) -> None:
    def explode(value: Any) -> Any:
        raise ValueError("bad name")

    service = DataIngestionService(events=events, clock=clock)
    service.register_normalization_config(
        NormalizationConfig(
            source="s1",
            transformations=[TransformationRule("name", "fighterName", transform=explode, default_value="Unknown")],
        )
    )

    result = await service.process_data("s1", [{"name": "X"}])

    assert result[0].normalized_data["fighterName"] == "Unknown"
    assert len(recorder.payloads("transformationError")) == 1


@pytest.mark.asyncio
async def test_re_registration_replaces_rules(events, clock) -> None:
    service = DataIngestionService(events=events, clock=clock)
    service.register_normalization_config(
        NormalizationConfig(source="s1", transformations=[TransformationRule("name", "oldField")])
    )
    service.register_normalization_config(
        NormalizationConfig(source="s1", transformations=[TransformationRule("name", "newField")])
    )

    result = await service.process_data("s1", [{"name": "Jon"}])

    assert result[0].normalized_data == {"newField": "Jon"}
    assert service.get_processing_stats().sources_with_configs == 1


@pytest.mark.asyncio
async def test_same_source_reprocessing_overwrites_cache(events, recorder, clock) -> None:
    service = DataIngestionService(events=events, clock=clock)
    service.register_normalization_config(
        NormalizationConfig(
            source="s1",
            transformations=[TransformationRule("name", "name")],
            conflict_resolution=ConflictResolutionStrategy(ConflictStrategy.LATEST),
        )
    )

    await service.process_data("s1", [{"id": "1", "name": "Original Name"}])
    await service.process_data("s1", [{"id": "1", "name": "Updated Name"}])

    cached = service.get_cached("s1:1")
    assert cached is not None
    assert cached.normalized_data == {"name": "Updated Name"}
    assert recorder.payloads("conflictsResolved") == []


@pytest.mark.asyncio
async def test_cross_source_records_are_merged(events, recorder, clock) -> None:
    service = DataIngestionService(quality_scorer=QueuedScorer(0.9, 0.6), events=events, clock=clock)
    for source in ("s1", "s2"):
        service.register_normalization_config(
            NormalizationConfig(
                source=source,
                transformations=[TransformationRule("a", "a"), TransformationRule("b", "b")],
                conflict_resolution=ConflictResolutionStrategy(ConflictStrategy.MERGE),
            )
        )

    await service.process_data("s1", [{"fighterId": "f1", "a": 1}])
    result = await service.process_data("s2", [{"fighterId": "f1", "a": 2, "b": 3}])

    assert len(result) == 1
    resolved = result[0]
    assert resolved.id == "fighter:f1"
    assert resolved.normalized_data == {"a": 1, "b": 3}
    assert [(c.field, c.resolution) for c in resolved.conflicts] == [("a", ConflictResolution.KEPT_EXISTING)]
    assert resolved.quality_score == pytest.approx((0.81 + 0.36) / 1.5)
    assert service.get_cached("fighter:f1") is resolved
    assert recorder.payloads("conflictsResolved")[0]["sourcesInvolved"] == ["s1", "s2"]


@pytest.mark.asyncio
async def test_duplicate_ids_in_one_batch_add_cached_candidate_once(events, recorder, clock) -> None:
    service = DataIngestionService(quality_scorer=QueuedScorer(0.5, 0.9, 0.8), events=events, clock=clock)

    await service.process_data("s1", [{"fighterId": "f1", "name": "cached"}])
    await service.process_data("s2", [{"fighterId": "f1", "name": "a"}, {"fighterId": "f1", "name": "b"}])

    assert recorder.payloads("conflictsResolved")[0]["sourcesInvolved"] == ["s2", "s2", "s1"]


@pytest.mark.asyncio
async def test_batch_events_are_emitted_in_order(events, recorder, clock) -> None:
    service = DataIngestionService(events=events, clock=clock)

    await service.process_data("espn", [{"id": "1"}, {"id": "2"}])

    assert recorder.names == [
        "dataProcessingStarted",
        "dataItemProcessed",
        "dataItemProcessed",
        "dataProcessingCompleted",
    ]
    started = recorder.payloads("dataProcessingStarted")[0]
    assert started["sourceId"] == "espn"
    assert started["recordCount"] == 2
    item = recorder.payloads("dataItemProcessed")[0]
    assert item == {"id": "espn:1", "sourceId": "espn", "qualityScore": 1.0, "errorCount": 0}
    completed = recorder.payloads("dataProcessingCompleted")[0]
    assert completed["processedCount"] == 2
    assert completed["averageQualityScore"] == 1.0
    assert completed["processingTimeMs"] >= 0


@pytest.mark.asyncio
async def test_item_level_errors_do_not_abort_batch(events, clock) -> None:
    validator = RuleBasedValidator({"espn": [ValidationRule("name", RuleType.REQUIRED)]})
    service = DataIngestionService(validator, events=events, clock=clock)

    result = await service.process_data("espn", [{"id": "1"}, {"id": "2", "name": "Jon"}])

    assert [item.error_count for item in result] == [1, 0]
    assert result[0].validation_errors[0].message == "Field name is required"


@pytest.mark.asyncio
async def test_batch_failure_emits_error_and_reraises(events, recorder, clock) -> None:
    service = DataIngestionService(ExplodingValidator(), events=events, clock=clock)

    with pytest.raises(RuntimeError, match="validator offline"):
        await service.process_data("espn", [{"id": "1"}, {"id": "2", "explode": True}])

    errors = recorder.payloads("dataProcessingError")
    assert len(errors) == 1
    assert errors[0]["sourceId"] == "espn"
    assert errors[0]["error"] == "validator offline"
    assert "dataProcessingCompleted" not in recorder.names
    assert service.cached_items() == []


@pytest.mark.asyncio
async def test_repository_receives_resolved_batch(events, clock) -> None:
    sink = RecordingSink()
    service = DataIngestionService(events=events, repository=sink, clock=clock)

    result = await service.process_data("espn", [{"id": "1"}])

    assert sink.batches == [result]


@pytest.mark.asyncio
async def test_most_recent_mode_from_pipeline_config(events, clock) -> None:
    service = DataIngestionService(
        quality_scorer=QueuedScorer(0.9, 0.5, 0.7),
        events=events,
        config=PipelineConfig(latest_resolution_mode="most_recent", default_strategy="latest"),
        clock=clock,
    )

    await service.process_data("s1", [{"fighterId": "f1", "name": "best"}])
    await service.process_data("s2", [{"fighterId": "f1", "name": "stale"}])
    result = await service.process_data("s3", [{"fighterId": "f1", "name": "newest"}])

    assert result[0].normalized_data["name"] == "newest"


@pytest.mark.asyncio
async def test_stats_and_cache_clearing(events, recorder, clock) -> None:
    service = DataIngestionService(quality_scorer=QueuedScorer(0.5, 1.0), events=events, clock=clock)
    service.register_normalization_config(_fighter_config())

    await service.process_data("espn", [{"id": "1"}, {"id": "2"}])
    stats = service.get_processing_stats()

    assert stats.total_items_processed == 2
    assert stats.average_quality_score == pytest.approx(0.75)
    assert stats.sources_with_configs == 1

    service.clear_cache()

    assert service.cached_items() == []
    assert service.get_processing_stats().average_quality_score == 0.0
    assert "cacheCleared" in recorder.names
    assert recorder.payloads("normalizationConfigRegistered") == [{"source": "s1"}]


@pytest.mark.asyncio
async def test_resolve_data_conflicts_is_exposed(events, clock) -> None:
    service = DataIngestionService(quality_scorer=QueuedScorer(0.9, 0.3), events=events, clock=clock)
    first = (await service.process_data("a", [{"name": "Jon"}]))[0]
    second = (await service.process_data("b", [{"name": "Jonny"}]))[0]

    resolved = await service.resolve_data_conflicts("fighter:x", [first, second])

    assert resolved.normalized_data == {"name": "Jon"}


def test_attach_manager_relays_sync_outcomes(events, recorder) -> None:
    from ufcdata.core.data.ingestion.manager import IngestionManager

    manager = IngestionManager()
    service = DataIngestionService(events=events)
    service.attach_manager(manager)

    manager.events.emit("syncCompleted", {"sourceId": "espn", "result": DataIngestionResult("espn", 3), "duration": 1})
    manager.events.emit("syncCompleted", {"sourceId": "espn", "result": DataIngestionResult("espn", 0), "duration": 1})
    manager.events.emit("syncError", {"sourceId": "espn", "error": "timeout"})

    assert recorder.payloads("dataAvailableForProcessing") == [{"sourceId": "espn", "recordCount": 3}]
    assert recorder.payloads("ingestionError") == [{"sourceId": "espn", "error": "timeout"}]
