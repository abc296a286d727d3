from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from ufcdata.core.data.ingestion.pipelines import DataTransformationService, TransformationPipeline, TransformationStep
from ufcdata.core.data.ingestion.service import DataIngestionService
from ufcdata.core.events import EventEmitter
from ufcdata.core.monitoring import IngestionMetricsCollector


@pytest.fixture()
def collector() -> IngestionMetricsCollector:
    return IngestionMetricsCollector(registry=CollectorRegistry())


def _value(collector: IngestionMetricsCollector, name: str, **labels: str) -> float | None:
    return collector.registry.get_sample_value(name, labels)


@pytest.mark.asyncio
async def test_pipeline_batches_are_counted(collector: IngestionMetricsCollector) -> None:
    service = DataIngestionService()
    collector.bind(service.events)

    await service.process_data("espn", [{"id": "1"}, {"id": "2"}])

    assert _value(collector, "ufcdata_records_processed_total", source="espn") == 2
    assert _value(collector, "ufcdata_batch_latency_seconds_count") == 1


@pytest.mark.asyncio
async def test_transformation_pipeline_runs_are_counted(collector: IngestionMetricsCollector) -> None:
    service = DataTransformationService()
    collector.bind(service.events)
    service.register_pipeline(
        TransformationPipeline(
            id="fighters",
            name="Fighters",
            source_id="espn",
            entity_type="fighter",
            steps=[
                TransformationStep(id="keep", type="filter"),
                TransformationStep(id="broken", type="custom", custom_function=lambda records: None),
            ],
        )
    )

    await service.transform_data("espn", "fighter", [{"id": "1"}])

    assert _value(collector, "ufcdata_pipeline_runs_total", pipeline="fighters", outcome="partial") == 1
    assert _value(collector, "ufcdata_transformation_errors_total", source="espn") == 1

def test_sync_outcomes_drive_error_rate(collector: IngestionMetricsCollector) -> None:
    events = EventEmitter()
    collector.bind(events)

    events.emit("syncCompleted", {"sourceId": "odds", "result": None, "duration": 5})
    events.emit("syncError", {"sourceId": "odds", "error": "timeout"})
    events.emit("syncError", {"sourceId": "odds", "error": "timeout"})
    events.emit("syncCompleted", {"sourceId": "odds", "result": None, "duration": 5})

    assert _value(collector, "ufcdata_syncs_total", source="odds", outcome="success") == 2
    assert _value(collector, "ufcdata_syncs_total", source="odds", outcome="error") == 2
    assert _value(collector, "ufcdata_source_error_rate", source="odds") == pytest.approx(0.5)


def test_failures_conflicts_and_validations(collector: IngestionMetricsCollector) -> None:
    events = EventEmitter()
    collector.bind(events)

    events.emit("dataProcessingError", {"sourceId": "espn", "error": "boom", "processingTimeMs": 3.0})
    events.emit("transformationError", {"sourceId": "espn", "rule": None, "error": "bad"})
    events.emit("conflictsResolved", {"id": "fighter:f1", "strategy": "merge", "sourcesInvolved": ["a", "b"]})
    events.emit("validationCompleted", {"sourceId": "espn", "entityType": "fighter", "isValid": False})
    events.emit("validationError", {"sourceId": "espn", "entityType": "fighter", "error": "crash"})

    assert _value(collector, "ufcdata_batch_failures_total", source="espn") == 1
    assert _value(collector, "ufcdata_transformation_errors_total", source="espn") == 1
    assert _value(collector, "ufcdata_conflicts_resolved_total", strategy="merge") == 1
    assert _value(collector, "ufcdata_validations_total", source="espn", entity="fighter", outcome="invalid") == 1
    assert _value(collector, "ufcdata_validations_total", source="espn", entity="fighter", outcome="error") == 1


def test_render_exposes_series(collector: IngestionMetricsCollector) -> None:
    events = EventEmitter()
    collector.bind(events)
    events.emit("syncCompleted", {"sourceId": "ufcstats", "result": None, "duration": 1})

    output = collector.render().decode("utf-8")

    assert 'ufcdata_syncs_total{outcome="success",source="ufcstats"} 1.0' in output
    assert "ufcdata_batch_latency_seconds_bucket" in output
