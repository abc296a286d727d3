"""Prometheus metrics fed by ingestion, sync and validation events."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, DefaultDict

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from ufcdata.core.events import EventEmitter


@dataclass
class _SyncStats:
    """Per-source sync attempts and failures backing the error-rate gauge."""

    total: int = 0
    failures: int = 0


class IngestionMetricsCollector:
    """Translates lifecycle events into Prometheus series.

    Call ``bind`` with every emitter to observe; event names not produced by
    a given emitter are simply never triggered.
    """

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.batch_latency_seconds = Histogram(
            "ufcdata_batch_latency_seconds",
            "Latency distribution for pipeline batches.",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, float("inf")),
            registry=self.registry,
        )
        self.records_processed_total = Counter(
            "ufcdata_records_processed_total",
            "Resolved records produced by the pipeline.",
            ("source",),
            registry=self.registry,
        )
        self.batch_failures_total = Counter(
            "ufcdata_batch_failures_total",
            "Pipeline batches aborted by an exception.",
            ("source",),
            registry=self.registry,
        )
        self.transformation_errors_total = Counter(
            "ufcdata_transformation_errors_total",
            "Field transforms that raised and fell back to a default.",
            ("source",),
            registry=self.registry,
        )
        self.pipeline_runs_total = Counter(
            "ufcdata_pipeline_runs_total",
            "Transformation pipeline runs grouped by outcome.",
            ("pipeline", "outcome"),
            registry=self.registry,
        )
        self.conflicts_resolved_total = Counter(
            "ufcdata_conflicts_resolved_total",
            "Identity groups resolved from more than one candidate.",
            ("strategy",),
            registry=self.registry,
        )
        self.syncs_total = Counter(
            "ufcdata_syncs_total",
            "Connector syncs grouped by outcome.",
            ("source", "outcome"),
            registry=self.registry,
        )
        self.source_error_rate = Gauge(
            "ufcdata_source_error_rate",
            "Share of failed syncs per source (0-1 range).",
            ("source",),
            registry=self.registry,
        )
        self.validations_total = Counter(
            "ufcdata_validations_total",
            "Real-time validations grouped by outcome.",
            ("source", "entity", "outcome"),
            registry=self.registry,
        )
        self._sync_stats: DefaultDict[str, _SyncStats] = defaultdict(_SyncStats)

    def bind(self, events: EventEmitter) -> None:
        events.on("dataProcessingCompleted", self._on_batch_completed)
        events.on("dataProcessingError", self._on_batch_failed)
        events.on("transformationError", self._on_transformation_error)
        events.on("transformationCompleted", self._on_pipeline_completed)
        events.on("pipelineError", self._on_pipeline_failed)
        events.on("conflictsResolved", self._on_conflicts_resolved)
        events.on("syncCompleted", self._on_sync_completed)
        events.on("syncError", self._on_sync_error)
        events.on("validationCompleted", self._on_validation_completed)
        events.on("validationError", self._on_validation_error)

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)

    def _on_batch_completed(self, payload: dict[str, Any]) -> None:
        self.batch_latency_seconds.observe(payload["processingTimeMs"] / 1000)
        self.records_processed_total.labels(source=payload["sourceId"]).inc(payload["processedCount"])

    def _on_batch_failed(self, payload: dict[str, Any]) -> None:
        self.batch_latency_seconds.observe(payload["processingTimeMs"] / 1000)
        self.batch_failures_total.labels(source=payload["sourceId"]).inc()

    def _on_transformation_error(self, payload: dict[str, Any]) -> None:
        self.transformation_errors_total.labels(source=payload["sourceId"]).inc()

    def _on_pipeline_completed(self, payload: dict[str, Any]) -> None:
        outcome = "partial" if payload["errorCount"] else "success"
        self.pipeline_runs_total.labels(pipeline=payload["pipelineId"], outcome=outcome).inc()

    def _on_pipeline_failed(self, payload: dict[str, Any]) -> None:
        self.pipeline_runs_total.labels(pipeline=payload["pipelineId"], outcome="error").inc()

    def _on_conflicts_resolved(self, payload: dict[str, Any]) -> None:
        self.conflicts_resolved_total.labels(strategy=payload["strategy"]).inc()

    def _on_sync_completed(self, payload: dict[str, Any]) -> None:
        self._record_sync(payload["sourceId"], success=True)

    def _on_sync_error(self, payload: dict[str, Any]) -> None:
        self._record_sync(payload["sourceId"], success=False)

    def _on_validation_completed(self, payload: dict[str, Any]) -> None:
        outcome = "valid" if payload["isValid"] else "invalid"
        self.validations_total.labels(source=payload["sourceId"], entity=payload["entityType"], outcome=outcome).inc()

    def _on_validation_error(self, payload: dict[str, Any]) -> None:
        self.validations_total.labels(source=payload["sourceId"], entity=payload["entityType"], outcome="error").inc()

    def _record_sync(self, source_id: str, *, success: bool) -> None:
        stats = self._sync_stats[source_id]
        stats.total += 1
        if not success:
            stats.failures += 1
        self.syncs_total.labels(source=source_id, outcome="success" if success else "error").inc()
        self.source_error_rate.labels(source=source_id).set(stats.failures / stats.total)


__all__ = ["IngestionMetricsCollector"]
