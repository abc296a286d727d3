"""Batch ingestion pipeline: normalize, validate, score, resolve conflicts, cache."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from time import perf_counter
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from ufcdata.core.config.settings import PipelineConfig
from ufcdata.core.data.ingestion.config import ConflictStrategy, NormalizationConfig
from ufcdata.core.data.ingestion.conflicts import ConflictResolver, LatestResolutionMode
from ufcdata.core.data.ingestion.identity import generate_data_id
from ufcdata.core.data.ingestion.models import ProcessedData, ProcessingStats, average_quality
from ufcdata.core.data.ingestion.quality import CompletenessScorer, QualityScorer, RuleBasedValidator, Validator
from ufcdata.core.data.ingestion.transform import TransformationEngine
from ufcdata.core.events import EventEmitter
from ufcdata.core.logging import log_context

if TYPE_CHECKING:
    from ufcdata.core.data.ingestion.manager import IngestionManager


class ProcessedDataSink(Protocol):
    def save(self, items: Sequence[ProcessedData]) -> int: ...


class DataIngestionService:
    """Turns raw connector records into resolved ``ProcessedData``.

    Items of one batch are processed strictly in order. Records sharing an
    identity key with a cached record from another source are resolved
    together; the cache keeps the latest resolved record per identity key.
    """

    def __init__(
        self,
        validator: Validator | None = None,
        quality_scorer: QualityScorer | None = None,
        *,
        events: EventEmitter | None = None,
        repository: ProcessedDataSink | None = None,
        config: PipelineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.events = events or EventEmitter()
        self._validator = validator or RuleBasedValidator()
        self._quality_scorer = quality_scorer or CompletenessScorer()
        self._repository = repository
        self._clock = clock or (lambda: datetime.now(UTC))
        self._engine = TransformationEngine(self.events)
        self._resolver = ConflictResolver(
            self._engine.get_config,
            events=self.events,
            latest_mode=LatestResolutionMode(self.config.latest_resolution_mode),
            default_strategy=ConflictStrategy(self.config.default_strategy),
        )
        self._cache: dict[str, ProcessedData] = {}

    def register_normalization_config(self, config: NormalizationConfig) -> None:
        """Register (or replace) the normalization config of ``config.source``."""

        self._engine.register(config)
        logger.bind(source_id=config.source).debug(
            "Registered normalization config with {} rules", len(config.transformations)
        )
        self.events.emit("normalizationConfigRegistered", {"source": config.source})

    def get_normalization_config(self, source_id: str) -> NormalizationConfig | None:
        return self._engine.get_config(source_id)

    async def process_data(self, source_id: str, records: Sequence[Any]) -> list[ProcessedData]:
        """Process one batch from ``source_id`` and return the resolved records.

        Any exception aborts the batch: ``dataProcessingError`` is emitted and
        the exception propagates.
        """

        start = perf_counter()
        with log_context(source_id=source_id):
            try:
                self.events.emit(
                    "dataProcessingStarted",
                    {"sourceId": source_id, "recordCount": len(records), "timestamp": self._clock()},
                )

                processed: list[ProcessedData] = []
                for record in records:
                    processed.append(await self._process_item(source_id, record))

                resolved = self._resolver.resolve(self._group_by_id(self._resolution_set(processed)))

                for item in resolved:
                    self._cache[item.id] = item

                if self._repository is not None:
                    self._repository.save(resolved)

                elapsed_ms = (perf_counter() - start) * 1000
                average = average_quality(resolved)
                logger.info(
                    "Processed {} records into {} resolved items in {:.1f} ms",
                    len(records),
                    len(resolved),
                    elapsed_ms,
                )
                self.events.emit(
                    "dataProcessingCompleted",
                    {
                        "sourceId": source_id,
                        "processedCount": len(resolved),
                        "processingTimeMs": elapsed_ms,
                        "averageQualityScore": average,
                    },
                )
                return resolved
            except Exception as exc:
                elapsed_ms = (perf_counter() - start) * 1000
                logger.opt(exception=exc).error("Batch processing failed: {}", exc)
                self.events.emit(
                    "dataProcessingError",
                    {"sourceId": source_id, "error": str(exc), "processingTimeMs": elapsed_ms},
                )
                raise

    async def _process_item(self, source_id: str, record: Any) -> ProcessedData:
        data_id = generate_data_id(source_id, record)
        outcome = await self._validator.validate_data(record, source_id)
        normalized = self.normalize_data(source_id, record)
        quality_score = await self._quality_scorer.calculate_score(normalized, outcome.errors)

        processed = ProcessedData(
            id=data_id,
            source_id=source_id,
            original_data=record,
            normalized_data=normalized,
            quality_score=quality_score,
            validation_errors=list(outcome.errors),
            timestamp=self._clock(),
        )
        self.events.emit(
            "dataItemProcessed",
            {
                "id": data_id,
                "sourceId": source_id,
                "qualityScore": quality_score,
                "errorCount": len(outcome.errors),
            },
        )
        return processed

    def normalize_data(self, source_id: str, record: Any) -> Any:
        return self._engine.normalize(source_id, record)

    def _resolution_set(self, processed: list[ProcessedData]) -> list[ProcessedData]:
        """The batch plus cached records of the same ids coming from other sources."""

        candidates = list(processed)
        seen: set[str] = set()
        for item in processed:
            if item.id in seen:
                continue
            seen.add(item.id)
            cached = self._cache.get(item.id)
            if cached is not None and cached.source_id != item.source_id:
                candidates.append(cached)
        return candidates

    @staticmethod
    def _group_by_id(items: list[ProcessedData]) -> dict[str, list[ProcessedData]]:
        grouped: dict[str, list[ProcessedData]] = {}
        for item in items:
            grouped.setdefault(item.id, []).append(item)
        return grouped

    async def resolve_data_conflicts(self, data_id: str, items: Sequence[ProcessedData]) -> ProcessedData:
        return self._resolver.resolve_data_conflicts(data_id, items)

    def get_cached(self, data_id: str) -> ProcessedData | None:
        return self._cache.get(data_id)

    def cached_items(self) -> list[ProcessedData]:
        return list(self._cache.values())

    def get_processing_stats(self) -> ProcessingStats:
        return ProcessingStats(
            total_items_processed=len(self._cache),
            average_quality_score=average_quality(list(self._cache.values())),
            sources_with_configs=len(self._engine),
            last_processing_time=self._clock(),
        )

    def clear_cache(self) -> None:
        self._cache.clear()
        self.events.emit("cacheCleared", {})

    def attach_manager(self, manager: IngestionManager) -> None:
        """Relay sync outcomes of ``manager`` as pipeline-level events."""

        def on_sync_completed(event: dict[str, Any]) -> None:
            result = event["result"]
            if result.records_processed > 0:
                self.events.emit(
                    "dataAvailableForProcessing",
                    {"sourceId": event["sourceId"], "recordCount": result.records_processed},
                )

        def on_sync_error(event: dict[str, Any]) -> None:
            self.events.emit("ingestionError", {"sourceId": event["sourceId"], "error": event["error"]})

        manager.events.on("syncCompleted", on_sync_completed)
        manager.events.on("syncError", on_sync_error)


__all__ = ["DataIngestionService", "ProcessedDataSink"]
