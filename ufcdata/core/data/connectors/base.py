"""Base class for source connectors consumed by the ingestion manager."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from time import perf_counter
from typing import TYPE_CHECKING, Any

from loguru import logger

from ufcdata.core.data.ingestion.manager import ConnectorStatus
from ufcdata.core.events import EventEmitter
from ufcdata.core.exceptions.base import IngestionError
from ufcdata.core.models import DataIngestionResult
from ufcdata.core.patterns.circuitbreaker import CircuitBreaker, CircuitBreakerConfig

if TYPE_CHECKING:
    from ufcdata.core.data.ingestion.service import DataIngestionService


class ApiConnector(ABC):
    """Fetches raw records from one source through a circuit breaker.

    When a pipeline is attached the fetched records are processed by it and
    the result reflects the pipeline's verdicts; otherwise every fetched
    record counts as processed.
    """

    def __init__(
        self,
        source_id: str,
        *,
        name: str | None = None,
        pipeline: DataIngestionService | None = None,
        circuit_config: CircuitBreakerConfig | None = None,
        sync_interval_ms: int = 3_600_000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source_id = source_id
        self.name = name or source_id
        self.events = EventEmitter()
        self.pipeline = pipeline
        self.sync_interval_ms = sync_interval_ms
        self._clock = clock or (lambda: datetime.now(UTC))
        self._breaker = CircuitBreaker(circuit_config or CircuitBreakerConfig(name=source_id), self.events)

    @abstractmethod
    async def fetch_records(self) -> Sequence[Any]:
        """Return the raw records currently available from the source."""

    async def sync_data(self) -> DataIngestionResult:
        start = perf_counter()
        try:
            records = await self._breaker.call(self.fetch_records)
        except Exception as exc:
            self.events.emit("requestError", {"error": str(exc), "failureCount": self._breaker.failure_count})
            raise

        result = DataIngestionResult(source_id=self.source_id, records_processed=len(records))
        if self.pipeline is not None:
            try:
                processed = await self.pipeline.process_data(self.source_id, records)
            except Exception as exc:
                raise IngestionError(f"Pipeline rejected batch: {exc}", self.source_id) from exc
            rejected = [item for item in processed if item.error_count]
            result.records_processed = len(processed) - len(rejected)
            result.records_skipped = len(rejected)
            result.errors = [issue for item in rejected for issue in item.validation_errors if issue.is_error]

        result.processing_time_ms = (perf_counter() - start) * 1000
        result.next_sync_time = self._clock() + timedelta(milliseconds=self.sync_interval_ms)
        logger.bind(source_id=self.source_id).debug("Fetched {} records", len(records))
        return result

    def get_status(self) -> ConnectorStatus:
        state = self._breaker.get_state()
        return ConnectorStatus(
            circuit_breaker_state=state["state"],
            failure_count=state["failure_count"],
            success_count=state["success_count"],
            last_failure_time=state["last_failure_time"],
        )

    def reset_circuit_breaker(self) -> None:
        self._breaker.reset()


__all__ = ["ApiConnector"]
