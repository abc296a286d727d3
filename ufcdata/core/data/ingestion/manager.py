"""Connector registry, fixed-interval sync scheduler and source health tracking."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from time import perf_counter
from typing import Any, Protocol

from loguru import logger

from ufcdata.core.config.settings import ManagerConfig
from ufcdata.core.exceptions.base import ConnectorNotRegisteredError, ConnectorRegistrationError
from ufcdata.core.events import EventEmitter
from ufcdata.core.models import DataIngestionResult, Severity, ValidationIssue

# Connector events re-emitted by the manager with ``sourceId`` attached.
FORWARDED_CONNECTOR_EVENTS = ("rateLimitHit", "circuitBreakerStateChange", "retryAttempt", "requestError")


@dataclass(slots=True, frozen=True)
class ConnectorStatus:
    """Point-in-time health snapshot reported by a connector."""

    circuit_breaker_state: str = "closed"
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float | None = None


class SourceConnector(Protocol):
    async def sync_data(self) -> DataIngestionResult: ...

    def get_status(self) -> ConnectorStatus: ...


class SourceStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class IngestionSchedule:
    source_id: str
    interval_ms: int
    enabled: bool = True
    last_run: datetime | None = None
    next_run: datetime | None = None


@dataclass(slots=True)
class IngestionStats:
    total_sources: int = 0
    active_sources: int = 0
    error_sources: int = 0
    total_records_processed: int = 0
    total_errors: int = 0
    last_sync_time: datetime | None = None


@dataclass(slots=True, frozen=True)
class SourceInfo:
    id: str
    name: str
    status: SourceStatus
    last_sync: datetime | None
    error_count: int


def determine_source_status(status: ConnectorStatus) -> SourceStatus:
    """Open breaker means error, any recorded failure means warning."""

    if status.circuit_breaker_state == "open":
        return SourceStatus.ERROR
    if status.failure_count > 0:
        return SourceStatus.WARNING
    return SourceStatus.ACTIVE


class IngestionManager:
    """Owns source connectors and drives their syncs.

    A schedule is a ticker task sleeping ``interval_ms`` between ticks. Each
    tick starts its sync as a separate task, so stopping a schedule or
    shutting down only prevents future ticks and never aborts a running sync.
    """

    def __init__(
        self,
        *,
        events: EventEmitter | None = None,
        config: ManagerConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.events = events or EventEmitter()
        self.config = config or ManagerConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._connectors: dict[str, SourceConnector] = {}
        self._schedules: dict[str, IngestionSchedule] = {}
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._in_flight: set[asyncio.Task[DataIngestionResult]] = set()
        self._forwarders: dict[str, list[tuple[EventEmitter, str, Callable[[dict[str, Any]], None]]]] = {}
        self._stats = IngestionStats()

    def register_connector(self, source_id: str, connector: SourceConnector) -> None:
        if source_id in self._connectors:
            raise ConnectorRegistrationError(source_id)

        self._connectors[source_id] = connector
        self._forward_connector_events(source_id, connector)
        self._stats.total_sources += 1
        logger.bind(source_id=source_id).info("Registered connector")
        self.events.emit("connectorRegistered", {"sourceId": source_id})

    def unregister_connector(self, source_id: str) -> bool:
        if source_id not in self._connectors:
            return False

        self.stop_scheduled_sync(source_id)
        del self._connectors[source_id]
        self._schedules.pop(source_id, None)
        for emitter, event_name, listener in self._forwarders.pop(source_id, []):
            emitter.off(event_name, listener)
        self._stats.total_sources -= 1
        self.events.emit("connectorUnregistered", {"sourceId": source_id})
        return True

    def get_connector(self, source_id: str) -> SourceConnector | None:
        return self._connectors.get(source_id)

    def schedule_sync(self, source_id: str, interval_ms: int | None = None) -> None:
        """Start syncing ``source_id`` every ``interval_ms``; replaces any schedule.

        Must be called from within a running event loop.
        """

        if source_id not in self._connectors:
            raise ConnectorNotRegisteredError(source_id)
        interval = interval_ms if interval_ms is not None else self.config.default_interval_ms
        if interval <= 0:
            raise ValueError("interval_ms must be positive")

        self.stop_scheduled_sync(source_id)

        self._schedules[source_id] = IngestionSchedule(
            source_id=source_id,
            interval_ms=interval,
            next_run=self._clock() + timedelta(milliseconds=interval),
        )
        self._timers[source_id] = asyncio.get_running_loop().create_task(
            self._run_schedule(source_id, interval), name=f"ufcdata-sync-{source_id}"
        )
        logger.bind(source_id=source_id).info("Scheduled sync every {} ms", interval)
        self.events.emit("syncScheduled", {"sourceId": source_id, "intervalMs": interval})

    async def _run_schedule(self, source_id: str, interval_ms: int) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(interval_ms / 1000)
            task = loop.create_task(self.sync_source(source_id), name=f"ufcdata-sync-{source_id}-tick")
            self._in_flight.add(task)
            task.add_done_callback(self._sync_task_done)

    def _sync_task_done(self, task: asyncio.Task[DataIngestionResult]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Scheduled sync crashed: {}", exc)

    @property
    def in_flight_syncs(self) -> int:
        """Number of scheduled syncs currently running."""

        return len(self._in_flight)

    def stop_scheduled_sync(self, source_id: str) -> None:
        timer = self._timers.pop(source_id, None)
        if timer is not None:
            timer.cancel()

        schedule = self._schedules.get(source_id)
        if schedule is not None and schedule.enabled:
            schedule.enabled = False
            self.events.emit("syncStopped", {"sourceId": source_id})

    async def sync_source(self, source_id: str) -> DataIngestionResult:
        """Run one sync. Connector failures are returned as a result, never raised."""

        connector = self._connectors.get(source_id)
        if connector is None:
            raise ConnectorNotRegisteredError(source_id)

        start = perf_counter()
        bound = logger.bind(source_id=source_id)
        self.events.emit("syncStarted", {"sourceId": source_id, "startTime": self._clock()})

        try:
            result = await connector.sync_data()
        except Exception as exc:
            elapsed_ms = (perf_counter() - start) * 1000
            self._stats.total_errors += 1
            error_result = self._error_result(source_id, exc, elapsed_ms)
            bound.warning("Sync failed: {}", exc)
            self.events.emit(
                "syncError",
                {"sourceId": source_id, "error": exc, "result": error_result, "duration": elapsed_ms},
            )
            return error_result

        elapsed_ms = (perf_counter() - start) * 1000
        self._update_stats(result)
        schedule = self._schedules.get(source_id)
        if schedule is not None:
            now = self._clock()
            schedule.last_run = now
            schedule.next_run = now + timedelta(milliseconds=schedule.interval_ms)

        bound.info("Sync completed: {} processed, {} skipped", result.records_processed, result.records_skipped)
        self.events.emit("syncCompleted", {"sourceId": source_id, "result": result, "duration": elapsed_ms})
        return result

    async def sync_all_sources(self) -> dict[str, DataIngestionResult]:
        """Sync every registered source concurrently and collect per-source results."""

        source_ids = list(self._connectors)
        outcomes = await asyncio.gather(
            *(self.sync_source(source_id) for source_id in source_ids),
            return_exceptions=True,
        )

        results: dict[str, DataIngestionResult] = {}
        for source_id, outcome in zip(source_ids, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                results[source_id] = self._error_result(source_id, outcome, 0.0)
            else:
                results[source_id] = outcome

        self.events.emit("allSourcesSynced", {"results": dict(results), "totalSources": len(results)})
        return results

    def _error_result(self, source_id: str, error: Exception, elapsed_ms: float) -> DataIngestionResult:
        return DataIngestionResult(
            source_id=source_id,
            errors=[
                ValidationIssue(
                    field="sync",
                    message=str(error) or "Unknown sync error",
                    value=error,
                    severity=Severity.ERROR,
                )
            ],
            processing_time_ms=elapsed_ms,
            next_sync_time=self._clock() + timedelta(milliseconds=self.config.sync_error_backoff_ms),
        )

    def _update_stats(self, result: DataIngestionResult) -> None:
        self._stats.total_records_processed += result.records_processed
        self._stats.total_errors += len(result.errors)
        self._stats.last_sync_time = self._clock()

    def get_sources_status(self) -> list[SourceInfo]:
        sources: list[SourceInfo] = []
        for source_id, connector in self._connectors.items():
            status = connector.get_status()
            schedule = self._schedules.get(source_id)
            sources.append(
                SourceInfo(
                    id=source_id,
                    name=getattr(connector, "name", source_id),
                    status=determine_source_status(status),
                    last_sync=schedule.last_run if schedule else None,
                    error_count=status.failure_count,
                )
            )
        return sources

    def get_stats(self) -> IngestionStats:
        sources = self.get_sources_status()
        self._stats.active_sources = sum(1 for source in sources if source.status is SourceStatus.ACTIVE)
        self._stats.error_sources = sum(1 for source in sources if source.status is SourceStatus.ERROR)
        return replace(self._stats)

    def get_schedules(self) -> list[IngestionSchedule]:
        return list(self._schedules.values())

    def reset_circuit_breaker(self, source_id: str) -> bool:
        connector = self._connectors.get(source_id)
        reset = getattr(connector, "reset_circuit_breaker", None)
        if reset is None:
            return False
        reset()
        self.events.emit("circuitBreakerReset", {"sourceId": source_id})
        return True

    def shutdown(self) -> None:
        """Cancel every ticker and drop schedules and connectors. Running syncs finish unawaited."""

        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._schedules.clear()
        for source_id in list(self._forwarders):
            for emitter, event_name, listener in self._forwarders.pop(source_id):
                emitter.off(event_name, listener)
        self._connectors.clear()
        self.events.emit("shutdown", {})

    def _forward_connector_events(self, source_id: str, connector: SourceConnector) -> None:
        emitter = getattr(connector, "events", None)
        if not isinstance(emitter, EventEmitter):
            return

        registered: list[tuple[EventEmitter, str, Callable[[dict[str, Any]], None]]] = []
        for event_name in FORWARDED_CONNECTOR_EVENTS:

            def relay(payload: dict[str, Any], _name: str = event_name) -> None:
                self.events.emit(_name, {"sourceId": source_id, **payload})

            emitter.on(event_name, relay)
            registered.append((emitter, event_name, relay))
        self._forwarders[source_id] = registered


__all__ = [
    "ConnectorStatus",
    "FORWARDED_CONNECTOR_EVENTS",
    "IngestionManager",
    "IngestionSchedule",
    "IngestionStats",
    "SourceConnector",
    "SourceInfo",
    "SourceStatus",
    "determine_source_status",
]
