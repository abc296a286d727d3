"""Per-source circuit breaker guarding connector fetches."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from ..events import EventEmitter
from ..exceptions import CircuitOpenError, ConfigurationError

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout: float = 60.0  # seconds
    half_open_max_calls: int = 3  # successes needed to close again
    name: str = "default"
    # Raised by the caller's own setup rather than the source; never trip the breaker.
    ignored_exceptions: tuple[type[BaseException], ...] = (ConfigurationError,)


class CircuitBreaker:
    """Opens after ``failure_threshold`` consecutive failures.

    While open, calls fail fast with ``CircuitOpenError`` until
    ``recovery_timeout`` has passed; the breaker then goes half-open, where
    ``half_open_max_calls`` successes close it and one failure re-opens it.
    Every transition is published as ``circuitBreakerStateChange``.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        events: EventEmitter | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.events = events or EventEmitter()
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: float | None = None
        self._lock = asyncio.Lock()

    @property
    def remaining_time(self) -> float:
        """Seconds until an open breaker lets a trial call through."""

        if self.state is not CircuitState.OPEN or self.last_failure_time is None:
            return 0.0
        return max(0.0, self.config.recovery_timeout - (self._clock() - self.last_failure_time))

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async with self._lock:
            if self.state is CircuitState.OPEN:
                if self.remaining_time > 0:
                    raise CircuitOpenError(self.config.name, self.remaining_time)
                self.success_count = 0
                self._transition(CircuitState.HALF_OPEN)

            try:
                result = await func(*args, **kwargs)
            except self.config.ignored_exceptions:
                raise
            except Exception:
                self._record_failure()
                raise
            self._record_success()
            return result

    def _record_success(self) -> None:
        if self.state is CircuitState.CLOSED:
            self.failure_count = 0
            return
        self.success_count += 1
        if self.success_count >= self.config.half_open_max_calls:
            self.failure_count = 0
            self.success_count = 0
            self._transition(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()
        if self.state is CircuitState.HALF_OPEN or self.failure_count >= self.config.failure_threshold:
            self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is self.state:
            return
        previous, self.state = self.state, new_state
        self.events.emit(
            "circuitBreakerStateChange",
            {"previousState": previous.value, "newState": new_state.value, "failureCount": self.failure_count},
        )

    def get_state(self) -> dict[str, Any]:
        return {
            "name": self.config.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure_time": self.last_failure_time,
            "remaining_time": self.remaining_time,
        }

    def reset(self) -> None:
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
        self._transition(CircuitState.CLOSED)


__all__ = ["CircuitBreaker", "CircuitBreakerConfig", "CircuitState"]
