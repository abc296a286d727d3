"""Shared fixtures for the ufcdata test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from ufcdata.core.events import Event, EventEmitter


class EventRecorder:
    """Captures every event published by an emitter."""

    def __init__(self, emitter: EventEmitter) -> None:
        self.events: list[Event] = []
        emitter.on_any(self.events.append)

    @property
    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def payloads(self, name: str) -> list[dict[str, Any]]:
        return [event.payload for event in self.events if event.name == name]


class FakeClock:
    """Deterministic clock advancing by ``step`` on every read."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2024, 3, 9, 20, 0, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture()
def events() -> EventEmitter:
    return EventEmitter()


@pytest.fixture()
def recorder(events: EventEmitter) -> EventRecorder:
    return EventRecorder(events)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
