"""In-process event publishing.

Services expose their lifecycle as named events with dict payloads. Listeners
are invoked synchronously in subscription order; a listener returning an
awaitable is scheduled on the running loop.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

Listener = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class Event:
    """A published event as seen by wildcard listeners."""

    name: str
    payload: dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class EventEmitter:
    """Named-event publisher with per-event listener lists."""

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[Listener]] = defaultdict(list)
        self._wildcard: list[Callable[[Event], Any]] = []
        self._pending: set[asyncio.Task[Any]] = set()

    def on(self, event_name: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` to ``event_name`` and return it."""

        self._listeners[event_name].append(listener)
        return listener

    def off(self, event_name: str, listener: Listener) -> bool:
        """Remove a listener. Returns False if it was not subscribed."""

        listeners = self._listeners.get(event_name)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        return True

    def on_any(self, listener: Callable[[Event], Any]) -> None:
        """Subscribe to every event emitted by this emitter."""

        self._wildcard.append(listener)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    def remove_all_listeners(self) -> None:
        self._listeners.clear()
        self._wildcard.clear()

    def emit(self, event_name: str, payload: dict[str, Any] | None = None) -> bool:
        """Publish ``payload`` under ``event_name``.

        Returns True when at least one listener received the event.
        """

        data = payload if payload is not None else {}
        listeners = list(self._listeners.get(event_name, ()))
        for listener in listeners:
            self._dispatch(listener, data)

        if self._wildcard:
            event = Event(name=event_name, payload=data)
            for wildcard in list(self._wildcard):
                self._dispatch(wildcard, event)

        return bool(listeners or self._wildcard)

    def _dispatch(self, listener: Callable[[Any], Any], argument: Any) -> None:
        result = listener(argument)
        if inspect.isawaitable(result):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("Dropping async listener result: no running event loop")
                if inspect.iscoroutine(result):
                    result.close()
                return
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)


__all__ = ["Event", "EventEmitter", "Listener"]
