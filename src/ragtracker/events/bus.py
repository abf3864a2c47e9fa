"""In-process async event bus for RAG Tracker."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ragtracker.events.types import EventType

logger = logging.getLogger(__name__)

Listener = Callable[[EventType, dict[str, Any]], Coroutine[Any, Any, None]]


@dataclass(frozen=True)
class Event:
    type: EventType
    data: dict[str, Any]
    at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class EventBus:
    """Async pub/sub bus. Listener failures are logged and never reach the emitter."""

    def __init__(self, *, history_size: int = 100) -> None:
        self._listeners: dict[EventType, list[Listener]] = defaultdict(list)
        self._wildcard: list[Listener] = []
        self._history: deque[Event] = deque(maxlen=history_size)

    def on(self, event_type: EventType | None, listener: Listener) -> None:
        """Subscribe to one event type, or to every event when ``event_type`` is None."""
        if event_type is None:
            self._wildcard.append(listener)
        else:
            self._listeners[event_type].append(listener)

    def off(self, event_type: EventType | None, listener: Listener) -> None:
        bucket = self._wildcard if event_type is None else self._listeners[event_type]
        if listener in bucket:
            bucket.remove(listener)

    async def emit(self, event_type: EventType, data: dict[str, Any] | None = None) -> None:
        event = Event(type=event_type, data=data or {})
        self._history.append(event)

        for listener in [*self._listeners.get(event_type, []), *self._wildcard]:
            try:
                await listener(event.type, event.data)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Listener failed for %s", event_type)

    def recent(self, limit: int = 20) -> list[Event]:
        """Most recent events, newest first."""
        return list(self._history)[-limit:][::-1]
