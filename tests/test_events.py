"""Tests for the in-process event bus."""

from __future__ import annotations

from ragtracker.events.bus import EventBus
from ragtracker.events.types import EventType


async def test_emit_to_typed_and_wildcard_listeners():
    bus = EventBus()
    typed: list[dict] = []
    everything: list[EventType] = []

    async def on_submit(event_type, data):
        typed.append(data)

    async def on_any(event_type, data):
        everything.append(event_type)

    bus.on(EventType.REPORT_SUBMITTED, on_submit)
    bus.on(None, on_any)

    await bus.emit(EventType.REPORT_SUBMITTED, {"report_id": "r1"})
    await bus.emit(EventType.PROJECT_CREATED)

    assert typed == [{"report_id": "r1"}]
    assert everything == [EventType.REPORT_SUBMITTED, EventType.PROJECT_CREATED]


async def test_listener_failure_is_isolated():
    bus = EventBus()
    received: list[str] = []

    async def broken(event_type, data):
        raise RuntimeError("boom")

    async def healthy(event_type, data):
        received.append(data["id"])

    bus.on(EventType.USER_CREATED, broken)
    bus.on(EventType.USER_CREATED, healthy)
    await bus.emit(EventType.USER_CREATED, {"id": "u1"})
    assert received == ["u1"]


async def test_off_and_history():
    bus = EventBus(history_size=2)
    calls: list[EventType] = []

    async def listener(event_type, data):
        calls.append(event_type)

    bus.on(EventType.USER_UPDATED, listener)
    bus.off(EventType.USER_UPDATED, listener)
    for event_type in (EventType.USER_CREATED, EventType.USER_UPDATED, EventType.USER_REMOVED):
        await bus.emit(event_type)

    assert calls == []
    assert [e.type for e in bus.recent()] == [EventType.USER_REMOVED, EventType.USER_UPDATED]
