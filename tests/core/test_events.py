"""Tests for the event bus."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from heybot.core.events import Event, EventBus


@pytest.fixture
def bus():
    return EventBus()


class TestEventBus:
    @pytest.mark.asyncio
    async def test_emit_calls_subscribed_handler(self, bus):
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe("robot.running", handler)
        await bus.emit(Event(name="robot.running", data={"name": "Heybot"}))

        assert len(received) == 1
        assert received[0].data["name"] == "Heybot"

    @pytest.mark.asyncio
    async def test_sync_handler(self, bus):
        received = []
        bus.subscribe("deploy", lambda event: received.append(event.name))
        await bus.emit(Event(name="deploy"))
        assert received == ["deploy"]

    @pytest.mark.asyncio
    async def test_emit_ignores_other_events(self, bus):
        received = []
        bus.subscribe("other", received.append)
        await bus.emit(Event(name="test"))
        assert received == []

    @pytest.mark.asyncio
    async def test_handlers_called_in_subscription_order(self, bus):
        calls = []

        async def h1(event):
            calls.append("h1")

        def h2(event):
            calls.append("h2")

        bus.subscribe("test", h1)
        bus.subscribe("test", h2)
        await bus.emit(Event(name="test"))

        assert calls == ["h1", "h2"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, bus):
        received = []
        bus.subscribe("test", received.append)
        bus.unsubscribe("test", received.append)
        await bus.emit(Event(name="test"))
        assert received == []
        assert bus.handler_count("test") == 0

    def test_unsubscribe_unknown_handler(self, bus):
        bus.unsubscribe("test", lambda event: None)
        assert bus.handler_count("test") == 0

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self, bus):
        results = []

        async def bad_handler(event):
            raise RuntimeError("boom")

        def bad_sync_handler(event):
            raise ValueError("sync boom")

        bus.subscribe("test", bad_handler)
        bus.subscribe("test", bad_sync_handler)
        bus.subscribe("test", lambda event: results.append("ok"))
        await bus.emit(Event(name="test"))

        assert results == ["ok"]

    @pytest.mark.asyncio
    async def test_emit_without_handlers(self, bus):
        await bus.emit(Event(name="nobody_listening"))

    @pytest.mark.asyncio
    async def test_once_handler_runs_once(self, bus):
        received = []
        bus.once("adapter.connected", received.append)
        assert bus.handler_count("adapter.connected") == 1

        await bus.emit(Event(name="adapter.connected"))
        await bus.emit(Event(name="adapter.connected"))

        assert len(received) == 1
        assert bus.handler_count("adapter.connected") == 0

    @pytest.mark.asyncio
    async def test_once_alongside_regular_handler(self, bus):
        calls = []

        def always(event):
            calls.append("always")

        def first_only(event):
            calls.append("once")

        bus.subscribe("tick", always)
        bus.once("tick", first_only)
        await bus.emit(Event(name="tick"))
        await bus.emit(Event(name="tick"))

        assert calls == ["always", "once", "always"]

    @pytest.mark.asyncio
    async def test_unsubscribe_during_emit_uses_snapshot(self, bus):
        calls = []

        def h2(event):
            calls.append("h2")

        def h1(event):
            calls.append("h1")
            bus.unsubscribe("test", h2)

        bus.subscribe("test", h1)
        bus.subscribe("test", h2)
        await bus.emit(Event(name="test"))
        await bus.emit(Event(name="test"))

        assert calls == ["h1", "h2", "h1"]


class TestEvent:
    def test_data_defaults_empty(self):
        assert Event(name="x").data == {}

    def test_timestamp_populated(self):
        assert isinstance(Event(name="x").timestamp, datetime)

    def test_frozen(self):
        event = Event(name="x")
        with pytest.raises(ValidationError):
            event.name = "y"
