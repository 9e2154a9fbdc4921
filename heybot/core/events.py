"""Named events for the robot lifecycle and for scripts talking to each other."""

import inspect
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

# Lifecycle events published by the robot and adapters
ADAPTER_INITIALIZED = "adapter.initialized"
ADAPTER_CONNECTED = "adapter.connected"
ROBOT_RUNNING = "robot.running"
ROBOT_STOPPED = "robot.stopped"

# Published for every failure reported through the robot's error sink;
# data carries ``error`` and ``response`` (``None`` outside a dispatch).
ROBOT_ERROR = "error"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


# Handlers may be plain functions or coroutine functions.
EventHandler = Callable[[Event], Awaitable[None] | None]


class EventBus:
    """Delivers events to subscribers in subscription order.

    A failing handler is logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._once: set[tuple[str, int]] = set()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    def once(self, event_name: str, handler: EventHandler) -> None:
        """Subscribe *handler* for the next *event_name* only."""
        self.subscribe(event_name, handler)
        self._once.add((event_name, id(handler)))

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
        if handler not in handlers:
            self._once.discard((event_name, id(handler)))

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    async def emit(self, event: Event) -> None:
        handlers = list(self._handlers.get(event.name, []))
        for handler in handlers:
            if (event.name, id(handler)) in self._once:
                self.unsubscribe(event.name, handler)

        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "event_handler_error",
                    event_name=event.name,
                    handler_name=getattr(handler, "__name__", repr(handler)),
                )
