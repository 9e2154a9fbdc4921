"""The robot: listener registry, middleware chains and message dispatch."""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from heybot.core.command import CommandCallback, CommandParameter, PendingCommand
from heybot.core.events import (
    ADAPTER_INITIALIZED,
    ROBOT_ERROR,
    ROBOT_RUNNING,
    ROBOT_STOPPED,
    Event,
    EventBus,
    EventHandler,
)
from heybot.core.listener import Listener, ListenerCallback, Matcher, TextListener
from heybot.core.message import (
    CatchAllMessage,
    EnterMessage,
    LeaveMessage,
    Message,
    TopicMessage,
)
from heybot.core.middleware import Done, Middleware, MiddlewareContext, MiddlewareFunc
from heybot.core.response import Envelope, Response
from heybot.core.scheduling import next_tick, spawn
from heybot.exceptions import AdapterError, ConfigError

if TYPE_CHECKING:
    from heybot.adapters.base import Adapter

logger = structlog.get_logger()

ErrorHandler = Callable[[BaseException, Response | None], Any]
Options = Mapping[str, Any] | ListenerCallback | None


class MiddlewareChains:
    __slots__ = ("listener", "receive", "response")

    def __init__(self, robot: Robot) -> None:
        self.listener = Middleware(robot)
        self.response = Middleware(robot)
        self.receive = Middleware(robot)


class Robot:
    """Receives messages from an adapter and dispatches them to listeners.

    Listeners run one at a time in registration order. When none of them
    matches a message, it is dispatched once more wrapped in a
    ``CatchAllMessage``.
    """

    def __init__(
        self,
        name: str = "Heybot",
        alias: str | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self.name = name
        self.alias = alias
        self.events = event_bus or EventBus()
        self.adapter: Adapter | None = None
        self.listeners: list[Listener] = []
        self.middleware = MiddlewareChains(self)
        self.error_handlers: list[ErrorHandler] = []
        self._previous_exception_handler: Any = None
        self._running = False
        self._unregistered_commands: list[PendingCommand] = []

    # -- listener registration ---------------------------------------------

    def listen(self, matcher: Matcher, options: Options, callback: ListenerCallback | None = None) -> None:
        self.listeners.append(Listener(self, matcher, options, callback))

    def hear(
        self,
        regex: str | re.Pattern[str],
        options: Options,
        callback: ListenerCallback | None = None,
    ) -> None:
        self.listeners.append(TextListener(self, regex, options, callback))

    def respond(
        self,
        regex: str | re.Pattern[str],
        options: Options,
        callback: ListenerCallback | None = None,
    ) -> None:
        """Like ``hear``, but only for messages addressed to the robot by name or alias."""
        self.hear(self.respond_pattern(regex), options, callback)

    def respond_pattern(self, regex: str | re.Pattern[str]) -> re.Pattern[str]:
        pattern = re.compile(regex)
        source = pattern.pattern
        if source.startswith("^"):
            logger.warning(
                "respond_pattern_anchored",
                pattern=source,
                hint="anchors don't work well with respond, perhaps you want hear",
            )

        name = re.escape(self.name)
        if not self.alias:
            return re.compile(rf"^\s*[@]?{name}[:,]?\s*(?:{source})", pattern.flags)

        alias = re.escape(self.alias)
        # The longer of the two has to be tried first when one prefixes the other
        first, second = (name, alias) if len(name) > len(alias) else (alias, name)
        return re.compile(
            rf"^\s*[@]?(?:{first}[:,]?|{second}[:,]?)\s*(?:{source})", pattern.flags
        )

    def enter(self, options: Options, callback: ListenerCallback | None = None) -> None:
        self.listen(lambda msg: isinstance(msg, EnterMessage), options, callback)

    def leave(self, options: Options, callback: ListenerCallback | None = None) -> None:
        self.listen(lambda msg: isinstance(msg, LeaveMessage), options, callback)

    def topic(self, options: Options, callback: ListenerCallback | None = None) -> None:
        self.listen(lambda msg: isinstance(msg, TopicMessage), options, callback)

    def catch_all(self, options: Options, callback: ListenerCallback | None = None) -> None:
        """Register a listener for messages no other listener matched.

        The callback sees the original message, not the wrapper.
        """
        if callback is None:
            callback = options  # type: ignore[assignment]
            options = {}
        if callback is None or not callable(callback):
            raise ConfigError("Missing a callback for Listener")
        handler = callback

        def unwrap(response: Response) -> Any:
            response.message = response.message.message
            return handler(response)

        self.listen(lambda msg: isinstance(msg, CatchAllMessage), options, unwrap)

    def command(
        self,
        name: str,
        parameters: Iterable[CommandParameter | Mapping[str, Any]],
        callback: CommandCallback,
    ) -> None:
        """Register a command native to the adapter, such as a slash command.

        Adapters that define ``register_command`` receive the command directly;
        for any other adapter *name* becomes a ``respond`` pattern. Commands
        registered before an adapter is loaded are replayed by ``load_adapter``.
        """
        if not callable(callback):
            raise ConfigError(f"Missing a callback for command {name!r}")
        params = [CommandParameter.model_validate(p) for p in parameters]

        if self.adapter is None:
            self._unregistered_commands.append(PendingCommand(name, params, callback))
            logger.debug("command_deferred", name=name)
            return

        register = getattr(self.adapter, "register_command", None)
        if callable(register):
            register(name, params, callback)
            logger.debug("command_registered", name=name, native=True)
        else:
            self.respond(name, {}, callback)
            logger.debug("command_registered", name=name, native=False)

    # -- middleware and error handlers -------------------------------------

    def listener_middleware(self, middleware: MiddlewareFunc) -> None:
        """Run *middleware* after a listener matched, before its callback."""
        self.middleware.listener.register(middleware)

    def response_middleware(self, middleware: MiddlewareFunc) -> None:
        """Run *middleware* on every outbound action; it may edit ``context.strings``."""
        self.middleware.response.register(middleware)

    def receive_middleware(self, middleware: MiddlewareFunc) -> None:
        """Run *middleware* on every inbound message before any matching."""
        self.middleware.receive.register(middleware)

    def error(self, handler: ErrorHandler) -> None:
        self.error_handlers.append(handler)

    def emit_error(self, error: BaseException, response: Response | None = None) -> None:
        """Report a failure from a callback, middleware or adapter task.

        Registered error handlers run synchronously, in order. Subscribers to
        the ``error`` event are notified on a later tick.
        """
        logger.error("robot_error", error=str(error), exc_info=error)

        for handler in list(self.error_handlers):
            try:
                result = handler(error, response)
            except Exception:
                logger.exception(
                    "error_handler_failed",
                    handler_name=getattr(handler, "__name__", repr(handler)),
                )
                continue
            if inspect.isawaitable(result):
                spawn(
                    result,
                    lambda exc: logger.error("error_handler_failed", exc_info=exc),
                )

        if self.events.handler_count(ROBOT_ERROR):
            spawn(
                self.emit(ROBOT_ERROR, error=error, response=response),
                lambda exc: logger.error("error_event_failed", exc_info=exc),
            )

    # -- dispatch ------------------------------------------------------------

    def receive(self, message: Message, cb: Done | None = None) -> None:
        """Pass *message* through receive middleware to every interested listener.

        Returns before any middleware or listener runs; *cb* is called once
        processing, catch-all fallback included, is complete.
        """
        self.middleware.receive.execute(
            MiddlewareContext(response=Response(self, message)),
            self._process_listeners,
            cb,
        )

    async def dispatch(self, message: Message) -> None:
        """Receive *message* and wait until its processing is complete."""
        finished: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _complete() -> None:
            if not finished.done():
                finished.set_result(None)

        self.receive(message, _complete)
        await finished

    def _process_listeners(self, context: MiddlewareContext, done: Done | None) -> None:
        message = context.response.message
        listeners = list(self.listeners)
        any_listeners_executed = False

        def try_listener(index: int) -> None:
            if index >= len(listeners):
                finish()
                return

            def on_result(executed: bool) -> None:
                nonlocal any_listeners_executed
                any_listeners_executed = any_listeners_executed or executed
                # One tick per listener keeps the stack flat
                next_tick(advance, index)

            try:
                listeners[index].call(message, self.middleware.listener, on_result)
            except Exception as e:
                self.emit_error(e, Response(self, message, None))
                next_tick(try_listener, index + 1)

        def advance(index: int) -> None:
            if message.done:
                finish()
            else:
                try_listener(index + 1)

        def finish() -> None:
            if not isinstance(message, CatchAllMessage) and not any_listeners_executed:
                logger.debug("no_listeners_executed", fallback="catch_all")
                self.receive(CatchAllMessage(message=message), done)
            elif done is not None:
                next_tick(done)

        try_listener(0)

    # -- adapter ---------------------------------------------------------------

    def load_adapter(self, factory: Callable[[Robot], Adapter]) -> Adapter:
        try:
            self.adapter = factory(self)
        except Exception as e:
            raise AdapterError(f"Cannot load adapter {factory!r}: {e}") from e
        logger.info("adapter_loaded", adapter=type(self.adapter).__name__)

        pending, self._unregistered_commands = self._unregistered_commands, []
        for command in pending:
            self.command(*command)
        return self.adapter

    def _require_adapter(self) -> Adapter:
        if self.adapter is None:
            raise AdapterError("No adapter loaded")
        return self.adapter

    def url_for_message(self, message: Message) -> str:
        return self._require_adapter().url_for_message(message)

    async def send(self, envelope: Envelope, *strings: Any) -> None:
        """Send straight through the adapter, bypassing response middleware."""
        await self._require_adapter().send(envelope, *strings)

    async def reply(self, envelope: Envelope, *strings: Any) -> None:
        await self._require_adapter().reply(envelope, *strings)

    async def message_room(self, room: str, *strings: Any) -> None:
        await self._require_adapter().send(Envelope(room=room), *strings)

    # -- events and lifecycle --------------------------------------------------

    def on(self, event_name: str, handler: EventHandler) -> None:
        self.events.subscribe(event_name, handler)

    def once(self, event_name: str, handler: EventHandler) -> None:
        self.events.once(event_name, handler)

    async def emit(self, event_name: str, **data: Any) -> None:
        await self.events.emit(Event(name=event_name, data=data))

    def _on_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exc = context.get("exception")
        if exc is None:
            logger.error("event_loop_error", detail=context.get("message"))
            return
        self.emit_error(exc)

    async def run(self) -> None:
        """Start the adapter and return when it stops running."""
        adapter = self._require_adapter()
        loop = asyncio.get_running_loop()
        self._previous_exception_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_loop_exception)
        self._running = True

        await self.emit(ADAPTER_INITIALIZED, adapter=type(adapter).__name__)
        await self.emit(ROBOT_RUNNING, name=self.name)
        logger.info("robot_running", name=self.name, adapter=type(adapter).__name__)
        await adapter.run()

    async def shutdown(self) -> None:
        if self.adapter is not None:
            try:
                await self.adapter.close()
            except Exception:
                logger.exception("adapter_close_failed")
        if self._running:
            asyncio.get_running_loop().set_exception_handler(
                self._previous_exception_handler
            )
            self._running = False
        await self.emit(ROBOT_STOPPED, name=self.name)
        logger.info("robot_stopped", name=self.name)
