"""Listeners: a matcher plus a callback, evaluated against every inbound message."""

from __future__ import annotations

import inspect
import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from heybot.core.middleware import Done, Middleware, MiddlewareContext
from heybot.core.response import Response
from heybot.core.scheduling import next_tick, spawn
from heybot.exceptions import ConfigError

if TYPE_CHECKING:
    from heybot.core.robot import Robot

logger = structlog.get_logger()

Matcher = Callable[[Any], Any]
ListenerCallback = Callable[[Response], Any]
DidMatch = Callable[[bool], None]


class Listener:
    """Decides whether it wants to act on a message, then runs its callback.

    ``options`` always carries an ``id`` key (``None`` when not given) so
    middleware can identify the listener. When only three arguments are
    passed the third one is the callback.
    """

    def __init__(
        self,
        robot: Robot,
        matcher: Matcher | None,
        options: Mapping[str, Any] | ListenerCallback | None,
        callback: ListenerCallback | None = None,
    ) -> None:
        if matcher is None:
            raise ConfigError("Missing a matcher for Listener")
        if callback is None:
            callback = options  # type: ignore[assignment]
            options = {}
        if callback is None or not callable(callback):
            raise ConfigError("Missing a callback for Listener")
        if options is None:
            options = {}

        self.robot = robot
        self.matcher = matcher
        self.options: dict[str, Any] = dict(options)  # type: ignore[arg-type]
        self.options.setdefault("id", None)
        self.callback = callback
        self.regex: re.Pattern[str] | None = None

    def call(
        self,
        message: Any,
        middleware: Middleware | DidMatch | None = None,
        did_match: DidMatch | None = None,
    ) -> bool:
        """Run the listener against *message*.

        Returns whether the matcher matched, before the callback runs.
        *did_match* receives the same answer on a later tick, once the
        middleware chain (and possibly the callback) has completed. Middleware
        may intercept the message so that the callback never runs; that still
        counts as a match.
        """
        if did_match is None and callable(middleware):
            did_match = middleware
            middleware = None
        if middleware is None:
            middleware = Middleware(self.robot)

        match = self.matcher(message)
        if not match:
            if did_match is not None:
                next_tick(did_match, False)
            return False

        if self.regex is not None:
            logger.debug(
                "listener_matched",
                message=str(message),
                regex=self.regex.pattern,
                options=self.options,
            )

        def execute_listener(context: MiddlewareContext, done: Done) -> None:
            logger.debug("listener_executing", message=str(message), id=self.options["id"])
            try:
                result = self.callback(context.response)
            except Exception as e:
                self.robot.emit_error(e, context.response)
                done()
                return
            if inspect.isawaitable(result):
                spawn(
                    result,
                    lambda exc: self.robot.emit_error(exc, context.response),
                    done,
                )
            else:
                done()

        def all_done() -> None:
            if did_match is not None:
                next_tick(did_match, True)

        response = Response(self.robot, message, match)
        middleware.execute(
            MiddlewareContext(listener=self, response=response),
            execute_listener,
            all_done,
        )
        return True


class TextListener(Listener):
    """Matches the text of text-bearing messages against a regular expression."""

    def __init__(
        self,
        robot: Robot,
        regex: str | re.Pattern[str],
        options: Mapping[str, Any] | ListenerCallback | None,
        callback: ListenerCallback | None = None,
    ) -> None:
        pattern = re.compile(regex)

        def matcher(message: Any) -> re.Match[str] | None:
            if getattr(message, "is_text", False):
                return message.match(pattern)
            return None

        super().__init__(robot, matcher, options, callback)
        self.regex = pattern
