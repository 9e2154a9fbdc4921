"""Middleware chain. Each middleware can pass through, wrap completion, or short-circuit.

A middleware is a function ``(context, next, done)``. Calling ``next()``
continues down the chain, optionally with a replacement ``done`` that wraps
the current one; calling ``done()`` stops the chain and unwinds through every
wrapper installed so far, in reverse registration order.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from heybot.core.scheduling import next_tick, spawn
from heybot.exceptions import ConfigError

if TYPE_CHECKING:
    from heybot.core.robot import Robot

logger = structlog.get_logger()

Done = Callable[[], None]
NextStep = Callable[..., None]
MiddlewareFunc = Callable[[Any, NextStep, Done], Any]
FinalHandler = Callable[[Any, Done], None]

_ARITY = 3
_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


# Mutable: middleware rewrites strings and message fields in place.
class MiddlewareContext(BaseModel):
    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    response: Any
    listener: Any = None
    strings: list[Any] | None = None
    method: str | None = None
    plaintext: bool | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def _noop() -> None:
    pass


def _required_positional(fn: Callable[..., Any]) -> int:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Cannot inspect middleware callback {fn!r}: {e}") from e
    return sum(1 for p in params if p.kind in _POSITIONAL and p.default is p.empty)


class Middleware:
    def __init__(self, robot: Robot) -> None:
        self._robot = robot
        self._stack: list[MiddlewareFunc] = []

    def register(self, middleware: MiddlewareFunc) -> None:
        if not callable(middleware):
            raise ConfigError(f"Middleware must be callable, got {middleware!r}")
        count = _required_positional(middleware)
        if count != _ARITY:
            raise ConfigError(
                "Incorrect number of arguments for middleware callback "
                f"(expected {_ARITY}, got {count})"
            )
        self._stack.append(middleware)

    def has_middleware(self) -> bool:
        return bool(self._stack)

    def __len__(self) -> int:
        return len(self._stack)

    def execute(
        self,
        context: Any,
        next_handler: FinalHandler,
        done: Done | None = None,
    ) -> None:
        """Run every middleware in order, then ``next_handler(context, done)``.

        Returns before any middleware runs. ``done`` is the outermost
        completion callback and may end up wrapped by the middleware.
        """
        stack = list(self._stack)

        def run_step(index: int, current_done: Done) -> None:
            if index == len(stack):
                next_handler(context, current_done)
                return

            middleware = stack[index]

            def step_next(new_done: Done | None = None) -> None:
                run_step(index + 1, new_done or current_done)

            def abort(exc: BaseException) -> None:
                self._robot.emit_error(exc, getattr(context, "response", None))
                current_done()

            try:
                result = middleware(context, step_next, current_done)
            except Exception as e:
                abort(e)
                return
            if inspect.isawaitable(result):
                spawn(result, abort)

        next_tick(run_step, 0, done or _noop)
