"""Per-dispatch response handle passed to listener callbacks."""

from __future__ import annotations

import inspect
import random
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict

from heybot.core.middleware import Done, MiddlewareContext
from heybot.core.scheduling import spawn

if TYPE_CHECKING:
    from heybot.core.robot import Robot

logger = structlog.get_logger()

T = TypeVar("T")


class Envelope(BaseModel):
    """Where an outbound action is addressed."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    room: str | None = None
    user: Any = None
    message: Any = None


class Response:
    """Bound to the message that triggered a listener and the matcher's result.

    Outbound actions run through the robot's response middleware before the
    adapter sees them. A trailing callable passed to an action is withheld
    from middleware and handed to the adapter as its final argument.
    """

    def __init__(self, robot: Robot, message: Any, match: Any = None) -> None:
        self.robot = robot
        self.message = message
        self.match = match
        self.envelope = Envelope(
            room=getattr(message, "room", None),
            user=getattr(message, "user", None),
            message=message,
        )

    def send(self, *strings: Any) -> None:
        self._run_with_middleware("send", strings, plaintext=True)

    def emote(self, *strings: Any) -> None:
        self._run_with_middleware("emote", strings, plaintext=True)

    def reply(self, *strings: Any) -> None:
        self._run_with_middleware("reply", strings, plaintext=True)

    def topic(self, *strings: Any) -> None:
        self._run_with_middleware("topic", strings, plaintext=True)

    def play(self, *strings: Any) -> None:
        self._run_with_middleware("play", strings)

    def locked(self, *strings: Any) -> None:
        """Post in an unlogged room."""
        self._run_with_middleware("locked", strings, plaintext=True)

    def random(self, items: Sequence[T]) -> T:
        return random.choice(items)

    def finish(self) -> None:
        self.message.finish()

    def _run_with_middleware(
        self, method: str, strings: tuple[Any, ...], *, plaintext: bool = False
    ) -> None:
        payload = list(strings)
        callback: Callable[..., Any] | None = None
        if payload and callable(payload[-1]):
            callback = payload.pop()

        context = MiddlewareContext(response=self, strings=payload, method=method)
        if plaintext:
            context.plaintext = True

        def run_adapter_send(ctx: MiddlewareContext, done: Done) -> None:
            args = list(ctx.strings or [])
            if callback is not None:
                args.append(callback)
            adapter = self.robot.adapter
            if adapter is None:
                logger.warning("response_dropped_no_adapter", method=method)
                done()
                return
            try:
                result = getattr(adapter, method)(self.envelope, *args)
            except Exception as e:
                self.robot.emit_error(e, self)
            else:
                if inspect.isawaitable(result):
                    spawn(result, lambda exc: self.robot.emit_error(exc, self))
            done()

        self.robot.middleware.response.execute(context, run_adapter_send)
