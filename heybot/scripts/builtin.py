"""Built-in scripts: small examples of the listener and middleware API."""

from __future__ import annotations

import time
import weakref
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from heybot.core.middleware import Done, MiddlewareContext, NextStep
    from heybot.core.response import Response
    from heybot.core.robot import Robot

logger = structlog.get_logger()


def ping(robot: Robot) -> None:
    robot.respond(r"PING$", {"id": "ping.ping"}, lambda res: res.send("PONG"))

    def echo(res: Response) -> None:
        res.send(res.match.group(1))

    robot.respond(r"ECHO (.*)$", {"id": "ping.echo"}, echo)

    def show_time(res: Response) -> None:
        res.send(f"Server time is: {time.strftime('%Y-%m-%d %H:%M:%S %Z')}")

    robot.respond(r"TIME$", {"id": "ping.time"}, show_time)


def timing(robot: Robot) -> None:
    """Log how long each matched listener took, middleware included."""

    def measure(context: MiddlewareContext, next_step: NextStep, done: Done) -> None:
        started = time.monotonic()
        listener_id = context.listener.options["id"]

        def timed_done() -> None:
            logger.debug(
                "listener_timing",
                id=listener_id,
                elapsed_ms=round((time.monotonic() - started) * 1000, 2),
            )
            done()

        next_step(timed_done)

    robot.listener_middleware(measure)


def report_errors(robot: Robot) -> None:
    """Tell the user when one of their commands blew up."""

    # A failing reply reports back here; answer each response at most once.
    notified: weakref.WeakSet[Any] = weakref.WeakSet()

    def notify(error: BaseException, response: Any) -> None:
        if response is None or response in notified:
            return
        notified.add(response)
        response.reply(f"Something went wrong: {error}")

    robot.error(notify)


DEFAULT_SCRIPTS = (ping, timing, report_errors)
