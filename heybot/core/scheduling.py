"""Cooperative scheduling primitives shared by the dispatch pipeline.

Every asynchronous boundary in the pipeline goes through ``next_tick`` so that
public entry points return to their caller before any of their callbacks run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

_background_tasks: set[asyncio.Task[Any]] = set()


def next_tick(callback: Callable[..., Any], *args: Any) -> None:
    """Run *callback* on the next iteration of the running event loop."""
    asyncio.get_running_loop().call_soon(callback, *args)


def spawn(
    awaitable: Awaitable[Any],
    on_error: Callable[[BaseException], None],
    on_complete: Callable[[], None] | None = None,
) -> asyncio.Future[Any]:
    """Schedule *awaitable* as a task and keep it referenced until it finishes.

    *on_error* receives the exception when the task fails; *on_complete* runs
    afterwards whatever the outcome, cancellation included.
    """
    task = asyncio.ensure_future(awaitable)
    _background_tasks.add(task)

    def _finished(t: asyncio.Future[Any]) -> None:
        _background_tasks.discard(t)  # type: ignore[arg-type]
        if not t.cancelled() and t.exception() is not None:
            on_error(t.exception())  # type: ignore[arg-type]
        if on_complete is not None:
            on_complete()

    task.add_done_callback(_finished)
    return task
