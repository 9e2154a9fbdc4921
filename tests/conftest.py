"""Shared fixtures and mock adapter for testing."""

from __future__ import annotations

import asyncio
import os
from typing import Any

import pytest

from heybot.adapters.base import Adapter
from heybot.core.config import HeybotConfig
from heybot.core.events import EventBus
from heybot.core.robot import Robot
from heybot.core.user import User


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests.

    HeybotConfig.model_config has env_file=".env" which loads the project
    .env relative to cwd. Nullify it at the source.
    """
    monkeypatch.setitem(HeybotConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("HEYBOT_"):
            monkeypatch.delenv(key, raising=False)


class MockAdapter(Adapter):
    """In-memory adapter for testing; records every outbound call."""

    def __init__(self, robot: Robot) -> None:
        super().__init__(robot)
        self.calls: list[dict[str, Any]] = []
        self.ran = False
        self.closed = False

    def _record(self, method: str, envelope: Any, strings: tuple[Any, ...]) -> None:
        self.calls.append({"method": method, "envelope": envelope, "args": list(strings)})

    async def run(self) -> None:
        self.ran = True

    async def close(self) -> None:
        self.closed = True

    async def send(self, envelope, *strings) -> None:
        self._record("send", envelope, strings)

    async def reply(self, envelope, *strings) -> None:
        self._record("reply", envelope, strings)

    async def emote(self, envelope, *strings) -> None:
        self._record("emote", envelope, strings)

    async def topic(self, envelope, *strings) -> None:
        self._record("topic", envelope, strings)

    async def play(self, envelope, *strings) -> None:
        self._record("play", envelope, strings)

    async def locked(self, envelope, *strings) -> None:
        self._record("locked", envelope, strings)

    def calls_for(self, method: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method]


class Completion:
    """Callback that records its calls and resolves a future on the first one."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self._future: asyncio.Future[tuple[Any, ...]] = (
            asyncio.get_running_loop().create_future()
        )

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)
        if not self._future.done():
            self._future.set_result(args)

    @property
    def called(self) -> bool:
        return bool(self.calls)

    async def wait(self, timeout: float = 1.0) -> tuple[Any, ...]:
        return await asyncio.wait_for(asyncio.shield(self._future), timeout)


@pytest.fixture
def completion():
    """Factory for ``Completion`` callbacks; call it inside the running loop."""
    return Completion


@pytest.fixture
def settle():
    """Let pending callbacks and spawned tasks run."""

    async def _settle(ticks: int = 10) -> None:
        for _ in range(ticks):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def robot(event_bus):
    bot = Robot(name="TestHeybot", alias="Heybot", event_bus=event_bus)
    bot.load_adapter(MockAdapter)
    return bot


@pytest.fixture
def adapter(robot):
    return robot.adapter


@pytest.fixture
def user():
    return User(id="1", name="heybottester", room="#pytest")


@pytest.fixture
def errors(robot):
    """Errors reported through the robot's error sink, as (error, response) pairs."""
    collected: list[tuple[BaseException, Any]] = []
    robot.error(lambda err, res: collected.append((err, res)))
    return collected
