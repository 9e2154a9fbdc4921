"""Interactive stdin/stdout adapter, the default for local development."""

from __future__ import annotations

import asyncio
import os
import threading
from typing import TYPE_CHECKING, Any

import structlog

from heybot.adapters.base import Adapter, split_callback
from heybot.core.message import TextMessage
from heybot.core.user import User

if TYPE_CHECKING:
    from heybot.core.response import Envelope
    from heybot.core.robot import Robot

logger = structlog.get_logger()

_EXIT_COMMANDS = frozenset({"exit", "quit"})


class ShellAdapter(Adapter):
    def __init__(self, robot: Robot, *, user_name: str | None = None) -> None:
        super().__init__(robot)
        name = user_name or os.environ.get("HEYBOT_SHELL_USER_NAME", "Shell")
        self.user = User(id=os.environ.get("HEYBOT_SHELL_USER_ID", "1"), name=name, room="Shell")
        self._stopped = asyncio.Event()
        self._message_id = 0

    async def run(self) -> None:
        await self.connected()
        print(f"{self.robot.name} ready. Type 'exit' or Ctrl+D to quit.\n")
        while not self._stopped.is_set():
            line = await self._prompt(f"{self.robot.name}> ")
            if line is None:
                break

            text = line.strip()
            if not text:
                continue
            if text.lower() in _EXIT_COMMANDS:
                break

            self._message_id += 1
            message = TextMessage(user=self.user, text=text, id=str(self._message_id))
            await self.robot.dispatch(message)
            # Let spawned outbound sends print before the next prompt
            await asyncio.sleep(0)
        logger.info("shell_adapter_finished")

    async def _prompt(self, prompt: str) -> str | None:
        """Read one line from stdin; ``None`` on EOF or Ctrl+C.

        The blocking read runs on a daemon thread so a pending prompt never
        keeps the process alive after the loop has shut down.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[str | None] = loop.create_future()

        def resolve(outcome: str | Exception | None) -> None:
            if future.done():
                return
            if isinstance(outcome, Exception):
                future.set_exception(outcome)
            else:
                future.set_result(outcome)

        def read() -> None:
            outcome: str | Exception | None
            try:
                outcome = input(prompt)
            except (EOFError, KeyboardInterrupt):
                outcome = None
            except Exception as e:
                outcome = e
            try:
                loop.call_soon_threadsafe(resolve, outcome)
            except RuntimeError:
                logger.debug("shell_input_after_loop_closed")

        threading.Thread(target=read, name="heybot-shell-input", daemon=True).start()
        return await future

    async def close(self) -> None:
        self._stopped.set()

    async def send(self, envelope: Envelope, *strings: Any) -> None:
        lines, callback = split_callback(strings)
        for line in lines:
            print(line)
        if callback is not None:
            callback()

    async def emote(self, envelope: Envelope, *strings: Any) -> None:
        lines, callback = split_callback(strings)
        await self.send(envelope, *(f"* {line}" for line in lines))
        if callback is not None:
            callback()

    async def reply(self, envelope: Envelope, *strings: Any) -> None:
        lines, callback = split_callback(strings)
        name = envelope.user.name if envelope.user is not None else self.user.name
        await self.send(envelope, *(f"{name}: {line}" for line in lines))
        if callback is not None:
            callback()
