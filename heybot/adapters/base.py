"""Abstract adapter protocol, the robot's interface to a chat source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from heybot.core.events import ADAPTER_CONNECTED

if TYPE_CHECKING:
    from heybot.core.message import Message
    from heybot.core.response import Envelope
    from heybot.core.robot import Robot


def split_callback(
    strings: Sequence[Any],
) -> tuple[list[Any], Callable[..., Any] | None]:
    """Separate the optional trailing post-send callback from outbound strings."""
    items = list(strings)
    if items and callable(items[-1]):
        return items, items.pop()  # type: ignore[return-value]
    return items, None


class Adapter(ABC):
    """Outbound methods receive ``(envelope, *strings)``.

    When a response action was given a trailing callable it arrives as the
    last positional argument; use ``split_callback`` to pull it out.

    Adapters for platforms with native commands may define
    ``register_command(name, parameters, callback)``. The robot hands them
    every ``Robot.command`` registration; without it commands fall back to
    ``respond`` listeners.
    """

    def __init__(self, robot: Robot) -> None:
        self.robot = robot

    @abstractmethod
    async def run(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def send(self, envelope: Envelope, *strings: Any) -> None: ...

    @abstractmethod
    async def reply(self, envelope: Envelope, *strings: Any) -> None: ...

    async def emote(self, envelope: Envelope, *strings: Any) -> None:
        """Send an emote. Default: plain send."""
        await self.send(envelope, *strings)

    async def locked(self, envelope: Envelope, *strings: Any) -> None:
        """Send to an unlogged room. Default: plain send."""
        await self.send(envelope, *strings)

    async def topic(  # noqa: B027
        self, envelope: Envelope, *strings: Any
    ) -> None:
        """Set the room topic. Default: no-op."""

    async def play(  # noqa: B027
        self, envelope: Envelope, *strings: Any
    ) -> None:
        """Play a sound. Default: no-op."""

    def url_for_message(self, message: Message) -> str:  # noqa: ARG002
        """Return a link to *message*, or an empty string when unsupported."""
        return ""

    def receive(self, message: Message) -> None:
        """Hand an inbound message to the robot."""
        self.robot.receive(message)

    async def connected(self) -> None:
        """Announce that the chat source connection is up."""
        await self.robot.emit(ADAPTER_CONNECTED, adapter=type(self).__name__)
