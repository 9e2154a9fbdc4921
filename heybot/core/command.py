"""Adapter-native commands, such as slash commands on platforms that have them."""

from collections.abc import Callable
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict

# Adapters with native support call it with one value per parameter; the
# ``respond`` fallback calls it with a Response.
CommandCallback = Callable[..., Any]


class CommandParameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None


class PendingCommand(NamedTuple):
    """A command registered before any adapter was loaded."""

    name: str
    parameters: list[CommandParameter]
    callback: CommandCallback
