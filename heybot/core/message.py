"""Inbound message variants delivered by adapters."""

from __future__ import annotations

import re
from typing import Any, ClassVar, Self

from pydantic import BaseModel, model_validator

from heybot.core.user import User


# Mutable: listeners set ``done`` and receive middleware may edit text.
class Message(BaseModel):
    """An incoming event from the chat source.

    ``is_text`` tells listeners whether the variant carries text that
    patterns can be matched against.
    """

    is_text: ClassVar[bool] = False

    user: User
    done: bool = False
    room: str | None = None

    @model_validator(mode="after")
    def room_from_user(self) -> Self:
        if self.room is None:
            self.room = self.user.room
        return self

    def match(self, pattern: str | re.Pattern[str]) -> re.Match[str] | None:  # noqa: ARG002
        return None

    def finish(self) -> None:
        """Stop dispatching this message to any further listener."""
        self.done = True


class TextMessage(Message):
    is_text: ClassVar[bool] = True

    text: str
    id: str | None = None

    def match(self, pattern: str | re.Pattern[str]) -> re.Match[str] | None:
        return re.search(pattern, self.text)

    def __str__(self) -> str:
        return self.text


class EnterMessage(Message):
    """A user entered the room."""


class LeaveMessage(Message):
    """A user left the room."""


class TopicMessage(TextMessage):
    """The room topic changed; ``text`` holds the new topic."""


class CatchAllMessage(Message):
    """Wraps a message that no listener matched."""

    message: Message

    @model_validator(mode="before")
    @classmethod
    def from_wrapped_message(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("message"), Message):
            inner = data["message"]
            data = {"user": inner.user, "room": inner.room, **data}
        return data
