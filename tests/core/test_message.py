"""Tests for message variants and users."""

from __future__ import annotations

import re

from heybot.core.message import (
    CatchAllMessage,
    EnterMessage,
    LeaveMessage,
    Message,
    TextMessage,
    TopicMessage,
)
from heybot.core.user import User


class TestUser:
    def test_id_is_default_name(self):
        assert User(id="heybot").name == "heybot"

    def test_int_id_name_is_string(self):
        assert User(id=42).name == "42"

    def test_name_attribute_wins_over_id(self):
        assert User(id="heybot", name="tobyeh").name == "tobyeh"

    def test_extra_attributes_kept(self):
        user = User(id="heybot", foo=1, bar=2)
        assert user.foo == 1
        assert user.bar == 2


class TestMessage:
    def test_finish_marks_done(self, user):
        message = Message(user=user)
        assert message.done is False
        message.finish()
        assert message.done is True

    def test_room_derived_from_user(self, user):
        assert Message(user=user).room == "#pytest"

    def test_explicit_room_kept(self, user):
        assert Message(user=user, room="#other").room == "#other"

    def test_user_identity_preserved(self, user):
        assert Message(user=user).user is user

    def test_plain_message_never_matches(self, user):
        assert EnterMessage(user=user).match(r".*") is None
        assert EnterMessage.is_text is False
        assert LeaveMessage.is_text is False


class TestTextMessage:
    def test_regex_matching(self, user):
        message = TextMessage(user=user, text="message123")
        assert message.match(r"^message123$")
        assert not message.match(r"^does-not-match$")

    def test_compiled_pattern_and_groups(self, user):
        message = TextMessage(user=user, text="deploy web to prod")
        match = message.match(re.compile(r"deploy (\w+) to (\w+)"))
        assert match.groups() == ("web", "prod")

    def test_match_searches_anywhere(self, user):
        assert TextMessage(user=user, text="say hello there").match(r"hello")

    def test_str_is_text(self, user):
        assert str(TextMessage(user=user, text="hi", id="7")) == "hi"

    def test_topic_message_is_text(self, user):
        topic = TopicMessage(user=user, text="new topic")
        assert topic.is_text is True
        assert topic.match(r"^new")


class TestCatchAllMessage:
    def test_wraps_original(self, user):
        original = TextMessage(user=user, text="nope")
        wrapper = CatchAllMessage(message=original)
        assert wrapper.message is original
        assert wrapper.user is user
        assert wrapper.room == "#pytest"
        assert wrapper.done is False

    def test_not_text(self, user):
        wrapper = CatchAllMessage(message=TextMessage(user=user, text="nope"))
        assert wrapper.is_text is False
        assert wrapper.match(r"nope") is None

    def test_room_taken_from_wrapped_message(self):
        roomless = User(id="2")
        original = TextMessage(user=roomless, text="nope", room="#general")
        assert CatchAllMessage(message=original).room == "#general"

    def test_explicit_room_wins(self, user):
        original = TextMessage(user=user, text="nope")
        assert CatchAllMessage(message=original, room="#elsewhere").room == "#elsewhere"
