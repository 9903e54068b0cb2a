"""Tests for chat_tracker.models."""

import pytest
from pydantic import ValidationError

from chat_tracker.models import (
    ChatMessage,
    ChatParticipants,
    FieldPresence,
    FieldType,
    IncludeFields,
    TrackerField,
)


class TestChatMessage:
    def test_required_fields(self) -> None:
        m = ChatMessage(name="Marta", text="Welcome!")
        assert m.name == "Marta"
        assert m.text == "Welcome!"
        assert m.tracker == {}
        assert not m.is_system

    def test_accepts_host_mes_key(self) -> None:
        m = ChatMessage.model_validate({"name": "Marta", "mes": "Hi"})
        assert m.text == "Hi"

    def test_has_tracker(self) -> None:
        assert not ChatMessage(name="a").has_tracker
        assert ChatMessage(name="a", tracker={"mood": "sad"}).has_tracker

    def test_interjection_flag(self) -> None:
        assert ChatMessage(name="a", extra={"is_interjection": True}).is_interjection
        assert not ChatMessage(name="a").is_interjection

    def test_host_small_system_flag(self) -> None:
        assert ChatMessage(name="a", extra={"isSmallSys": True}).is_interjection
        assert not ChatMessage(name="a", extra={"isSmallSys": False}).is_interjection

    def test_serialise_roundtrip(self) -> None:
        m = ChatMessage(name="Marta", text="Hi", tracker={"mood": "sad"}, extra={"k": 1})
        assert ChatMessage.model_validate(m.model_dump()) == m


class TestTrackerField:
    def test_defaults(self) -> None:
        f = TrackerField(name="mood")
        assert f.type is FieldType.STRING
        assert f.presence is FieldPresence.DYNAMIC
        assert f.example_values == []
        assert f.nested_fields == []

    def test_nested_from_dict(self) -> None:
        f = TrackerField.model_validate({
            "name": "weather",
            "type": "OBJECT",
            "nested_fields": [{"name": "sky", "presence": "STATIC"}],
        })
        assert f.nested_fields[0].presence is FieldPresence.STATIC

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TrackerField(name="x", type="TABLE")


class TestIncludeFields:
    @pytest.mark.parametrize("include, presence, expected", [
        (IncludeFields.DYNAMIC, FieldPresence.DYNAMIC, True),
        (IncludeFields.DYNAMIC, FieldPresence.EPHEMERAL, True),
        (IncludeFields.DYNAMIC, FieldPresence.STATIC, False),
        (IncludeFields.STATIC, FieldPresence.STATIC, True),
        (IncludeFields.STATIC, FieldPresence.DYNAMIC, False),
        (IncludeFields.ALL, FieldPresence.STATIC, True),
        (IncludeFields.ALL, FieldPresence.EPHEMERAL, True),
    ])
    def test_includes(self, include, presence, expected) -> None:
        assert include.includes(presence) is expected


class TestChatParticipants:
    def test_defaults(self) -> None:
        p = ChatParticipants()
        assert p.user_name == "User"
        assert p.group is None
        assert p.character_index is None
