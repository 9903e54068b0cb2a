"""Core domain models.

Tracker definitions, chat messages and chat participants. Every pipeline
stage operates on these types; pydantic validates them wherever they cross a
data boundary (settings files, stored chats).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class FieldType(str, Enum):
    STRING = "STRING"
    ARRAY = "ARRAY"
    OBJECT = "OBJECT"
    FOR_EACH_OBJECT = "FOR_EACH_OBJECT"  # free key (e.g. a character name) → nested object


class FieldPresence(str, Enum):
    DYNAMIC = "DYNAMIC"
    EPHEMERAL = "EPHEMERAL"
    STATIC = "STATIC"


class IncludeFields(str, Enum):
    """Which fields of a definition take part in a prompt or record."""

    DYNAMIC = "dynamic"  # dynamic + ephemeral
    STATIC = "static"
    ALL = "all"

    def includes(self, presence: FieldPresence) -> bool:
        if self is IncludeFields.ALL:
            return True
        if self is IncludeFields.STATIC:
            return presence is FieldPresence.STATIC
        return presence is not FieldPresence.STATIC


class OutputFormat(str, Enum):
    JSON = "JSON"
    YAML = "YAML"


class GenerationMode(str, Enum):
    SINGLE_STAGE = "single-stage"
    TWO_STAGE = "two-stage"


class TrackerField(BaseModel):
    """One field of a tracker definition."""

    name: str
    type: FieldType = FieldType.STRING
    presence: FieldPresence = FieldPresence.DYNAMIC
    prompt: str = ""
    default_value: Any = ""
    example_values: list[Any] = Field(default_factory=list)
    nested_fields: list[TrackerField] = Field(default_factory=list)


TrackerDefinition = list[TrackerField]
TrackerRecord = dict[str, Any]


class ChatMessage(BaseModel):
    """A single entry in a chat's append-only message list."""

    name: str
    text: str = Field(default="", validation_alias=AliasChoices("text", "mes"))
    is_user: bool = False
    is_system: bool = False
    tracker: TrackerRecord = Field(default_factory=dict)
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_tracker(self) -> bool:
        return bool(self.tracker)

    @property
    def is_interjection(self) -> bool:
        """True for small system notes that never get a tracker.

        Host chat files mark these with `isSmallSys` in the message extras.
        """
        return bool(self.extra.get("is_interjection") or self.extra.get("isSmallSys"))


class Character(BaseModel):
    name: str
    description: str = ""
    avatar: str = ""  # stable id referenced by group member lists


class Group(BaseModel):
    id: str
    members: list[str] = Field(default_factory=list)
    disabled_members: list[str] = Field(default_factory=list)


class ChatParticipants(BaseModel):
    """Who takes part in a chat: the user and either a group or one character."""

    user_name: str = "User"
    persona: str = ""
    characters: list[Character] = Field(default_factory=list)
    group: Group | None = None
    character_index: int | None = None
