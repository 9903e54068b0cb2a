import pytest

from chat_tracker.config import TrackerSettings
from chat_tracker.models import (
    Character,
    ChatParticipants,
    FieldPresence,
    FieldType,
    TrackerField,
)


@pytest.fixture
def tracker_def() -> list[TrackerField]:
    """Small definition: two dynamic strings, one static list, one object."""
    return [
        TrackerField(name="mood", prompt="Mood of the scene.", default_value="neutral",
                     example_values=["happy", "tense"]),
        TrackerField(name="location", prompt="Where the scene is.", default_value="unknown",
                     example_values=["kitchen"]),
        TrackerField(name="topics", type=FieldType.ARRAY, presence=FieldPresence.STATIC,
                     prompt="Scene topics.", default_value=["smalltalk"]),
        TrackerField(name="weather", type=FieldType.OBJECT, prompt="Weather outside.",
                     nested_fields=[
                         TrackerField(name="sky", default_value="clear", example_values=["cloudy"]),
                         TrackerField(name="season", presence=FieldPresence.STATIC,
                                      default_value="spring"),
                     ]),
    ]


@pytest.fixture
def settings(tracker_def) -> TrackerSettings:
    return TrackerSettings(tracker_def=tracker_def, number_of_messages=3)


@pytest.fixture
def participants() -> ChatParticipants:
    return ChatParticipants(
        user_name="Aldric",
        persona="A travelling sellsword.",
        characters=[
            Character(name="Marta", description="Cheerful barmaid.", avatar="marta.png"),
            Character(name="Gareth", description="Gruff innkeeper.", avatar="gareth.png"),
            Character(name="Wren", description="", avatar="wren.png"),
        ],
        character_index=0,
    )
