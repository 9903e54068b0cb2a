"""Tracker settings and LLM connection config.

Settings are a plain pydantic model passed explicitly to every pipeline
stage. Stored settings (a JSON file) are merged over the defaults below and
validated on load, so a malformed tracker definition fails here rather than
mid-generation.

Template placeholders:
  generate_system_prompt / message_summarization_system_prompt
      {{charNames}} {{defaultTracker}} {{trackerFormat}}
  generate_context_template
      {{trackerSystemPrompt}} {{characterDescriptions}} {{trackerExamples}}
      {{recentMessages}} {{currentTracker}} {{trackerFormat}}
      {{trackerFieldPrompt}} {{firstStageMessage}}
  message_summarization_context_template
      as above plus {{messageSummarizationSystemPrompt}}, minus {{firstStageMessage}}
  *_request_prompt
      {{message}} {{trackerFieldPrompt}} {{trackerFormat}} {{firstStageMessage}}
  *_recent_messages_template
      {{char}} {{message}} {{tracker}} and {{#if tracker}}...{{/if}}
  character_description_template
      {{char}} {{charDescription}}
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from chat_tracker.llm import ProviderFormat
from chat_tracker.models import (
    FieldPresence,
    FieldType,
    GenerationMode,
    OutputFormat,
    TrackerField,
)

DEFAULT_GENERATE_SYSTEM_PROMPT = (
    "You are a scene tracker assistant for a roleplay between {{charNames}}. "
    "Your task is to keep an accurate record of the scene after each message. "
    "Respond only with an updated tracker in {{trackerFormat}} format, wrapped in "
    "<tracker></tracker> tags. Keep every field, even when it does not change.\n\n"
    "If no tracker exists yet, start from this one:\n{{defaultTracker}}"
)

DEFAULT_GENERATE_CONTEXT_TEMPLATE = """{{trackerSystemPrompt}}

<!-- Start:Character Descriptions -->
{{characterDescriptions}}
<!-- End:Character Descriptions -->

<!-- Start:Tracker Examples -->
{{trackerExamples}}
<!-- End:Tracker Examples -->

<!-- Start:Recent Messages and Trackers -->
{{recentMessages}}
<!-- End:Recent Messages and Trackers -->

<!-- Start:Current Tracker -->
<tracker>
{{currentTracker}}
</tracker>
<!-- End:Current Tracker -->

Field rules:
{{trackerFieldPrompt}}"""

DEFAULT_GENERATE_REQUEST_PROMPT = """Using the field rules below, update the tracker for the following message.
{{trackerFieldPrompt}}

Message:
{{message}}

{{firstStageMessage}}

Reply with the complete tracker in {{trackerFormat}} inside <tracker></tracker> tags."""

DEFAULT_GENERATE_RECENT_MESSAGES_TEMPLATE = """{{char}}: {{message}}
{{#if tracker}}Tracker: <tracker>
{{tracker}}
</tracker>
{{/if}}"""

DEFAULT_SUMMARIZATION_SYSTEM_PROMPT = (
    "You are a scene analyst for a roleplay between {{charNames}}. "
    "Read the latest message and list, as short bullet points, every change it "
    "makes to the scene: time, location, outfits, positions, topics and anything "
    "else the tracker records. Do not write a tracker."
)

DEFAULT_SUMMARIZATION_CONTEXT_TEMPLATE = """{{messageSummarizationSystemPrompt}}

<!-- Start:Character Descriptions -->
{{characterDescriptions}}
<!-- End:Character Descriptions -->

<!-- Start:Recent Messages -->
{{recentMessages}}
<!-- End:Recent Messages -->

<!-- Start:Current Tracker -->
<tracker>
{{currentTracker}}
</tracker>
<!-- End:Current Tracker -->

Tracked fields:
{{trackerFieldPrompt}}"""

DEFAULT_SUMMARIZATION_REQUEST_PROMPT = """List every change this message makes to the tracked fields.

Message:
{{message}}"""

DEFAULT_SUMMARIZATION_RECENT_MESSAGES_TEMPLATE = "{{char}}: {{message}}"

DEFAULT_CHARACTER_DESCRIPTION_TEMPLATE = "{{char}}'s description: {{charDescription}}"

DEFAULT_TRACKER_DEF: list[TrackerField] = [
    TrackerField(
        name="Time",
        prompt="Current time and date of the scene, e.g. 09:15 PM; Monday, 12/04/2023.",
        default_value="<Updated time if changed>",
        example_values=["09:15:30 PM; Monday, 12/04/2023", "12:00:00 PM; Tuesday, 12/05/2023"],
    ),
    TrackerField(
        name="Location",
        prompt="Specific place of the scene, from room to city.",
        default_value="<Updated location if changed>",
        example_values=["The Tavern Common Room, Riverford", "Market Square, Riverford"],
    ),
    TrackerField(
        name="Topics",
        type=FieldType.ARRAY,
        prompt="One to three short topics the scene is currently about.",
        default_value=["<topic>"],
        example_values=[["bargaining", "rumours"], ["festival"]],
    ),
    TrackerField(
        name="Characters",
        type=FieldType.FOR_EACH_OBJECT,
        prompt="Every character present in the scene.",
        default_value="<Character name>",
        example_values=["Marta", "Gareth"],
        nested_fields=[
            TrackerField(
                name="Mood",
                prompt="Current mood in a word or two.",
                default_value="<mood>",
                example_values=["cheerful", "wary"],
            ),
            TrackerField(
                name="Outfit",
                presence=FieldPresence.STATIC,
                prompt="What the character wears.",
                default_value="<outfit>",
                example_values=["Apron over a linen dress", "Worn leather armour"],
            ),
        ],
    ),
]


class TrackerSettings(BaseModel):
    generation_mode: GenerationMode = GenerationMode.SINGLE_STAGE
    tracker_format: OutputFormat = OutputFormat.JSON
    tracker_def: list[TrackerField] = Field(default_factory=lambda: list(DEFAULT_TRACKER_DEF))
    number_of_messages: int = 5
    response_length: int = 0  # 0 or less → no limit

    generate_system_prompt: str = DEFAULT_GENERATE_SYSTEM_PROMPT
    generate_context_template: str = DEFAULT_GENERATE_CONTEXT_TEMPLATE
    generate_request_prompt: str = DEFAULT_GENERATE_REQUEST_PROMPT
    generate_recent_messages_template: str = DEFAULT_GENERATE_RECENT_MESSAGES_TEMPLATE

    message_summarization_system_prompt: str = DEFAULT_SUMMARIZATION_SYSTEM_PROMPT
    message_summarization_context_template: str = DEFAULT_SUMMARIZATION_CONTEXT_TEMPLATE
    message_summarization_request_prompt: str = DEFAULT_SUMMARIZATION_REQUEST_PROMPT
    message_summarization_recent_messages_template: str = DEFAULT_SUMMARIZATION_RECENT_MESSAGES_TEMPLATE

    character_description_template: str = DEFAULT_CHARACTER_DESCRIPTION_TEMPLATE

    @property
    def max_response_length(self) -> int | None:
        return self.response_length if self.response_length > 0 else None


def load_settings(path: Path | None = None) -> TrackerSettings:
    """Read settings, returning defaults merged with stored values."""
    stored: dict[str, Any] = {}
    if path is not None and path.is_file():
        stored = json.loads(path.read_text())
    return TrackerSettings.model_validate(stored)


def save_settings(path: Path, settings: TrackerSettings) -> None:
    path.write_text(settings.model_dump_json(indent=2))


class LLMConnection(BaseModel):
    provider_url: str = "http://localhost:5001"
    api_key: str = ""
    provider_format: ProviderFormat = "koboldcpp"
    model: str = ""
    timeout: float = 120.0


def connection_from_env(env_file: Path | None = None) -> LLMConnection:
    """Build the LLM connection from TRACKER_* environment variables (.env honoured)."""
    load_dotenv(env_file)
    conn = LLMConnection()
    return LLMConnection(
        provider_url=os.getenv("TRACKER_PROVIDER_URL", conn.provider_url),
        api_key=os.getenv("TRACKER_API_KEY", conn.api_key),
        provider_format=os.getenv("TRACKER_PROVIDER_FORMAT", conn.provider_format),
        model=os.getenv("TRACKER_MODEL", conn.model),
        timeout=float(os.getenv("TRACKER_TIMEOUT", conn.timeout)),
    )
