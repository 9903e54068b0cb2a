"""Prompt context built from chat state.

ChatContext reads an injected, read-only message sequence plus the chat's
participants and renders the pieces the tracker prompts are assembled from:

  roster          — user name + active group members or the single character
  descriptions    — persona and character descriptions via a per-character template
  recent messages — trailing window of non-system messages, each with its own tracker
  current tracker — the tracker in effect at a message (backward scan, else default)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from chat_tracker.config import TrackerSettings
from chat_tracker.fields import default_record, example_trackers, get_tracker, tracker_prompt
from chat_tracker.formats import TrackerFormat, get_format
from chat_tracker.models import (
    Character,
    ChatMessage,
    ChatParticipants,
    GenerationMode,
    IncludeFields,
    OutputFormat,
    TrackerRecord,
)
from chat_tracker.pipeline.extractors import strip_tracker_blocks
from chat_tracker.prompts import format_template, join_names, render_template

logger = logging.getLogger(__name__)

FIRST_STAGE_PLACEHOLDER = "{{firstStageMessage}}"


class ChatContext:
    def __init__(
        self,
        messages: Sequence[ChatMessage],
        participants: ChatParticipants,
        settings: TrackerSettings,
    ) -> None:
        self.messages = messages
        self.participants = participants
        self.settings = settings

    @property
    def format(self) -> TrackerFormat:
        return get_format(self.settings.tracker_format)

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def _roster(self) -> list[Character]:
        p = self.participants
        if p.group is not None:
            by_avatar = {c.avatar: c for c in p.characters}
            return [
                by_avatar[m] for m in p.group.members
                if m not in p.group.disabled_members and m in by_avatar
            ]
        if p.character_index is not None and 0 <= p.character_index < len(p.characters):
            return [p.characters[p.character_index]]
        return []

    def character_names(self) -> list[str]:
        return [self.participants.user_name] + [c.name for c in self._roster()]

    def joined_character_names(self) -> str:
        return join_names(self.character_names())

    def character_descriptions(self) -> str:
        """Persona and character descriptions, blank-line separated."""
        entries: list[tuple[str, str]] = []
        if self.participants.persona:
            entries.append((self.participants.user_name, self.participants.persona))
        entries.extend((c.name, c.description) for c in self._roster())

        template = self.settings.character_description_template
        return "\n\n".join(
            format_template(template, {"char": name, "charDescription": description})
            for name, description in entries
            if description
        )

    # ------------------------------------------------------------------
    # Trackers
    # ------------------------------------------------------------------

    def render_tracker(self, tracker: TrackerRecord, include_fields: IncludeFields) -> str:
        record = get_tracker(
            tracker, self.settings.tracker_def, include_fields, False, OutputFormat.JSON
        )
        return self.format.to_prompt_text(record)

    def recent_messages(
        self, template: str, mes_num: int, include_fields: IncludeFields
    ) -> str | None:
        """Render the trailing message window, or None when there is nothing to show."""
        window = [
            m for i, m in enumerate(self.messages)
            if i <= mes_num and not m.is_system
        ]
        if self.settings.number_of_messages > 0:
            window = window[-self.settings.number_of_messages:]
        if not window:
            return None

        rendered: list[str] = []
        for message in window:
            tracker_text = ""
            if message.has_tracker:
                try:
                    tracker_text = self.render_tracker(message.tracker, include_fields)
                except (TypeError, ValueError) as e:
                    logger.warning("Could not render tracker for %s: %s", message.name, e)
            rendered.append(render_template(
                template,
                {
                    "char": message.name,
                    "message": strip_tracker_blocks(message.text).strip(),
                    "tracker": tracker_text,
                },
                {"tracker": bool(tracker_text)},
            ))
        return "\n".join(rendered)

    def current_tracker(self, mes_num: int, include_fields: IncludeFields) -> str:
        """Tracker in effect at mes_num: its own, else the nearest earlier one, else defaults.

        Stored trackers that do not fit the definition are skipped.
        """
        logger.debug("Getting current tracker for message %d", mes_num)
        for i in range(mes_num, -1, -1):
            message = self.messages[i]
            if not message.has_tracker:
                continue
            try:
                return self.render_tracker(message.tracker, include_fields)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping unreadable tracker on message %d: %s", i, e)
        return self.format.to_prompt_text(
            default_record(self.settings.tracker_def, include_fields)
        )

    def example_trackers(self, include_fields: IncludeFields) -> str:
        examples = example_trackers(self.settings.tracker_def, include_fields, OutputFormat.JSON)
        if not examples:
            return ""
        return "\n".join(
            f"<START>\n<tracker>\n{self.format.to_prompt_text(ex)}\n</tracker>\n<END>"
            for ex in examples
        )

    def tracker_field_prompt(self, include_fields: IncludeFields) -> str:
        return tracker_prompt(self.settings.tracker_def, include_fields)

    # ------------------------------------------------------------------
    # Prompt pieces
    # ------------------------------------------------------------------

    def system_prompt(self, template: str, include_fields: IncludeFields) -> str:
        default = self.format.to_prompt_text(
            default_record(self.settings.tracker_def, include_fields)
        )
        return format_template(template, {
            "charNames": self.joined_character_names(),
            "defaultTracker": default,
            "trackerFormat": self.settings.tracker_format.value,
        })

    def request_prompt(
        self,
        template: str,
        mes_num: int | None,
        include_fields: IncludeFields,
        first_stage: str | None = None,
    ) -> str:
        vars = {
            "message": self.messages[mes_num].text if mes_num is not None else "",
            "trackerFieldPrompt": self.tracker_field_prompt(include_fields),
            "trackerFormat": self.settings.tracker_format.value,
        }
        if (
            self.settings.generation_mode is GenerationMode.TWO_STAGE
            and first_stage
            and FIRST_STAGE_PLACEHOLDER in template
        ):
            vars["firstStageMessage"] = first_stage
        return format_template(template, vars)
