"""Tracker generation orchestrator — one tracker for one message.

Modes (settings.generation_mode):
  single-stage  1. Build the tracker system prompt (instructions, characters,
                   examples, recent messages, current tracker, field rules).
                2. Build the request prompt for the target message.
                3. One LLM call (stage "tracker") → parse the <tracker> block.
  two-stage     1. Build the summarization prompts and make one LLM call
                   (stage "summary") listing what the message changes.
                2. Run single-stage with that summary as the first-stage message,
                   available to request templates as {{firstStageMessage}}.

The stages run strictly in order. LLM errors propagate; unparseable output
yields None.
"""

from __future__ import annotations

import logging
from collections.abc import MutableSequence

from chat_tracker.config import TrackerSettings
from chat_tracker.context import ChatContext
from chat_tracker.llm import LLM
from chat_tracker.models import (
    ChatMessage,
    ChatParticipants,
    GenerationMode,
    IncludeFields,
    TrackerRecord,
)
from chat_tracker.pipeline.extractors import parse_tracker_output
from chat_tracker.prompts import format_template

logger = logging.getLogger(__name__)


async def generate_tracker(
    context: ChatContext,
    mes_num: int | None,
    llm: LLM,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
) -> TrackerRecord | None:
    """Generate a tracker for message mes_num. Returns None when skipped or unparseable."""
    if mes_num is None or mes_num < 0 or mes_num >= len(context.messages):
        return None
    if context.messages[mes_num].is_interjection:
        return None

    if context.settings.generation_mode is GenerationMode.TWO_STAGE:
        return await _generate_two_stage(context, mes_num, llm, include_fields)
    return await _generate_single_stage(context, mes_num, llm, include_fields)


async def _generate_single_stage(
    context: ChatContext,
    mes_num: int,
    llm: LLM,
    include_fields: IncludeFields,
    first_stage_message: str | None = None,
) -> TrackerRecord | None:
    settings = context.settings
    system_prompt = generate_system_prompt(context, mes_num, include_fields, first_stage_message)
    request_prompt = context.request_prompt(
        settings.generate_request_prompt, mes_num, include_fields, first_stage_message
    )
    response_length = settings.max_response_length

    logger.info("Generating tracker for message %d (response_length=%s)", mes_num, response_length)
    logger.debug("Tracker prompts: system=%r request=%r", system_prompt, request_prompt)
    output = await llm(
        "tracker", request_prompt,
        system_prompt=system_prompt, response_length=response_length,
    )
    logger.debug("Generated tracker: %r", output)

    tracker = parse_tracker_output(
        output, settings.tracker_def, include_fields, settings.tracker_format
    )
    logger.debug("Parsed tracker: %s", tracker)
    return tracker


async def _generate_two_stage(
    context: ChatContext,
    mes_num: int,
    llm: LLM,
    include_fields: IncludeFields,
) -> TrackerRecord | None:
    settings = context.settings
    system_prompt = summarization_system_prompt(context, mes_num, include_fields)
    request_prompt = context.request_prompt(
        settings.message_summarization_request_prompt, mes_num, include_fields
    )

    logger.debug("Summary prompts: system=%r request=%r", system_prompt, request_prompt)
    summary = await llm(
        "summary", request_prompt,
        system_prompt=system_prompt, response_length=settings.max_response_length,
    )
    logger.debug("Message summarized: %r", summary)

    return await _generate_single_stage(context, mes_num, llm, include_fields, summary)


# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

def generate_system_prompt(
    context: ChatContext,
    mes_num: int,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
    first_stage_message: str | None = None,
) -> str:
    settings = context.settings
    vars = {
        "trackerSystemPrompt": context.system_prompt(settings.generate_system_prompt, include_fields),
        "characterDescriptions": context.character_descriptions(),
        "trackerExamples": context.example_trackers(include_fields),
        "recentMessages": context.recent_messages(
            settings.generate_recent_messages_template, mes_num, include_fields
        ) or "",
        "currentTracker": context.current_tracker(mes_num, include_fields),
        "trackerFormat": settings.tracker_format.value,
        "trackerFieldPrompt": context.tracker_field_prompt(include_fields),
        "firstStageMessage": first_stage_message or "",
    }
    return format_template(settings.generate_context_template, vars)


def summarization_system_prompt(
    context: ChatContext,
    mes_num: int,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
) -> str:
    settings = context.settings
    instructions = context.system_prompt(settings.message_summarization_system_prompt, include_fields)
    recent_template = settings.message_summarization_recent_messages_template
    recent = ""
    if recent_template:
        recent = context.recent_messages(recent_template, mes_num, include_fields) or ""
    vars = {
        "trackerSystemPrompt": instructions,
        "messageSummarizationSystemPrompt": instructions,
        "characterDescriptions": context.character_descriptions(),
        "trackerExamples": context.example_trackers(include_fields),
        "recentMessages": recent,
        "currentTracker": context.current_tracker(mes_num, include_fields),
        "trackerFormat": settings.tracker_format.value,
        "trackerFieldPrompt": context.tracker_field_prompt(include_fields),
    }
    return format_template(settings.message_summarization_context_template, vars)


# ---------------------------------------------------------------------------
# Attaching trackers to messages
# ---------------------------------------------------------------------------

async def add_tracker_to_message(
    messages: MutableSequence[ChatMessage],
    participants: ChatParticipants,
    settings: TrackerSettings,
    mes_num: int,
    llm: LLM,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
) -> TrackerRecord | None:
    """Generate and attach a tracker unless the message already has one."""
    if not 0 <= mes_num < len(messages) or messages[mes_num].has_tracker:
        return None

    context = ChatContext(messages, participants, settings)
    tracker = await generate_tracker(context, mes_num, llm, include_fields)
    if tracker:
        messages[mes_num].tracker = tracker
        logger.info("Attached tracker to message %d", mes_num)
    return tracker
