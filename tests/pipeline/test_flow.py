"""End-to-end tracker flow over a stored chat.

Covers load → generate → attach → save with a mocked LLM:

  test_first_message_gets_tracker     — no prior trackers, defaults feed the prompt
  test_follow_up_uses_previous        — previous tracker is the current tracker
  test_two_stage_flow                 — summary call then tracker call
  test_bad_output_keeps_chat_unchanged — unparseable reply leaves no tracker behind
"""

import pytest
from unittest.mock import AsyncMock

from chat_tracker.models import ChatMessage, GenerationMode
from chat_tracker.pipeline.orchestrator import add_tracker_to_message
from chat_tracker.storage import ChatStore

CHAT = "broken-compass"


@pytest.fixture
def store(tmp_path, participants) -> ChatStore:
    store = ChatStore(tmp_path)
    store.save_participants(CHAT, participants)
    store.save_messages(CHAT, [
        ChatMessage(name="Marta", text="Welcome to the Broken Compass!"),
        ChatMessage(name="Aldric", text="I head into the kitchen.", is_user=True),
    ])
    return store


async def _track(store: ChatStore, settings, mes_num: int, llm) -> dict | None:
    messages = store.get_messages(CHAT)
    tracker = await add_tracker_to_message(
        messages, store.get_participants(CHAT), settings, mes_num, llm
    )
    store.save_messages(CHAT, messages)
    return tracker


async def test_first_message_gets_tracker(store, settings):
    llm = AsyncMock(return_value="<tracker>\nmood: cheerful\nlocation: common room\n</tracker>")
    tracker = await _track(store, settings, 0, llm)

    assert tracker == {"mood": "cheerful", "location": "common room"}
    assert store.get_messages(CHAT)[0].tracker == tracker
    system_prompt = llm.call_args.kwargs["system_prompt"]
    assert '"mood": "neutral"' in system_prompt


async def test_follow_up_uses_previous(store, settings):
    store.set_tracker(CHAT, 0, {"mood": "cheerful", "location": "common room"})
    llm = AsyncMock(return_value="<tracker>\nmood: curious\nlocation: kitchen\n</tracker>")
    tracker = await _track(store, settings, 1, llm)

    assert tracker["location"] == "kitchen"
    system_prompt = llm.call_args.kwargs["system_prompt"]
    assert '"location": "common room"' in system_prompt
    assert store.get_messages(CHAT)[0].tracker["mood"] == "cheerful"


async def test_two_stage_flow(store, settings):
    settings.generation_mode = GenerationMode.TWO_STAGE
    llm = AsyncMock(side_effect=[
        "- Aldric moves to the kitchen",
        "<tracker>\nmood: neutral\nlocation: kitchen\n</tracker>",
    ])
    tracker = await _track(store, settings, 1, llm)

    assert llm.await_count == 2
    assert tracker == {"mood": "neutral", "location": "kitchen"}
    second_request = llm.await_args_list[1].args[1]
    assert "- Aldric moves to the kitchen" in second_request


async def test_bad_output_keeps_chat_unchanged(store, settings):
    llm = AsyncMock(return_value="Sorry, I lost track.")
    assert await _track(store, settings, 1, llm) is None
    assert all(not m.has_tracker for m in store.get_messages(CHAT))
