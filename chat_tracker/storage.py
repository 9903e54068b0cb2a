"""JSON file chat store.

Chats are stored as flat JSON files under a configurable base directory.
Reads and writes go through plain helper methods that load and dump JSON.

Directory layout:

    {base}/
      chats/
        {chat_id}/
          participants.json   ← ChatParticipants
          messages.json       ← append-only ChatMessage list (trackers inline)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from chat_tracker.models import ChatMessage, ChatParticipants, TrackerRecord


class ChatStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._chat_root = base_path / "chats"
        self._chat_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _chat_dir(self, chat_id: str) -> Path:
        return self._chat_root / chat_id

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def get_participants(self, chat_id: str) -> ChatParticipants:
        path = self._chat_dir(chat_id) / "participants.json"
        if not path.exists():
            return ChatParticipants()
        return ChatParticipants.model_validate(self._read_json(path))

    def save_participants(self, chat_id: str, participants: ChatParticipants) -> None:
        self._write_json(self._chat_dir(chat_id) / "participants.json", participants.model_dump())

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def get_messages(self, chat_id: str) -> list[ChatMessage]:
        path = self._chat_dir(chat_id) / "messages.json"
        if not path.exists():
            return []
        return [ChatMessage.model_validate(m) for m in self._read_json(path)]

    def save_messages(self, chat_id: str, messages: list[ChatMessage]) -> None:
        self._write_json(
            self._chat_dir(chat_id) / "messages.json",
            [m.model_dump() for m in messages],
        )

    def append_messages(self, chat_id: str, messages: list[ChatMessage]) -> None:
        existing = self.get_messages(chat_id)
        existing.extend(messages)
        self.save_messages(chat_id, existing)

    def set_tracker(self, chat_id: str, mes_num: int, tracker: TrackerRecord) -> None:
        """Replace the tracker stored on one message."""
        messages = self.get_messages(chat_id)
        if not 0 <= mes_num < len(messages):
            raise IndexError(f"Chat {chat_id!r} has no message {mes_num}")
        messages[mes_num].tracker = tracker
        self.save_messages(chat_id, messages)
