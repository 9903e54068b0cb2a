"""Chat tracker — generate a tracker for one stored chat message."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from chat_tracker.config import connection_from_env, load_settings
from chat_tracker.llm import HttpLLM
from chat_tracker.models import IncludeFields
from chat_tracker.pipeline.orchestrator import add_tracker_to_message
from chat_tracker.storage import ChatStore

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")


async def run(args: argparse.Namespace) -> int:
    store = ChatStore(args.data_dir)
    settings = load_settings(args.settings)
    conn = connection_from_env()
    llm = HttpLLM(
        conn.provider_url, conn.api_key,
        provider_format=conn.provider_format, model=conn.model, timeout=conn.timeout,
    )

    messages = store.get_messages(args.chat)
    participants = store.get_participants(args.chat)
    mes_num = args.message if args.message is not None else len(messages) - 1

    tracker = await add_tracker_to_message(
        messages, participants, settings, mes_num, llm, IncludeFields(args.fields)
    )
    if tracker is None:
        print("No tracker generated.", file=sys.stderr)
        return 1

    store.save_messages(args.chat, messages)
    print(json.dumps(tracker, indent=2, ensure_ascii=False))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Generate a tracker for a chat message")
    parser.add_argument("chat", help="Chat id under <data-dir>/chats/")
    parser.add_argument("--message", type=int, default=None,
                        help="Message index (default: last message)")
    parser.add_argument("--data-dir", type=Path, default=Path("data"),
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--settings", type=Path, default=None,
                        help="Settings JSON file (default: built-in defaults)")
    parser.add_argument("--fields", choices=[o.value for o in IncludeFields],
                        default=IncludeFields.DYNAMIC.value,
                        help="Which tracker fields to generate")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
