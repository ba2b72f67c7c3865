"""
Interactive CLI adapter for MediaBot.

Architectural role:
- Exposes terminal interaction for one local user at a time.
- Keeps per-user chat history in `mediabot.memory.conversation_manager`.
- Delegates every turn to `Orchestrator.send_message`.

Request lifecycle (per user turn, CLI):
1. Read stdin.
2. Handle local control commands (`exit`/`quit`, `/clear`, `/contexts`, `/user`).
3. Send normal text to the engine with the stored history.
4. Print the reply and any image links, then store the new history.

Hard trigger handling:
- `/clear` drops the chat history and any live media workflow.
- `/contexts` prints workflow counts by kind.
- `/user <name>` switches the active user (history and context are per user).

Error handling strategy:
- Engine failures already come back as reply text.
- EOF and keyboard interrupts terminate the loop without traceback output.
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
import os
import sys

import mediabot.memory.conversation_manager as conversation_manager
from mediabot.api.composition import build_orchestrator


DEFAULT_USER = os.getenv("CLI_USER", "me")


# =========================================================
# UTF-8 SAFE OUTPUT
# Best-effort stdout encoding normalization for interactive terminals.
# =========================================================

if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")


async def _read_line(prompt):
    return await asyncio.to_thread(input, prompt)


def _print_contexts(orchestrator):
    stats = orchestrator.context_store.stats()
    print(f"\nActive media workflows: {stats.get('total', 0)}")
    for kind, count in sorted(stats.items()):
        if kind != "total":
            print(f" - {kind}: {count}")
    print()


# =========================================================
# MAIN LOOP
# =========================================================

async def run():
    """
    Run the CLI loop until `exit`, EOF, or interrupt.

    The context cleanup sweep runs as a background task for the loop's lifetime.
    """
    orchestrator = build_orchestrator()
    cleanup = asyncio.create_task(orchestrator.context_store.run_cleanup())
    user = DEFAULT_USER

    print("MediaBot started. (Type 'exit' to quit)")
    print(f"Active user: {user}\n")
    print("-" * 60)

    try:
        while True:
            try:
                text = (await _read_line(f"{user}: ")).strip()
            except EOFError:
                print("\nBye.")
                break

            if not text:
                continue

            lowered = text.lower()

            # EXIT
            if lowered in ("exit", "quit"):
                print("Shutting down.")
                break

            # CLEAR
            if lowered == "/clear":
                conversation_manager.clear_history(user)
                await orchestrator.clear_user(user)
                print("Chat and media context cleared.\n")
                continue

            # CONTEXTS
            if lowered == "/contexts":
                _print_contexts(orchestrator)
                continue

            # USER SWITCH
            if lowered.startswith("/user"):
                parts = text.split(maxsplit=1)
                if len(parts) == 1:
                    print(f"\nCurrent user: {user}\nUsage: /user <name>\n")
                else:
                    user = parts[1].strip()
                    print(f"\nSwitched to user: {user}\n")
                continue

            result = await orchestrator.send_message(
                text,
                user_id=user,
                prior_messages=conversation_manager.get_history(user),
                user_name=user,
            )
            conversation_manager.replace_history(user, result.messages)

            print(f"\nMediaBot: {result.content}")
            for image in result.images:
                print(f"  [{image.title}] {image.url}")
            print("\n" + "-" * 60 + "\n")
    finally:
        cleanup.cancel()
        await orchestrator.aclose()


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")


if __name__ == "__main__":
    main()
