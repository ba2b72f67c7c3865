"""Per-user conversation log kept by the adapters.

Purpose of this abstraction:
    The engine is stateless across turns: each call receives `prior_messages` and
    returns the updated history. The CLI and HTTP adapters keep that history here,
    one list per user, in process memory.

Relation to the context store:
    This log holds chat history only. Media workflow state lives in
    `mediabot.memory.context_store` and is cleared independently.

External dependencies:
    - Standard library: `threading`, `logging`.
"""

import logging
import threading

from mediabot.core.messages import Message, Role, last_message


logger = logging.getLogger(__name__)


MAX_STORED_MESSAGES = 200


_histories: dict[str, list[Message]] = {}
_lock = threading.Lock()


def get_history(user_id):
    """Return a copy of the user's history.

    Input:
        user_id: Adapter-level user identifier.

    Output:
        List of `Message` objects, oldest first. Empty for unknown users.

    Side effects:
        None.
    """
    with _lock:
        return list(_histories.get(user_id, []))


def replace_history(user_id, messages):
    """Store the history returned by the engine for `user_id`.

    Input:
        user_id: Adapter-level user identifier.
        messages: Full updated history from `TurnResult.messages`.

    Output:
        None.

    Side effects:
        Overwrites the stored list. Histories longer than `MAX_STORED_MESSAGES`
        keep only the newest messages, with the persona prompt preserved at the head.
    """
    messages = list(messages)
    if len(messages) > MAX_STORED_MESSAGES:
        head = messages[:1] if messages and messages[0].role is Role.SYSTEM else []
        messages = head + messages[-(MAX_STORED_MESSAGES - len(head)):]

    with _lock:
        _histories[user_id] = messages


def clear_history(user_id):
    """Drop the user's history. Returns whether anything was stored."""
    with _lock:
        removed = _histories.pop(user_id, None)

    if removed:
        logger.info("Cleared %d messages for user %s", len(removed), user_id)
    return bool(removed)


def last_usage(user_id):
    """Total tokens reported for the user's most recent assistant reply, or `None`."""
    with _lock:
        history = _histories.get(user_id, [])
        latest = last_message(history, Role.ASSISTANT)

    if latest is None or latest.token_usage is None:
        return None
    return latest.token_usage.total_tokens
