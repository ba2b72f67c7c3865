"""Prompt assembly helpers used by the engine and media strategies.

This module only builds message lists from already routed inputs. Model
invocation, retries, and output validation happen elsewhere.

Design constraints:
    - Deterministic construction for identical inputs.
    - Every task prompt is a system message carrying its template id, followed by
      the user text as a human message.
    - No I/O and no global state.
"""

from __future__ import annotations

from typing import Sequence

from mediabot.core.messages import Message, Role, human, system
from mediabot.media.formatting import format_candidate_list
from mediabot.media.types import Candidate
from mediabot.prompting import prompts


def build_system_prompt() -> Message:
    """Persona prompt identified by the `SYSTEM_PROMPT_ID` sentinel."""
    return system(prompts.SYSTEM_PROMPT, id=prompts.SYSTEM_PROMPT_ID)


def _task(prompt_id: str, instruction: str, user_text: str) -> list[Message]:
    return [system(instruction, id=prompt_id), human(user_text)]


def frame_user_input(message: str, user_name: str | None = None) -> str:
    """Render the human message as `<name> said "<message>"` when a name is known."""
    if user_name:
        return f'{user_name} said "{message}"'
    return message


# =========================================================
# CLASSIFICATION
# =========================================================

def build_response_type_messages(user_input: str) -> list[Message]:
    return _task(prompts.RESPONSE_TYPE_PROMPT_ID, prompts.RESPONSE_TYPE_PROMPT, user_input)


def build_media_request_messages(message: str) -> list[Message]:
    return _task(prompts.MEDIA_REQUEST_PROMPT_ID, prompts.MEDIA_REQUEST_PROMPT, message)


def build_media_kind_messages(message: str) -> list[Message]:
    return _task(prompts.MEDIA_KIND_PROMPT_ID, prompts.MEDIA_KIND_PROMPT, message)


def build_topic_switch_messages(message: str, query: str, candidates: Sequence[Candidate]) -> list[Message]:
    instruction = prompts.TOPIC_SWITCH_PROMPT.format(
        query=query,
        options=format_candidate_list(candidates),
    )
    return _task(prompts.TOPIC_SWITCH_PROMPT_ID, instruction, message)


# =========================================================
# MEDIA PARSING
# =========================================================

def build_search_query_messages(message: str, delete: bool = False) -> list[Message]:
    if delete:
        return _task(prompts.DELETE_QUERY_PROMPT_ID, prompts.DELETE_QUERY_PROMPT, message)
    return _task(prompts.SEARCH_QUERY_PROMPT_ID, prompts.SEARCH_QUERY_PROMPT, message)


def build_selection_messages(message: str, candidates: Sequence[Candidate] = ()) -> list[Message]:
    """Selection-parsing prompt; the option list is included when one was shown."""
    instruction = prompts.SELECTION_PROMPT
    if candidates:
        instruction = f"{instruction}\n\nOptions shown to the user:\n{format_candidate_list(candidates)}"
    return _task(prompts.SELECTION_PROMPT_ID, instruction, message)


def build_granular_messages(message: str) -> list[Message]:
    return _task(prompts.GRANULAR_PROMPT_ID, prompts.GRANULAR_PROMPT, message)


def build_image_query_messages(message: str) -> list[Message]:
    return _task(prompts.IMAGE_QUERIES_PROMPT_ID, prompts.IMAGE_QUERIES_PROMPT, message)


# =========================================================
# RESPONDERS
# =========================================================

def build_math_solution_messages(history: Sequence[Message]) -> list[Message]:
    """Conversation without the persona prompt, followed by the LaTeX instruction."""
    conversation = [
        message
        for message in history
        if message.role is not Role.SYSTEM and message.role is not Role.TOOL
    ]
    return [*conversation, system(prompts.MATH_SOLUTION_PROMPT, id=prompts.MATH_SOLUTION_PROMPT_ID)]


def build_followup_reply_messages(history: Sequence[Message], prompt_id: str, instruction: str) -> list[Message]:
    """Full history plus a trailing instruction for the chat model."""
    return [*history, system(instruction, id=prompt_id)]


def build_download_status_messages(message: str, data: str) -> list[Message]:
    instruction = prompts.DOWNLOAD_STATUS_PROMPT.format(data=data)
    return [
        build_system_prompt(),
        system(instruction, id=prompts.DOWNLOAD_STATUS_PROMPT_ID),
        human(message),
    ]


def build_media_context_messages(message: str, data: str) -> list[Message]:
    instruction = prompts.MEDIA_CONTEXT_PROMPT.format(data=data)
    return [
        build_system_prompt(),
        system(instruction, id=prompts.MEDIA_CONTEXT_PROMPT_ID),
        human(message),
    ]
