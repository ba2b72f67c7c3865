"""Conversation message model shared by the engine, LLM client, and adapters.

Messages carry a stable opaque `id`. The engine appends messages and never rewrites
the identity of an existing one; the persona prompt is recognized by its sentinel id.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    HUMAN = "human"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Message:
    role: Role
    content: str = ""
    id: str = field(default_factory=_new_id)
    token_usage: TokenUsage | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return self.role is Role.ASSISTANT and bool(self.tool_calls)


def human(content: str) -> Message:
    return Message(role=Role.HUMAN, content=content)


def system(content: str, id: str | None = None) -> Message:
    if id is None:
        return Message(role=Role.SYSTEM, content=content)
    return Message(role=Role.SYSTEM, content=content, id=id)


def assistant(content: str) -> Message:
    return Message(role=Role.ASSISTANT, content=content)


def tool_result(call: ToolCall, content: str) -> Message:
    return Message(role=Role.TOOL, content=content, tool_call_id=call.id, name=call.name)


def last_message(messages: list[Message], role: Role | None = None) -> Message | None:
    """Return the most recent message, optionally the most recent with `role`."""
    for message in reversed(messages):
        if role is None or message.role is role:
            return message
    return None
