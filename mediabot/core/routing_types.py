"""Routing and turn-state data contracts for `mediabot.core.engine`.

Architectural role:
    Defines the response categories produced by classification, the node set of
    the dialogue graph, and the mutable per-turn state that nodes read and write.

Determinism:
    Purely structural. Behavior lives in `mediabot.core.graph` (edges) and
    `mediabot.core.engine` (node handlers).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from mediabot.core.messages import Message


class ResponseType(str, Enum):
    DEFAULT = "default"
    MATH = "math"
    IMAGE = "image"
    MEDIA = "media"


class GraphNode(str, Enum):
    START = "start"
    CHECK_RESPONSE_TYPE = "check_response_type"
    TRIM_MESSAGES = "trim_messages"
    ADD_SYSTEM_PROMPT = "add_system_prompt"
    RESPOND_DEFAULT = "respond_default"
    RESPOND_MATH = "respond_math"
    RESPOND_IMAGE = "respond_image"
    RESPOND_MEDIA = "respond_media"
    INVOKE_TOOLS = "invoke_tools"
    END = "end"


@dataclass
class ImageResult:
    title: str
    url: str
    parent_id: str | None = None


@dataclass
class TurnState:
    """Mutable state threaded through the graph for one user turn.

    Attributes:
        user_id: Stable identifier used for context lookups.
        raw_message: Utterance exactly as the user typed it.
        user_input: Framed human message content (`<name> said "..."`).
        messages: Conversation history; nodes append to it.
        response_type: Category chosen by `CheckResponseType`.
        images: Images generated during the turn.
        tool_rounds: Completed `InvokeTools` rounds.
    """

    user_id: str
    raw_message: str
    user_input: str
    messages: list[Message] = field(default_factory=list)
    response_type: ResponseType | None = None
    images: list[ImageResult] = field(default_factory=list)
    tool_rounds: int = 0


@dataclass
class TurnResult:
    content: str
    images: list[ImageResult] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
