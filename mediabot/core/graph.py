"""Dialogue graph: static edges plus predicate-driven conditional edges.

Control-flow model:
    START -> CHECK_RESPONSE_TYPE -> TRIM_MESSAGES -> ADD_SYSTEM_PROMPT
        -> RESPOND_DEFAULT | RESPOND_MATH | RESPOND_IMAGE | RESPOND_MEDIA
    RESPOND_DEFAULT -> INVOKE_TOOLS -> RESPOND_DEFAULT while the model requests tools
    RESPOND_DEFAULT -> END otherwise; math, image, and media nodes end the turn.

Determinism:
    `transition` is a pure function of the current node and turn state.
"""

from __future__ import annotations

from mediabot.core.errors import UnhandledMessageResponseError
from mediabot.core.messages import last_message
from mediabot.core.routing_types import GraphNode, ResponseType, TurnState


MAX_TOOL_ROUNDS = 5

_STATIC_EDGES = {
    GraphNode.START: GraphNode.CHECK_RESPONSE_TYPE,
    GraphNode.CHECK_RESPONSE_TYPE: GraphNode.TRIM_MESSAGES,
    GraphNode.TRIM_MESSAGES: GraphNode.ADD_SYSTEM_PROMPT,
    GraphNode.INVOKE_TOOLS: GraphNode.RESPOND_DEFAULT,
    GraphNode.RESPOND_MATH: GraphNode.END,
    GraphNode.RESPOND_IMAGE: GraphNode.END,
    GraphNode.RESPOND_MEDIA: GraphNode.END,
}

_RESPONSE_NODES = {
    ResponseType.DEFAULT: GraphNode.RESPOND_DEFAULT,
    ResponseType.MATH: GraphNode.RESPOND_MATH,
    ResponseType.IMAGE: GraphNode.RESPOND_IMAGE,
    ResponseType.MEDIA: GraphNode.RESPOND_MEDIA,
}


def route_response_type(state: TurnState) -> GraphNode:
    """Select the responder for the classified category."""
    if state.response_type is None:
        raise UnhandledMessageResponseError("response type was never classified")
    return _RESPONSE_NODES[state.response_type]


def should_invoke_tools(state: TurnState) -> bool:
    """True when the latest model output requests tools and the round cap allows it."""
    latest = last_message(state.messages)
    return (
        latest is not None
        and latest.has_tool_calls
        and state.tool_rounds < MAX_TOOL_ROUNDS
    )


def transition(node: GraphNode, state: TurnState) -> GraphNode:
    """Return the node that follows `node` for this turn."""
    if node is GraphNode.END:
        return GraphNode.END
    if node is GraphNode.ADD_SYSTEM_PROMPT:
        return route_response_type(state)
    if node is GraphNode.RESPOND_DEFAULT:
        return GraphNode.INVOKE_TOOLS if should_invoke_tools(state) else GraphNode.END
    return _STATIC_EDGES[node]
