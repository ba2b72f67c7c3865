from __future__ import annotations

import pytest

from mediabot.core.errors import UnhandledMessageResponseError
from mediabot.core.graph import MAX_TOOL_ROUNDS, should_invoke_tools, transition
from mediabot.core.messages import Message, Role, ToolCall, assistant
from mediabot.core.routing_types import GraphNode, ResponseType, TurnState


def _state(**kwargs) -> TurnState:
    return TurnState(user_id="u", raw_message="hi", user_input='u said "hi"', **kwargs)


def _tool_request() -> Message:
    return Message(role=Role.ASSISTANT, tool_calls=[ToolCall(id="c1", name="current_date")])


def test_linear_prefix() -> None:
    state = _state()
    assert transition(GraphNode.START, state) is GraphNode.CHECK_RESPONSE_TYPE
    assert transition(GraphNode.CHECK_RESPONSE_TYPE, state) is GraphNode.TRIM_MESSAGES
    assert transition(GraphNode.TRIM_MESSAGES, state) is GraphNode.ADD_SYSTEM_PROMPT


@pytest.mark.parametrize(
    ("response_type", "node"),
    [
        (ResponseType.DEFAULT, GraphNode.RESPOND_DEFAULT),
        (ResponseType.MATH, GraphNode.RESPOND_MATH),
        (ResponseType.IMAGE, GraphNode.RESPOND_IMAGE),
        (ResponseType.MEDIA, GraphNode.RESPOND_MEDIA),
    ],
)
def test_routes_by_response_type(response_type: ResponseType, node: GraphNode) -> None:
    assert transition(GraphNode.ADD_SYSTEM_PROMPT, _state(response_type=response_type)) is node


def test_unclassified_turn_cannot_route() -> None:
    with pytest.raises(UnhandledMessageResponseError):
        transition(GraphNode.ADD_SYSTEM_PROMPT, _state())


@pytest.mark.parametrize("node", [GraphNode.RESPOND_MATH, GraphNode.RESPOND_IMAGE, GraphNode.RESPOND_MEDIA])
def test_specialized_responders_end_the_turn(node: GraphNode) -> None:
    assert transition(node, _state()) is GraphNode.END


def test_tool_loop() -> None:
    state = _state(messages=[_tool_request()])
    assert transition(GraphNode.RESPOND_DEFAULT, state) is GraphNode.INVOKE_TOOLS
    assert transition(GraphNode.INVOKE_TOOLS, state) is GraphNode.RESPOND_DEFAULT

    state.messages.append(assistant("done"))
    assert transition(GraphNode.RESPOND_DEFAULT, state) is GraphNode.END


def test_tool_rounds_are_capped() -> None:
    state = _state(messages=[_tool_request()], tool_rounds=MAX_TOOL_ROUNDS)
    assert not should_invoke_tools(state)
    assert transition(GraphNode.RESPOND_DEFAULT, state) is GraphNode.END


def test_end_is_terminal() -> None:
    assert transition(GraphNode.END, _state()) is GraphNode.END
