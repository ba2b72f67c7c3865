from __future__ import annotations

import pytest

from mediabot.core.engine import Orchestrator
from mediabot.core.errors import ServiceHTTPError
from mediabot.core.messages import Message, Role, TokenUsage, ToolCall, assistant, human
from mediabot.llm.tools import Tool
from mediabot.memory.context_store import ContextStore
from mediabot.prompting import prompts
from tests.conftest import FakeRenderer, ScriptedModel


class _MediaHandler:
    def __init__(self, active: bool = False, reply: str = "media reply") -> None:
        self.active = active
        self.reply = reply
        self.handled: list[tuple[str, str]] = []

    async def has_active_media_context(self, user_id: str, message: str) -> bool:
        return self.active

    async def handle(self, user_id: str, message: str) -> str:
        self.handled.append((user_id, message))
        return self.reply


def _orchestrator(
    chat: ScriptedModel,
    reasoning: ScriptedModel,
    media: _MediaHandler | None = None,
    renderer: FakeRenderer | None = None,
    **kwargs,
) -> Orchestrator:
    return Orchestrator(
        chat_model=chat,
        reasoning_model=reasoning,
        context_store=ContextStore(),
        media_handler=media or _MediaHandler(),
        renderer=renderer or FakeRenderer(),
        **kwargs,
    )


def _classifier(answer: str, **extra) -> ScriptedModel:
    return ScriptedModel({prompts.RESPONSE_TYPE_PROMPT_ID: answer, **extra})


def _persona_count(messages: list[Message]) -> int:
    return sum(1 for m in messages if m.id == prompts.SYSTEM_PROMPT_ID)


@pytest.mark.asyncio
async def test_default_turn_frames_message_and_adds_persona() -> None:
    chat = ScriptedModel({prompts.SYSTEM_PROMPT_ID: "hey bob"})
    engine = _orchestrator(chat, _classifier("default"))

    result = await engine.send_message("hi", user_id="u1", user_name="bob")

    assert result.content == "hey bob"
    assert result.images == []
    assert [m.role for m in result.messages] == [Role.SYSTEM, Role.HUMAN, Role.ASSISTANT]
    assert result.messages[0].id == prompts.SYSTEM_PROMPT_ID
    assert result.messages[1].content == 'bob said "hi"'


@pytest.mark.asyncio
async def test_persona_prompt_stays_single_and_first() -> None:
    chat = ScriptedModel({prompts.SYSTEM_PROMPT_ID: "again"})
    engine = _orchestrator(chat, _classifier("default"))

    first = await engine.send_message("hi", user_id="u1")
    second = await engine.send_message("hi again", user_id="u1", prior_messages=first.messages)

    assert _persona_count(second.messages) == 1
    assert second.messages[0].id == prompts.SYSTEM_PROMPT_ID
    assert len(second.messages) == 5

    misplaced = [human("old"), *first.messages]
    third = await engine.send_message("hello", user_id="u1", prior_messages=misplaced)
    assert _persona_count(third.messages) == 1
    assert third.messages[0].id == prompts.SYSTEM_PROMPT_ID


@pytest.mark.asyncio
async def test_history_dropped_after_large_reply() -> None:
    heavy = assistant("long answer")
    heavy.token_usage = TokenUsage(total_tokens=7000)
    prior = [human("question"), heavy]
    engine = _orchestrator(ScriptedModel(default="short"), _classifier("default"), max_history_tokens=6000)

    result = await engine.send_message("next", user_id="u1", prior_messages=prior)

    assert [m.content for m in result.messages[1:]] == ["next", "short"]


@pytest.mark.asyncio
async def test_tool_calls_loop_back_to_model() -> None:
    async def fake_date(_: dict) -> str:
        return "2026-10-18T12:00:00+00:00"

    request = Message(role=Role.ASSISTANT, tool_calls=[ToolCall(id="call-1", name="current_date")])
    chat = ScriptedModel({prompts.SYSTEM_PROMPT_ID: [request, "It's October 18th."]})
    tool = Tool(name="current_date", description="date", parameters={"type": "object"}, handler=fake_date)
    engine = _orchestrator(chat, _classifier("default"), tools=[tool])

    result = await engine.send_message("what day is it?", user_id="u1")

    assert result.content == "It's October 18th."
    tool_messages = [m for m in result.messages if m.role is Role.TOOL]
    assert len(tool_messages) == 1
    assert tool_messages[0].tool_call_id == "call-1"
    assert tool_messages[0].content.startswith("2026-10-18")
    assert chat.calls[0][2] == [tool.spec]


@pytest.mark.asyncio
async def test_unknown_response_type_returns_diagnostic_and_keeps_history() -> None:
    prior = [human("earlier")]
    engine = _orchestrator(ScriptedModel(), _classifier("weather"))

    result = await engine.send_message("hi", user_id="u1", prior_messages=prior)

    assert result.content.startswith("sorry an error happened:")
    assert "Unhandled response type" in result.content
    assert result.messages == prior


@pytest.mark.asyncio
async def test_model_failure_returns_diagnostic() -> None:
    reasoning = _classifier(ServiceHTTPError("llm", 400))
    engine = _orchestrator(ScriptedModel(), reasoning)

    result = await engine.send_message("hi", user_id="u1")

    assert "llm responded with HTTP 400" in result.content
    assert result.messages == []


@pytest.mark.asyncio
async def test_live_media_context_skips_classification() -> None:
    reasoning = ScriptedModel()
    media = _MediaHandler(active=True, reply="Picked the second one.")
    engine = _orchestrator(ScriptedModel(), reasoning, media=media)

    result = await engine.send_message("the second one", user_id="u1", user_name="bob")

    assert result.content == "Picked the second one."
    assert reasoning.calls_for(prompts.RESPONSE_TYPE_PROMPT_ID) == []
    assert media.handled == [("u1", "the second one")]


@pytest.mark.asyncio
async def test_media_classification_routes_raw_message() -> None:
    media = _MediaHandler(reply="Added it.")
    engine = _orchestrator(ScriptedModel(), _classifier("media"), media=media)

    result = await engine.send_message("download heat", user_id="u1", user_name="bob")

    assert result.content == "Added it."
    assert media.handled == [("u1", "download heat")]


@pytest.mark.asyncio
async def test_math_reply_includes_rendered_solution() -> None:
    reasoning = _classifier("math", **{prompts.MATH_SOLUTION_PROMPT_ID: "$$x = 2$$"})
    chat = ScriptedModel({prompts.MATH_REPLY_PROMPT_ID: "The solution is below."})
    renderer = FakeRenderer()
    engine = _orchestrator(chat, reasoning, renderer=renderer)

    result = await engine.send_message("solve 2x = 4", user_id="u1")

    assert result.content == "The solution is below."
    assert renderer.specs[0].kind == "equation"
    assert renderer.specs[0].source == "$$x = 2$$"
    assert len(result.images) == 1
    assert result.images[0].title == "the solution"
    assert result.images[0].parent_id == result.messages[-1].id


@pytest.mark.asyncio
async def test_math_render_failure_still_replies() -> None:
    reasoning = _classifier("math", **{prompts.MATH_SOLUTION_PROMPT_ID: "$$x = 2$$"})
    chat = ScriptedModel({prompts.MATH_REPLY_PROMPT_ID: "The solution is below."})
    engine = _orchestrator(chat, reasoning, renderer=FakeRenderer(error=ServiceHTTPError("quicklatex", 400)))

    result = await engine.send_message("solve 2x = 4", user_id="u1")

    assert result.content == "The solution is below."
    assert result.images == []


@pytest.mark.asyncio
async def test_image_turn_renders_each_query() -> None:
    reasoning = _classifier(
        "image",
        **{prompts.IMAGE_QUERIES_PROMPT_ID: '[{"title": "Cat", "query": "a cat"}, {"title": "Dog", "query": "a dog"}]'},
    )
    chat = ScriptedModel({prompts.IMAGE_REPLY_PROMPT_ID: "Here you go!"})
    renderer = FakeRenderer()
    engine = _orchestrator(chat, reasoning, renderer=renderer)

    result = await engine.send_message("draw a cat and a dog", user_id="u1")

    assert result.content == "Here you go!"
    assert [image.title for image in result.images] == ["Cat", "Dog"]
    assert {spec.source for spec in renderer.specs} == {"a cat", "a dog"}
    assert all(image.parent_id == result.messages[-1].id for image in result.images)


@pytest.mark.asyncio
async def test_image_failure_is_reported_in_reply() -> None:
    reasoning = _classifier("image", **{prompts.IMAGE_QUERIES_PROMPT_ID: '[{"title": "Cat", "query": "a cat"}]'})
    chat = ScriptedModel()
    engine = _orchestrator(chat, reasoning, renderer=FakeRenderer(error=ServiceHTTPError("horde", 400)))

    result = await engine.send_message("draw a cat", user_id="u1")

    assert result.content == prompts.IMAGE_ERROR_REPLY.format(error="horde responded with HTTP 400")
    assert result.images == []
    assert chat.calls == []


@pytest.mark.asyncio
async def test_image_without_queries() -> None:
    reasoning = _classifier("image", **{prompts.IMAGE_QUERIES_PROMPT_ID: "[]"})
    engine = _orchestrator(ScriptedModel(), reasoning)

    result = await engine.send_message("draw", user_id="u1")

    assert result.content == prompts.NO_IMAGE_QUERIES_REPLY


@pytest.mark.asyncio
async def test_aclose_releases_each_client_once() -> None:
    closed: list[str] = []

    def closer(name: str):
        async def close() -> None:
            closed.append(name)
        return close

    orchestrator = _orchestrator(
        ScriptedModel({}),
        ScriptedModel({}),
        closers=(closer("radarr"), closer("sonarr")),
    )

    await orchestrator.aclose()
    await orchestrator.aclose()

    assert closed == ["radarr", "sonarr"]
