"""Turn orchestration: runs the dialogue graph for one user message.

Architectural role:
    Provides the execution pipeline used by the CLI and HTTP adapters to transform
    one user message into a reply, generated images, and the updated history.

Control-flow model:
    1. `CheckResponseType`: a live media workflow routes straight to media;
       otherwise the reasoning model classifies the message.
    2. `TrimMessages`: drop history once the last reply reported too many tokens.
    3. `AddSystemPrompt`: keep exactly one persona prompt at the head, append the
       framed human message.
    4. One responder node (default/math/image/media). The default responder may
       loop through `InvokeTools` until the model stops requesting tools.

    Edges live in `mediabot.core.graph`; this module only holds node handlers.

Interaction surface:
    - Models: `llm.service.invoke_model` / `ask_text` (retry-wrapped).
    - Media: a handler exposing `has_active_media_context` and `handle`.
    - Rendering: a `RenderGateway` for generated and equation images.
    - Tools: `llm.tools` specs and executors.

Error handling strategy:
    Node failures propagate to `send_message`, which logs them and answers with a
    diagnostic echo of the summarized error. Image and equation render failures
    degrade inside their nodes instead.

Determinism:
    Graph traversal and prompt assembly are deterministic for fixed inputs. Model
    output and rendering are not.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import replace
from typing import Awaitable, Callable, Protocol, Sequence

from mediabot.core.errors import ErrorCategory, OrchestratorError, UnhandledMessageResponseError, summarize_error
from mediabot.core.graph import transition
from mediabot.core.messages import Message, Role, assistant, human, last_message
from mediabot.core.retry import execute_with_retry, load_retry_policy
from mediabot.core.routing_types import GraphNode, ImageResult, ResponseType, TurnResult, TurnState
from mediabot.image.service import RenderedImage, RenderGateway, RenderSpec
from mediabot.llm.service import ChatModel, ask_text, invoke_model
from mediabot.llm.tools import Tool, run_tool_calls
from mediabot.media.parsing import ParseError, parse_image_queries
from mediabot.media.types import ImageQuery
from mediabot.memory.context_store import ContextStore
from mediabot.nlp.intent_router import parse_response_type
from mediabot.prompting import prompts
from mediabot.prompting.prompt_builder import (
    build_followup_reply_messages,
    build_image_query_messages,
    build_math_solution_messages,
    build_response_type_messages,
    build_system_prompt,
    frame_user_input,
)


logger = logging.getLogger(__name__)

MAX_HISTORY_TOKENS = int(os.getenv("MAX_HISTORY_TOKENS", "6000"))
DEFAULT_RESPONSE_TIMEOUT_MS = 45000
MATH_IMAGE_TITLE = "the solution"


class MediaHandlerProtocol(Protocol):
    """Minimal interface the graph needs from the media request handler."""

    async def has_active_media_context(self, user_id: str, message: str) -> bool:
        ...

    async def handle(self, user_id: str, message: str) -> str:
        ...


class Orchestrator:
    """Explicitly wired dialogue engine.

    Args:
        chat_model: Model for conversational replies.
        reasoning_model: Model for classification, parsing, and math.
        context_store: Workflow context store shared with the media handler.
        media_handler: Media request handler.
        renderer: Image/equation render gateway.
        tools: Tools offered to the default responder.
        max_history_tokens: `TrimMessages` ceiling on the last reply's token usage.
        closers: Async callables releasing client resources on `aclose`.
    """

    def __init__(
        self,
        chat_model: ChatModel,
        reasoning_model: ChatModel,
        context_store: ContextStore,
        media_handler: MediaHandlerProtocol,
        renderer: RenderGateway,
        tools: Sequence[Tool] = (),
        max_history_tokens: int = MAX_HISTORY_TOKENS,
        closers: Sequence[Callable[[], Awaitable[None]]] = (),
    ) -> None:
        self.chat_model = chat_model
        self.reasoning_model = reasoning_model
        self.context_store = context_store
        self.media_handler = media_handler
        self.renderer = renderer
        self.tools = list(tools)
        self.max_history_tokens = max_history_tokens
        self._closers = list(closers)
        self._default_policy = replace(load_retry_policy("default"), timeout=DEFAULT_RESPONSE_TIMEOUT_MS)
        self._handlers: dict[GraphNode, Callable[[TurnState], Awaitable[None]]] = {
            GraphNode.CHECK_RESPONSE_TYPE: self.check_response_type,
            GraphNode.TRIM_MESSAGES: self.trim_messages,
            GraphNode.ADD_SYSTEM_PROMPT: self.add_system_prompt,
            GraphNode.RESPOND_DEFAULT: self.respond_default,
            GraphNode.INVOKE_TOOLS: self.invoke_tools,
            GraphNode.RESPOND_MATH: self.respond_math,
            GraphNode.RESPOND_IMAGE: self.respond_image,
            GraphNode.RESPOND_MEDIA: self.respond_media,
        }

    # =====================================================
    # ROUTING NODES
    # =====================================================

    async def check_response_type(self, state: TurnState) -> None:
        """Pick the responder for this turn.

        Important behavior:
            - A live media workflow skips model classification entirely.
            - Only the four known categories are accepted.

        Raises:
            UnhandledMessageResponseError: The classifier answered something else.
        """
        if await self.media_handler.has_active_media_context(state.user_id, state.raw_message):
            logger.info("User %s has a live media workflow, routing to media", state.user_id)
            state.response_type = ResponseType.MEDIA
            return

        raw = await ask_text(
            self.reasoning_model,
            build_response_type_messages(state.user_input),
            "check-response-type",
        )
        parsed = parse_response_type(raw)
        if isinstance(parsed, ParseError):
            raise UnhandledMessageResponseError(
                f"Unhandled response type: {parsed.reason}",
                label="check-response-type",
            )
        state.response_type = parsed.value
        logger.info("Classified message from %s as %s", state.user_id, parsed.value.value)

    async def trim_messages(self, state: TurnState) -> None:
        latest = last_message(state.messages, Role.ASSISTANT)
        usage = latest.token_usage if latest is not None else None
        if usage is not None and usage.total_tokens >= self.max_history_tokens:
            logger.info(
                "Dropping %d history messages (last reply used %d tokens)",
                len(state.messages),
                usage.total_tokens,
            )
            state.messages = []

    async def add_system_prompt(self, state: TurnState) -> None:
        """Ensure one persona prompt at the head, then append the human message."""
        head = state.messages[0] if state.messages else None
        if head is None or head.id != prompts.SYSTEM_PROMPT_ID:
            rest = [m for m in state.messages if m.id != prompts.SYSTEM_PROMPT_ID]
            state.messages = [build_system_prompt(), *rest]
        state.messages.append(human(state.user_input))

    # =====================================================
    # DEFAULT RESPONDER + TOOLS
    # =====================================================

    async def respond_default(self, state: TurnState) -> None:
        specs = [tool.spec for tool in self.tools] or None
        reply = await invoke_model(
            self.chat_model,
            state.messages,
            "respond-default",
            tools=specs,
            policy=self._default_policy,
        )
        state.messages.append(reply)

    async def invoke_tools(self, state: TurnState) -> None:
        latest = last_message(state.messages)
        if latest is None or not latest.has_tool_calls:
            return
        logger.info(
            "Running tool call(s) %s (round %d)",
            [call.name for call in latest.tool_calls],
            state.tool_rounds + 1,
        )
        state.messages.extend(await run_tool_calls(latest.tool_calls, self.tools))
        state.tool_rounds += 1

    # =====================================================
    # MATH
    # =====================================================

    async def _render_equation(self, latex: str) -> RenderedImage | None:
        try:
            return await execute_with_retry(
                lambda: self.renderer.render(RenderSpec(kind="equation", source=latex)),
                load_retry_policy("equation"),
                "render-equation",
                ErrorCategory.EQUATION_SERVICE,
            )
        except OrchestratorError as exc:
            logger.warning("Equation render failed, replying without image: %s", summarize_error(exc))
            return None

    async def respond_math(self, state: TurnState) -> None:
        """Solve in LaTeX, then render it while the chat model writes the reply.

        Edge cases:
            - A render failure still produces a reply, just without the image.
        """
        solution = await ask_text(
            self.reasoning_model,
            build_math_solution_messages(state.messages),
            "math-solution",
        )
        rendered, reply = await asyncio.gather(
            self._render_equation(solution),
            invoke_model(
                self.chat_model,
                build_followup_reply_messages(
                    state.messages,
                    prompts.MATH_REPLY_PROMPT_ID,
                    prompts.MATH_REPLY_PROMPT,
                ),
                "math-reply",
            ),
        )
        state.messages.append(reply)
        if rendered is not None:
            state.images.append(ImageResult(title=MATH_IMAGE_TITLE, url=rendered.url, parent_id=reply.id))

    # =====================================================
    # IMAGE
    # =====================================================

    async def _render_image(self, query: ImageQuery) -> RenderedImage:
        return await execute_with_retry(
            lambda: self.renderer.render(RenderSpec(kind="image", source=query.query)),
            load_retry_policy("image"),
            "render-image",
            ErrorCategory.IMAGE_SERVICE,
        )

    async def respond_image(self, state: TurnState) -> None:
        raw = await ask_text(
            self.reasoning_model,
            build_image_query_messages(state.user_input),
            "image-queries",
        )
        parsed = parse_image_queries(raw)
        if isinstance(parsed, ParseError) or not parsed.value:
            reason = parsed.reason if isinstance(parsed, ParseError) else "no queries"
            logger.info("No image queries extracted: %s", reason)
            state.messages.append(assistant(prompts.NO_IMAGE_QUERIES_REPLY))
            return

        queries = parsed.value
        try:
            rendered = await asyncio.gather(*(self._render_image(query) for query in queries))
        except OrchestratorError as exc:
            logger.warning("Image generation failed: %s", summarize_error(exc))
            state.messages.append(assistant(prompts.IMAGE_ERROR_REPLY.format(error=summarize_error(exc))))
            return

        reply = await invoke_model(
            self.chat_model,
            build_followup_reply_messages(
                state.messages,
                prompts.IMAGE_REPLY_PROMPT_ID,
                prompts.IMAGE_REPLY_PROMPT,
            ),
            "image-reply",
        )
        state.messages.append(reply)
        state.images.extend(
            ImageResult(title=query.title, url=image.url, parent_id=reply.id)
            for query, image in zip(queries, rendered)
        )

    # =====================================================
    # MEDIA
    # =====================================================

    async def respond_media(self, state: TurnState) -> None:
        content = await self.media_handler.handle(state.user_id, state.raw_message)
        state.messages.append(assistant(content))

    # =====================================================
    # EXECUTION
    # =====================================================

    async def run_graph(self, state: TurnState) -> TurnState:
        node = GraphNode.START
        while node is not GraphNode.END:
            handler = self._handlers.get(node)
            if handler is not None:
                logger.debug("Entering node %s", node.value)
                await handler(state)
            node = transition(node, state)
        return state

    async def send_message(
        self,
        message: str,
        user_id: str,
        prior_messages: Sequence[Message] = (),
        user_name: str | None = None,
    ) -> TurnResult:
        """Run one turn and return the reply, images, and updated history.

        Args:
            message: Raw user utterance.
            user_id: Stable user identifier for context lookups.
            prior_messages: History from the adapter's conversation log.
            user_name: Display name used to frame the human message.

        Returns:
            `TurnResult`. On failure the content is a diagnostic echo of the error
            summary and the history is returned unchanged.
        """
        state = TurnState(
            user_id=user_id,
            raw_message=message,
            user_input=frame_user_input(message, user_name),
            messages=list(prior_messages),
        )
        try:
            await self.run_graph(state)
        except Exception as exc:
            logger.exception("Turn failed for user %s", user_id)
            return TurnResult(
                content=prompts.DIAGNOSTIC_ERROR_REPLY.format(error=summarize_error(exc)),
                messages=list(prior_messages),
            )

        final = last_message(state.messages, Role.ASSISTANT)
        return TurnResult(
            content=final.content if final is not None else "",
            images=state.images,
            messages=state.messages,
        )

    async def clear_user(self, user_id: str) -> bool:
        """Drop any live media workflow for `user_id`."""
        return await self.context_store.clear_context(user_id)

    async def aclose(self) -> None:
        """Release client resources. Called once by the adapters on shutdown."""
        closers, self._closers = self._closers, []
        for close in closers:
            await close()
        logger.info("Orchestrator closed %d client(s)", len(closers))
