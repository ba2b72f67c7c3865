"""Retry-wrapped model invocation used by the engine and media strategies.

Architectural role:
    The single entrypoint through which any component talks to a language model.
    Every call carries a label and runs under `execute_with_retry` with the `llm`
    policy unless a caller supplies its own.

Model call flow:
    messages -> `invoke_model` -> `execute_with_retry` -> `ChatModel.invoke`.
"""

from __future__ import annotations

from typing import Protocol

from mediabot.core.errors import ErrorCategory
from mediabot.core.messages import Message
from mediabot.core.retry import RetryPolicy, execute_with_retry, load_retry_policy


class ChatModel(Protocol):
    """Minimal async interface required from a language model gateway."""

    async def invoke(self, messages: list[Message], tools: list[dict] | None = None) -> Message:
        """Return the model's reply to `messages`."""
        ...


async def invoke_model(
    model: ChatModel,
    messages: list[Message],
    label: str,
    tools: list[dict] | None = None,
    policy: RetryPolicy | None = None,
) -> Message:
    """Invoke `model` under the retry layer.

    Args:
        model: Chat model gateway.
        messages: Prompt messages in order.
        label: Operation label for logs and raised errors.
        tools: Optional function specs the model may call.
        policy: Override for the `llm` retry policy.

    Returns:
        Assistant `Message`.

    Raises:
        OrchestratorError: After retries are exhausted or on a non-retryable failure.
    """
    return await execute_with_retry(
        lambda: model.invoke(messages, tools=tools),
        policy or load_retry_policy("llm"),
        label,
        ErrorCategory.LLM_API,
    )


async def ask_text(model: ChatModel, messages: list[Message], label: str) -> str:
    """Invoke `model` and return stripped text content."""
    reply = await invoke_model(model, messages, label)
    return reply.content.strip()
