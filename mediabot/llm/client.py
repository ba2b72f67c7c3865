"""Provider-specific transport client for chat model requests.

Architectural role:
    Executes one HTTP request against the configured provider and converts the
    response into a `Message` (content, tool calls, token usage).

Model invocation flow:
    `service.invoke_model` -> `ProviderChatModel.invoke(messages, tools)` ->
    worker thread -> provider branch (OpenAI-compatible / Anthropic) -> `Message`.

Retry behavior:
    None here. Failures are raised so that `mediabot.core.retry` can classify them:
    non-2xx responses raise `ServiceHTTPError`, missing keys raise `AuthError`,
    and `requests` connection/timeout errors propagate unchanged.

Determinism:
    Payload construction is deterministic for fixed config and input. Output text
    is not.
"""

import asyncio
import json
import logging
from typing import Any

import requests

from mediabot.core.errors import AuthError, ErrorCategory, ServiceHTTPError, ValidationError, parse_retry_after
from mediabot.core.messages import Message, Role, TokenUsage, ToolCall
from mediabot.llm.provider_config import (
    ANTHROPIC_VERSION,
    MAX_COMPLETION_TOKENS,
    PROVIDER,
    PROVIDERS,
    REQUEST_TIMEOUT_SECONDS,
    load_key,
)


logger = logging.getLogger(__name__)

CHARS_PER_TOKEN_ESTIMATE = 4

_OPENAI_ROLES = {
    Role.HUMAN: "user",
    Role.ASSISTANT: "assistant",
    Role.SYSTEM: "system",
    Role.TOOL: "tool",
}


def estimate_tokens(text):
    """Approximate token count using the `4 chars ~= 1 token` heuristic."""
    if not text:
        return 0
    return max(1, len(str(text)) // CHARS_PER_TOKEN_ESTIMATE)


def _raise_for_status(provider_name: str, response: requests.Response) -> None:
    if response.status_code < 400:
        return
    raise ServiceHTTPError(
        provider_name,
        response.status_code,
        retry_after=parse_retry_after(response.headers.get("Retry-After")),
    )


class ProviderChatModel:
    """Chat model bound to one provider, model name, and temperature.

    Args:
        model_name: Provider model identifier.
        temperature: Sampling temperature forwarded to the provider.
        provider: Key in `PROVIDERS`.
    """

    def __init__(self, model_name: str, temperature: float = 0.0, provider: str = PROVIDER) -> None:
        if provider not in PROVIDERS:
            raise ValueError(f"Unsupported PROVIDER: {provider}")
        self.model_name = model_name
        self.temperature = temperature
        self.provider = provider
        self._config = PROVIDERS[provider]

    async def invoke(self, messages: list[Message], tools: list[dict] | None = None) -> Message:
        """Send `messages` to the provider from a worker thread."""
        return await asyncio.to_thread(self._send, messages, tools)

    # =====================================================
    # TRANSPORT
    # =====================================================

    def _api_key(self) -> str | None:
        key_file = self._config["key_file"]
        if not key_file:
            return None
        api_key = load_key(key_file)
        if not api_key:
            raise AuthError(
                f"{self.provider} API key not configured",
                category=ErrorCategory.LLM_API,
            )
        return api_key

    def _send(self, messages: list[Message], tools: list[dict] | None) -> Message:
        if self.provider == "anthropic":
            return self._send_anthropic(messages, tools)
        return self._send_openai_compatible(messages, tools)

    def _send_openai_compatible(self, messages: list[Message], tools: list[dict] | None) -> Message:
        headers = {"Content-Type": "application/json"}
        api_key = self._api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": [self._to_openai(message) for message in messages],
            "temperature": self.temperature,
            "max_tokens": MAX_COMPLETION_TOKENS,
        }
        if tools:
            payload["tools"] = [{"type": "function", "function": spec} for spec in tools]

        response = requests.post(
            self._config["url"],
            headers=headers,
            json=payload,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        _raise_for_status(self.provider, response)
        data = response.json()

        try:
            choice = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ValidationError(
                f"{self.provider} returned no choices",
                category=ErrorCategory.LLM_API,
            ) from exc

        tool_calls = []
        for raw in choice.get("tool_calls") or []:
            function = raw.get("function", {})
            tool_calls.append(ToolCall(
                id=raw.get("id", ""),
                name=function.get("name", ""),
                arguments=_decode_arguments(function.get("arguments")),
            ))

        content = (choice.get("content") or "").strip()
        usage = data.get("usage") or {}
        return Message(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tool_calls,
            token_usage=self._usage(usage.get("prompt_tokens"), usage.get("completion_tokens"), messages, content),
        )

    def _send_anthropic(self, messages: list[Message], tools: list[dict] | None) -> Message:
        headers = {
            "x-api-key": self._api_key(),
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

        system_parts = [m.content.strip() for m in messages if m.role is Role.SYSTEM and m.content.strip()]
        payload: dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": MAX_COMPLETION_TOKENS,
            "temperature": self.temperature,
            "messages": [self._to_anthropic(m) for m in messages if m.role is not Role.SYSTEM],
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if tools:
            payload["tools"] = [
                {
                    "name": spec["name"],
                    "description": spec.get("description", ""),
                    "input_schema": spec.get("parameters", {"type": "object", "properties": {}}),
                }
                for spec in tools
            ]

        response = requests.post(
            self._config["url"],
            headers=headers,
            json=payload,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        _raise_for_status(self.provider, response)
        data = response.json()

        text_parts = []
        tool_calls = []
        for block in data.get("content") or []:
            if block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    arguments=block.get("input") or {},
                ))

        content = "".join(text_parts).strip()
        usage = data.get("usage") or {}
        return Message(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tool_calls,
            token_usage=self._usage(usage.get("input_tokens"), usage.get("output_tokens"), messages, content),
        )

    # =====================================================
    # MAPPING
    # =====================================================

    @staticmethod
    def _to_openai(message: Message) -> dict[str, Any]:
        mapped: dict[str, Any] = {"role": _OPENAI_ROLES[message.role], "content": message.content}
        if message.role is Role.TOOL:
            mapped["tool_call_id"] = message.tool_call_id
        if message.tool_calls:
            mapped["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in message.tool_calls
            ]
        return mapped

    @staticmethod
    def _to_anthropic(message: Message) -> dict[str, Any]:
        if message.role is Role.TOOL:
            return {
                "role": "user",
                "content": [{
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content,
                }],
            }
        if message.role is Role.ASSISTANT and message.tool_calls:
            blocks: list[dict[str, Any]] = []
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            blocks.extend(
                {"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments}
                for call in message.tool_calls
            )
            return {"role": "assistant", "content": blocks}
        role = "assistant" if message.role is Role.ASSISTANT else "user"
        return {"role": role, "content": message.content}

    @staticmethod
    def _usage(prompt_tokens, completion_tokens, messages: list[Message], content: str) -> TokenUsage:
        """Provider-reported usage, estimated from text when the provider omits it."""
        if prompt_tokens is None:
            prompt_tokens = sum(estimate_tokens(m.content) for m in messages)
        if completion_tokens is None:
            completion_tokens = estimate_tokens(content)
        return TokenUsage(
            prompt_tokens=int(prompt_tokens),
            completion_tokens=int(completion_tokens),
            total_tokens=int(prompt_tokens) + int(completion_tokens),
        )


def _decode_arguments(raw) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding undecodable tool arguments: %.80s", raw)
        return {}
    return decoded if isinstance(decoded, dict) else {}
