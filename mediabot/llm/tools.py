"""Tools available to the default chat responder.

Architectural role:
    Declares the function specs sent to the model and executes the tool calls it
    requests during the `InvokeTools` graph node.

Tools:
    - `current_date`: ISO timestamp in UTC.
    - `web_search`: Tavily search over `httpx`, returning a compact JSON list of
      `{title, url, content}`. Requires `SEARCH_API_KEY`.

Failure handling:
    Tool errors never escape `run_tool_call`; they become tool-result messages so the
    model can explain the failure to the user.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from mediabot.core.errors import ErrorCategory, ServiceHTTPError, parse_retry_after
from mediabot.core.messages import Message, ToolCall, tool_result
from mediabot.core.retry import execute_with_retry, load_retry_policy
from mediabot.llm.provider_config import SEARCH_API_KEY, WEB_MAX_RESULTS, WEB_TIMEOUT_SECONDS


logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"
MAX_SNIPPET_CHARS = 500


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: Callable[[dict[str, Any]], Awaitable[str]]

    @property
    def spec(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


async def current_date(_: dict[str, Any]) -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class WebSearchTool:
    """Tavily-backed search returning untrusted snippets for the chat model."""

    def __init__(
        self,
        api_key: str = SEARCH_API_KEY,
        timeout_seconds: float = WEB_TIMEOUT_SECONDS,
        max_results: int = WEB_MAX_RESULTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_results = max_results
        self._transport = transport

    async def _search(self, query: str) -> dict[str, Any]:
        body = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": "basic",
            "max_results": self.max_results,
        }
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(TAVILY_URL, json=body)
        if response.status_code >= 400:
            raise ServiceHTTPError(
                "tavily",
                response.status_code,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def __call__(self, arguments: dict[str, Any]) -> str:
        query = str(arguments.get("query", "")).strip()
        if not query:
            return "No search query given."
        if not self.api_key:
            return "Web search is not configured."

        data = await execute_with_retry(
            lambda: self._search(query),
            load_retry_policy("default"),
            "tool-web-search",
            ErrorCategory.HTTP_CLIENT,
        )
        results = [
            {
                "title": item.get("title", ""),
                "url": item.get("url", ""),
                "content": (item.get("content") or "")[:MAX_SNIPPET_CHARS],
            }
            for item in data.get("results", [])
            if isinstance(item, dict)
        ]
        return json.dumps(results[: self.max_results], ensure_ascii=False)


def default_tools(web_search: WebSearchTool | None = None) -> list[Tool]:
    return [
        Tool(
            name="current_date",
            description="Get the current date and time in UTC.",
            parameters={"type": "object", "properties": {}},
            handler=current_date,
        ),
        Tool(
            name="web_search",
            description="Search the web for recent information. Returns titles, urls, and snippets.",
            parameters={
                "type": "object",
                "properties": {"query": {"type": "string", "description": "Search query"}},
                "required": ["query"],
            },
            handler=web_search or WebSearchTool(),
        ),
    ]


async def run_tool_call(call: ToolCall, tools: list[Tool]) -> Message:
    """Execute one tool call and wrap its output as a tool-result message."""
    registry = {tool.name: tool for tool in tools}
    tool = registry.get(call.name)
    if tool is None:
        logger.warning("Model requested unknown tool %r", call.name)
        return tool_result(call, f"Unknown tool: {call.name}")
    try:
        output = await tool.handler(call.arguments)
    except Exception as exc:
        logger.exception("Tool %s failed", call.name)
        return tool_result(call, f"Tool {call.name} failed: {type(exc).__name__}")
    return tool_result(call, output)


async def run_tool_calls(calls: list[ToolCall], tools: list[Tool]) -> list[Message]:
    """Execute tool calls concurrently, preserving request order in the results."""
    return list(await asyncio.gather(*(run_tool_call(call, tools) for call in calls)))
