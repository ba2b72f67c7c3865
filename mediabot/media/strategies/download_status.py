"""Download status replies grounded in live queue data.

Both queues are fetched before any model call. Empty queues get a fixed reply
with no model involvement; otherwise the chat model summarizes the JSON and its
reply is checked for titles that are not in the queue (logged, not altered).
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Sequence

from mediabot.core.errors import OrchestratorError, summarize_error
from mediabot.llm.service import ask_text
from mediabot.media.formatting import format_downloads_as_json
from mediabot.media.strategies.base import MediaStrategy, MediaTurn, StrategyResult
from mediabot.media.types import DownloadStatus
from mediabot.prompting import prompts
from mediabot.prompting.prompt_builder import build_download_status_messages


logger = logging.getLogger(__name__)

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


def unknown_titles(reply: str, items: Sequence[DownloadStatus]) -> list[str]:
    """Bold titles in `reply` that match no queued item."""
    known = [item.title.lower() for item in items]
    unknown = []
    for match in _BOLD_RE.findall(reply):
        mention = match.strip().lower()
        if len(mention) < 3 or not any(c.isalpha() for c in mention):
            continue
        if not any(mention in title or title in mention for title in known):
            unknown.append(match.strip())
    return unknown


class DownloadStatusStrategy(MediaStrategy):
    name = "download-status"

    async def _queue(
        self,
        fetch: Callable[[], Awaitable[list[DownloadStatus]]],
        label: str,
    ) -> list[DownloadStatus] | None:
        try:
            return await self.catalog(fetch, label)
        except OrchestratorError as exc:
            logger.error("[%s] %s unavailable: %s", self.name, label, summarize_error(exc))
            return None

    async def handle(self, turn: MediaTurn) -> StrategyResult:
        movies, episodes = await asyncio.gather(
            self._queue(self.services.movies.list_active_downloads, "movie-queue"),
            self._queue(self.services.shows.list_active_downloads, "tv-queue"),
        )

        if movies is None and episodes is None:
            return StrategyResult(prompts.DOWNLOAD_SERVICES_UNAVAILABLE_REPLY)

        active = [*(movies or []), *(episodes or [])]
        if not active:
            if movies is None:
                return StrategyResult(prompts.PARTIAL_QUEUE_CLEAR_REPLY.format(available="TV", unavailable="movie"))
            if episodes is None:
                return StrategyResult(prompts.PARTIAL_QUEUE_CLEAR_REPLY.format(available="movie", unavailable="TV"))
            logger.info("[%s] queues empty for user %s", self.name, turn.user_id)
            return StrategyResult(prompts.QUEUE_CLEAR_REPLY)

        data = format_downloads_as_json(movies or [], episodes or [])
        reply = await ask_text(
            self.services.chat_model,
            build_download_status_messages(turn.message, data),
            "download-status-reply",
        )

        invented = unknown_titles(reply, active)
        if invented:
            logger.warning("[%s] reply mentions titles not in the queue: %s", self.name, invented)
        return StrategyResult(reply)
