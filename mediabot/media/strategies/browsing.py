"""Conversational browsing of the library and of external search results.

The catalog data for the requested scope is fetched first and passed to the chat
model as the only source it may answer from.
"""

from __future__ import annotations

import logging

from mediabot.llm.service import ask_text
from mediabot.media.data_fetching import fetch_external_search_data, fetch_library_data
from mediabot.media.strategies.base import MediaStrategy, MediaTurn, StrategyResult
from mediabot.media.types import MediaRequest, SearchIntent
from mediabot.prompting import prompts
from mediabot.prompting.prompt_builder import build_media_context_messages


logger = logging.getLogger(__name__)


class MediaBrowsingStrategy(MediaStrategy):
    name = "media-browse"

    async def _library(self, request: MediaRequest) -> str:
        movies, shows = self.services.movies, self.services.shows
        terms = request.search_terms or None
        data = await fetch_library_data(movies, shows, request.media_type, terms)
        if terms and data.count == 0:
            # Terms are often genres or people, not titles.
            data = await fetch_library_data(movies, shows, request.media_type)
        return data.content

    async def handle(self, turn: MediaTurn) -> StrategyResult:
        request = turn.media_request or MediaRequest()
        intent = request.search_intent
        sections = []

        if intent in (SearchIntent.EXTERNAL, SearchIntent.BOTH) and not request.search_terms:
            if intent is SearchIntent.EXTERNAL:
                return StrategyResult(prompts.ASK_SEARCH_TERMS_REPLY)
            intent = SearchIntent.LIBRARY

        if intent in (SearchIntent.LIBRARY, SearchIntent.BOTH):
            sections.append(await self._library(request))
        if intent in (SearchIntent.EXTERNAL, SearchIntent.BOTH):
            external = await fetch_external_search_data(
                self.services.movies,
                self.services.shows,
                request.media_type,
                request.search_terms,
                self.services.max_search_results,
            )
            sections.append(external.content)

        logger.info(
            "[%s] answering %s/%s request with %d section block(s)",
            self.name,
            request.media_type.value,
            intent.value,
            len(sections),
        )
        reply = await ask_text(
            self.services.chat_model,
            build_media_context_messages(turn.message, "".join(sections).strip()),
            "media-browse-reply",
        )
        return StrategyResult(reply)
