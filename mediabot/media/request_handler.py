"""Entry point for media turns.

Architectural role:
    Decides whether a media turn continues a live workflow or starts a new one, and
    dispatches to the matching strategy.

Control-flow model:
    1. Live context -> the strategy owning that context kind.
    2. Otherwise classify intent (type, scope, terms) with the reasoning model.
    3. Download-status keywords short-circuit to the queue strategy.
    4. delete -> movie/TV delete, explicit download -> movie/TV download,
       anything else -> browsing.

    `has_active_media_context` is what the dialogue graph consults before
    classifying a message. For selection workflows it first asks whether the user
    switched topics and drops the context if so.

Failure handling:
    Any error escaping a strategy clears the user's context and yields a fixed
    apology. Classification failures degrade to a library browse.
"""

from __future__ import annotations

import logging

from mediabot.core.errors import OrchestratorError, summarize_error
from mediabot.llm.service import ask_text
from mediabot.media.parsing import ParseError, parse_media_kind, parse_media_request, parse_topic_switch
from mediabot.media.strategies.base import MediaServices, MediaStrategy, MediaTurn
from mediabot.media.strategies.browsing import MediaBrowsingStrategy
from mediabot.media.strategies.download_status import DownloadStatusStrategy
from mediabot.media.strategies.movie_delete import MovieDeleteStrategy
from mediabot.media.strategies.movie_download import MovieDownloadStrategy
from mediabot.media.strategies.tv_delete import TvDeleteStrategy
from mediabot.media.strategies.tv_download import TvDownloadStrategy
from mediabot.media.types import ContextKind, MediaKind, MediaRequest, MediaRequestType, SearchIntent
from mediabot.nlp.intent_router import is_delete_request, is_download_request, is_download_status_request
from mediabot.prompting.prompt_builder import (
    build_media_kind_messages,
    build_media_request_messages,
    build_topic_switch_messages,
)
from mediabot.prompting.prompts import MEDIA_APOLOGY_REPLY


logger = logging.getLogger(__name__)

FALLBACK_MEDIA_REQUEST = MediaRequest(
    media_type=MediaRequestType.BOTH,
    search_intent=SearchIntent.LIBRARY,
    search_terms="",
)


class MediaRequestHandler:
    def __init__(self, services: MediaServices) -> None:
        self.services = services
        self.movie_download = MovieDownloadStrategy(services)
        self.tv_download = TvDownloadStrategy(services)
        self.movie_delete = MovieDeleteStrategy(services)
        self.tv_delete = TvDeleteStrategy(services)
        self.download_status = DownloadStatusStrategy(services)
        self.browsing = MediaBrowsingStrategy(services)
        self._by_context: dict[ContextKind, MediaStrategy] = {
            ContextKind.MOVIE: self.movie_download,
            ContextKind.TV: self.tv_download,
            ContextKind.MOVIE_DELETE: self.movie_delete,
            ContextKind.TV_DELETE: self.tv_delete,
        }

    # =====================================================
    # CONTEXT
    # =====================================================

    async def has_active_media_context(self, user_id: str, message: str) -> bool:
        """True when the message should continue the user's live workflow."""
        store = self.services.context_store
        kind = await store.get_context_kind(user_id)
        if kind is None:
            return False
        if kind.is_selection and await self._switched_topic(user_id, message):
            await store.clear_context(user_id)
            logger.info("User %s switched topics, dropped %s context", user_id, kind.value)
            return False
        return True

    async def _switched_topic(self, user_id: str, message: str) -> bool:
        context = await self.services.context_store.get_context(user_id)
        if context is None:
            return False
        try:
            raw = await ask_text(
                self.services.reasoning_model,
                build_topic_switch_messages(message, context.query, context.search_results),
                "topic-switch",
            )
        except OrchestratorError as exc:
            # Unknown answer keeps the user in the selection flow.
            logger.warning("Topic switch check failed for %s: %s", user_id, summarize_error(exc))
            return False
        return parse_topic_switch(raw)

    # =====================================================
    # CLASSIFICATION
    # =====================================================

    async def classify(self, message: str) -> MediaRequest:
        try:
            raw = await ask_text(
                self.services.reasoning_model,
                build_media_request_messages(message),
                "media-request-classify",
            )
        except OrchestratorError as exc:
            logger.warning("Media request classification failed (%s), browsing the library", summarize_error(exc))
            return FALLBACK_MEDIA_REQUEST
        parsed = parse_media_request(raw)
        if isinstance(parsed, ParseError):
            logger.warning("Media request not parsed (%s), browsing the library", parsed.reason)
            return FALLBACK_MEDIA_REQUEST
        return parsed.value

    async def media_kind(self, message: str, request: MediaRequest) -> MediaKind:
        """Movie or TV for a request; ambiguous requests ask the model and default to movie."""
        if request.media_type is MediaRequestType.MOVIES:
            return MediaKind.MOVIE
        if request.media_type is MediaRequestType.SHOWS:
            return MediaKind.TV

        try:
            raw = await ask_text(
                self.services.reasoning_model,
                build_media_kind_messages(message),
                "media-kind",
            )
        except OrchestratorError as exc:
            logger.warning("Media kind classification failed (%s), assuming movie", summarize_error(exc))
            return MediaKind.MOVIE
        parsed = parse_media_kind(raw)
        if isinstance(parsed, ParseError):
            logger.info("Media kind not parsed (%s), assuming movie", parsed.reason)
            return MediaKind.MOVIE
        return parsed.value

    # =====================================================
    # DISPATCH
    # =====================================================

    async def _select_strategy(self, message: str, request: MediaRequest) -> MediaStrategy:
        if is_delete_request(request):
            kind = await self.media_kind(message, request)
            return self.movie_delete if kind is MediaKind.MOVIE else self.tv_delete
        if is_download_request(request, message):
            kind = await self.media_kind(message, request)
            return self.movie_download if kind is MediaKind.MOVIE else self.tv_download
        return self.browsing

    async def handle(self, user_id: str, message: str) -> str:
        """Process one media turn and return the reply text."""
        store = self.services.context_store
        try:
            kind = await store.get_context_kind(user_id)
            if kind is not None:
                strategy = self._by_context[kind]
                logger.info("Continuing %s workflow for user %s", kind.value, user_id)
                result = await strategy.handle_request(MediaTurn(user_id=user_id, message=message))
                return result.content

            request = await self.classify(message)
            if is_download_status_request(message):
                strategy = self.download_status
            else:
                strategy = await self._select_strategy(message, request)

            logger.info(
                "Routing media request for user %s to %s (%s/%s)",
                user_id,
                strategy.name,
                request.media_type.value,
                request.search_intent.value,
            )
            result = await strategy.handle_request(
                MediaTurn(user_id=user_id, message=message, media_request=request)
            )
            return result.content
        except Exception:
            logger.exception("Media request failed for user %s", user_id)
            await store.clear_context(user_id)
            return MEDIA_APOLOGY_REPLY
