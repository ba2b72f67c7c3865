"""Shared dependencies and parsing helpers for media strategies.

Architectural role:
    Each strategy drives one media workflow (download/delete for movies/TV,
    download status, browsing). They all share:
    - `MediaServices`: constructor-wired models, catalogs, and context store.
    - `MediaTurn`: the inputs of one media turn.
    - `MediaStrategy.handle_request`: the error boundary that clears the user's
      context and replies with a summarized error.

Model usage:
    Structured parsing (search query, selection, granularity) goes to the
    reasoning model. Parse failures are not retried; they resolve to "no
    selection" and the workflow re-prompts.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from mediabot.catalog.protocols import MovieCatalog, TvCatalog
from mediabot.core.errors import summarize_error
from mediabot.llm.service import ChatModel, ask_text
from mediabot.media.data_fetching import catalog_call
from mediabot.media.parsing import (
    ParseError,
    clean_search_query,
    fallback_search_query,
    parse_granular_selection,
    parse_selection_reference,
)
from mediabot.media.types import Candidate, GranularSelection, MediaRequest, SelectionReference
from mediabot.memory.context_store import ContextStore
from mediabot.prompting.prompt_builder import (
    build_granular_messages,
    build_search_query_messages,
    build_selection_messages,
)
from mediabot.prompting.prompts import STRATEGY_ERROR_REPLY


logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = int(os.getenv("MAX_SEARCH_RESULTS", "10"))


@dataclass
class MediaServices:
    reasoning_model: ChatModel
    chat_model: ChatModel
    movies: MovieCatalog
    shows: TvCatalog
    context_store: ContextStore
    max_search_results: int = MAX_SEARCH_RESULTS


@dataclass(frozen=True)
class MediaTurn:
    user_id: str
    message: str
    media_request: MediaRequest | None = None


@dataclass(frozen=True)
class StrategyResult:
    content: str


@dataclass(frozen=True)
class InitialParse:
    """What a first media message already says about the choice."""

    query: str
    selection: SelectionReference | None
    granular: GranularSelection | None


class MediaStrategy(ABC):
    """Base class for media workflows. Subclasses implement `handle`."""

    name = "media"

    def __init__(self, services: MediaServices) -> None:
        self.services = services

    @property
    def store(self) -> ContextStore:
        return self.services.context_store

    async def handle_request(self, turn: MediaTurn) -> StrategyResult:
        """Run the workflow; any failure clears the user's context."""
        try:
            return await self.handle(turn)
        except Exception as exc:
            logger.exception("[%s] failed for user %s", self.name, turn.user_id)
            await self.store.clear_context(turn.user_id)
            return StrategyResult(STRATEGY_ERROR_REPLY.format(error=summarize_error(exc)))

    @abstractmethod
    async def handle(self, turn: MediaTurn) -> StrategyResult:
        ...

    # ===== CATALOG =====

    async def catalog(self, operation: Callable[[], Awaitable[Any]], label: str) -> Any:
        return await catalog_call(operation, label)

    # ===== PARSING =====

    async def _ask(self, messages: list, label: str) -> str:
        return await ask_text(self.services.reasoning_model, messages, label)

    async def extract_search_query(self, message: str, delete: bool = False) -> str:
        """Model-extracted title query; an empty model answer falls back to keyword stripping.

        Returns ``""`` when the model reports that no title was given.
        """
        raw = await self._ask(build_search_query_messages(message, delete), f"{self.name}-search-query")
        if not raw.strip():
            fallback = fallback_search_query(message, delete)
            logger.info("[%s] empty query extraction, using fallback %r", self.name, fallback)
            return fallback
        return clean_search_query(raw)

    async def parse_selection(
        self,
        message: str,
        candidates: Sequence[Candidate] = (),
    ) -> SelectionReference | None:
        raw = await self._ask(build_selection_messages(message, candidates), f"{self.name}-selection")
        parsed = parse_selection_reference(raw)
        if isinstance(parsed, ParseError):
            logger.info("[%s] selection not parsed: %s", self.name, parsed.reason)
            return None
        return parsed.value

    async def parse_granular(self, message: str) -> GranularSelection | None:
        raw = await self._ask(build_granular_messages(message), f"{self.name}-granular")
        parsed = parse_granular_selection(raw)
        if isinstance(parsed, ParseError):
            logger.info("[%s] granular selection not parsed: %s", self.name, parsed.reason)
            return None
        return parsed.value

    async def parse_initial(self, message: str, delete: bool = False, granular: bool = False) -> InitialParse:
        """Extract query, selection and (for TV) granularity from one message concurrently."""
        if granular:
            query, selection, granular_selection = await asyncio.gather(
                self.extract_search_query(message, delete),
                self.parse_selection(message),
                self.parse_granular(message),
            )
        else:
            query, selection = await asyncio.gather(
                self.extract_search_query(message, delete),
                self.parse_selection(message),
            )
            granular_selection = None
        return InitialParse(query=query, selection=selection, granular=granular_selection)

    async def parse_continuation(
        self,
        message: str,
        candidates: Sequence[Candidate],
    ) -> tuple[SelectionReference | None, GranularSelection | None]:
        selection, granular_selection = await asyncio.gather(
            self.parse_selection(message, candidates),
            self.parse_granular(message),
        )
        return selection, granular_selection
