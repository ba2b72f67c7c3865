"""Movie download workflow.

Flow:
    new request -> search -> {0: not found | 1 or ordinal/year pick: add | many: ask}
    continuation -> resolve selection -> {resolved: add | not: re-prompt}
"""

from __future__ import annotations

import logging

from mediabot.media.formatting import format_candidate_list
from mediabot.media.selection import explicit_or_none, is_explicit, resolve_selection
from mediabot.media.strategies.base import MediaStrategy, MediaTurn, StrategyResult
from mediabot.media.types import ContextKind, Movie, WorkflowContext
from mediabot.prompting import prompts


logger = logging.getLogger(__name__)


class MovieDownloadStrategy(MediaStrategy):
    name = "movie-download"

    async def handle(self, turn: MediaTurn) -> StrategyResult:
        context = await self.store.get_context(turn.user_id, ContextKind.MOVIE)
        if context is not None:
            return await self._continue(turn, context)
        return await self._start(turn)

    async def _start(self, turn: MediaTurn) -> StrategyResult:
        parsed = await self.parse_initial(turn.message)
        if not parsed.query:
            return StrategyResult(prompts.ASK_FOR_TITLE_REPLY.format(media="movie"))

        results: list[Movie] = await self.catalog(
            lambda: self.services.movies.search_new(parsed.query),
            "movie-search",
        )
        logger.info("[%s] %d result(s) for %r", self.name, len(results), parsed.query)
        if not results:
            return StrategyResult(prompts.NO_RESULTS_REPLY.format(media="movies", query=parsed.query))

        candidates = results[: self.services.max_search_results]
        if len(candidates) == 1:
            return await self._download(candidates[0])
        if is_explicit(parsed.selection):
            chosen = resolve_selection(parsed.selection, candidates)
            if chosen is not None:
                return await self._download(chosen)

        await self.store.set_context(
            turn.user_id,
            ContextKind.MOVIE,
            WorkflowContext(
                search_results=candidates,
                query=parsed.query,
                original_selection_ref=parsed.selection,
            ),
        )
        return StrategyResult(prompts.MULTIPLE_RESULTS_REPLY.format(
            media="movies",
            query=parsed.query,
            options=format_candidate_list(candidates),
        ))

    async def _continue(self, turn: MediaTurn, context: WorkflowContext) -> StrategyResult:
        candidates = context.search_results
        selection = (
            await self.parse_selection(turn.message, candidates)
            or explicit_or_none(context.original_selection_ref)
        )
        chosen = resolve_selection(selection, candidates) if selection is not None else None
        if chosen is None:
            return StrategyResult(prompts.SELECTION_NOT_UNDERSTOOD_REPLY.format(
                options=format_candidate_list(candidates),
            ))

        await self.store.clear_context(turn.user_id)
        return await self._download(chosen)

    async def _download(self, movie: Movie) -> StrategyResult:
        result = await self.catalog(lambda: self.services.movies.add_and_monitor(movie), "movie-add")
        if not result.success:
            return StrategyResult(prompts.DOWNLOAD_FAILED_REPLY.format(
                title=movie.display_name,
                error=result.error or "unknown error",
            ))
        return StrategyResult(prompts.DOWNLOAD_STARTED_REPLY.format(title=movie.display_name))
