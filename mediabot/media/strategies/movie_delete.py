"""Movie delete workflow: library lookup, selection, then unmonitor and delete files."""

from __future__ import annotations

import logging

from mediabot.media.formatting import format_candidate_list
from mediabot.media.selection import explicit_or_none, is_explicit, resolve_selection
from mediabot.media.strategies.base import MediaStrategy, MediaTurn, StrategyResult
from mediabot.media.types import ContextKind, Movie, WorkflowContext
from mediabot.prompting import prompts


logger = logging.getLogger(__name__)


class MovieDeleteStrategy(MediaStrategy):
    name = "movie-delete"

    async def handle(self, turn: MediaTurn) -> StrategyResult:
        context = await self.store.get_context(turn.user_id, ContextKind.MOVIE_DELETE)
        if context is not None:
            return await self._continue(turn, context)
        return await self._start(turn)

    async def _start(self, turn: MediaTurn) -> StrategyResult:
        parsed = await self.parse_initial(turn.message, delete=True)
        if not parsed.query:
            return StrategyResult(prompts.ASK_FOR_TITLE_REPLY.format(media="movie"))

        results: list[Movie] = await self.catalog(
            lambda: self.services.movies.list_library(parsed.query),
            "movie-library",
        )
        if not results:
            return StrategyResult(prompts.NOT_IN_LIBRARY_REPLY.format(media="movies", query=parsed.query))

        candidates = results[: self.services.max_search_results]
        if len(candidates) == 1:
            return await self._delete(candidates[0])
        if is_explicit(parsed.selection):
            chosen = resolve_selection(parsed.selection, candidates)
            if chosen is not None:
                return await self._delete(chosen)

        await self.store.set_context(
            turn.user_id,
            ContextKind.MOVIE_DELETE,
            WorkflowContext(
                search_results=candidates,
                query=parsed.query,
                original_selection_ref=parsed.selection,
            ),
        )
        return StrategyResult(prompts.MULTIPLE_RESULTS_REPLY.format(
            media="movies in the library",
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
        return await self._delete(chosen)

    async def _delete(self, movie: Movie) -> StrategyResult:
        result = await self.catalog(
            lambda: self.services.movies.unmonitor_and_delete(movie, delete_files=True),
            "movie-delete",
        )
        if not result.success:
            return StrategyResult(prompts.DELETE_FAILED_REPLY.format(
                title=movie.display_name,
                error=result.error or "unknown error",
            ))
        logger.info("[%s] removed %s", self.name, movie.display_name)
        return StrategyResult(prompts.DELETE_DONE_REPLY.format(title=movie.display_name))
