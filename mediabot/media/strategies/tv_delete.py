"""TV delete workflow.

Deletion needs both the show and the scope (whole series, seasons, or
episodes). Requested seasons are validated against the seasons the series
actually has before anything is removed; an invalid request keeps the user on
that show and asks again.
"""

from __future__ import annotations

import logging

from mediabot.media.formatting import format_candidate_list
from mediabot.media.selection import explicit_or_none, resolve_selection
from mediabot.media.strategies.base import MediaStrategy, MediaTurn, StrategyResult
from mediabot.media.types import (
    ContextKind,
    GranularSelection,
    SelectionReference,
    Series,
    WorkflowContext,
)
from mediabot.prompting import prompts


logger = logging.getLogger(__name__)


def _choose(candidates: list[Series], selection: SelectionReference | None) -> Series | None:
    if len(candidates) == 1:
        return candidates[0]
    if selection is None:
        return None
    return resolve_selection(selection, candidates)


def _choose_first_message(candidates: list[Series], selection: SelectionReference | None) -> Series | None:
    """Like `_choose`, but only ordinal and year references pick from several shows."""
    return _choose(candidates, explicit_or_none(selection))


def missing_seasons(series: Series, granular: GranularSelection) -> list[int]:
    """Requested seasons the series does not have. Unknown season lists skip the check."""
    if granular.is_entire_series or not series.seasons:
        return []
    available = series.season_numbers
    return sorted({entry.season for entry in granular.selection} - available)


class TvDeleteStrategy(MediaStrategy):
    name = "tv-delete"

    async def handle(self, turn: MediaTurn) -> StrategyResult:
        context = await self.store.get_context(turn.user_id, ContextKind.TV_DELETE)
        if context is not None:
            return await self._continue(turn, context)
        return await self._start(turn)

    async def _start(self, turn: MediaTurn) -> StrategyResult:
        parsed = await self.parse_initial(turn.message, delete=True, granular=True)
        if not parsed.query:
            return StrategyResult(prompts.ASK_FOR_TITLE_REPLY.format(media="show"))

        results: list[Series] = await self.catalog(
            lambda: self.services.shows.list_library(parsed.query),
            "tv-library",
        )
        if not results:
            return StrategyResult(prompts.NOT_IN_LIBRARY_REPLY.format(media="shows", query=parsed.query))

        candidates = results[: self.services.max_search_results]
        chosen = _choose_first_message(candidates, parsed.selection)
        if chosen is not None:
            if parsed.granular is not None:
                return await self._validate_and_delete(turn.user_id, chosen, parsed.granular, parsed.query)
            return await self._ask_scope(turn.user_id, chosen, parsed.query)

        await self.store.set_context(
            turn.user_id,
            ContextKind.TV_DELETE,
            WorkflowContext(
                search_results=candidates,
                query=parsed.query,
                original_selection_ref=parsed.selection,
                original_granular_ref=parsed.granular,
            ),
        )
        options = format_candidate_list(candidates)
        if parsed.granular is None:
            return StrategyResult(prompts.DELETE_CHOOSE_BOTH_REPLY.format(query=parsed.query, options=options))
        return StrategyResult(prompts.DELETE_CHOOSE_RESULT_REPLY.format(
            query=parsed.query,
            options=options,
            selection=parsed.granular.describe(),
        ))

    async def _continue(self, turn: MediaTurn, context: WorkflowContext) -> StrategyResult:
        candidates = context.search_results
        new_selection, new_granular = await self.parse_continuation(turn.message, candidates)
        selection = new_selection or explicit_or_none(context.original_selection_ref)
        granular = new_granular if new_granular is not None else context.original_granular_ref

        chosen = _choose(candidates, selection)
        if chosen is None:
            if new_granular is not None:
                await self.store.set_context(
                    turn.user_id,
                    ContextKind.TV_DELETE,
                    WorkflowContext(
                        search_results=candidates,
                        query=context.query,
                        original_selection_ref=context.original_selection_ref,
                        original_granular_ref=new_granular,
                    ),
                )
            return StrategyResult(prompts.SELECTION_NOT_UNDERSTOOD_REPLY.format(
                options=format_candidate_list(candidates),
            ))

        if granular is None:
            return await self._ask_scope(turn.user_id, chosen, context.query)
        return await self._validate_and_delete(turn.user_id, chosen, granular, context.query)

    async def _ask_scope(self, user_id: str, series: Series, query: str) -> StrategyResult:
        await self.store.set_context(
            user_id,
            ContextKind.TV_DELETE,
            WorkflowContext(search_results=[series], query=query),
        )
        return StrategyResult(prompts.DELETE_CHOOSE_SERIES_REPLY.format(title=series.display_name))

    async def _validate_and_delete(
        self,
        user_id: str,
        series: Series,
        granular: GranularSelection,
        query: str,
    ) -> StrategyResult:
        missing = missing_seasons(series, granular)
        if missing:
            logger.info("[%s] %s has no season(s) %s", self.name, series.title, missing)
            await self.store.set_context(
                user_id,
                ContextKind.TV_DELETE,
                WorkflowContext(search_results=[series], query=query),
            )
            available = sorted(n for n in series.season_numbers if n > 0)
            return StrategyResult(prompts.INVALID_SEASONS_REPLY.format(
                title=series.display_name,
                seasons=", ".join(str(n) for n in missing),
                available=", ".join(f"season {n}" for n in available) or "no regular seasons",
            ))

        await self.store.clear_context(user_id)
        result = await self.catalog(
            lambda: self.services.shows.unmonitor_and_delete(series, granular, delete_files=True),
            "tv-delete",
        )
        if not result.success:
            return StrategyResult(prompts.DELETE_FAILED_REPLY.format(
                title=series.display_name,
                error=result.error or "unknown error",
            ))
        if granular.is_entire_series:
            return StrategyResult(prompts.DELETE_DONE_REPLY.format(title=series.display_name))
        return StrategyResult(prompts.TV_DELETE_DONE_REPLY.format(
            selection=granular.describe(),
            title=series.display_name,
        ))
