"""TV download workflow.

A series is added only when both the show and the granularity (seasons,
episodes, or the entire series) are known. Missing pieces are asked for one at a
time, and whatever the user already said is kept on the context so it is not
asked again:

    show unknown            -> list candidates, remember any granularity given
    show known, no seasons  -> narrow the context to that show, ask for seasons
    both known              -> clear the context and add
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


class TvDownloadStrategy(MediaStrategy):
    name = "tv-download"

    async def handle(self, turn: MediaTurn) -> StrategyResult:
        context = await self.store.get_context(turn.user_id, ContextKind.TV)
        if context is not None:
            return await self._continue(turn, context)
        return await self._start(turn)

    async def _start(self, turn: MediaTurn) -> StrategyResult:
        parsed = await self.parse_initial(turn.message, granular=True)
        if not parsed.query:
            return StrategyResult(prompts.ASK_FOR_TITLE_REPLY.format(media="show"))

        results: list[Series] = await self.catalog(
            lambda: self.services.shows.search_new(parsed.query),
            "tv-search",
        )
        logger.info("[%s] %d result(s) for %r", self.name, len(results), parsed.query)
        if not results:
            return StrategyResult(prompts.NO_RESULTS_REPLY.format(media="shows", query=parsed.query))

        candidates = results[: self.services.max_search_results]
        chosen = _choose_first_message(candidates, parsed.selection)
        if chosen is not None:
            if parsed.granular is not None:
                return await self._download(chosen, parsed.granular)
            return await self._ask_granularity(turn.user_id, chosen, parsed.query)

        await self.store.set_context(
            turn.user_id,
            ContextKind.TV,
            WorkflowContext(
                search_results=candidates,
                query=parsed.query,
                original_selection_ref=parsed.selection,
                original_granular_ref=parsed.granular,
            ),
        )
        return StrategyResult(prompts.MULTIPLE_TV_RESULTS_REPLY.format(
            query=parsed.query,
            options=format_candidate_list(candidates),
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
                    ContextKind.TV,
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
            if len(candidates) == 1:
                return StrategyResult(prompts.GRANULARITY_NOT_UNDERSTOOD_REPLY.format(title=chosen.display_name))
            return await self._ask_granularity(turn.user_id, chosen, context.query)

        await self.store.clear_context(turn.user_id)
        return await self._download(chosen, granular)

    async def _ask_granularity(self, user_id: str, series: Series, query: str) -> StrategyResult:
        await self.store.set_context(
            user_id,
            ContextKind.TV,
            WorkflowContext(search_results=[series], query=query),
        )
        return StrategyResult(prompts.ASK_GRANULARITY_REPLY.format(title=series.display_name))

    async def _download(self, series: Series, granular: GranularSelection) -> StrategyResult:
        result = await self.catalog(
            lambda: self.services.shows.add_and_monitor(series, granular),
            "tv-add",
        )
        if not result.success:
            return StrategyResult(prompts.DOWNLOAD_FAILED_REPLY.format(
                title=series.display_name,
                error=result.error or "unknown error",
            ))
        return StrategyResult(prompts.TV_DOWNLOAD_STARTED_REPLY.format(
            title=series.display_name,
            selection=granular.describe(),
        ))
