"""Grounding data for conversational media answers.

Fetches library listings and external search results per media type and renders
them as labelled sections the chat model answers from. Each section fails
independently: an unreachable catalog yields an "unavailable" line instead of
failing the whole answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from mediabot.catalog.protocols import MovieCatalog, TvCatalog
from mediabot.core.errors import ErrorCategory, OrchestratorError, summarize_error
from mediabot.core.retry import execute_with_retry, load_retry_policy
from mediabot.media.formatting import format_media_as_json
from mediabot.media.types import Candidate, MediaRequestType


logger = logging.getLogger(__name__)

LIBRARY_SECTION_LIMIT = 50


@dataclass(frozen=True)
class FetchedData:
    content: str
    count: int


@dataclass(frozen=True)
class _Section:
    label: str
    header: str
    empty: str
    unavailable: str
    total: str


async def catalog_call(operation: Callable[[], Awaitable], label: str):
    """Run one catalog operation once under `label`.

    Catalog clients retry each HTTP request themselves. Replaying a whole
    operation here would repeat steps that already succeeded, such as adding a
    series before its search command failed.
    """
    return await execute_with_retry(
        operation,
        load_retry_policy("catalog_operation"),
        label,
        ErrorCategory.MEDIA_API,
    )


async def _render_section(
    fetch: Callable[[], Awaitable[list[Candidate]]],
    section: _Section,
    limit: int,
) -> FetchedData:
    try:
        items: Sequence[Candidate] = await catalog_call(fetch, section.label)
    except OrchestratorError as exc:
        logger.error("[%s] unavailable: %s", section.label, summarize_error(exc))
        return FetchedData(content=f"\n\n{section.unavailable}", count=0)

    if not items:
        return FetchedData(content=f"\n\n{section.empty}", count=0)

    shown = list(items)[:limit]
    total = section.total.replace("{count}", str(len(items)))
    content = f"\n\n{section.header}\n{format_media_as_json(shown)}\n\n{total}"
    return FetchedData(content=content, count=len(items))


def _wants_movies(media_type: MediaRequestType) -> bool:
    return media_type in (MediaRequestType.MOVIES, MediaRequestType.BOTH)


def _wants_shows(media_type: MediaRequestType) -> bool:
    return media_type in (MediaRequestType.SHOWS, MediaRequestType.BOTH)


async def fetch_library_data(
    movies: MovieCatalog,
    shows: TvCatalog,
    media_type: MediaRequestType,
    query: str | None = None,
    limit: int = LIBRARY_SECTION_LIMIT,
) -> FetchedData:
    """Library sections for the requested media type, filtered by `query` when given."""
    parts: list[FetchedData] = []
    if _wants_movies(media_type):
        parts.append(await _render_section(
            lambda: movies.list_library(query),
            _Section(
                label="movie-library",
                header="**MOVIES IN LIBRARY:**",
                empty="**MOVIES:** No movies found in library",
                unavailable="**MOVIES:** Unable to fetch movie library (service may be unavailable)",
                total="Total movies: {count}",
            ),
            limit,
        ))
    if _wants_shows(media_type):
        parts.append(await _render_section(
            lambda: shows.list_library(query),
            _Section(
                label="tv-library",
                header="**TV SHOWS IN LIBRARY:**",
                empty="**TV SHOWS:** No TV shows found in library",
                unavailable="**TV SHOWS:** Unable to fetch TV series library (service may be unavailable)",
                total="Total shows: {count}",
            ),
            limit,
        ))
    return FetchedData(content="".join(p.content for p in parts), count=sum(p.count for p in parts))


async def fetch_external_search_data(
    movies: MovieCatalog,
    shows: TvCatalog,
    media_type: MediaRequestType,
    query: str,
    limit: int,
) -> FetchedData:
    """External search sections for `query`, capped at `limit` results each."""
    parts: list[FetchedData] = []
    if _wants_movies(media_type):
        parts.append(await _render_section(
            lambda: movies.search_new(query),
            _Section(
                label="movie-search",
                header="**🔍 MOVIE SEARCH RESULTS:**",
                empty=f'**🔍 MOVIE SEARCH:** No movies found for "{query}"',
                unavailable=f'**🔍 MOVIES:** Unable to search for "{query}" (service may be unavailable)',
                total=f'Found {{count}} movies matching "{query}"',
            ),
            limit,
        ))
    if _wants_shows(media_type):
        parts.append(await _render_section(
            lambda: shows.search_new(query),
            _Section(
                label="tv-search",
                header="**🔍 TV SHOW SEARCH RESULTS:**",
                empty=f'**🔍 TV SHOWS:** No shows found for "{query}"',
                unavailable=f'**🔍 TV SHOWS:** Unable to search for "{query}" (service may be unavailable)',
                total=f'Found {{count}} shows matching "{query}"',
            ),
            limit,
        ))
    return FetchedData(content="".join(p.content for p in parts), count=sum(p.count for p in parts))
