"""Data contracts shared by the media workflow, catalog clients, and context store.

Two families live here:
    - Pydantic models for data that crosses a trust boundary (catalog payloads and
      structured model output): `Candidate`, `Movie`, `Series`, `DownloadStatus`,
      `OperationResult`, `MediaRequest`, `SelectionReference`, `GranularSelection`.
    - Plain dataclasses for process-local state (`WorkflowContext`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class MediaKind(str, Enum):
    MOVIE = "movie"
    TV = "tv"


class ContextKind(str, Enum):
    MOVIE = "movie"
    TV = "tv"
    MOVIE_DELETE = "movieDelete"
    TV_DELETE = "tvDelete"

    @property
    def is_selection(self) -> bool:
        """True for download-selection workflows, which allow topic switching."""
        return self in (ContextKind.MOVIE, ContextKind.TV)


class MediaRequestType(str, Enum):
    MOVIES = "movies"
    SHOWS = "shows"
    BOTH = "both"


class SearchIntent(str, Enum):
    LIBRARY = "library"
    EXTERNAL = "external"
    BOTH = "both"
    DELETE = "delete"


class SelectionKind(str, Enum):
    ORDINAL = "ordinal"
    YEAR = "year"
    TITLE = "title"
    KEYWORD = "keyword"


# =========================================================
# CATALOG ITEMS
# =========================================================

class Candidate(BaseModel):
    """One catalog item. `id` is the library id and is `None` for search results."""

    model_config = ConfigDict(frozen=True)

    media_kind: ClassVar[MediaKind]

    id: int | None = None
    external_id: int
    title: str
    year: int | None = None
    overview: str | None = None
    genres: list[str] = Field(default_factory=list)
    rating: float | None = None
    status: str | None = None
    monitored: bool = False
    has_file: bool = False

    @property
    def display_name(self) -> str:
        return f"{self.title} ({self.year})" if self.year else self.title


class Movie(Candidate):
    media_kind: ClassVar[MediaKind] = MediaKind.MOVIE

    runtime: int | None = None
    title_slug: str | None = None


class SeasonInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    season_number: int
    monitored: bool = False
    episode_count: int | None = None
    episode_file_count: int | None = None


class Series(Candidate):
    media_kind: ClassVar[MediaKind] = MediaKind.TV

    network: str | None = None
    ended: bool = False
    title_slug: str | None = None
    seasons: list[SeasonInfo] = Field(default_factory=list)

    @property
    def season_numbers(self) -> set[int]:
        return {season.season_number for season in self.seasons}


class DownloadStatus(BaseModel):
    """One active queue item, normalized across movie and episode queues."""

    model_config = ConfigDict(frozen=True)

    id: int
    media_kind: MediaKind
    title: str
    year: int | None = None
    status: str
    size: float = 0
    size_left: float = 0
    time_left: str | None = None
    season_number: int | None = None
    episode_number: int | None = None
    episode_title: str | None = None
    download_client: str | None = None
    error_message: str | None = None

    @property
    def progress(self) -> float:
        if self.size <= 0:
            return 0.0
        done = max(self.size - self.size_left, 0)
        return round(done / self.size * 100, 1)


class OperationResult(BaseModel):
    success: bool
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)


# =========================================================
# PARSED USER INTENT
# =========================================================

class MediaRequest(BaseModel):
    media_type: MediaRequestType = MediaRequestType.BOTH
    search_intent: SearchIntent = SearchIntent.LIBRARY
    search_terms: str = ""


class SelectionReference(BaseModel):
    """How the user picks from a candidate list. `kind` is kept as free text so
    unrecognized kinds reach the resolver, which defaults them to the first item."""

    model_config = ConfigDict(frozen=True)

    kind: str
    value: str


class SeasonSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    season: int = Field(ge=0)
    episodes: list[int] | None = None


class GranularSelection(BaseModel):
    """Seasons/episodes chosen for a series.

    An empty `selection` means the entire series. An absent selection is represented
    by `None` at the call site, never by this model.
    """

    model_config = ConfigDict(frozen=True)

    selection: list[SeasonSelection] = Field(default_factory=list)

    @property
    def is_entire_series(self) -> bool:
        return not self.selection

    def describe(self) -> str:
        if self.is_entire_series:
            return "the entire series"
        parts = []
        for entry in self.selection:
            if entry.episodes:
                episodes = ", ".join(str(e) for e in entry.episodes)
                parts.append(f"season {entry.season} episode(s) {episodes}")
            else:
                parts.append(f"season {entry.season}")
        return ", ".join(parts)


class ImageQuery(BaseModel):
    query: str = Field(min_length=1)
    title: str = Field(min_length=1)


# =========================================================
# WORKFLOW STATE
# =========================================================

@dataclass
class WorkflowContext:
    """In-progress multi-turn selection for one user.

    `created_at` is stamped by the context store when the context is set.
    """

    search_results: list[Candidate]
    query: str
    created_at: float = 0.0
    is_active: bool = True
    original_selection_ref: SelectionReference | None = None
    original_granular_ref: GranularSelection | None = None
