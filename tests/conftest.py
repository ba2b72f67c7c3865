from __future__ import annotations

from typing import Any

import pytest

from mediabot.core.messages import Message, Role, assistant
from mediabot.image.service import RenderedImage, RenderSpec
from mediabot.media.strategies.base import MediaServices
from mediabot.media.types import (
    DownloadStatus,
    GranularSelection,
    Movie,
    OperationResult,
    SeasonInfo,
    Series,
)
from mediabot.memory.context_store import ContextStore
from mediabot.prompting import prompts


# =========================================================
# MODELS
# =========================================================

def prompt_id_of(messages: list[Message]) -> str:
    """Id of the task prompt in a message list (the persona id when there is none)."""
    for message in reversed(messages):
        if message.role is Role.SYSTEM and message.id != prompts.SYSTEM_PROMPT_ID:
            return message.id
    if any(message.id == prompts.SYSTEM_PROMPT_ID for message in messages):
        return prompts.SYSTEM_PROMPT_ID
    return ""


class ScriptedModel:
    """Chat model stub answering by prompt id.

    A response may be a string, a `Message`, an exception to raise, or a list of
    those consumed in order (the last entry repeats).
    """

    def __init__(self, responses: dict[str, Any] | None = None, default: Any = "") -> None:
        self.responses = {key: list(value) if isinstance(value, list) else value for key, value in (responses or {}).items()}
        self.default = default
        self.calls: list[tuple[str, list[Message], list[dict] | None]] = []

    def calls_for(self, prompt_id: str) -> list[list[Message]]:
        return [messages for pid, messages, _ in self.calls if pid == prompt_id]

    async def invoke(self, messages: list[Message], tools: list[dict] | None = None) -> Message:
        prompt_id = prompt_id_of(messages)
        self.calls.append((prompt_id, list(messages), tools))
        response = self.responses.get(prompt_id, self.default)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, Message):
            return response
        return assistant(response)


# =========================================================
# CATALOGS
# =========================================================

def make_movie(title: str, year: int | None = None, id: int | None = None, external_id: int | None = None, **extra: Any) -> Movie:
    return Movie(
        id=id,
        external_id=external_id if external_id is not None else abs(hash((title, year))) % 100000 + 1,
        title=title,
        year=year,
        **extra,
    )


def make_series(
    title: str,
    year: int | None = None,
    seasons: tuple[int, ...] = (1, 2),
    id: int | None = None,
    external_id: int | None = None,
    **extra: Any,
) -> Series:
    return Series(
        id=id,
        external_id=external_id if external_id is not None else abs(hash((title, year))) % 100000 + 1,
        title=title,
        year=year,
        seasons=[SeasonInfo(season_number=n) for n in seasons],
        **extra,
    )


def _matches(title: str, query: str | None) -> bool:
    return not query or query.lower() in title.lower()


class FakeMovieCatalog:
    def __init__(
        self,
        search: list[Movie] | None = None,
        library: list[Movie] | None = None,
        downloads: list[DownloadStatus] | None = None,
    ) -> None:
        self.search_results = list(search or [])
        self.library = list(library or [])
        self.downloads = list(downloads or [])
        self.queries: list[str] = []
        self.added: list[Movie] = []
        self.deleted: list[Movie] = []
        self.result = OperationResult(success=True)
        self.add_error: BaseException | None = None
        self.downloads_error: BaseException | None = None

    async def search_new(self, query: str) -> list[Movie]:
        self.queries.append(query)
        return list(self.search_results)

    async def list_library(self, query: str | None = None) -> list[Movie]:
        return [movie for movie in self.library if _matches(movie.title, query)]

    async def add_and_monitor(self, movie: Movie) -> OperationResult:
        if self.add_error is not None:
            raise self.add_error
        self.added.append(movie)
        return self.result

    async def unmonitor_and_delete(self, movie: Movie, delete_files: bool = True) -> OperationResult:
        self.deleted.append(movie)
        return self.result

    async def list_active_downloads(self) -> list[DownloadStatus]:
        if self.downloads_error is not None:
            raise self.downloads_error
        return list(self.downloads)


class FakeTvCatalog:
    def __init__(
        self,
        search: list[Series] | None = None,
        library: list[Series] | None = None,
        downloads: list[DownloadStatus] | None = None,
    ) -> None:
        self.search_results = list(search or [])
        self.library = list(library or [])
        self.downloads = list(downloads or [])
        self.queries: list[str] = []
        self.added: list[tuple[Series, GranularSelection]] = []
        self.deleted: list[tuple[Series, GranularSelection]] = []
        self.result = OperationResult(success=True)
        self.downloads_error: BaseException | None = None

    async def search_new(self, query: str) -> list[Series]:
        self.queries.append(query)
        return list(self.search_results)

    async def list_library(self, query: str | None = None) -> list[Series]:
        return [show for show in self.library if _matches(show.title, query)]

    async def add_and_monitor(self, series: Series, selection: GranularSelection) -> OperationResult:
        self.added.append((series, selection))
        return self.result

    async def unmonitor_and_delete(
        self,
        series: Series,
        selection: GranularSelection,
        delete_files: bool = True,
    ) -> OperationResult:
        self.deleted.append((series, selection))
        return self.result

    async def list_active_downloads(self) -> list[DownloadStatus]:
        if self.downloads_error is not None:
            raise self.downloads_error
        return list(self.downloads)


# =========================================================
# RENDERER / CLOCK
# =========================================================

class FakeRenderer:
    def __init__(self, error: BaseException | None = None) -> None:
        self.error = error
        self.specs: list[RenderSpec] = []

    async def render(self, spec: RenderSpec) -> RenderedImage:
        self.specs.append(spec)
        if self.error is not None:
            raise self.error
        return RenderedImage(url=f"https://img.test/{spec.kind}/{len(self.specs)}")


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =========================================================
# FIXTURES
# =========================================================

@pytest.fixture(autouse=True)
def retry_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record retry backoff delays instead of sleeping."""
    delays: list[float] = []

    async def _record(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr("mediabot.core.retry._sleep", _record)
    return delays


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> ContextStore:
    return ContextStore(ttl_seconds=1800, clock=clock)


@pytest.fixture
def reasoning() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def chat() -> ScriptedModel:
    return ScriptedModel(default="chat reply")


@pytest.fixture
def movies() -> FakeMovieCatalog:
    return FakeMovieCatalog()


@pytest.fixture
def shows() -> FakeTvCatalog:
    return FakeTvCatalog()


@pytest.fixture
def services(
    reasoning: ScriptedModel,
    chat: ScriptedModel,
    movies: FakeMovieCatalog,
    shows: FakeTvCatalog,
    store: ContextStore,
) -> MediaServices:
    return MediaServices(
        reasoning_model=reasoning,
        chat_model=chat,
        movies=movies,
        shows=shows,
        context_store=store,
        max_search_results=10,
    )
