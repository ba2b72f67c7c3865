from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from mediabot.catalog.base import ArrClientConfig, parse_rating, title_slug
from mediabot.catalog.radarr import RadarrClient
from mediabot.catalog.sonarr import SonarrClient
from mediabot.core.errors import CircuitOpenError, ServiceHTTPError, TransientServiceError, ValidationError
from mediabot.core.retry import CircuitBreaker, CircuitState
from mediabot.media.types import GranularSelection, SeasonSelection
from tests.conftest import FakeClock, make_movie, make_series


class _Api:
    """In-memory *arr API: routes map `(method, path)` to a JSON body, a response, or a callable."""

    def __init__(self, routes: dict[tuple[str, str], Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)
        return httpx.Response(200, json=route)

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> list[Any]:
        return [json.loads(r.content) for r in self.sent(method, path)]


def _replies(*replies: tuple[int, Any]):
    """Answer with `(status, json)` pairs in order, repeating the last one."""
    pending = list(replies)

    def reply(request: httpx.Request) -> httpx.Response:
        status, body = pending.pop(0) if len(pending) > 1 else pending[0]
        return httpx.Response(status, json=body)

    return reply


def _radarr(api: _Api, breaker: CircuitBreaker | None = None) -> RadarrClient:
    return RadarrClient(
        ArrClientConfig(base_url="http://radarr.test", api_key="secret"),
        transport=httpx.MockTransport(api),
        breaker=breaker,
    )


def _sonarr(api: _Api) -> SonarrClient:
    return SonarrClient(ArrClientConfig(base_url="http://sonarr.test", api_key="secret"), transport=httpx.MockTransport(api))


DEFAULTS = {
    ("GET", "/api/v3/qualityprofile"): [{"id": 4, "name": "HD-1080p"}],
    ("GET", "/api/v3/rootfolder"): [
        {"path": "/offline", "accessible": False},
        {"path": "/media", "accessible": True},
    ],
}


def test_helpers() -> None:
    assert title_slug("Dune: Part Two!") == "dune-part-two"
    assert parse_rating({"value": 8.4}) == 8.4
    assert parse_rating({"imdb": {"value": 7.9}, "tmdb": {"value": 8.1}}) == 8.1
    assert parse_rating(None) is None


# =========================================================
# RADARR
# =========================================================

@pytest.mark.asyncio
async def test_radarr_search_maps_lookup_results() -> None:
    api = _Api({
        ("GET", "/api/v3/movie/lookup"): [
            {"title": "Heat", "year": 1995, "tmdbId": 949, "ratings": {"tmdb": {"value": 7.9}}, "genres": ["Crime"]},
            {"title": "No Id", "year": 2000},
        ],
    })

    results = await _radarr(api).search_new("heat")

    assert [(m.title, m.year, m.external_id, m.rating) for m in results] == [("Heat", 1995, 949, 7.9)]
    assert results[0].id is None
    request = api.requests[0]
    assert request.url.params["term"] == "heat"
    assert request.headers["X-Api-Key"] == "secret"


@pytest.mark.asyncio
async def test_radarr_library_filters_by_title() -> None:
    api = _Api({
        ("GET", "/api/v3/movie"): [
            {"id": 1, "title": "Alien", "year": 1979, "tmdbId": 348, "hasFile": True},
            {"id": 2, "title": "Heat", "year": 1995, "tmdbId": 949},
        ],
    })

    movies = await _radarr(api).list_library("ali")

    assert [(m.id, m.has_file) for m in movies] == [(1, True)]


@pytest.mark.asyncio
async def test_radarr_add_new_movie_uses_first_accessible_defaults() -> None:
    api = _Api({**DEFAULTS, ("POST", "/api/v3/movie"): {"id": 77}})

    result = await _radarr(api).add_and_monitor(make_movie("Heat", 1995, external_id=949))

    assert result.success
    body = api.bodies("POST", "/api/v3/movie")[0]
    assert body["tmdbId"] == 949
    assert body["qualityProfileId"] == 4
    assert body["rootFolderPath"] == "/media"
    assert body["titleSlug"] == "heat"
    assert body["monitored"] is True
    assert body["addOptions"] == {"searchForMovie": True}


@pytest.mark.asyncio
async def test_radarr_add_without_root_folder_fails_cleanly() -> None:
    api = _Api({("GET", "/api/v3/qualityprofile"): [{"id": 1}], ("GET", "/api/v3/rootfolder"): []})

    result = await _radarr(api).add_and_monitor(make_movie("Heat", 1995))

    assert not result.success
    assert "root folder" in result.error
    assert api.sent("POST", "/api/v3/movie") == []


@pytest.mark.asyncio
async def test_radarr_add_existing_movie_remonitors_and_searches() -> None:
    api = _Api({
        ("GET", "/api/v3/movie/5"): {"id": 5, "title": "Heat", "monitored": False},
        ("PUT", "/api/v3/movie/5"): {"id": 5},
        ("POST", "/api/v3/command"): {"id": 1},
    })

    result = await _radarr(api).add_and_monitor(make_movie("Heat", 1995, id=5))

    assert result.success
    assert result.warnings
    assert api.bodies("PUT", "/api/v3/movie/5")[0]["monitored"] is True
    assert api.bodies("POST", "/api/v3/command") == [{"name": "MoviesSearch", "movieIds": [5]}]


@pytest.mark.asyncio
async def test_radarr_delete_removes_files() -> None:
    api = _Api({("DELETE", "/api/v3/movie/5"): httpx.Response(200)})

    result = await _radarr(api).unmonitor_and_delete(make_movie("Heat", 1995, id=5))

    assert result.success
    assert api.requests[0].url.params["deleteFiles"] == "true"


@pytest.mark.asyncio
async def test_radarr_queue_keeps_active_records() -> None:
    api = _Api({
        ("GET", "/api/v3/queue"): {
            "records": [
                {"id": 1, "status": "Downloading", "size": 100, "sizeleft": 25, "timeleft": "00:10:00",
                 "movie": {"title": "Heat", "year": 1995}},
                {"id": 2, "status": "completed", "movie": {"title": "Alien"}},
                {"id": 3, "status": "queued", "title": "Some.Release.1080p"},
            ],
        },
    })

    downloads = await _radarr(api).list_active_downloads()

    assert [(d.title, d.status) for d in downloads] == [("Heat", "downloading"), ("Some.Release.1080p", "queued")]
    assert downloads[0].progress == 75.0


@pytest.mark.asyncio
async def test_unavailable_service_is_retried_then_reported(retry_sleeps: list[float]) -> None:
    api = _Api({("GET", "/api/v3/movie/lookup"): httpx.Response(503, headers={"Retry-After": "2"})})

    with pytest.raises(TransientServiceError) as info:
        await _radarr(api).search_new("heat")

    assert info.value.label == "radarr GET /api/v3/movie/lookup"
    cause = info.value.__cause__
    assert isinstance(cause, ServiceHTTPError)
    assert (cause.service, cause.status_code, cause.retry_after) == ("radarr", 503, 2)
    assert len(api.requests) == 3
    assert retry_sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_rejected_request_is_not_retried() -> None:
    api = _Api({("GET", "/api/v3/movie/lookup"): httpx.Response(400)})

    with pytest.raises(ValidationError):
        await _radarr(api).search_new("heat")

    assert len(api.requests) == 1


@pytest.mark.asyncio
async def test_open_breaker_skips_the_service_until_reset() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker("radarr", failure_threshold=2, reset_seconds=30, clock=clock)
    lookup = _replies(*[(503, {})] * 6, (200, [{"title": "Heat", "tmdbId": 949}]))
    api = _Api({("GET", "/api/v3/movie/lookup"): lookup})
    client = _radarr(api, breaker)

    for _ in range(2):
        with pytest.raises(TransientServiceError):
            await client.search_new("heat")
    assert breaker.state is CircuitState.OPEN

    with pytest.raises(CircuitOpenError):
        await client.search_new("heat")
    assert len(api.requests) == 6

    clock.advance(30)
    results = await client.search_new("heat")

    assert [m.title for m in results] == ["Heat"]
    assert breaker.state is CircuitState.CLOSED
    assert len(api.requests) == 7


# =========================================================
# SONARR
# =========================================================

EPISODES = [
    {"id": 101, "seasonNumber": 1, "episodeNumber": 1, "hasFile": True, "episodeFileId": 9001},
    {"id": 102, "seasonNumber": 1, "episodeNumber": 2, "hasFile": False, "episodeFileId": 0},
    {"id": 201, "seasonNumber": 2, "episodeNumber": 1, "hasFile": True, "episodeFileId": 9002},
    {"id": 202, "seasonNumber": 2, "episodeNumber": 2, "hasFile": True, "episodeFileId": 9003},
    {"id": 203, "seasonNumber": 2, "episodeNumber": 3, "hasFile": True, "episodeFileId": 9004},
]

MIXED_SELECTION = GranularSelection(selection=[
    SeasonSelection(season=1),
    SeasonSelection(season=2, episodes=[1, 3]),
])


@pytest.mark.asyncio
async def test_sonarr_search_reads_season_statistics() -> None:
    api = _Api({
        ("GET", "/api/v3/series/lookup"): [
            {
                "title": "Lost",
                "year": 2004,
                "tvdbId": 73739,
                "network": "ABC",
                "status": "ended",
                "ratings": {"value": 8.3},
                "seasons": [
                    {"seasonNumber": 0, "monitored": False},
                    {"seasonNumber": 1, "monitored": True, "statistics": {"totalEpisodeCount": 25, "episodeFileCount": 3}},
                ],
            },
        ],
    })

    [series] = await _sonarr(api).search_new("lost")

    assert series.external_id == 73739
    assert series.ended
    assert series.has_file
    assert series.season_numbers == {0, 1}
    assert series.seasons[1].episode_count == 25


@pytest.mark.asyncio
async def test_sonarr_add_new_series_with_mixed_selection() -> None:
    api = _Api({
        **DEFAULTS,
        ("POST", "/api/v3/series"): {"id": 50},
        ("POST", "/api/v3/command"): {"id": 1},
        ("GET", "/api/v3/episode"): EPISODES,
        ("PUT", "/api/v3/episode/monitor"): {},
    })
    series = make_series("Lost", 2004, seasons=(0, 1, 2), external_id=73739)

    result = await _sonarr(api).add_and_monitor(series, MIXED_SELECTION)

    assert result.success
    body = api.bodies("POST", "/api/v3/series")[0]
    assert body["tvdbId"] == 73739
    assert body["seasons"] == [
        {"seasonNumber": 0, "monitored": False},
        {"seasonNumber": 1, "monitored": True},
        {"seasonNumber": 2, "monitored": False},
    ]
    assert api.bodies("PUT", "/api/v3/episode/monitor") == [{"episodeIds": [201, 203], "monitored": True}]
    assert api.bodies("POST", "/api/v3/command") == [
        {"name": "SeasonSearch", "seriesId": 50, "seasonNumber": 1},
        {"name": "EpisodeSearch", "episodeIds": [201, 203]},
    ]


@pytest.mark.asyncio
async def test_sonarr_entire_series_on_existing_show() -> None:
    api = _Api({
        ("GET", "/api/v3/series/8"): {
            "id": 8,
            "monitored": False,
            "seasons": [{"seasonNumber": 0, "monitored": False}, {"seasonNumber": 1, "monitored": False}],
        },
        ("PUT", "/api/v3/series/8"): {"id": 8},
        ("POST", "/api/v3/command"): {"id": 1},
    })

    result = await _sonarr(api).add_and_monitor(make_series("Lost", 2004, id=8), GranularSelection())

    assert result.success
    updated = api.bodies("PUT", "/api/v3/series/8")[0]
    assert updated["monitored"] is True
    assert [s["monitored"] for s in updated["seasons"]] == [False, True]
    assert api.bodies("POST", "/api/v3/command") == [{"name": "SeriesSearch", "seriesId": 8}]


@pytest.mark.asyncio
async def test_sonarr_partial_delete_unmonitors_and_removes_files() -> None:
    api = _Api({
        ("GET", "/api/v3/episode"): EPISODES,
        ("GET", "/api/v3/series/8"): {
            "id": 8,
            "seasons": [{"seasonNumber": 1, "monitored": True}, {"seasonNumber": 2, "monitored": True}],
        },
        ("PUT", "/api/v3/series/8"): {"id": 8},
        ("PUT", "/api/v3/episode/monitor"): {},
        ("DELETE", "/api/v3/episodefile/9001"): httpx.Response(200),
        ("DELETE", "/api/v3/episodefile/9002"): httpx.Response(200),
        ("DELETE", "/api/v3/episodefile/9004"): httpx.Response(200),
    })

    result = await _sonarr(api).unmonitor_and_delete(make_series("Lost", 2004, id=8), MIXED_SELECTION)

    assert result.success
    seasons = api.bodies("PUT", "/api/v3/series/8")[0]["seasons"]
    assert seasons == [{"seasonNumber": 1, "monitored": False}, {"seasonNumber": 2, "monitored": True}]
    assert api.bodies("PUT", "/api/v3/episode/monitor") == [
        {"episodeIds": [101, 102, 201, 203], "monitored": False},
    ]
    deleted = sorted(r.url.path for r in api.requests if r.method == "DELETE")
    assert deleted == ["/api/v3/episodefile/9001", "/api/v3/episodefile/9002", "/api/v3/episodefile/9004"]


@pytest.mark.asyncio
async def test_sonarr_delete_entire_series() -> None:
    api = _Api({("DELETE", "/api/v3/series/8"): httpx.Response(200)})

    result = await _sonarr(api).unmonitor_and_delete(make_series("Lost", 2004, id=8), GranularSelection())

    assert result.success
    assert api.requests[0].url.params["deleteFiles"] == "true"


@pytest.mark.asyncio
async def test_sonarr_delete_requires_library_item() -> None:
    result = await _sonarr(_Api({})).unmonitor_and_delete(make_series("Lost", 2004), GranularSelection())
    assert not result.success


@pytest.mark.asyncio
async def test_sonarr_queue_maps_episode_details() -> None:
    api = _Api({
        ("GET", "/api/v3/queue"): {
            "records": [
                {
                    "id": 4,
                    "status": "downloading",
                    "size": 200,
                    "sizeleft": 50,
                    "series": {"title": "Lost", "year": 2004},
                    "episode": {"seasonNumber": 1, "episodeNumber": 4, "title": "Walkabout"},
                },
            ],
        },
    })

    [item] = await _sonarr(api).list_active_downloads()

    assert (item.title, item.season_number, item.episode_number, item.episode_title) == ("Lost", 1, 4, "Walkabout")
    assert api.requests[0].url.params["includeEpisode"] == "true"


@pytest.mark.asyncio
async def test_sonarr_failed_search_command_does_not_add_series_twice(retry_sleeps: list[float]) -> None:
    api = _Api({
        **DEFAULTS,
        ("POST", "/api/v3/series"): _replies((201, {"id": 50}), (400, {"message": "already added"})),
        ("POST", "/api/v3/command"): _replies((503, {}), (201, {"id": 1})),
    })

    result = await _sonarr(api).add_and_monitor(make_series("Lost", 2004, external_id=73739), GranularSelection())

    assert result.success
    assert len(api.sent("POST", "/api/v3/series")) == 1
    assert api.bodies("POST", "/api/v3/command") == [{"name": "SeriesSearch", "seriesId": 50}] * 2
    assert retry_sleeps == [1.0]


@pytest.mark.asyncio
async def test_sonarr_add_is_not_replayed_after_server_error() -> None:
    api = _Api({**DEFAULTS, ("POST", "/api/v3/series"): httpx.Response(503)})

    with pytest.raises(TransientServiceError):
        await _sonarr(api).add_and_monitor(make_series("Lost", 2004, external_id=73739), GranularSelection())

    assert len(api.sent("POST", "/api/v3/series")) == 1


@pytest.mark.asyncio
async def test_sonarr_shared_episode_file_is_deleted_once() -> None:
    episodes = [
        {"id": 301, "seasonNumber": 3, "episodeNumber": 1, "hasFile": True, "episodeFileId": 9100},
        {"id": 302, "seasonNumber": 3, "episodeNumber": 2, "hasFile": True, "episodeFileId": 9100},
        {"id": 303, "seasonNumber": 3, "episodeNumber": 3, "hasFile": True, "episodeFileId": 9101},
    ]
    api = _Api({
        ("GET", "/api/v3/episode"): episodes,
        ("PUT", "/api/v3/episode/monitor"): {},
        ("DELETE", "/api/v3/episodefile/9100"): httpx.Response(200),
        ("DELETE", "/api/v3/episodefile/9101"): httpx.Response(200),
    })
    selection = GranularSelection(selection=[SeasonSelection(season=3, episodes=[1, 2, 3])])

    result = await _sonarr(api).unmonitor_and_delete(make_series("Lost", 2004, id=8), selection)

    assert result.success
    deleted = [r.url.path for r in api.requests if r.method == "DELETE"]
    assert deleted == ["/api/v3/episodefile/9100", "/api/v3/episodefile/9101"]
