"""Sonarr v3 client implementing `TvCatalog`.

Granular selections map onto Sonarr monitoring as follows:
    - entire series: every regular season monitored, series search.
    - whole seasons: only those seasons monitored, one season search each.
    - episode lists: the episodes monitored individually, one episode search.

Deletes mirror this: the entire series removes the series, while seasons or
episodes are unmonitored and their episode files deleted.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mediabot.catalog.base import (
    ArrClient,
    ArrClientConfig,
    candidate_fields,
    is_active_queue_item,
    matches_query,
    title_slug,
)
from mediabot.core.retry import CircuitBreaker
from mediabot.media.types import (
    DownloadStatus,
    GranularSelection,
    MediaKind,
    OperationResult,
    SeasonInfo,
    Series,
)


logger = logging.getLogger(__name__)


def _to_series(item: dict[str, Any]) -> Series:
    seasons = []
    has_file = False
    for season in item.get("seasons") or []:
        stats = season.get("statistics") or {}
        file_count = stats.get("episodeFileCount")
        has_file = has_file or bool(file_count)
        seasons.append(SeasonInfo(
            season_number=int(season.get("seasonNumber", 0)),
            monitored=bool(season.get("monitored", False)),
            episode_count=stats.get("totalEpisodeCount") or stats.get("episodeCount"),
            episode_file_count=file_count,
        ))
    return Series(
        **candidate_fields(item, "tvdbId"),
        has_file=has_file,
        network=item.get("network"),
        ended=bool(item.get("ended", str(item.get("status", "")).lower() == "ended")),
        title_slug=item.get("titleSlug"),
        seasons=seasons,
    )


def _to_download(record: dict[str, Any]) -> DownloadStatus:
    series = record.get("series") or {}
    episode = record.get("episode") or {}
    return DownloadStatus(
        id=int(record.get("id", 0)),
        media_kind=MediaKind.TV,
        title=series.get("title") or record.get("title") or "Unknown",
        year=series.get("year") or None,
        status=str(record.get("status", "unknown")).lower(),
        size=float(record.get("size") or 0),
        size_left=float(record.get("sizeleft") or 0),
        time_left=record.get("timeleft"),
        season_number=episode.get("seasonNumber", record.get("seasonNumber")),
        episode_number=episode.get("episodeNumber"),
        episode_title=episode.get("title"),
        download_client=record.get("downloadClient"),
        error_message=record.get("errorMessage"),
    )


def _whole_seasons(selection: GranularSelection) -> set[int]:
    return {entry.season for entry in selection.selection if not entry.episodes}


def _selected_episode_ids(selection: GranularSelection, episodes: list[dict[str, Any]]) -> list[int]:
    """Episode ids covered by `selection`, whole seasons included."""
    wanted: dict[int, set[int] | None] = {
        entry.season: set(entry.episodes) if entry.episodes else None
        for entry in selection.selection
    }
    ids = []
    for episode in episodes:
        season = episode.get("seasonNumber")
        if season not in wanted:
            continue
        numbers = wanted[season]
        if numbers is None or episode.get("episodeNumber") in numbers:
            ids.append(int(episode["id"]))
    return ids


class SonarrClient(ArrClient):
    def __init__(
        self,
        config: ArrClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(config or ArrClientConfig.sonarr_from_env(), "sonarr", transport, breaker=breaker)

    async def search_new(self, query: str) -> list[Series]:
        items = await self._get_list("/api/v3/series/lookup", params={"term": query})
        return [_to_series(item) for item in items if item.get("tvdbId")]

    async def list_library(self, query: str | None = None) -> list[Series]:
        items = await self._get_list("/api/v3/series")
        shows = [_to_series(item) for item in items]
        return [show for show in shows if matches_query(show.title, query)]

    async def _episodes(self, series_id: int) -> list[dict[str, Any]]:
        return await self._get_list("/api/v3/episode", params={"seriesId": series_id})

    # ===== ADD =====

    async def add_and_monitor(self, series: Series, selection: GranularSelection) -> OperationResult:
        """Add or update `series` so that exactly the selected content is monitored and searched."""
        if series.id is None:
            series_id = await self._add_series(series, selection)
            if series_id is None:
                return OperationResult(success=False, error="No quality profile or root folder configured in Sonarr")
        else:
            series_id = series.id
            await self._monitor_seasons(series_id, selection)

        await self._search(series_id, selection)
        logger.info("Monitoring %s (%s)", series.title, selection.describe())
        return OperationResult(success=True)

    async def _add_series(self, series: Series, selection: GranularSelection) -> int | None:
        defaults = await self._defaults()
        if defaults is None:
            return None
        quality_profile_id, root_folder = defaults

        whole = _whole_seasons(selection)
        seasons = [
            {
                "seasonNumber": season.season_number,
                "monitored": (
                    season.season_number > 0
                    if selection.is_entire_series
                    else season.season_number in whole
                ),
            }
            for season in series.seasons
        ]
        body = {
            "title": series.title,
            "tvdbId": series.external_id,
            "year": series.year or 0,
            "titleSlug": series.title_slug or title_slug(series.title),
            "qualityProfileId": quality_profile_id,
            "rootFolderPath": root_folder,
            "monitored": True,
            "seasonFolder": True,
            "seasons": seasons,
            "addOptions": {"searchForMissingEpisodes": False},
        }
        created = await self._request("POST", "/api/v3/series", json_body=body)
        return int(created["id"])

    async def _monitor_seasons(self, series_id: int, selection: GranularSelection) -> None:
        resource = await self._request("GET", f"/api/v3/series/{series_id}")
        whole = _whole_seasons(selection)
        resource["monitored"] = True
        for season in resource.get("seasons") or []:
            number = season.get("seasonNumber", 0)
            if selection.is_entire_series and number > 0:
                season["monitored"] = True
            elif number in whole:
                season["monitored"] = True
        await self._request("PUT", f"/api/v3/series/{series_id}", json_body=resource)

    async def _search(self, series_id: int, selection: GranularSelection) -> None:
        if selection.is_entire_series:
            await self._command({"name": "SeriesSearch", "seriesId": series_id})
            return

        for season in sorted(_whole_seasons(selection)):
            await self._command({"name": "SeasonSearch", "seriesId": series_id, "seasonNumber": season})

        partial = GranularSelection(selection=[entry for entry in selection.selection if entry.episodes])
        if partial.selection:
            episode_ids = _selected_episode_ids(partial, await self._episodes(series_id))
            if episode_ids:
                await self._request(
                    "PUT",
                    "/api/v3/episode/monitor",
                    json_body={"episodeIds": episode_ids, "monitored": True},
                )
                await self._command({"name": "EpisodeSearch", "episodeIds": episode_ids})

    # ===== DELETE =====

    async def unmonitor_and_delete(
        self,
        series: Series,
        selection: GranularSelection,
        delete_files: bool = True,
    ) -> OperationResult:
        if series.id is None:
            return OperationResult(success=False, error=f"{series.title} is not in the library")

        if selection.is_entire_series:
            await self._request(
                "DELETE",
                f"/api/v3/series/{series.id}",
                params={"deleteFiles": str(delete_files).lower(), "addImportListExclusion": "false"},
            )
            logger.info("Deleted series %s (id %s)", series.title, series.id)
            return OperationResult(success=True)

        episodes = await self._episodes(series.id)
        episode_ids = set(_selected_episode_ids(selection, episodes))
        if not episode_ids:
            return OperationResult(success=False, error=f"No matching episodes found for {selection.describe()}")

        whole = _whole_seasons(selection)
        if whole:
            resource = await self._request("GET", f"/api/v3/series/{series.id}")
            for season in resource.get("seasons") or []:
                if season.get("seasonNumber") in whole:
                    season["monitored"] = False
            await self._request("PUT", f"/api/v3/series/{series.id}", json_body=resource)

        await self._request(
            "PUT",
            "/api/v3/episode/monitor",
            json_body={"episodeIds": sorted(episode_ids), "monitored": False},
        )

        warnings = []
        if delete_files:
            # Multi-episode files are shared by several episodes.
            file_ids = sorted({
                int(episode["episodeFileId"])
                for episode in episodes
                if int(episode["id"]) in episode_ids and episode.get("hasFile") and episode.get("episodeFileId")
            })
            for file_id in file_ids:
                await self._request("DELETE", f"/api/v3/episodefile/{file_id}")
        else:
            warnings.append("Episode files were kept on disk")

        logger.info("Unmonitored %s of %s", selection.describe(), series.title)
        return OperationResult(success=True, warnings=warnings)

    async def list_active_downloads(self) -> list[DownloadStatus]:
        records = await self._get_list(
            "/api/v3/queue",
            params={"pageSize": 100, "includeSeries": "true", "includeEpisode": "true"},
        )
        return [_to_download(record) for record in records if is_active_queue_item(record)]
