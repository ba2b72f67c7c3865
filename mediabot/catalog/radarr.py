"""Radarr v3 client implementing `MovieCatalog`."""

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
from mediabot.media.types import DownloadStatus, MediaKind, Movie, OperationResult


logger = logging.getLogger(__name__)


def _to_movie(item: dict[str, Any]) -> Movie:
    return Movie(
        **candidate_fields(item, "tmdbId"),
        has_file=bool(item.get("hasFile", False)),
        runtime=item.get("runtime") or None,
        title_slug=item.get("titleSlug"),
    )


def _to_download(record: dict[str, Any]) -> DownloadStatus:
    movie = record.get("movie") or {}
    return DownloadStatus(
        id=int(record.get("id", 0)),
        media_kind=MediaKind.MOVIE,
        title=movie.get("title") or record.get("title") or "Unknown",
        year=movie.get("year") or None,
        status=str(record.get("status", "unknown")).lower(),
        size=float(record.get("size") or 0),
        size_left=float(record.get("sizeleft") or 0),
        time_left=record.get("timeleft"),
        download_client=record.get("downloadClient"),
        error_message=record.get("errorMessage"),
    )


class RadarrClient(ArrClient):
    def __init__(
        self,
        config: ArrClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(config or ArrClientConfig.radarr_from_env(), "radarr", transport, breaker=breaker)

    async def search_new(self, query: str) -> list[Movie]:
        items = await self._get_list("/api/v3/movie/lookup", params={"term": query})
        return [_to_movie(item) for item in items if item.get("tmdbId")]

    async def list_library(self, query: str | None = None) -> list[Movie]:
        items = await self._get_list("/api/v3/movie")
        movies = [_to_movie(item) for item in items]
        return [movie for movie in movies if matches_query(movie.title, query)]

    async def add_and_monitor(self, movie: Movie) -> OperationResult:
        """Add `movie` with monitoring and an immediate search.

        A movie already in the library is re-monitored and searched instead.
        """
        if movie.id is not None:
            resource = await self._request("GET", f"/api/v3/movie/{movie.id}")
            resource["monitored"] = True
            await self._request("PUT", f"/api/v3/movie/{movie.id}", json_body=resource)
            await self._command({"name": "MoviesSearch", "movieIds": [movie.id]})
            return OperationResult(success=True, warnings=["Movie was already in the library"])

        defaults = await self._defaults()
        if defaults is None:
            return OperationResult(success=False, error="No quality profile or root folder configured in Radarr")
        quality_profile_id, root_folder = defaults

        body = {
            "title": movie.title,
            "tmdbId": movie.external_id,
            "year": movie.year or 0,
            "titleSlug": movie.title_slug or title_slug(movie.title),
            "qualityProfileId": quality_profile_id,
            "rootFolderPath": root_folder,
            "monitored": True,
            "minimumAvailability": "released",
            "addOptions": {"searchForMovie": True},
        }
        await self._request("POST", "/api/v3/movie", json_body=body)
        logger.info("Added movie %s (tmdb %s)", movie.title, movie.external_id)
        return OperationResult(success=True)

    async def unmonitor_and_delete(self, movie: Movie, delete_files: bool = True) -> OperationResult:
        if movie.id is None:
            return OperationResult(success=False, error=f"{movie.title} is not in the library")

        await self._request(
            "DELETE",
            f"/api/v3/movie/{movie.id}",
            params={"deleteFiles": str(delete_files).lower(), "addImportExclusion": "false"},
        )
        logger.info("Deleted movie %s (id %s, files=%s)", movie.title, movie.id, delete_files)
        return OperationResult(success=True)

    async def list_active_downloads(self) -> list[DownloadStatus]:
        records = await self._get_list("/api/v3/queue", params={"pageSize": 100, "includeMovie": "true"})
        return [_to_download(record) for record in records if is_active_queue_item(record)]
