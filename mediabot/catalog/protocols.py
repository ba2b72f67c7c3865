"""Contracts the media strategies require from movie and TV catalogs.

Any object with these coroutines can be injected into `MediaServices`; tests use
in-memory fakes and production wires the Radarr/Sonarr clients.
"""

from __future__ import annotations

from typing import Protocol

from mediabot.media.types import DownloadStatus, GranularSelection, Movie, OperationResult, Series


class MovieCatalog(Protocol):
    async def search_new(self, query: str) -> list[Movie]:
        ...

    async def list_library(self, query: str | None = None) -> list[Movie]:
        ...

    async def add_and_monitor(self, movie: Movie) -> OperationResult:
        ...

    async def unmonitor_and_delete(self, movie: Movie, delete_files: bool = True) -> OperationResult:
        ...

    async def list_active_downloads(self) -> list[DownloadStatus]:
        ...


class TvCatalog(Protocol):
    async def search_new(self, query: str) -> list[Series]:
        ...

    async def list_library(self, query: str | None = None) -> list[Series]:
        ...

    async def add_and_monitor(self, series: Series, selection: GranularSelection) -> OperationResult:
        ...

    async def unmonitor_and_delete(
        self,
        series: Series,
        selection: GranularSelection,
        delete_files: bool = True,
    ) -> OperationResult:
        ...

    async def list_active_downloads(self) -> list[DownloadStatus]:
        ...
