"""Shared HTTP plumbing for Radarr/Sonarr v3 API clients.

Architectural role:
    Owns the `httpx.AsyncClient`, API-key header, JSON decoding, and the default
    quality profile / root folder lookups both services need when adding items.

Failure model:
    Every request runs through the client's `CircuitBreaker` and the `catalog`
    retry policy, one request at a time. Reads, PUTs, DELETEs and commands are
    retried; POSTs that create resources run once, so a multi-step operation never
    replays a step that already succeeded. Non-2xx responses raise
    `ServiceHTTPError`, which the retry layer maps onto the `mediabot.core.errors`
    taxonomy (`ValidationError`, `TransientServiceError`, ...).
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, replace
from typing import Any

import httpx

from mediabot.core.errors import ErrorCategory, ServiceHTTPError, parse_retry_after
from mediabot.core.retry import CircuitBreaker, RetryPolicy, load_retry_policy


logger = logging.getLogger(__name__)

ACTIVE_QUEUE_STATUSES = {"downloading", "queued", "paused"}


@dataclass(frozen=True)
class ArrClientConfig:
    """Connection settings for one *arr service.

    Relevant environment variables:
        - `RADARR_URL`, `RADARR_API_KEY`
        - `SONARR_URL`, `SONARR_API_KEY`
        - `CATALOG_TIMEOUT_SECONDS`
    """

    base_url: str
    api_key: str
    timeout_seconds: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "15"))

    @classmethod
    def radarr_from_env(cls) -> "ArrClientConfig":
        return cls(
            base_url=os.getenv("RADARR_URL", "http://127.0.0.1:7878").rstrip("/"),
            api_key=os.getenv("RADARR_API_KEY", "").strip(),
        )

    @classmethod
    def sonarr_from_env(cls) -> "ArrClientConfig":
        return cls(
            base_url=os.getenv("SONARR_URL", "http://127.0.0.1:8989").rstrip("/"),
            api_key=os.getenv("SONARR_API_KEY", "").strip(),
        )


def title_slug(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def matches_query(title: str, query: str | None) -> bool:
    if not query or not query.strip():
        return True
    return query.strip().lower() in title.lower()


class ArrClient:
    """Base class for *arr API clients.

    Args:
        config: Service URL, API key, and timeout.
        service_name: Label used in errors and logs.
        transport: Optional `httpx` transport, used by tests.
        policy: Per-request retry policy. Defaults to the `catalog` policy.
        breaker: Circuit breaker for this service. Defaults to a fresh one.
    """

    def __init__(
        self,
        config: ArrClientConfig,
        service_name: str,
        transport: httpx.AsyncBaseTransport | None = None,
        policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self.config = config
        self.service_name = service_name
        self.policy = policy or load_retry_policy("catalog")
        self.breaker = breaker or CircuitBreaker(service_name)
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"X-Api-Key": config.api_key, "Accept": "application/json"},
            timeout=config.timeout_seconds,
            transport=transport,
        )
        self._quality_profile_id: int | None = None
        self._root_folder_path: str | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        retry: bool | None = None,
    ) -> Any:
        """Send one request through the breaker. `retry` defaults to every method but POST."""
        if retry is None:
            retry = method != "POST"
        policy = self.policy if retry else replace(self.policy, max_attempts=1)
        return await self.breaker.call(
            lambda: self._send(method, path, params, json_body),
            policy,
            f"{self.service_name} {method} {path}",
            ErrorCategory.MEDIA_API,
        )

    async def _send(self, method: str, path: str, params: dict[str, Any] | None, json_body: Any) -> Any:
        response = await self._client.request(method, path, params=params, json=json_body)
        if response.status_code >= 400:
            logger.warning(
                "%s %s %s -> HTTP %d",
                self.service_name,
                method,
                path,
                response.status_code,
            )
            raise ServiceHTTPError(
                self.service_name,
                response.status_code,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if not response.content:
            return None
        return response.json()

    async def _get_list(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        data = await self._request("GET", path, params=params)
        if isinstance(data, dict) and isinstance(data.get("records"), list):
            data = data["records"]
        return [item for item in data or [] if isinstance(item, dict)]

    async def _defaults(self) -> tuple[int, str] | None:
        """First quality profile and first accessible root folder, cached per client."""
        if self._quality_profile_id is None:
            profiles = await self._get_list("/api/v3/qualityprofile")
            if profiles:
                self._quality_profile_id = int(profiles[0]["id"])
        if self._root_folder_path is None:
            folders = await self._get_list("/api/v3/rootfolder")
            accessible = [f for f in folders if f.get("accessible", True)]
            if accessible:
                self._root_folder_path = accessible[0]["path"]
        if self._quality_profile_id is None or self._root_folder_path is None:
            return None
        return self._quality_profile_id, self._root_folder_path

    async def _command(self, body: dict[str, Any]) -> None:
        # Commands only queue searches, so repeating one is harmless.
        await self._request("POST", "/api/v3/command", json_body=body, retry=True)


# =========================================================
# PAYLOAD MAPPING
# =========================================================

def parse_rating(ratings: Any) -> float | None:
    """Sonarr reports `{"value": x}`; Radarr nests per source (`tmdb`, `imdb`)."""
    if not isinstance(ratings, dict):
        return None
    if isinstance(ratings.get("value"), (int, float)):
        return float(ratings["value"])
    for source in ("tmdb", "imdb", "trakt"):
        entry = ratings.get(source)
        if isinstance(entry, dict) and isinstance(entry.get("value"), (int, float)):
            return float(entry["value"])
    return None


def candidate_fields(item: dict[str, Any], external_key: str) -> dict[str, Any]:
    """Common `Candidate` fields from a Radarr/Sonarr resource."""
    year = item.get("year")
    return {
        "id": item.get("id") or None,
        "external_id": int(item.get(external_key) or 0),
        "title": item.get("title") or "Unknown",
        "year": year if isinstance(year, int) and year > 0 else None,
        "overview": item.get("overview"),
        "genres": [g for g in item.get("genres") or [] if isinstance(g, str)],
        "rating": parse_rating(item.get("ratings")),
        "status": item.get("status"),
        "monitored": bool(item.get("monitored", False)),
    }


def is_active_queue_item(record: dict[str, Any]) -> bool:
    return str(record.get("status", "")).lower() in ACTIVE_QUEUE_STATUSES
