"""Presentation helpers for candidate lists, grounding data, and download queues."""

from __future__ import annotations

import json
import re
from typing import Any, Sequence

from mediabot.media.types import Candidate, DownloadStatus, MediaKind, Movie, Series


_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size_bytes: float | None) -> str:
    """Human-readable size with a 1024 base, e.g. `1.5 GB`."""
    if not size_bytes or size_bytes <= 0:
        return "0 B"
    size = float(size_bytes)
    unit = 0
    while size >= 1024 and unit < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    if unit == 0:
        return f"{int(size)} B"
    return f"{size:.1f} {_SIZE_UNITS[unit]}"


_TIME_LEFT_RE = re.compile(r"^(?:(\d+)\.)?(\d{1,2}):(\d{2}):(\d{2})")


def format_time_remaining(time_left: str | None) -> str:
    """Convert a queue `timeleft` value (`[d.]HH:MM:SS`) into `Xh Ym` / `Xm` / `Soon`."""
    if not time_left:
        return "Soon"
    match = _TIME_LEFT_RE.match(time_left.strip())
    if not match:
        return "Soon"
    days, hours, minutes, _ = (int(part) if part else 0 for part in match.groups())
    hours += days * 24
    if hours == 0 and minutes == 0:
        return "Soon"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_candidate_line(index: int, candidate: Candidate) -> str:
    line = f"{index}. **{candidate.title}**"
    if candidate.year:
        line += f" ({candidate.year})"
    if isinstance(candidate, Series) and candidate.seasons:
        count = len([s for s in candidate.seasons if s.season_number > 0])
        line += f" · {count} season{'s' if count != 1 else ''}"
    if candidate.id is not None:
        line += " · in library"
    return line


def format_candidate_list(candidates: Sequence[Candidate]) -> str:
    return "\n".join(format_candidate_line(i, c) for i, c in enumerate(candidates, start=1))


def media_to_dict(candidate: Candidate) -> dict[str, Any]:
    """Compact grounding record for prompts."""
    record: dict[str, Any] = {
        "title": candidate.title,
        "year": candidate.year,
        "hasFile": candidate.has_file,
        "genres": candidate.genres[:5],
        "rating": candidate.rating,
        "overview": (candidate.overview or "")[:300],
        "status": candidate.status,
        "monitored": candidate.monitored,
        "id": candidate.id,
    }
    if isinstance(candidate, Movie):
        record["tmdbId"] = candidate.external_id
    else:
        record["tvdbId"] = candidate.external_id
    if isinstance(candidate, Series):
        record["network"] = candidate.network
        record["seasons"] = [s.season_number for s in candidate.seasons if s.season_number > 0]
    return {key: value for key, value in record.items() if value not in (None, "", [])}


def format_media_as_json(candidates: Sequence[Candidate]) -> str:
    return json.dumps([media_to_dict(c) for c in candidates], ensure_ascii=False)


def download_to_dict(item: DownloadStatus) -> dict[str, Any]:
    record: dict[str, Any] = {
        "type": "movie" if item.media_kind is MediaKind.MOVIE else "episode",
        "title": item.title,
        "year": item.year,
        "status": item.status,
        "progress": f"{item.progress}%",
        "size": format_file_size(item.size),
        "remaining": format_file_size(item.size_left),
        "timeLeft": format_time_remaining(item.time_left),
    }
    if item.season_number is not None:
        record["season"] = item.season_number
    if item.episode_number is not None:
        record["episode"] = item.episode_number
    if item.episode_title:
        record["episodeTitle"] = item.episode_title
    if item.error_message:
        record["error"] = item.error_message
    return {key: value for key, value in record.items() if value is not None}


def format_downloads_as_json(movies: Sequence[DownloadStatus], episodes: Sequence[DownloadStatus]) -> str:
    return json.dumps(
        {
            "movies": [download_to_dict(item) for item in movies],
            "episodes": [download_to_dict(item) for item in episodes],
            "totals": {"movies": len(movies), "episodes": len(episodes)},
        },
        ensure_ascii=False,
    )
