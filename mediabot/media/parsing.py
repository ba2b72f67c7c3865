"""Typed parsing of structured model output and raw user text.

Every parser returns `Ok(value)` or `ParseError(reason)` and never raises. Model
output is treated as untrusted: JSON is located inside optional code fences, then
validated with pydantic schemas that mirror the prompt contracts in
`mediabot.prompting.prompts`.

Absent vs empty:
    `parse_granular_selection` distinguishes `Ok(None)` (the user did not say which
    seasons) from `Ok(GranularSelection(selection=[]))` (the entire series).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mediabot.media.types import (
    GranularSelection,
    ImageQuery,
    MediaKind,
    MediaRequest,
    MediaRequestType,
    SearchIntent,
    SeasonSelection,
    SelectionReference,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class ParseError:
    reason: str


ParseResult = Union[Ok[T], ParseError]


# =========================================================
# JSON EXTRACTION
# =========================================================

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _balanced_span(text: str, opener: str, closer: str) -> str | None:
    start = text.find(opener)
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def extract_json(text: str | None) -> ParseResult[Any]:
    """Locate and decode the first JSON value in model output.

    Accepts bare JSON, fenced blocks, and JSON embedded in prose. The literal
    `null` decodes to `Ok(None)`.
    """
    if text is None or not text.strip():
        return ParseError("empty output")

    body = text.strip()
    fenced = _FENCE_RE.search(body)
    if fenced:
        body = fenced.group(1).strip()

    try:
        return Ok(json.loads(body))
    except json.JSONDecodeError:
        pass

    spans = [
        span
        for span in (_balanced_span(body, "{", "}"), _balanced_span(body, "[", "]"))
        if span is not None
    ]
    # Prefer whichever structure starts first in the text.
    spans.sort(key=body.find)
    for span in spans:
        try:
            return Ok(json.loads(span))
        except json.JSONDecodeError:
            continue

    return ParseError("no JSON value found")


# =========================================================
# SCHEMAS FOR MODEL OUTPUT
# =========================================================

class _MediaRequestPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    media_type: MediaRequestType = Field(alias="mediaType")
    search_intent: SearchIntent = Field(alias="searchIntent")
    search_terms: str = Field(default="", alias="searchTerms")


class _SelectionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    selection_type: str = Field(alias="selectionType", min_length=1)
    value: str | int = Field(alias="value")


class _GranularPayload(BaseModel):
    selection: list[SeasonSelection] | None = None


class _MediaKindPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    media_type: str = Field(alias="mediaType")


# =========================================================
# PARSERS
# =========================================================

def parse_media_request(text: str | None) -> ParseResult[MediaRequest]:
    """Parse the media intent classification object."""
    extracted = extract_json(text)
    if isinstance(extracted, ParseError):
        return extracted
    try:
        payload = _MediaRequestPayload.model_validate(extracted.value)
    except ValidationError as exc:
        return ParseError(f"invalid media request: {exc.error_count()} error(s)")
    return Ok(MediaRequest(
        media_type=payload.media_type,
        search_intent=payload.search_intent,
        search_terms=payload.search_terms.strip(),
    ))


def parse_selection_reference(text: str | None) -> ParseResult[SelectionReference | None]:
    """Parse `{"selectionType": ..., "value": ...}`; `null` means no selection given."""
    extracted = extract_json(text)
    if isinstance(extracted, ParseError):
        return extracted
    if extracted.value is None:
        return Ok(None)
    if isinstance(extracted.value, dict) and extracted.value.get("selectionType") in (None, "", "none"):
        return Ok(None)
    try:
        payload = _SelectionPayload.model_validate(extracted.value)
    except ValidationError as exc:
        return ParseError(f"invalid selection: {exc.error_count()} error(s)")
    value = str(payload.value).strip()
    if not value:
        return ParseError("selection value is empty")
    return Ok(SelectionReference(kind=payload.selection_type.strip().lower(), value=value))


def parse_granular_selection(text: str | None) -> ParseResult[GranularSelection | None]:
    """Parse `{"selection": [...]}`.

    Returns:
        - `Ok(None)` for `null` or `{"selection": null}` (not specified).
        - `Ok(GranularSelection([]))` for `{"selection": []}` (entire series).
        - `ParseError` for anything off-schema.
    """
    extracted = extract_json(text)
    if isinstance(extracted, ParseError):
        return extracted
    if extracted.value is None:
        return Ok(None)
    if isinstance(extracted.value, list):
        candidate: Any = {"selection": extracted.value}
    else:
        candidate = extracted.value
    try:
        payload = _GranularPayload.model_validate(candidate)
    except ValidationError as exc:
        return ParseError(f"invalid granular selection: {exc.error_count()} error(s)")
    if payload.selection is None:
        return Ok(None)
    return Ok(GranularSelection(selection=_merge_seasons(payload.selection)))


def _merge_seasons(entries: list[SeasonSelection]) -> list[SeasonSelection]:
    """Collapse duplicate seasons; a whole-season entry wins over episode lists."""
    merged: dict[int, list[int] | None] = {}
    for entry in entries:
        if entry.season in merged:
            existing = merged[entry.season]
            if existing is None or entry.episodes is None:
                merged[entry.season] = None
            else:
                merged[entry.season] = sorted(set(existing) | set(entry.episodes))
        else:
            merged[entry.season] = sorted(set(entry.episodes)) if entry.episodes else None
    return [SeasonSelection(season=season, episodes=episodes) for season, episodes in sorted(merged.items())]


def parse_media_kind(text: str | None) -> ParseResult[MediaKind]:
    """Parse the movie-vs-series tie-break. Accepts JSON or a bare label."""
    if text is None or not text.strip():
        return ParseError("empty output")

    extracted = extract_json(text)
    label = text.strip()
    if isinstance(extracted, Ok) and isinstance(extracted.value, dict):
        try:
            label = _MediaKindPayload.model_validate(extracted.value).media_type
        except ValidationError:
            return ParseError("invalid media kind object")

    normalized = label.strip().strip('"').lower().replace("-", "_").replace(" ", "_")
    if normalized in ("movie", "movies", "film"):
        return Ok(MediaKind.MOVIE)
    if normalized in ("tv_show", "tv", "show", "shows", "series", "tv_shows"):
        return Ok(MediaKind.TV)
    return ParseError(f"unknown media kind {label!r}")


def parse_image_queries(text: str | None, limit: int = 3) -> ParseResult[list[ImageQuery]]:
    """Parse a JSON array of `{query, title}` objects, keeping at most `limit`."""
    extracted = extract_json(text)
    if isinstance(extracted, ParseError):
        return extracted
    if not isinstance(extracted.value, list):
        return ParseError("image queries must be a JSON array")
    try:
        queries = [ImageQuery.model_validate(item) for item in extracted.value]
    except ValidationError as exc:
        return ParseError(f"invalid image query: {exc.error_count()} error(s)")
    return Ok(queries[:limit])


def parse_topic_switch(text: str | None) -> bool:
    """True only when the model clearly answered SWITCH."""
    if not text:
        return False
    return text.strip().strip(".").upper().startswith("SWITCH")


# =========================================================
# SEARCH QUERY CLEANUP
# =========================================================

_DOWNLOAD_WORDS_RE = re.compile(
    r"\b(?:please|can you|could you|would you|i want to|i'd like to|i would like to|"
    r"download|add|get me|get|grab|fetch|find|search for|search|look for|request)\b",
    re.IGNORECASE,
)
_DELETE_WORDS_RE = re.compile(
    r"\b(?:please|can you|could you|would you|i want to|i'd like to|"
    r"delete|remove|get rid of|erase|unmonitor|drop)\b",
    re.IGNORECASE,
)
_FILLER_RE = re.compile(
    r"\b(?:the movie|the film|the show|the series|tv show|movie|film|show|series|"
    r"from (?:the|my) library|from plex|for me|to (?:the|my) library)\b",
    re.IGNORECASE,
)
_QUOTES = "\"'“”‘’`"


def strip_quotes(text: str) -> str:
    return text.strip().strip(_QUOTES).strip()


def fallback_search_query(message: str, delete: bool = False) -> str:
    """Derive a search query from raw text when the model cannot.

    Strips request verbs (download/add/get/find, or delete/remove for deletes),
    media filler words, punctuation, and surrounding quotes.
    """
    verbs = _DELETE_WORDS_RE if delete else _DOWNLOAD_WORDS_RE
    cleaned = verbs.sub(" ", message)
    cleaned = _FILLER_RE.sub(" ", cleaned)
    cleaned = re.sub(r"[?!.,]+", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return strip_quotes(cleaned)


def clean_search_query(text: str | None) -> str:
    """Normalize a model-extracted query. `NONE`/`null`/empty collapse to ``""``."""
    if not text:
        return ""
    line = text.strip().splitlines()[0] if text.strip() else ""
    line = strip_quotes(line)
    if line.lower() in ("none", "null", "n/a", ""):
        return ""
    return line
