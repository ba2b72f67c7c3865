"""Intent routing signals for the dialogue graph and the media handler.

Intent classification logic:
- `parse_response_type` maps the classifier's one-word answer onto `ResponseType`.
- `is_download_status_request` detects queue questions by keyword so they bypass
  model-driven routing.
- `is_download_request` / `is_delete_request` split media intents into
  download, delete, and (by elimination) browse.

Determinism:
- Pure functions over text and parsed `MediaRequest` objects.

Failure handling:
- Unrecognized categories return `ParseError`; the engine turns that into an
  `UnhandledMessageResponseError` for the turn.
"""

import re

from mediabot.core.routing_types import ResponseType
from mediabot.media.parsing import Ok, ParseError, ParseResult
from mediabot.media.types import MediaRequest, SearchIntent


# =========================================================
# KEYWORDS
# =========================================================

DOWNLOAD_STATUS_KEYWORDS = [
    "download status",
    "downloading",
    "current download",
    "any download",
    "what's download",
    "downloads",
    "download progress",
    "active download",
]

DOWNLOAD_KEYWORDS = [
    "download",
    "add",
    "get me",
    "grab",
    "fetch",
]


def parse_response_type(text: str | None) -> ParseResult[ResponseType]:
    """Parse the classifier output into a `ResponseType`.

    Accepts surrounding whitespace, quotes, punctuation, and case differences, and
    takes the first word when the model adds an explanation.
    """
    if not text or not text.strip():
        return ParseError("empty response type")

    first = text.strip().split()[0]
    token = first.strip("\"'`.,:;!").lower()

    for response_type in ResponseType:
        if token == response_type.value:
            return Ok(response_type)
    return ParseError(f"unknown response type {first!r}")


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}", text) is not None


def is_download_status_request(message: str) -> bool:
    lowered = message.lower().replace("’", "'")
    return any(keyword in lowered for keyword in DOWNLOAD_STATUS_KEYWORDS)


def is_download_request(request: MediaRequest, message: str) -> bool:
    """External or mixed intent plus an explicit acquisition verb."""
    if request.search_intent not in (SearchIntent.EXTERNAL, SearchIntent.BOTH):
        return False
    lowered = message.lower()
    return any(_contains_phrase(lowered, keyword) for keyword in DOWNLOAD_KEYWORDS)


def is_delete_request(request: MediaRequest) -> bool:
    return request.search_intent is SearchIntent.DELETE
