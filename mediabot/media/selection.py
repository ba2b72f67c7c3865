"""Selection resolution: map a parsed selection reference onto one candidate.

Resolution rules:
    - `ordinal`: 1-based index. Out-of-range or non-numeric values fall back to the
      first candidate.
    - `year`: first candidate whose year equals the value. No match falls back to the
      first candidate.
    - `title` / `keyword`: case-insensitive substring match on the title (keyword also
      searches the overview). No match returns `None` so the caller re-prompts.
    - Unrecognized kinds fall back to the first candidate.

Auto-selection:
    Only ordinal and year references are specific enough to act on before the user
    has seen the candidate list (`is_explicit`). Title and keyword references from a
    first message always lead to a list.

Determinism:
    Pure functions. Candidate order decides every tie.
"""

from __future__ import annotations

import logging
from typing import Sequence, TypeVar

from mediabot.media.types import Candidate, SelectionKind, SelectionReference


logger = logging.getLogger(__name__)

C = TypeVar("C", bound=Candidate)


def _by_ordinal(value: str, candidates: Sequence[C]) -> C:
    try:
        index = int(value.strip()) - 1
    except ValueError:
        return candidates[0]
    if 0 <= index < len(candidates):
        return candidates[index]
    return candidates[0]


def _by_year(value: str, candidates: Sequence[C]) -> C:
    wanted = value.strip()
    for candidate in candidates:
        if candidate.year is not None and str(candidate.year) == wanted:
            return candidate
    return candidates[0]


def _by_text(value: str, candidates: Sequence[C], include_overview: bool) -> C | None:
    needle = value.strip().lower()
    if not needle:
        return None
    for candidate in candidates:
        if needle in candidate.title.lower():
            return candidate
        if include_overview and candidate.overview and needle in candidate.overview.lower():
            return candidate
    return None


def resolve_selection(ref: SelectionReference, candidates: Sequence[C]) -> C | None:
    """Resolve `ref` against `candidates`.

    Args:
        ref: Parsed selection reference.
        candidates: Ordered candidate list shown to the user.

    Returns:
        The chosen candidate, or `None` for an empty list or an unmatched
        title/keyword reference.
    """
    if not candidates:
        return None

    kind = ref.kind.strip().lower()

    if kind == SelectionKind.ORDINAL.value:
        return _by_ordinal(ref.value, candidates)
    if kind == SelectionKind.YEAR.value:
        return _by_year(ref.value, candidates)
    if kind == SelectionKind.TITLE.value:
        return _by_text(ref.value, candidates, include_overview=False)
    if kind == SelectionKind.KEYWORD.value:
        return _by_text(ref.value, candidates, include_overview=True)

    logger.debug("Unknown selection kind %r, defaulting to first candidate", ref.kind)
    return candidates[0]


EXPLICIT_KINDS = {SelectionKind.ORDINAL.value, SelectionKind.YEAR.value}


def is_explicit(ref: SelectionReference | None) -> bool:
    """True for references that may pick a candidate without showing the list first."""
    return ref is not None and ref.kind.strip().lower() in EXPLICIT_KINDS


def explicit_or_none(ref: SelectionReference | None) -> SelectionReference | None:
    return ref if is_explicit(ref) else None
