from __future__ import annotations

import pytest

from mediabot.media.selection import resolve_selection
from mediabot.media.types import SelectionReference
from tests.conftest import make_movie


CANDIDATES = [
    make_movie("The Matrix", 1999, overview="A hacker learns the truth about reality."),
    make_movie("The Matrix Reloaded", 2003, overview="Neo fights an army of agents."),
    make_movie("The Matrix Revolutions", 2003),
]


def _ref(kind: str, value: str) -> SelectionReference:
    return SelectionReference(kind=kind, value=value)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1", 0), ("2", 1), ("3", 2), ("99", 0), ("0", 0), ("second", 0)],
)
def test_ordinal(value: str, expected: int) -> None:
    assert resolve_selection(_ref("ordinal", value), CANDIDATES) is CANDIDATES[expected]


def test_year_picks_first_match_and_falls_back() -> None:
    assert resolve_selection(_ref("year", "2003"), CANDIDATES) is CANDIDATES[1]
    assert resolve_selection(_ref("year", "1999"), CANDIDATES) is CANDIDATES[0]
    assert resolve_selection(_ref("year", "1850"), CANDIDATES) is CANDIDATES[0]


def test_title_is_case_insensitive_substring() -> None:
    assert resolve_selection(_ref("title", "revolutions"), CANDIDATES) is CANDIDATES[2]
    assert resolve_selection(_ref("title", "Inception"), CANDIDATES) is None


def test_keyword_searches_overview() -> None:
    assert resolve_selection(_ref("keyword", "army"), CANDIDATES) is CANDIDATES[1]
    assert resolve_selection(_ref("keyword", "dinosaurs"), CANDIDATES) is None


def test_unknown_kind_defaults_to_first() -> None:
    assert resolve_selection(_ref("vibes", "the cool one"), CANDIDATES) is CANDIDATES[0]


def test_empty_candidates() -> None:
    assert resolve_selection(_ref("ordinal", "1"), []) is None
