"""Property-based tests for caller path normalization."""

from __future__ import annotations

import pytest

pytest.importorskip("hypothesis")
from hypothesis import given, settings  # type: ignore  # noqa: E402
from hypothesis import strategies as st

from services.lookup import normalize_path, path_key

_SEGMENT = st.from_regex(r"[A-Za-z0-9 ._$()-]{1,12}", fullmatch=True)
_SEPARATOR = st.sampled_from(("\\", "/"))
_DRIVE = st.sampled_from(("", "C:\\", "c:/", "D:\\", "\\", "/", "\\\\"))


@st.composite
def _paths(draw: st.DrawFn) -> str:
    segments = draw(st.lists(_SEGMENT, min_size=0, max_size=6))
    sep = draw(_SEPARATOR)
    trailing = draw(st.sampled_from(("", "\\", "/")))
    return draw(_DRIVE) + sep.join(segments) + trailing


@settings(max_examples=300, deadline=None, database=None)
@given(path=st.one_of(_paths(), st.text(alphabet="ab:/\\C ", max_size=20)))
def test_normalize_path_is_idempotent(path: str) -> None:
    once = normalize_path(path)
    assert normalize_path(once) == once


@settings(max_examples=300, deadline=None, database=None)
@given(path=_paths())
def test_normalized_path_has_no_drive_or_edge_separators(path: str) -> None:
    normalized = normalize_path(path)

    assert "/" not in normalized
    assert not normalized.startswith("\\")
    assert not normalized.endswith("\\")
    assert not (len(normalized) >= 3 and normalized[1] == ":" and normalized[2] == "\\")


@settings(max_examples=300, deadline=None, database=None)
@given(path=_paths())
def test_path_key_is_case_insensitive(path: str) -> None:
    assert path_key(path.upper()) == path_key(path.lower()) == path_key(path)
