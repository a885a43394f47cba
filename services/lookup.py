"""Lookup and aggregation over an index reader.

Two lookup styles are offered:

- resolve-style (``lookup_*``): fetch up to ``limit`` matching documents and
  aggregate their stored values into ``field -> {distinct values}``. Name
  lookups also report ``KnownName`` and, when a path is given, ``KnownPath``.
- existence-style (``known_*``): two bounded (limit 1) queries answering only
  ``KnownName`` and ``KnownPath``.

All values are matched case-insensitively on the whole value. Caller supplied
paths are normalized with :func:`normalize_path` first: ``/`` becomes ``\\``,
leading separators and a drive prefix are removed, so ``C:/Windows/System32``
and ``\\windows\\system32`` address the same directory.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from contracts.errors import RequestValidationError
from contracts.schema import FIELD_DIRECTORY_NAME, FIELD_MD5, FIELD_NAME, FIELD_SHA256
from pipeline.index_store import IndexReader, NamedDocument
from pipeline.query import all_of, phrase

logger = logging.getLogger(__name__)

QUERY_LIMIT = 1000

KNOWN_NAME = "KnownName"
KNOWN_PATH = "KnownPath"

HASH_FIELDS_BY_LENGTH = {32: FIELD_MD5, 64: FIELD_SHA256}

_DRIVE_RE = re.compile(r"^[a-z]:\\", re.IGNORECASE)


# -----------------------------
# Paths
# -----------------------------


def normalize_path(path: str) -> str:
    """Canonical form of a Windows path as stored in the index.

    Separators become ``\\``, leading/trailing separators and a ``X:\\`` drive
    prefix are removed. Applying it twice gives the same result as once.
    """
    current = path.replace("/", "\\")
    while True:
        stripped = _DRIVE_RE.sub("", current.lstrip("\\"), count=1).rstrip("\\")
        if stripped == current:
            return current
        current = stripped


def path_key(path: str) -> str:
    """Comparison key of a path: normalized and case-folded like indexed terms."""
    return normalize_path(path).casefold()


def split_full_path(value: str) -> tuple[str, str]:
    """Split a full path into ``(file name, parent directory)``.

    A file at the drive root (``C:\\pagefile.sys``, ``\\pagefile.sys``) has
    the empty parent, which is how root directories are stored.

    Raises:
        RequestValidationError: if the path has no file name, or is a bare
            name without any directory part.
    """
    separated = value.replace("/", "\\")
    rooted = separated.startswith("\\") or bool(_DRIVE_RE.match(separated))
    normalized = normalize_path(value)
    parent, sep, name = normalized.rpartition("\\")
    if not name:
        raise RequestValidationError(f"Could not get file_name from {value}")
    if not sep and not rooted:
        raise RequestValidationError(f"Could not get parent from {value}")
    return name, parent


# -----------------------------
# Aggregation
# -----------------------------


@dataclass
class AggregationResult:
    values: dict[str, set[str]] = field(default_factory=dict)
    known_name: bool | None = None
    known_path: bool | None = None
    include_flags: bool = True

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {k: sorted(v) for k, v in sorted(self.values.items())}
        if self.include_flags:
            out[KNOWN_NAME] = self.known_name
            out[KNOWN_PATH] = self.known_path
        return out


def aggregate(hits: Sequence[NamedDocument]) -> AggregationResult:
    """Merge hits into ``field -> {values}``.

    The first hit fixes the set of fields: later hits only add values to
    fields the first hit already has.
    """
    result = AggregationResult()
    if not hits:
        result.known_name = False
        return result

    first, rest = hits[0], hits[1:]
    result.values = {name: {values[0]} for name, values in first.items() if values}
    for hit in rest:
        for name, values in hit.items():
            bucket = result.values.get(name)
            if bucket is not None and values:
                bucket.add(values[0])
    result.known_name = True
    return result


def query_by_field(
    reader: IndexReader, field_name: str, value: str, limit: int = QUERY_LIMIT
) -> list[NamedDocument]:
    """Stored documents whose *field_name* equals *value*, ignoring case."""
    return reader.get_query_hits(phrase(field_name, value.casefold()), limit)


# -----------------------------
# Service
# -----------------------------


class LookupService:
    """Lookups against one index reader (shared, thread-safe)."""

    def __init__(self, reader: IndexReader, *, limit: int = QUERY_LIMIT) -> None:
        self.reader = reader
        self.limit = limit

    def lookup_hash(self, value: str) -> AggregationResult:
        field_name = HASH_FIELDS_BY_LENGTH.get(len(value))
        if field_name is None:
            raise RequestValidationError(f"Unhandled hash type with length: {len(value)}")
        result = aggregate(query_by_field(self.reader, field_name, value, self.limit))
        result.include_flags = False
        return result

    def lookup_name(self, value: str, path: str | None = None) -> AggregationResult:
        result = aggregate(query_by_field(self.reader, FIELD_NAME, value, self.limit))
        if path is not None:
            directories = result.values.get(FIELD_DIRECTORY_NAME)
            if directories is not None:
                result.known_path = path_key(path) in {d.casefold() for d in directories}
        logger.debug("lookup_name %r path=%r -> known_name=%s", value, path, result.known_name)
        return result

    def lookup_fullname(self, value: str) -> AggregationResult:
        name, parent = split_full_path(value)
        return self.lookup_name(name, parent)

    def known_name(self, value: str, path: str | None = None) -> AggregationResult:
        name_query = phrase(FIELD_NAME, value.casefold())
        result = AggregationResult(known_name=bool(self.reader.search(name_query, 1)))
        if path is not None:
            both = all_of(name_query, phrase(FIELD_DIRECTORY_NAME, path_key(path)))
            result.known_path = bool(self.reader.search(both, 1))
        return result

    def known_fullname(self, value: str) -> AggregationResult:
        name, parent = split_full_path(value)
        return self.known_name(name, parent)
