"""Typed field registry for the lookup index.

The index schema is derived from the corpus at build time (see
:mod:`pipeline.schema_infer`), so field names are only known at runtime. This
module keeps that dynamic shape behind a small value object: every field has a
name and one of a closed set of kinds, and documents are validated against it
when they are constructed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import pyarrow as pa

from contracts.errors import SchemaError

# -----------------------------
# Well-known field names
# -----------------------------

FIELD_OS_NAME = "OsName"
FIELD_OS_VERSION = "OsVersion"
FIELD_DIRECTORY_NAME = "DirectoryName"
FIELD_FULL_NAME = "FullName"
FIELD_NAME = "Name"
FIELD_MD5 = "MD5"
FIELD_SHA256 = "SHA256"

# Searchable by whole-value, case-insensitive equality.
EXACT_MATCH_FIELDS: frozenset[str] = frozenset(
    {FIELD_DIRECTORY_NAME, FIELD_NAME, FIELD_MD5, FIELD_SHA256}
)

# Never copied from a CSV row into a record.
RECORD_DENYLIST: frozenset[str] = frozenset({"LastAccessTimeUtc", "LastWriteTimeUtc", "Sddl"})

# Never part of the index schema.
SCHEMA_DENYLIST: frozenset[str] = frozenset({"Attributes", "Sddl"}) | RECORD_DENYLIST

# Fields holding a Windows path that starts with a drive letter ("C:\...").
DRIVE_PREFIXED_FIELDS: frozenset[str] = frozenset({FIELD_DIRECTORY_NAME, FIELD_FULL_NAME})

DEFAULT_TOKENIZER = "rawlower"

# Reserved for the storage engine (document id column).
_RESERVED_PREFIX = "__"


class FieldKind(str, Enum):
    """Closed set of field kinds understood by the index engine."""

    EXACT = "exact"  # tokenized with the exact-match tokenizer, stored
    STORED = "stored"  # opaque, stored only


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    tokenizer: str | None = None

    @property
    def indexed(self) -> bool:
        return self.kind is FieldKind.EXACT

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "kind": self.kind.value, "tokenizer": self.tokenizer}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> FieldSpec:
        try:
            kind = FieldKind(str(payload.get("kind") or ""))
        except ValueError as exc:
            raise SchemaError(f"Unknown field kind in {dict(payload)!r}") from exc
        tokenizer = payload.get("tokenizer")
        return cls(
            name=str(payload.get("name") or ""),
            kind=kind,
            tokenizer=str(tokenizer) if tokenizer else None,
        )


class IndexSchema:
    """Ordered, immutable set of :class:`FieldSpec`.

    Field order is the order given at construction; :meth:`from_field_names`
    sorts names so that two schemas built from the same set compare equal.
    """

    __slots__ = ("_fields", "_by_name")

    def __init__(self, fields: Iterable[FieldSpec]) -> None:
        ordered: list[FieldSpec] = []
        by_name: dict[str, FieldSpec] = {}
        for spec in fields:
            if not spec.name:
                raise SchemaError("Field names must be non-empty")
            if spec.name.startswith(_RESERVED_PREFIX):
                raise SchemaError(f"Field name {spec.name!r} uses the reserved '{_RESERVED_PREFIX}' prefix")
            if spec.name in by_name:
                raise SchemaError(f"Duplicate field {spec.name!r}")
            if spec.indexed and not spec.tokenizer:
                raise SchemaError(f"Indexed field {spec.name!r} has no tokenizer")
            ordered.append(spec)
            by_name[spec.name] = spec
        if not ordered:
            raise SchemaError("A schema needs at least one field")
        self._fields = tuple(ordered)
        self._by_name = by_name

    @classmethod
    def from_field_names(
        cls,
        names: Iterable[str],
        *,
        exact_fields: Iterable[str] = EXACT_MATCH_FIELDS,
        denylist: Iterable[str] = SCHEMA_DENYLIST,
        tokenizer: str = DEFAULT_TOKENIZER,
    ) -> IndexSchema:
        exact = frozenset(exact_fields)
        denied = frozenset(denylist)
        specs = []
        for name in sorted({n for n in names if n and n not in denied}):
            if name in exact:
                specs.append(FieldSpec(name=name, kind=FieldKind.EXACT, tokenizer=tokenizer))
            else:
                specs.append(FieldSpec(name=name, kind=FieldKind.STORED))
        return cls(specs)

    @property
    def fields(self) -> tuple[FieldSpec, ...]:
        return self._fields

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self._fields]

    @property
    def indexed_fields(self) -> list[FieldSpec]:
        return [f for f in self._fields if f.indexed]

    def tokenizer_names(self) -> set[str]:
        return {f.tokenizer for f in self._fields if f.tokenizer}

    def get(self, name: str) -> FieldSpec | None:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexSchema):
            return NotImplemented
        return self._fields == other._fields

    def __hash__(self) -> int:
        return hash(self._fields)

    def __repr__(self) -> str:
        return f"IndexSchema({', '.join(f'{f.name}:{f.kind.value}' for f in self._fields)})"

    def to_arrow(self, *, id_column: str, columns: Mapping[str, str] | None = None) -> pa.Schema:
        """Arrow layout of the stored documents (id column first).

        *columns* maps field names to storage column names; fields keep their
        own names when it is omitted.
        """
        columns = columns or {}
        return pa.schema(
            [pa.field(id_column, pa.int64(), nullable=False)]
            + [pa.field(columns.get(f.name, f.name), pa.string()) for f in self._fields]
        )

    def to_dict(self) -> list[dict[str, Any]]:
        return [f.to_dict() for f in self._fields]

    @classmethod
    def from_dict(cls, payload: Iterable[Mapping[str, Any]]) -> IndexSchema:
        return cls(FieldSpec.from_dict(item) for item in payload)


__all__ = [
    "DEFAULT_TOKENIZER",
    "DRIVE_PREFIXED_FIELDS",
    "EXACT_MATCH_FIELDS",
    "FIELD_DIRECTORY_NAME",
    "FIELD_FULL_NAME",
    "FIELD_MD5",
    "FIELD_NAME",
    "FIELD_OS_NAME",
    "FIELD_OS_VERSION",
    "FIELD_SHA256",
    "FieldKind",
    "FieldSpec",
    "IndexSchema",
    "RECORD_DENYLIST",
    "SCHEMA_DENYLIST",
]
