"""Record and document value objects.

A ``FlatRecord`` is the transient merge of a unit's SystemInfo fields and one
CSV row. A :class:`Document` is what the index stores: the normalized record,
validated against the :class:`~contracts.schema.IndexSchema` at construction
time.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from contracts.errors import SchemaError
from contracts.schema import FIELD_OS_NAME, FIELD_OS_VERSION, IndexSchema

FlatRecord = dict[str, str]


@dataclass(frozen=True)
class SystemDescriptor:
    """Operating system identity parsed from a ``SystemInfo_*`` file."""

    os_name: str
    os_version: str

    def to_record(self) -> FlatRecord:
        return {FIELD_OS_NAME: self.os_name, FIELD_OS_VERSION: self.os_version}


class Document(Mapping[str, str]):
    """Immutable field -> value mapping that conforms to an index schema.

    Fields absent from the source record are simply absent here; nothing is
    defaulted.
    """

    __slots__ = ("_values",)

    def __init__(self, schema: IndexSchema, values: Mapping[str, Any]) -> None:
        checked: dict[str, str] = {}
        for name, value in values.items():
            if name not in schema:
                raise SchemaError(f"Field {name!r} is not part of the index schema")
            if not isinstance(value, str):
                raise SchemaError(f"Field {name!r} must be a string, got {type(value).__name__}")
            checked[name] = value
        self._values = checked

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Document({self._values!r})"

    def approx_size(self) -> int:
        """Rough in-memory footprint used for writer batching."""
        return sum(len(k) + len(v) for k, v in self._values.items()) + 64
