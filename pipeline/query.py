"""Phrase queries over named fields.

Queries are small value objects. Their string form follows the familiar
``Field:"value"`` syntax, clauses joined with ``AND``; :func:`parse_query`
reads that syntax back. Inside quotes a backslash only escapes ``"`` and
``\\``, so Windows paths can be written as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from contracts.errors import QueryError


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass(frozen=True)
class PhraseQuery:
    """Match documents whose *field* contains the tokens of *text* in order."""

    field: str
    text: str

    def clauses(self) -> tuple[PhraseQuery, ...]:
        return (self,)

    def fields(self) -> set[str]:
        return {self.field}

    def __str__(self) -> str:
        return f"{self.field}:{_quote(self.text)}"


@dataclass(frozen=True)
class BooleanQuery:
    """Conjunction: every clause must match."""

    must: tuple[PhraseQuery, ...]

    def __post_init__(self) -> None:
        if not self.must:
            raise QueryError("A boolean query needs at least one clause")

    def clauses(self) -> tuple[PhraseQuery, ...]:
        return self.must

    def fields(self) -> set[str]:
        return {c.field for c in self.must}

    def __str__(self) -> str:
        return " AND ".join(str(c) for c in self.must)


Query = Union[PhraseQuery, BooleanQuery]


def phrase(field: str, value: str) -> PhraseQuery:
    return PhraseQuery(field=field, text=value)


def all_of(*queries: Query) -> BooleanQuery:
    clauses: list[PhraseQuery] = []
    for q in queries:
        clauses.extend(q.clauses())
    return BooleanQuery(must=tuple(clauses))


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def error(self, message: str) -> QueryError:
        return QueryError(f"{message} at offset {self.pos} in query {self.text!r}")

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def read_word(self) -> str:
        start = self.pos
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch.isspace() or ch in ':"':
                break
            self.pos += 1
        return self.text[start:self.pos]

    def read_quoted(self) -> str:
        # opening quote already consumed
        out: list[str] = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.text) and self.text[self.pos + 1] in '"\\':
                out.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if ch == '"':
                self.pos += 1
                return "".join(out)
            out.append(ch)
            self.pos += 1
        raise self.error("Unterminated phrase")

    def clause(self) -> PhraseQuery:
        field = self.read_word()
        if not field:
            raise self.error("Expected a field name")
        if self.at_end() or self.text[self.pos] != ":":
            raise self.error(f"Expected ':' after field {field!r}")
        self.pos += 1
        if not self.at_end() and self.text[self.pos] == '"':
            self.pos += 1
            value = self.read_quoted()
        else:
            value = self.read_word()
            if not value:
                raise self.error(f"Expected a value for field {field!r}")
        return PhraseQuery(field=field, text=value)

    def parse(self) -> Query:
        clauses = []
        self.skip_ws()
        clauses.append(self.clause())
        while True:
            self.skip_ws()
            if self.at_end():
                break
            operator = self.read_word()
            if operator != "AND":
                raise self.error(f"Unsupported operator {operator!r}")
            self.skip_ws()
            clauses.append(self.clause())
        if len(clauses) == 1:
            return clauses[0]
        return BooleanQuery(must=tuple(clauses))


def parse_query(text: str) -> Query:
    """Parse ``Field:"value" [AND Field:"value" ...]``.

    Raises:
        QueryError: on any syntax error.
    """
    if not text or not text.strip():
        raise QueryError("Empty query")
    return _Parser(text).parse()
