"""Tokenizers and the named tokenizer registry used by the index engine."""

from __future__ import annotations

from threading import Lock

from contracts.errors import IndexStorageError
from contracts.interfaces import Token, TokenizerProtocol
from contracts.schema import DEFAULT_TOKENIZER


class ExactMatchTokenizer:
    """Emit the whole, case-folded input as a single token.

    There is no splitting on whitespace or punctuation: a field indexed with
    this tokenizer only matches a query for its complete value, ignoring case.
    """

    def tokenize(self, text: str) -> list[Token]:
        return [
            Token(
                text=text.casefold(),
                offset_from=0,
                offset_to=len(text.encode("utf-8")),
                position=0,
            )
        ]


class TokenizerRegistry:
    """Name -> tokenizer mapping consulted when indexing and querying."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._tokenizers: dict[str, TokenizerProtocol] = {}

    def register(self, name: str, tokenizer: TokenizerProtocol) -> None:
        if not isinstance(tokenizer, TokenizerProtocol):
            raise TypeError(f"{tokenizer!r} does not implement tokenize(text)")
        with self._lock:
            self._tokenizers[name] = tokenizer

    def get(self, name: str) -> TokenizerProtocol:
        with self._lock:
            tokenizer = self._tokenizers.get(name)
        if tokenizer is None:
            raise IndexStorageError(f"No tokenizer registered under {name!r}")
        return tokenizer

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tokenizers

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._tokenizers)


def default_registry() -> TokenizerRegistry:
    """Registry holding the tokenizers every index expects."""
    registry = TokenizerRegistry()
    registry.register(DEFAULT_TOKENIZER, ExactMatchTokenizer())
    return registry
