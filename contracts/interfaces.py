"""
Protocol definitions for pluggable collaborators.

The index engine never hard-codes how text becomes searchable terms: it asks a
tokenizer registered under a name. Any object satisfying
:class:`TokenizerProtocol` can be registered, which keeps alternate tokenizers
easy to substitute in tests.

Usage:
    from contracts.interfaces import Token, TokenizerProtocol

    class UpperTokenizer:
        def tokenize(self, text: str) -> list[Token]:
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Token:
    """One term emitted by a tokenizer.

    Offsets are byte offsets into the UTF-8 encoding of the source text.
    """

    text: str
    offset_from: int
    offset_to: int
    position: int
    position_length: int = 1


@runtime_checkable
class TokenizerProtocol(Protocol):
    """Protocol for tokenizers consumed by the index engine."""

    def tokenize(self, text: str) -> list[Token]:
        """Split *text* into tokens."""
        ...
