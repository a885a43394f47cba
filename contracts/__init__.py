"""Contracts and canonical schema.

The contracts package defines:
- the error taxonomy shared by every layer
- the typed field registry used to build and validate the index
- record/document value objects
- Protocol definitions for pluggable collaborators (tokenizers)

Main exports:
- IndexSchema, FieldSpec, FieldKind
- Document, SystemDescriptor, FlatRecord
- Token, TokenizerProtocol
- VanillaError and its subclasses
"""

from contracts.documents import Document, FlatRecord, SystemDescriptor
from contracts.errors import (
    CorpusCloneError,
    DecodeError,
    DiscoveryError,
    IndexStorageError,
    PatternError,
    QueryError,
    RequestValidationError,
    SchemaError,
    VanillaError,
)
from contracts.interfaces import Token, TokenizerProtocol
from contracts.schema import FieldKind, FieldSpec, IndexSchema

__all__ = [
    "CorpusCloneError",
    "DecodeError",
    "DiscoveryError",
    "Document",
    "FieldKind",
    "FieldSpec",
    "FlatRecord",
    "IndexSchema",
    "IndexStorageError",
    "PatternError",
    "QueryError",
    "RequestValidationError",
    "SchemaError",
    "SystemDescriptor",
    "Token",
    "TokenizerProtocol",
    "VanillaError",
]
