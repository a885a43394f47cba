"""Error taxonomy shared by the reader, the index engine and the service.

Unit-level errors (discovery, decode, pattern) are contained by the pipeline:
they are logged and the offending unit is skipped. Setup errors (schema,
storage) are fatal for the command line tools. Request errors are mapped to
4xx responses by the HTTP layer.
"""

from __future__ import annotations


class VanillaError(Exception):
    """Base class for every error raised by this project."""


class DiscoveryError(VanillaError):
    """A folder does not hold exactly one SystemInfo file and one CSV file."""


class DecodeError(VanillaError):
    """A SystemInfo file is unreadable, too large or cannot be decoded."""


class PatternError(VanillaError):
    """Expected metadata fields were not found in a SystemInfo file."""


class SchemaError(VanillaError):
    """No schema could be inferred, or a schema/document is inconsistent."""


class IndexStorageError(VanillaError):
    """The index could not be opened, created, written, committed or searched."""


class QueryError(IndexStorageError):
    """A query could not be parsed or targets a field that is not searchable."""


class RequestValidationError(VanillaError):
    """A lookup request is malformed (bad hash length, unsplittable path...)."""


class CorpusCloneError(VanillaError):
    """The reference corpus could not be cloned."""


__all__ = [
    "VanillaError",
    "DiscoveryError",
    "DecodeError",
    "PatternError",
    "SchemaError",
    "IndexStorageError",
    "QueryError",
    "RequestValidationError",
    "CorpusCloneError",
]
