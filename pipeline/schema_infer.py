"""Corpus-wide schema inference.

The schema is computed by a dedicated pre-pass over the whole corpus, before
any document is written, so that every document of one ingestion run conforms
to the same field set. Ingestion walks the corpus again on its own; the double
read is accepted because the corpus is read-mostly and bounded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from contracts.errors import SchemaError, VanillaError
from contracts.schema import DEFAULT_TOKENIZER, EXACT_MATCH_FIELDS, SCHEMA_DENYLIST, IndexSchema
from pipeline.source_reader import DEFAULT_PATTERNS, CorpusWalker, SystemInfoPatterns, Unit

logger = logging.getLogger(__name__)


def collect_field_names(
    units: Iterable[tuple[Path, Unit]],
    patterns: SystemInfoPatterns = DEFAULT_PATTERNS,
) -> set[str]:
    """Union of the field names produced by every parseable unit."""
    columns: set[str] = set()
    for location, unit in units:
        try:
            columns.update(unit.field_names(patterns))
        except VanillaError as exc:
            logger.error("Error handling file list in %s: %s", location, exc)
            continue
    return columns


def infer_schema(
    corpus_root: str | Path,
    *,
    patterns: SystemInfoPatterns = DEFAULT_PATTERNS,
    exact_fields: Iterable[str] = EXACT_MATCH_FIELDS,
    denylist: Iterable[str] = SCHEMA_DENYLIST,
    tokenizer: str = DEFAULT_TOKENIZER,
) -> IndexSchema:
    """Infer the index schema of the corpus under *corpus_root*.

    Raises:
        SchemaError: if no field could be resolved (no parseable unit).
    """
    root = Path(corpus_root)
    names = collect_field_names(CorpusWalker(root), patterns)
    denied = frozenset(denylist)
    if not names - denied:
        raise SchemaError(f"Could not resolve any fields in {root}")

    schema = IndexSchema.from_field_names(
        names, exact_fields=exact_fields, denylist=denied, tokenizer=tokenizer
    )
    logger.info("Inferred %d fields from %s", len(schema), root)
    logger.debug("Schema: %r", schema)
    return schema
