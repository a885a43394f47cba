"""Bulk ingestion of a corpus into an index.

Records are normalized, validated against the index schema and handed to the
single index writer in batches. Two modes are available:

- ``sequential``: units are processed one after another in the calling thread.
- ``parallel``: units are parsed and converted by a fixed pool of worker
  threads that share the writer's synchronized append path.

Only the calling thread ever commits. A unit that fails to parse is logged,
counted and skipped; it never aborts the run.
"""

from __future__ import annotations

import concurrent.futures
import logging
import re
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from contracts.documents import Document, FlatRecord
from contracts.errors import IndexStorageError, VanillaError
from contracts.schema import DRIVE_PREFIXED_FIELDS, RECORD_DENYLIST, IndexSchema
from pipeline.index_store import Index, IndexWriter
from pipeline.source_reader import DEFAULT_PATTERNS, CorpusWalker, SystemInfoPatterns, Unit

logger = logging.getLogger(__name__)

# Smallest batch arena a worker may be given; fewer workers are used otherwise.
MIN_ARENA_PER_WORKER = 1_000_000

_MAX_ERROR_SAMPLES = 20

_DRIVE_PREFIX_RE = re.compile(r"^[A-Za-z]:\\")


class IngestMode(str, Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class CommitPolicy(str, Enum):
    PER_UNIT = "per_unit"
    FINAL = "final"


def default_commit_policy(mode: IngestMode) -> CommitPolicy:
    """Sequential runs commit after every unit, parallel runs once at the end."""
    return CommitPolicy.PER_UNIT if mode is IngestMode.SEQUENTIAL else CommitPolicy.FINAL


@dataclass
class IngestResult:
    units_seen: int = 0
    units_indexed: int = 0
    units_failed: int = 0
    documents: int = 0
    commits: int = 0
    duration_s: float = 0.0
    errors: list[str] = field(default_factory=list)

    def record_failure(self, location: Path, exc: BaseException) -> None:
        self.units_failed += 1
        if len(self.errors) < _MAX_ERROR_SAMPLES:
            self.errors.append(f"{location}: {exc}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "units_seen": self.units_seen,
            "units_indexed": self.units_indexed,
            "units_failed": self.units_failed,
            "documents": self.documents,
            "commits": self.commits,
            "duration_s": round(self.duration_s, 3),
            "errors": list(self.errors),
        }


# -------------------------
# Record -> Document
# -------------------------


def strip_drive_prefix(value: str) -> str:
    """Drop a leading ``X:\\`` drive prefix, if there is one."""
    if _DRIVE_PREFIX_RE.match(value):
        return value[3:]
    return value


def normalize_record(record: Mapping[str, Any], schema: IndexSchema) -> dict[str, str]:
    """Keep the schema fields of *record*, with drive prefixes removed from paths.

    Denylisted fields, fields unknown to the schema and non-string values are
    dropped. Hash values are copied untouched.
    """
    out: dict[str, str] = {}
    for name, value in record.items():
        if name in RECORD_DENYLIST or name not in schema:
            continue
        if not isinstance(value, str):
            continue
        if name in DRIVE_PREFIXED_FIELDS:
            value = strip_drive_prefix(value)
        out[name] = value
    return out


def build_document(record: FlatRecord, schema: IndexSchema) -> Document:
    return Document(schema, normalize_record(record, schema))


# -------------------------
# Units
# -------------------------


def effective_workers(memory_budget: int, workers: int) -> int:
    """Number of workers the budget can feed with at least the minimum arena."""
    by_budget = max(1, int(memory_budget) // MIN_ARENA_PER_WORKER)
    return max(1, min(int(workers), by_budget))


def index_unit(
    unit: Unit,
    writer: IndexWriter,
    *,
    arena_bytes: int,
    patterns: SystemInfoPatterns = DEFAULT_PATTERNS,
) -> int:
    """Parse *unit* and append its documents to *writer*. Does not commit.

    Documents are buffered until their approximate size reaches *arena_bytes*.
    Returns the number of documents added.
    """
    schema = writer.schema
    batch: list[Document] = []
    batch_bytes = 0
    added = 0
    for record in unit.records(patterns):
        doc = build_document(record, schema)
        batch.append(doc)
        batch_bytes += doc.approx_size()
        if batch_bytes >= arena_bytes:
            added += writer.add_documents(batch)
            batch = []
            batch_bytes = 0
    if batch:
        added += writer.add_documents(batch)
    return added


# -------------------------
# Ingest
# -------------------------


def ingest(
    corpus_root: str | Path,
    index: Index,
    memory_budget: int,
    *,
    mode: IngestMode | str = IngestMode.PARALLEL,
    workers: int = 4,
    commit_policy: CommitPolicy | str | None = None,
    patterns: SystemInfoPatterns = DEFAULT_PATTERNS,
    reset: bool = False,
) -> IngestResult:
    """Index every unit found under *corpus_root* into *index*.

    Args:
        memory_budget: total batch arena in bytes, divided across workers.
        mode: ``parallel`` or ``sequential``.
        workers: pool size in parallel mode (bounded by the memory budget).
        commit_policy: ``per_unit`` or ``final``; defaults per mode.
        reset: delete (and commit the deletion of) every existing document
            first, so running the same ingest twice yields the same index.

    Raises:
        IndexStorageError: if the writer cannot be opened or a commit fails.
    """
    mode = IngestMode(mode)
    policy = CommitPolicy(commit_policy) if commit_policy else default_commit_policy(mode)
    root = Path(corpus_root)
    num_workers = effective_workers(memory_budget, workers) if mode is IngestMode.PARALLEL else 1
    if mode is IngestMode.PARALLEL and num_workers < workers:
        logger.warning(
            "Memory budget %d only allows %d of %d workers", memory_budget, num_workers, workers
        )

    result = IngestResult()
    started = time.monotonic()
    logger.info(
        "Indexing %s into %s (mode=%s, workers=%d, commit=%s)",
        root, index.location, mode.value, num_workers, policy.value,
    )

    with index.writer(memory_budget, num_threads=num_workers) as writer:
        if reset:
            writer.delete_all_documents(commit=True)
            result.commits += 1

        if mode is IngestMode.SEQUENTIAL:
            _ingest_sequential(root, writer, result, policy=policy, patterns=patterns)
        else:
            _ingest_parallel(
                root, writer, result, policy=policy, patterns=patterns, num_workers=num_workers
            )

        if policy is CommitPolicy.FINAL or writer.pending_documents:
            writer.commit()
            result.commits += 1

    result.duration_s = time.monotonic() - started
    logger.info(
        "Indexed %d documents from %d/%d units (%d failed) in %.2fs",
        result.documents, result.units_indexed, result.units_seen, result.units_failed,
        result.duration_s,
    )
    return result


def _ingest_sequential(
    root: Path,
    writer: IndexWriter,
    result: IngestResult,
    *,
    policy: CommitPolicy,
    patterns: SystemInfoPatterns,
) -> None:
    for location, unit in CorpusWalker(root):
        result.units_seen += 1
        logger.info("Processing %s", location)
        try:
            added = index_unit(unit, writer, arena_bytes=writer.arena_per_thread, patterns=patterns)
        except IndexStorageError:
            raise
        except VanillaError as exc:
            logger.error("Error handling file list in %s: %s", location, exc)
            result.record_failure(location, exc)
            continue
        result.units_indexed += 1
        result.documents += added
        if policy is CommitPolicy.PER_UNIT:
            writer.commit()
            result.commits += 1


def _ingest_parallel(
    root: Path,
    writer: IndexWriter,
    result: IngestResult,
    *,
    policy: CommitPolicy,
    patterns: SystemInfoPatterns,
    num_workers: int,
) -> None:
    arena = writer.arena_per_thread
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=num_workers, thread_name_prefix="ingest"
    ) as executor:
        futures = {
            executor.submit(index_unit, unit, writer, arena_bytes=arena, patterns=patterns): location
            for location, unit in _counted(CorpusWalker(root), result)
        }
        for future in concurrent.futures.as_completed(futures):
            location = futures[future]
            try:
                added = future.result()
            except IndexStorageError:
                for pending in futures:
                    pending.cancel()
                raise
            except VanillaError as exc:
                logger.error("Error handling file list in %s: %s", location, exc)
                result.record_failure(location, exc)
                continue
            logger.debug("Indexed %d documents from %s", added, location)
            result.units_indexed += 1
            result.documents += added
            if policy is CommitPolicy.PER_UNIT:
                writer.commit()
                result.commits += 1


def _counted(
    units: Iterable[tuple[Path, Unit]], result: IngestResult
) -> Iterable[tuple[Path, Unit]]:
    for item in units:
        result.units_seen += 1
        yield item
