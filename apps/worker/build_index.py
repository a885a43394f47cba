"""
apps.worker.build_index

Build (or rebuild) an index from a corpus folder.

An existing index in ``--index-location`` is reopened with its recorded
schema, emptied and filled again; otherwise the schema is inferred from the
corpus and a new index is created.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from contracts.errors import VanillaError
from infra.config import LOG_LEVEL_NAMES, get_settings
from infra.logging_config import setup_logging
from pipeline.index_store import Index
from pipeline.ingest import CommitPolicy, IngestMode, IngestResult, ingest
from pipeline.schema_infer import infer_schema

logger = logging.getLogger(__name__)

_LEVEL_CHOICES = [name.capitalize() for name in LOG_LEVEL_NAMES]


def add_index_arguments(
    parser: argparse.ArgumentParser,
    *,
    source_help: str = "Corpus root folder (or VANILLA_SOURCE env var).",
) -> None:
    """Flags shared by the indexing tool and the service tool."""
    parser.add_argument("--source", default=None, help=source_help)
    parser.add_argument("--index-location", default=None, help="Index folder (or VANILLA_INDEX_LOCATION).")
    parser.add_argument(
        "--overall-memory",
        "--overall_memory",
        dest="overall_memory",
        type=int,
        default=None,
        help="Total memory arena in bytes, split between writer threads (default: 100000000).",
    )
    parser.add_argument(
        "--logging",
        default=None,
        type=str.capitalize,
        choices=_LEVEL_CHOICES,
        help="Log verbosity (default: Info).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for the indexing tool."""
    parser = argparse.ArgumentParser(description="Index a vanilla file-list corpus.")
    add_index_arguments(parser)
    parser.add_argument("--workers", type=int, default=None, help="Worker threads in parallel mode (default: 4).")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in IngestMode],
        default=None,
        help="Ingestion mode (default: parallel).",
    )
    parser.add_argument(
        "--commit-policy",
        choices=[p.value for p in CommitPolicy],
        default=None,
        help="Commit after every unit or once at the end (default depends on --mode).",
    )
    return parser


def build_index(
    source: str,
    location: str,
    *,
    memory_budget: int,
    mode: str,
    workers: int,
    commit_policy: str | None,
) -> IngestResult:
    """Open or create the index in *location* and (re)index *source* into it."""
    with Index.open_or_create(location, lambda: infer_schema(source)) as index:
        return ingest(
            source,
            index,
            memory_budget,
            mode=mode,
            workers=workers,
            commit_policy=commit_policy,
            reset=True,
        )


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings(reload=True)
    setup_logging(level=args.logging)

    source = args.source or settings.index.source
    location = args.index_location or settings.index.location
    if not source:
        raise SystemExit("Missing --source (or VANILLA_SOURCE env var).")
    if not location:
        raise SystemExit("Missing --index-location (or VANILLA_INDEX_LOCATION env var).")

    try:
        result = build_index(
            source,
            location,
            memory_budget=args.overall_memory or settings.index.memory_budget,
            mode=args.mode or settings.index.mode,
            workers=args.workers or settings.index.workers,
            commit_policy=args.commit_policy or settings.index.commit_policy,
        )
    except VanillaError as exc:
        logger.error("%s", exc)
        raise SystemExit(f"Indexing failed: {exc}") from exc

    sys.stdout.write(json.dumps(result.to_dict(), indent=2) + "\n")


if __name__ == "__main__":
    main()
