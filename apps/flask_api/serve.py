"""
apps.flask_api.serve

Service entrypoint: make sure an index exists, then serve lookups over HTTP.

- ``--index-location`` omitted: the index lives in a temporary folder,
  removed when the server stops.
- No index in that folder yet: one is built (sequentially) from ``--source``;
  without ``--source`` the reference corpus is cloned first.
- An existing index is served as-is.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import tempfile
from pathlib import Path

from apps.flask_api.flask_app import create_app
from apps.worker.build_index import add_index_arguments
from contracts.errors import VanillaError
from infra.config import Settings, get_settings
from infra.logging_config import setup_logging
from pipeline.index_store import Index
from pipeline.ingest import IngestMode, ingest
from pipeline.reference_corpus import clone_reference_corpus
from pipeline.schema_infer import infer_schema

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for the lookup service."""
    parser = argparse.ArgumentParser(description="Serve vanilla file-list lookups over HTTP.")
    add_index_arguments(
        parser,
        source_help="Corpus root folder; the reference corpus is cloned when omitted and no index exists.",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: 127.0.0.1).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: 8000).")
    return parser


def prepare_index(
    location: str | None,
    source: str | None,
    *,
    settings: Settings,
    memory_budget: int,
    scratch: contextlib.ExitStack,
) -> Index:
    """Open the index in *location*, building it first when there is none.

    Without *location* the index goes into a temporary folder that is removed
    when *scratch* closes. A reference corpus cloned for the build is removed
    as soon as the build is over.
    """
    if location:
        loc = Path(location)
    else:
        loc = Path(scratch.enter_context(_temporary_dir("vanilla-index-")))
    if Index.exists(loc):
        return Index.open(loc)

    if source:
        return _build_index(loc, source, memory_budget)
    with _temporary_dir("vanilla-corpus-") as clone_dir:
        corpus = clone_reference_corpus(
            clone_dir, url=settings.corpus.clone_url, depth=settings.corpus.clone_depth
        )
        return _build_index(loc, str(corpus), memory_budget)


def _temporary_dir(prefix: str) -> tempfile.TemporaryDirectory[str]:
    # git marks pack files read-only, which some platforms refuse to delete
    return tempfile.TemporaryDirectory(prefix=prefix, ignore_cleanup_errors=True)


def _build_index(location: Path, source: str, memory_budget: int) -> Index:
    index = Index.create(location, infer_schema(source))
    try:
        ingest(source, index, memory_budget, mode=IngestMode.SEQUENTIAL)
    except VanillaError:
        index.close()
        raise
    return index


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings(reload=True)
    setup_logging(level=args.logging)

    with contextlib.ExitStack() as scratch:
        try:
            index = prepare_index(
                args.index_location or settings.index.location,
                args.source or settings.index.source,
                settings=settings,
                memory_budget=args.overall_memory or settings.index.memory_budget,
                scratch=scratch,
            )
        except VanillaError as exc:
            logger.error("%s", exc)
            raise SystemExit(f"Could not prepare the index: {exc}") from exc

        host = args.host or settings.api.host
        port = args.port or settings.api.port
        with index:
            reader = index.reader()
            logger.info("Serving %d documents from %s on %s:%d", reader.num_docs(), index.location, host, port)
            app = create_app(reader, api_config=settings.api, query_limit=settings.index.query_limit)
            app.run(host=host, port=port, threaded=True)


if __name__ == "__main__":
    main()
