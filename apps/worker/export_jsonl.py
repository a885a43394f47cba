"""
apps.worker.export_jsonl

Print every record of a corpus as one JSON object per line on stdout, for
loading the corpus into other backends. Logs go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TextIO

from infra.config import LOG_LEVEL_NAMES, get_settings
from infra.logging_config import setup_logging
from pipeline.source_reader import iter_records

logger = logging.getLogger(__name__)


def export_records(source: str, out: TextIO) -> int:
    """Write the records under *source* to *out*; returns the record count."""
    count = 0
    for _location, record in iter_records(source):
        out.write(json.dumps(record, ensure_ascii=False))
        out.write("\n")
        count += 1
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transform corpus CSV file lists into JSONL.")
    parser.add_argument("-s", "--source", default=None, help="Corpus root folder (or VANILLA_SOURCE env var).")
    parser.add_argument(
        "--logging",
        default=None,
        type=str.capitalize,
        choices=[name.capitalize() for name in LOG_LEVEL_NAMES],
        help="Log verbosity (default: Info).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    settings = get_settings(reload=True)
    setup_logging(level=args.logging)

    source = args.source or settings.index.source
    if not source:
        raise SystemExit("Missing --source (or VANILLA_SOURCE env var).")

    count = export_records(source, sys.stdout)
    logger.info("Exported %d records from %s", count, source)


if __name__ == "__main__":
    main()
