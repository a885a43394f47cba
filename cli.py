"""
vanilla-lookup CLI (flat-layout friendly).

Usage
-----
vanilla-lookup index --source ./VanillaWindowsReference --index-location ./index
vanilla-lookup serve --index-location ./index --port 8000
vanilla-lookup serve                      # clone the reference corpus, temp index
vanilla-lookup to-jsonl --source ./VanillaWindowsReference > records.jsonl

Every sub-command forwards its remaining arguments to the matching tool, so
``vanilla-lookup index --help`` shows the indexing tool's own flags.
"""

from __future__ import annotations

import argparse
from typing import Callable, Dict, List, Optional


def _tool_index(argv: List[str]) -> None:
    from apps.worker.build_index import main

    main(argv)


def _tool_serve(argv: List[str]) -> None:
    from apps.flask_api.serve import main

    main(argv)


def _tool_to_jsonl(argv: List[str]) -> None:
    from apps.worker.export_jsonl import main

    main(argv)


_TOOLS: Dict[str, Callable[[List[str]], None]] = {
    "index": _tool_index,
    "serve": _tool_serve,
    "to-jsonl": _tool_to_jsonl,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vanilla-lookup", description="Vanilla Windows file-list lookup")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("index", help="Build or rebuild an index from a corpus.", add_help=False)
    sub.add_parser("serve", help="Serve lookups over HTTP (builds the index if missing).", add_help=False)
    sub.add_parser("to-jsonl", help="Dump every corpus record as JSONL on stdout.", add_help=False)
    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args, rest = parser.parse_known_args(argv)
    _TOOLS[args.cmd](rest)


if __name__ == "__main__":
    main()
