"""Fetching the public reference corpus.

The service can run without a local corpus: it then clones the vanilla Windows
reference repository (one folder per Windows build, each holding a
``SystemInfo_*`` file and a CSV file list) with ``git``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from contracts.errors import CorpusCloneError
from infra.config import DEFAULT_CORPUS_URL

logger = logging.getLogger(__name__)


def _git() -> str:
    git = shutil.which("git")
    if not git:
        raise CorpusCloneError("git executable not found in PATH")
    return git


def clone_reference_corpus(
    destination: str | Path | None = None,
    *,
    url: str = DEFAULT_CORPUS_URL,
    depth: int | None = 1,
) -> Path:
    """Clone *url* into *destination* (a fresh temporary directory by default).

    Returns the path of the working tree.

    Raises:
        CorpusCloneError: if git is missing or the clone fails.
    """
    target = Path(destination) if destination else Path(tempfile.mkdtemp(prefix="vanilla-corpus-"))
    if target.exists() and any(target.iterdir()):
        raise CorpusCloneError(f"Clone destination {target} is not empty")

    cmd = [_git(), "clone", "--quiet"]
    if depth:
        cmd += ["--depth", str(int(depth))]
    cmd += [url, str(target)]

    logger.info("Cloning %s into %s", url, target)
    try:
        subprocess.run(cmd, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise CorpusCloneError(f"git clone of {url} failed ({exc.returncode}): {stderr}") from exc
    except OSError as exc:
        raise CorpusCloneError(f"Could not run git: {exc}") from exc
    return target
