"""Discovery and parsing of file-list units.

A corpus is a directory tree. Every folder that holds a ``SystemInfo_*`` file
is expected to describe one source machine: exactly one ``SystemInfo_*`` file
(the ``systeminfo`` output of that machine) next to exactly one ``*.csv`` file
list. Such a pair is a :class:`Unit`.

Parsing a unit yields flat records: the OS identity from the SystemInfo file
merged into every CSV row.
"""

from __future__ import annotations

import csv
import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from contracts.documents import FlatRecord, SystemDescriptor
from contracts.errors import DecodeError, DiscoveryError, PatternError, VanillaError
from contracts.schema import RECORD_DENYLIST

logger = logging.getLogger(__name__)

SYSTEM_INFO_PREFIX = "SystemInfo_"
FILE_LIST_SUFFIX = ".csv"
SYSTEM_INFO_MAX_BYTES = 4 * 1024 * 1024

_UTF16LE_BOM = b"\xff\xfe"


@dataclass(frozen=True)
class SystemInfoPatterns:
    """Compiled patterns used to pull the OS identity out of a SystemInfo file."""

    os_name: re.Pattern[str]
    os_version: re.Pattern[str]

    @classmethod
    def for_labels(cls, name_label: str, version_label: str) -> SystemInfoPatterns:
        return cls(
            os_name=_label_pattern(name_label),
            os_version=_label_pattern(version_label),
        )


def _label_pattern(label: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(label)}[ \t]*(\S.*?)[ \t\r]*$", re.MULTILINE)


DEFAULT_PATTERNS = SystemInfoPatterns.for_labels("OS Name:", "OS Version:")


def decode_text(data: bytes) -> str:
    """Decode SystemInfo bytes: UTF-16LE when BOM-prefixed, UTF-8 otherwise.

    Invalid sequences are replaced rather than rejected.
    """
    if data[:2] == _UTF16LE_BOM:
        return data[2:].decode("utf-16-le", errors="replace")
    return data.decode("utf-8-sig", errors="replace")


def read_system_info_text(path: str | Path, *, max_bytes: int = SYSTEM_INFO_MAX_BYTES) -> str:
    p = Path(path)
    if not p.is_file():
        raise DecodeError(f"{p} is not a file")
    try:
        size = p.stat().st_size
        if size > max_bytes:
            raise DecodeError(f"{p} is too large ({size} bytes > {max_bytes})")
        data = p.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read {p}: {exc}") from exc
    return decode_text(data)


def parse_system_descriptor(
    path: str | Path,
    patterns: SystemInfoPatterns = DEFAULT_PATTERNS,
    *,
    max_bytes: int = SYSTEM_INFO_MAX_BYTES,
) -> SystemDescriptor:
    """Parse the OS name and version out of a SystemInfo file."""
    content = read_system_info_text(path, max_bytes=max_bytes)

    name_match = patterns.os_name.search(content)
    if name_match is None:
        raise PatternError(f"Unable to parse OS Name for '{path}'")
    version_match = patterns.os_version.search(content)
    if version_match is None:
        raise PatternError(f"Unable to parse OS Version for '{path}'")

    return SystemDescriptor(
        os_name=name_match.group(1).rstrip(),
        os_version=version_match.group(1).rstrip(),
    )


def _is_system_info(name: str) -> bool:
    return name.startswith(SYSTEM_INFO_PREFIX)


def _is_file_list(name: str) -> bool:
    return name.lower().endswith(FILE_LIST_SUFFIX)


@dataclass(frozen=True)
class Unit:
    """One source machine: a SystemInfo file paired with its CSV file list."""

    system_info_path: Path
    file_list_path: Path

    @classmethod
    def from_folder(cls, folder: str | Path) -> Unit:
        """Pair the files directly inside *folder*.

        Raises:
            DiscoveryError: unless the folder holds exactly one SystemInfo file
                and exactly one CSV file.
        """
        folder = Path(folder)
        try:
            entries = sorted(p for p in folder.iterdir() if p.is_file())
        except OSError as exc:
            raise DiscoveryError(f"Could not list {folder}: {exc}") from exc

        system_infos = [p for p in entries if _is_system_info(p.name)]
        file_lists = [p for p in entries if _is_file_list(p.name)]

        if len(system_infos) != 1:
            raise DiscoveryError(f"{len(system_infos)} SystemInfo files were found in path {folder}")
        if len(file_lists) != 1:
            raise DiscoveryError(f"{len(file_lists)} csv files were found in path {folder}")

        return cls(system_info_path=system_infos[0], file_list_path=file_lists[0])

    def descriptor(self, patterns: SystemInfoPatterns = DEFAULT_PATTERNS) -> SystemDescriptor:
        return parse_system_descriptor(self.system_info_path, patterns)

    def header(self) -> list[str]:
        try:
            with self.file_list_path.open("r", encoding="utf-8-sig", errors="replace", newline="") as fh:
                return next(csv.reader(fh), [])
        except (OSError, csv.Error) as exc:
            raise DecodeError(f"Could not read header of {self.file_list_path}: {exc}") from exc

    def field_names(self, patterns: SystemInfoPatterns = DEFAULT_PATTERNS) -> list[str]:
        """Every field name this unit can produce (SystemInfo fields + CSV header)."""
        names = list(self.descriptor(patterns).to_record())
        names.extend(self.header())
        return names

    def records(self, patterns: SystemInfoPatterns = DEFAULT_PATTERNS) -> Iterator[FlatRecord]:
        """Parse the unit into flat records.

        The SystemInfo file is parsed eagerly, so decode and pattern errors are
        raised by this call rather than on first iteration. CSV rows are read
        lazily; malformed rows are logged and skipped.
        """
        base = self.descriptor(patterns).to_record()
        try:
            fh = self.file_list_path.open("r", encoding="utf-8-sig", errors="replace", newline="")
        except OSError as exc:
            raise DecodeError(f"Could not open {self.file_list_path}: {exc}") from exc
        return self._iter_rows(fh, base)

    def _iter_rows(self, fh, base: FlatRecord) -> Iterator[FlatRecord]:  # type: ignore[no-untyped-def]
        with fh:
            reader = csv.reader(fh)
            header = next(reader, None)
            if not header:
                return
            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    return
                except csv.Error as exc:
                    logger.error("%s line %d: %s", self.file_list_path, reader.line_num, exc)
                    continue
                if not row:
                    continue
                if len(row) != len(header):
                    logger.error(
                        "%s line %d: expected %d fields, found %d",
                        self.file_list_path, reader.line_num, len(header), len(row),
                    )
                    continue

                record = dict(base)
                for column, value in zip(header, row):
                    if column in RECORD_DENYLIST:
                        continue
                    record[column] = value
                yield record


class CorpusWalker:
    """Lazy, restartable iteration over the units of a corpus.

    Each call to ``iter()`` walks the tree again, in sorted order. Folders that
    hold a SystemInfo file but fail pairing are logged and skipped.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def __iter__(self) -> Iterator[tuple[Path, Unit]]:
        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._on_walk_error):
            dirnames.sort()
            if not any(_is_system_info(name) for name in filenames):
                continue
            folder = Path(dirpath)
            try:
                unit = Unit.from_folder(folder)
            except VanillaError as exc:
                logger.error("%s", exc)
                continue
            yield folder, unit

    def count(self) -> int:
        return sum(1 for _ in self)

    @staticmethod
    def _on_walk_error(exc: OSError) -> None:
        logger.error("Error reading dir entry: %s", exc)


def iter_records(root: str | Path) -> Iterator[tuple[Path, FlatRecord]]:
    """Every flat record of the corpus, skipping units that fail to parse."""
    for location, unit in CorpusWalker(root):
        try:
            records = unit.records()
        except VanillaError as exc:
            logger.error("Error handling file list in %s: %s", location, exc)
            continue
        for record in records:
            yield location, record
