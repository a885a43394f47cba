"""Tests for path normalization, aggregation and the lookup service."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from contracts.errors import RequestValidationError
from pipeline.index_store import Index
from services.lookup import (
    LookupService,
    aggregate,
    normalize_path,
    path_key,
    split_full_path,
)
from tests.factories import KERNEL32_MD5, KERNEL32_SHA256, build_index, make_corpus, make_row, make_unit


@pytest.fixture()
def service(tmp_path: Path) -> Iterator[LookupService]:
    index, _ = build_index(make_corpus(tmp_path / "corpus"), tmp_path / "index")
    with index:
        yield LookupService(index.reader())


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("C:\\Windows\\System32", "Windows\\System32"),
        ("c:/windows/system32/", "windows\\system32"),
        ("\\Windows\\System32", "Windows\\System32"),
        ("/C:/Windows", "Windows"),
        ("C:\\", ""),
        ("Windows", "Windows"),
    ],
)
def test_normalize_path(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected


def test_path_key_ignores_case_and_separator_style() -> None:
    assert path_key("C:/WINDOWS/System32") == path_key("\\windows\\system32")


def test_split_full_path() -> None:
    assert split_full_path("C:\\Windows\\System32\\kernel32.dll") == ("kernel32.dll", "Windows\\System32")
    assert split_full_path("C:/Windows/notepad.exe") == ("notepad.exe", "Windows")


@pytest.mark.parametrize("value", ["C:\\pagefile.sys", "c:/pagefile.sys", "\\pagefile.sys", "/pagefile.sys"])
def test_split_full_path_of_root_file_has_empty_parent(value: str) -> None:
    assert split_full_path(value) == ("pagefile.sys", "")


@pytest.mark.parametrize("value", ["kernel32.dll", "C:\\", "\\"])
def test_split_full_path_errors(value: str) -> None:
    with pytest.raises(RequestValidationError):
        split_full_path(value)


def test_aggregate_first_hit_fixes_the_field_set() -> None:
    hits = [
        {"Name": ["kernel32.dll"], "DirectoryName": ["Windows\\System32"]},
        {"Name": ["kernel32.dll"], "DirectoryName": ["Windows\\SysWOW64"], "MD5": ["abc"]},
    ]

    result = aggregate(hits)

    assert result.known_name is True
    assert result.values == {
        "Name": {"kernel32.dll"},
        "DirectoryName": {"Windows\\System32", "Windows\\SysWOW64"},
    }
    assert "MD5" not in result.values


def test_aggregate_without_hits() -> None:
    result = aggregate([])

    assert result.known_name is False
    assert result.values == {}


def test_kernel32_scenario(tmp_path: Path) -> None:
    corpus = tmp_path / "corpus"
    make_unit(corpus, "w10")
    index, _ = build_index(corpus, tmp_path / "index")

    with index:
        body = LookupService(index.reader()).lookup_name("kernel32.dll").to_dict()

    assert body["KnownName"] is True
    assert body["KnownPath"] is None
    assert body["Name"] == ["kernel32.dll"]
    assert body["OsName"] == ["Microsoft Windows 10 Pro"]


def test_lookup_name_aggregates_across_builds(service: LookupService) -> None:
    result = service.lookup_name("KERNEL32.DLL")

    assert result.values["OsName"] == {"Microsoft Windows 10 Pro", "Microsoft Windows 11 Pro"}
    assert result.values["DirectoryName"] == {"Windows\\System32", "Windows\\SysWOW64"}


@pytest.mark.parametrize(
    ("path", "known"),
    [
        ("C:\\Windows\\System32", True),
        ("c:/windows/syswow64", True),
        ("\\Windows\\System32\\", True),
        ("C:\\Temp", False),
    ],
)
def test_lookup_name_known_path(service: LookupService, path: str, known: bool) -> None:
    result = service.lookup_name("kernel32.dll", path)

    assert result.known_name is True
    assert result.known_path is known


def test_unknown_name_never_yields_known_path(service: LookupService) -> None:
    resolved = service.lookup_name("evil.exe", "C:\\Windows\\System32")
    existence = service.known_name("evil.exe", "C:\\Windows\\System32")

    assert resolved.known_name is False
    assert resolved.known_path is not True
    assert existence.known_name is False
    assert existence.known_path is False


def test_lookup_fullname_splits_and_delegates(service: LookupService) -> None:
    result = service.lookup_fullname("C:\\Windows\\System32\\drivers\\NTFS.SYS")

    assert result.known_name is True
    assert result.known_path is True
    assert result.values["Name"] == {"ntfs.sys"}


def test_lookup_hash_dispatches_on_length(service: LookupService) -> None:
    by_md5 = service.lookup_hash(KERNEL32_MD5.lower())
    by_sha = service.lookup_hash(KERNEL32_SHA256)

    assert by_md5.values["MD5"] == {KERNEL32_MD5}
    assert by_sha.values["SHA256"] == {KERNEL32_SHA256}
    body = by_md5.to_dict()
    assert "KnownName" not in body
    assert body["Name"] == ["kernel32.dll"]


@pytest.mark.parametrize("length", [0, 31, 33, 40, 63, 65])
def test_lookup_hash_rejects_other_lengths(service: LookupService, length: int) -> None:
    with pytest.raises(RequestValidationError, match="length"):
        service.lookup_hash("a" * length)


def test_known_name_and_fullname(service: LookupService) -> None:
    assert service.known_name("ntfs.sys").to_dict() == {"KnownName": True, "KnownPath": None}
    assert service.known_name("ntfs.sys", "C:\\Windows\\System32\\Drivers").known_path is True
    assert service.known_name("ntfs.sys", "C:\\Windows\\System32").known_path is False

    result = service.known_fullname("C:/Windows/SysWOW64/kernel32.dll")
    assert (result.known_name, result.known_path) == (True, True)


def test_lookup_respects_limit(tmp_path: Path) -> None:
    index, _ = build_index(make_corpus(tmp_path / "corpus"), tmp_path / "index")
    with index:
        limited = LookupService(index.reader(), limit=1)
        result = limited.lookup_name("kernel32.dll")

    assert len(result.values["OsName"]) == 1


def test_service_reads_a_reopened_index(tmp_path: Path) -> None:
    build_index(make_corpus(tmp_path / "corpus"), tmp_path / "index")[0].close()

    with Index.open(tmp_path / "index") as index:
        assert LookupService(index.reader()).known_name("kernel32.dll").known_name is True


def _service_over_rows(tmp_path: Path, rows: list[dict[str, str]]) -> tuple[Index, LookupService]:
    corpus = tmp_path / "corpus"
    make_unit(corpus, "w10", rows=rows)
    index, _ = build_index(corpus, tmp_path / "index")
    return index, LookupService(index.reader())


def test_drive_root_files_resolve_in_both_styles(tmp_path: Path) -> None:
    root_row = make_row(DirectoryName="C:\\", Name="pagefile.sys", FullName="C:\\pagefile.sys")
    index, service = _service_over_rows(tmp_path, [root_row])
    with index:
        by_name = service.lookup_name("pagefile.sys", "C:\\")
        by_full = service.lookup_fullname("C:\\pagefile.sys")
        known = service.known_fullname("C:\\pagefile.sys")
        elsewhere = service.known_fullname("C:\\Windows\\pagefile.sys")

    assert (by_name.known_name, by_name.known_path) == (True, True)
    assert by_full.to_dict() == by_name.to_dict()
    assert (known.known_name, known.known_path) == (True, True)
    assert (elsewhere.known_name, elsewhere.known_path) == (True, False)


def test_resolve_and_existence_styles_fold_case_alike(tmp_path: Path) -> None:
    row = make_row(
        DirectoryName="C:\\Straße",
        Name="Maße.dll",
        FullName="C:\\Straße\\Maße.dll",
    )
    index, service = _service_over_rows(tmp_path, [row])
    with index:
        resolved = service.lookup_fullname("C:\\STRASSE\\MASSE.DLL")
        known = service.known_fullname("C:\\STRASSE\\MASSE.DLL")

    assert (resolved.known_name, resolved.known_path) == (True, True)
    assert (known.known_name, known.known_path) == (True, True)
