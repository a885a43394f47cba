"""Tests for record normalization and sequential/parallel ingestion."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from contracts.schema import IndexSchema
from pipeline.index_store import Index
from pipeline.ingest import (
    MIN_ARENA_PER_WORKER,
    CommitPolicy,
    IngestMode,
    default_commit_policy,
    effective_workers,
    ingest,
    normalize_record,
    strip_drive_prefix,
)
from pipeline.query import phrase
from pipeline.schema_infer import infer_schema
from tests.factories import (
    DEFAULT_HEADER,
    KERNEL32_MD5,
    TEST_MEMORY_BUDGET,
    build_index,
    make_corpus,
    make_row,
    make_unit,
    write_file_list,
    write_system_info,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("C:\\Windows\\System32", "Windows\\System32"),
        ("d:\\Data", "Data"),
        ("\\\\server\\share", "\\\\server\\share"),
        ("Windows\\System32", "Windows\\System32"),
        ("C:", "C:"),
        ("C:/Windows", "C:/Windows"),
    ],
)
def test_strip_drive_prefix(value: str, expected: str) -> None:
    assert strip_drive_prefix(value) == expected


def test_normalize_record_strips_paths_and_keeps_hashes() -> None:
    schema = IndexSchema.from_field_names(["DirectoryName", "FullName", "Name", "MD5", "Length"])
    record = {
        "DirectoryName": "C:\\Windows\\System32",
        "FullName": "C:\\Windows\\System32\\kernel32.dll",
        "Name": "C:kernel32.dll",
        "MD5": KERNEL32_MD5,
        "Sddl": "O:S-1-5-80",
        "Unknown": "x",
        "Length": 12,
    }

    assert normalize_record(record, schema) == {
        "DirectoryName": "Windows\\System32",
        "FullName": "Windows\\System32\\kernel32.dll",
        "Name": "C:kernel32.dll",
        "MD5": KERNEL32_MD5,
    }


def test_effective_workers_bounded_by_memory_budget() -> None:
    assert effective_workers(100_000_000, 4) == 4
    assert effective_workers(2 * MIN_ARENA_PER_WORKER, 8) == 2
    assert effective_workers(10, 4) == 1


def test_default_commit_policy_per_mode() -> None:
    assert default_commit_policy(IngestMode.SEQUENTIAL) is CommitPolicy.PER_UNIT
    assert default_commit_policy(IngestMode.PARALLEL) is CommitPolicy.FINAL


def test_sequential_ingest_commits_per_unit(tmp_path: Path) -> None:
    corpus = make_corpus(tmp_path / "corpus")

    index, result = build_index(corpus, tmp_path / "index", mode="sequential")
    with index:
        assert result.units_seen == 2
        assert result.units_indexed == 2
        assert result.units_failed == 0
        assert result.documents == 3
        assert result.commits == 2
        assert index.reader().num_docs() == 3


@pytest.mark.parametrize("policy", [None, "per_unit", "final"])
def test_parallel_ingest_matches_sequential(tmp_path: Path, policy: str | None) -> None:
    corpus = make_corpus(tmp_path / "corpus")
    for i in range(5):
        make_unit(corpus, f"extra/{i}", rows=[make_row(Name=f"file{i}.dll")])

    index, result = build_index(
        corpus, tmp_path / "index", mode="parallel", workers=3, commit_policy=policy
    )
    with index:
        assert result.units_indexed == 7
        assert result.documents == 8
        if policy in (None, "final"):
            assert result.commits == 1
        reader = index.reader()
        assert reader.num_docs() == 8
        assert len(reader.search(phrase("Name", "file3.dll"), 10)) == 1


def test_ingested_values_are_normalized(tmp_path: Path) -> None:
    corpus = make_corpus(tmp_path / "corpus")

    index, _ = build_index(corpus, tmp_path / "index")
    with index:
        hits = index.reader().get_query_hits(phrase("DirectoryName", "windows\\system32"), 10)

    assert len(hits) == 1
    assert hits[0]["DirectoryName"] == ["Windows\\System32"]
    assert hits[0]["FullName"] == ["Windows\\System32\\kernel32.dll"]
    assert hits[0]["MD5"] == [KERNEL32_MD5]
    assert hits[0]["OsName"] == ["Microsoft Windows 10 Pro"]
    assert "Sddl" not in hits[0]
    assert "LastWriteTimeUtc" not in hits[0]


def test_every_indexed_value_is_found(tmp_path: Path) -> None:
    corpus = make_corpus(tmp_path / "corpus")

    index, _ = build_index(corpus, tmp_path / "index")
    with index:
        reader = index.reader()
        for name in ("kernel32.dll", "ntfs.sys"):
            assert reader.search(phrase("Name", name), 10)
        for md5 in ("A" * 32, "C" * 32, "E" * 32):
            assert reader.search(phrase("MD5", md5.lower()), 10)


def test_folder_with_two_csv_files_contributes_nothing(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    corpus = tmp_path / "corpus"
    make_unit(corpus, "good")
    bad = make_unit(corpus, "bad", rows=[make_row(Name="ghost.dll")])
    write_file_list(bad, [make_row(Name="ghost2.dll")], filename="more.csv")

    with caplog.at_level(logging.ERROR):
        index, result = build_index(corpus, tmp_path / "index")

    with index:
        assert result.units_seen == 1
        assert result.documents == 1
        assert index.reader().search(phrase("Name", "ghost.dll"), 10) == []
    assert "2 csv files were found in path" in caplog.text


def test_unit_with_bad_system_info_is_counted_as_failed(tmp_path: Path) -> None:
    corpus = tmp_path / "corpus"
    make_unit(corpus, "good")
    bad = corpus / "bad"
    bad.mkdir()
    write_system_info(bad, text="no identity here\n")
    write_file_list(bad, [make_row(Name="ghost.dll")])

    index, result = build_index(corpus, tmp_path / "index")
    with index:
        assert result.units_seen == 2
        assert result.units_failed == 1
        assert result.units_indexed == 1
        assert result.errors and "bad" in result.errors[0]


@pytest.mark.parametrize("mode", ["sequential", "parallel"])
def test_delete_all_then_ingest_is_idempotent(tmp_path: Path, mode: str) -> None:
    corpus = make_corpus(tmp_path / "corpus")
    location = tmp_path / "index"

    with Index.create(location, infer_schema(corpus)) as index:
        first = ingest(corpus, index, TEST_MEMORY_BUDGET, mode=mode, reset=True)
        count_first = index.reader().num_docs()
        second = ingest(corpus, index, TEST_MEMORY_BUDGET, mode=mode, reset=True)
        count_second = index.reader().num_docs()

    assert first.documents == second.documents == 3
    assert count_first == count_second == 3


def test_small_arena_flushes_in_batches(tmp_path: Path) -> None:
    corpus = tmp_path / "corpus"
    make_unit(corpus, "many", rows=[make_row(Name=f"f{i}.dll") for i in range(50)])

    index, result = build_index(corpus, tmp_path / "index", memory_budget=1)
    with index:
        assert result.documents == 50
        assert index.reader().num_docs() == 50


def test_headers_differing_only_in_case_are_indexed_together(tmp_path: Path) -> None:
    corpus = tmp_path / "corpus"
    make_unit(corpus, "plain", rows=[make_row(Name="a.dll")])
    make_unit(
        corpus,
        "lowercase-extra",
        rows=[make_row(Name="b.dll", length="42")],
        header=(*DEFAULT_HEADER, "length"),
    )

    index, result = build_index(corpus, tmp_path / "index")
    with index:
        reader = index.reader()
        hit = reader.get_query_hits(phrase("Name", "b.dll"), 1)[0]

    assert {"Length", "length"} <= set(index.schema.field_names)
    assert result.documents == 2
    assert hit["Length"] == ["770808"]
    assert hit["length"] == ["42"]
