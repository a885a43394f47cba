"""HTTP tests for the lookup service (Flask test client over a real index)."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from apps.flask_api.flask_app import create_app
from infra.config import APIConfig
from tests.factories import KERNEL32_MD5, KERNEL32_SHA256, build_index, make_corpus, make_row, make_unit


@pytest.fixture()
def client(tmp_path: Path) -> Iterator[Any]:
    index, _ = build_index(make_corpus(tmp_path / "corpus"), tmp_path / "index")
    with index:
        app = create_app(index.reader(), api_config=APIConfig(), query_limit=1000)
        app.testing = True
        yield app.test_client()


def test_lookup_name_returns_aggregation_and_flags(client: Any) -> None:
    resp = client.post("/api/v1/lookup/name", json={"value": "kernel32.dll", "path": "C:\\Windows\\System32"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["KnownName"] is True
    assert body["KnownPath"] is True
    assert body["Name"] == ["kernel32.dll"]
    assert body["OsName"] == ["Microsoft Windows 10 Pro", "Microsoft Windows 11 Pro"]


def test_lookup_name_unknown(client: Any) -> None:
    body = client.post("/api/v1/lookup/name", json={"value": "evil.exe"}).get_json()
    assert body == {"KnownName": False, "KnownPath": None}


def test_lookup_fullname(client: Any) -> None:
    resp = client.post("/api/v1/lookup/fullname", json={"value": "C:/Windows/SysWOW64/kernel32.dll"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["KnownName"] is True
    assert body["KnownPath"] is True


def test_lookup_fullname_without_parent_is_bad_request(client: Any) -> None:
    resp = client.post("/api/v1/lookup/fullname", json={"value": "kernel32.dll"})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "bad_request"


def test_lookup_hash_md5_and_sha256(client: Any) -> None:
    md5 = client.post("/api/v1/lookup/hash", json={"value": KERNEL32_MD5.lower()}).get_json()
    sha = client.post("/api/v1/lookup/hash", json={"value": KERNEL32_SHA256}).get_json()

    assert md5["MD5"] == [KERNEL32_MD5]
    assert "KnownName" not in md5
    assert sha["SHA256"] == [KERNEL32_SHA256]


def test_lookup_hash_with_31_characters_is_rejected(client: Any) -> None:
    resp = client.post("/api/v1/lookup/hash", json={"value": "a" * 31})

    assert resp.status_code == 400
    body = resp.get_json()
    assert body == {"ok": False, "error": "bad_request", "message": "Unhandled hash type with length: 31"}


@pytest.mark.parametrize(
    "payload",
    [
        ["kernel32.dll"],
        {},
        {"value": 3},
        {"value": ""},
        {"value": "kernel32.dll", "path": 7},
    ],
)
def test_invalid_bodies_are_bad_requests(client: Any, payload: Any) -> None:
    resp = client.post("/api/v1/lookup/name", json=payload)

    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_non_json_body_is_bad_request(client: Any) -> None:
    resp = client.post("/api/v1/lookup/hash", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_known_routes_return_flags_only(client: Any) -> None:
    name = client.post(
        "/api/v1/known/name", json={"value": "ntfs.sys", "path": "C:\\Windows\\System32\\drivers"}
    ).get_json()
    full = client.post("/api/v1/known/fullname", json={"value": "C:\\Temp\\kernel32.dll"}).get_json()
    bare = client.post("/api/v1/known/name", json={"value": "kernel32.dll"}).get_json()

    assert name == {"KnownName": True, "KnownPath": True}
    assert full == {"KnownName": True, "KnownPath": False}
    assert bare == {"KnownName": True, "KnownPath": None}


def test_banner_health_and_version(client: Any) -> None:
    assert client.get("/").status_code == 200

    health = client.get("/health").get_json()
    assert health == {"ok": True, "documents": 3}

    version = client.get("/api/version").get_json()
    assert version["prefix"] == "/api/v1"
    assert version["index_format"] == 2


def test_unknown_route_is_json_404(client: Any) -> None:
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_get_on_lookup_route_is_405(client: Any) -> None:
    assert client.get("/api/v1/lookup/name").status_code == 405


def test_fullname_routes_accept_files_at_the_drive_root(tmp_path: Path) -> None:
    corpus = make_corpus(tmp_path / "corpus")
    make_unit(
        corpus,
        "Windows10/19043",
        rows=[make_row(DirectoryName="C:\\", Name="pagefile.sys", FullName="C:\\pagefile.sys")],
    )
    index, _ = build_index(corpus, tmp_path / "index")
    with index:
        app = create_app(index.reader(), api_config=APIConfig(), query_limit=1000)
        client = app.test_client()

        resolved = client.post("/api/v1/lookup/fullname", json={"value": "C:\\pagefile.sys"})
        known = client.post("/api/v1/known/fullname", json={"value": "C:\\pagefile.sys"})

    assert resolved.status_code == 200
    body = resolved.get_json()
    assert (body["KnownName"], body["KnownPath"]) == (True, True)
    assert body["DirectoryName"] == [""]
    assert known.status_code == 200
    assert known.get_json() == {"KnownName": True, "KnownPath": True}
