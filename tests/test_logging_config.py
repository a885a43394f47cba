"""Tests for logging level names, formatters and request context."""

from __future__ import annotations

import json
import logging

import pytest

from infra.logging_config import (
    TRACE,
    JsonFormatter,
    clear_request_context,
    get_request_context,
    level_from_name,
    set_request_context,
)


@pytest.mark.parametrize(
    ("name", "level"),
    [
        ("Error", logging.ERROR),
        ("Warn", logging.WARNING),
        ("Info", logging.INFO),
        ("Debug", logging.DEBUG),
        ("Trace", TRACE),
    ],
)
def test_level_from_name(name: str, level: int) -> None:
    assert level_from_name(name) == level


def test_off_silences_everything() -> None:
    assert level_from_name("Off") > logging.CRITICAL


def test_request_context_is_merged_and_cleared() -> None:
    clear_request_context()
    set_request_context(request_id="abc")
    set_request_context(path="/api/v1/lookup/hash")

    assert get_request_context() == {"request_id": "abc", "path": "/api/v1/lookup/hash"}
    clear_request_context()
    assert get_request_context() == {}


def test_json_formatter_includes_extras() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.event = "http_request"
    record.status = 200

    payload = json.loads(JsonFormatter(extra_fields={"service": "lookup"}).format(record))

    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["event"] == "http_request"
    assert payload["status"] == 200
    assert payload["service"] == "lookup"
