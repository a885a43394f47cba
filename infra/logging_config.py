"""Centralized logging configuration.

Every tool logs to stderr, either as ``time | level | logger | message`` text
lines or as one JSON object per line. Tool verbosity names are
``Off``, ``Error``, ``Warn``, ``Info``, ``Debug`` and ``Trace``:

- ``Trace`` is registered as a custom level below ``DEBUG`` (per-document
  ingestion detail).
- ``Off`` raises the root threshold above ``CRITICAL``.

HTTP requests carry a small context (request id) that is attached to every
JSON line emitted while the request is handled.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Mapping
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from infra.config import get_settings, normalize_level_name

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_OFF = logging.CRITICAL + 10

_LEVELS: dict[str, int] = {
    "OFF": _OFF,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "TRACE": TRACE,
}

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
}

_request_ctx: ContextVar[Mapping[str, Any]] = ContextVar("vanilla_request_ctx", default={})


def set_request_context(**kwargs: Any) -> None:
    """Merge *kwargs* into the context attached to subsequent JSON log lines."""
    _request_ctx.set({**_request_ctx.get(), **kwargs})


def clear_request_context() -> None:
    _request_ctx.set({})


def get_request_context() -> dict[str, Any]:
    return dict(_request_ctx.get())


def level_from_name(name: str | None) -> int:
    """Map a tool verbosity name (any case) to a stdlib logging level."""
    return _LEVELS[normalize_level_name(name)]


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys, first writer wins: the record basics, ``extra=`` attributes,
    the fixed *extra_fields*, then the request context.
    """

    def __init__(self, *, extra_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._extra_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        extras = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        for source in (extras, self._extra_fields, _request_ctx.get()):
            for key, value in source.items():
                payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Plain text with UTC timestamps."""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")


class StructuredLogger:
    """Logs named events with key/value fields.

    The fields become JSON keys under :class:`JsonFormatter` and
    ``key=value`` pairs in text mode::

        StructuredLogger(__name__).info("http_request", path="/health", status=200)
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def log(self, level: int, event: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        rendered = " ".join(f"{k}={v}" for k, v in fields.items())
        self._logger.log(level, f"{event} {rendered}".rstrip(), extra={"event": event, **fields})

    def info(self, event: str, **fields: Any) -> None:
        self.log(logging.INFO, event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self.log(logging.ERROR, event, **fields)


def setup_logging(
    *,
    level: str | None = None,
    json_logs: bool | None = None,
    override_root_handlers: bool | None = None,
    extra_fields: Mapping[str, Any] | None = None,
) -> None:
    """Configure the root logger for a tool run.

    Arguments left as ``None`` come from the logging settings
    (``VANILLA_LOG_LEVEL``, ``VANILLA_LOG_JSON``, ``VANILLA_LOG_OVERRIDE``).
    Unless overriding, a handler is only added when the root has none, so
    pytest's capture handlers and embedding applications are left alone.
    """
    config = get_settings(reload=True).logging
    level_name = normalize_level_name(level or config.level)
    as_json = config.json_logs if json_logs is None else json_logs
    override = config.override_root_handlers if override_root_handlers is None else override_root_handlers

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter(extra_fields=extra_fields) if as_json else TextFormatter())

    root = logging.getLogger()
    root.setLevel(_LEVELS[level_name])
    if override:
        for existing in list(root.handlers):
            root.removeHandler(existing)
    if override or not root.handlers:
        root.addHandler(handler)

    # werkzeug logs every request line on its own; the service logs them as events
    logging.getLogger("werkzeug").setLevel(max(_LEVELS[level_name], logging.WARNING))
    logging.getLogger(__name__).log(TRACE, "Logging initialized at level %s", level_name)
