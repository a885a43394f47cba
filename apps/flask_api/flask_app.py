"""flask_app.py

HTTP lookup service over a vanilla file-list index.

The app is built by :func:`create_app` around one :class:`IndexReader`. The
reader serves a snapshot taken when it was acquired and serializes its calls,
so the app can run under a threaded server.

Run
---
vanilla-lookup serve --index-location ./index --port 8000
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from flask import Flask, Response, request

from apps.flask_api.blueprints import SERVICE_EXTENSION, health_bp, lookup_bp
from apps.flask_api.blueprints.health import init_blueprint
from apps.flask_api.utils import _err, _internal_error
from apps.flask_api.utils.responses import set_debug_mode
from infra.config import APIConfig, get_settings
from infra.logging_config import StructuredLogger, clear_request_context, set_request_context
from pipeline.index_store import IndexReader
from services.lookup import LookupService

_http_log = StructuredLogger("apps.flask_api.http")


def create_app(
    reader: IndexReader,
    *,
    api_config: APIConfig | None = None,
    query_limit: int | None = None,
) -> Flask:
    """Build the Flask app serving lookups from *reader*."""
    settings = get_settings()
    api = api_config or settings.api
    limit = query_limit or settings.index.query_limit

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions[SERVICE_EXTENSION] = LookupService(reader, limit=limit)

    set_debug_mode(api.debug_errors)
    init_blueprint(api.version, f"/api/{api.version}")
    app.register_blueprint(health_bp)
    app.register_blueprint(lookup_bp)

    app.before_request(_start_timer)
    app.after_request(_log_request)
    app.register_error_handler(404, _err_404)
    app.register_error_handler(405, _err_405)
    app.register_error_handler(500, _err_500)
    return app


def _start_timer() -> None:
    clear_request_context()
    set_request_context(request_id=request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12])
    request.environ["_vanilla_t0"] = time.monotonic()


def _log_request(resp: Response) -> Response:
    t0 = float(request.environ.get("_vanilla_t0") or 0.0)
    ms = int(max(0.0, (time.monotonic() - t0) * 1000.0)) if t0 else None
    _http_log.info(
        "http_request",
        method=request.method,
        path=request.path,
        status=int(resp.status_code or 0),
        ms=ms,
    )
    if request.path.startswith("/api/"):
        resp.headers["Cache-Control"] = "no-store"
    return resp


def _err_404(_: Exception) -> Any:
    return _err("not_found", "not found", status=404)


def _err_405(_: Exception) -> Any:
    return _err("method_not_allowed", "method not allowed", status=405)


def _err_500(exc: Exception) -> Any:
    _http_log.error("unhandled_exception", path=request.path, detail=str(exc))
    return _internal_error("internal_error", exc)
