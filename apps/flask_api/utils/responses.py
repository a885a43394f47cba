"""Response helpers for the Flask API.

Every error leaves the service as ``{"ok": false, "error": <code>, "message": <text>}``.
Lookup results are returned bare (see :func:`_json`) so their field names stay
at the top level of the body.
"""

import traceback
from typing import Any, Dict, Optional

from flask import jsonify

# Set by create_app from APIConfig.debug_errors
_API_DEBUG_ERRORS: bool = False


def set_debug_mode(enabled: bool) -> None:
    """Include exception details in 500 responses when enabled."""
    global _API_DEBUG_ERRORS
    _API_DEBUG_ERRORS = enabled


def _ok(data: Optional[Dict[str, Any]] = None, *, status: int = 200) -> Any:
    """``{"ok": true, **data}`` with *status*."""
    payload: Dict[str, Any] = {"ok": True}
    if data:
        payload.update(data)
    return jsonify(payload), status


def _err(
    code: str,
    message: str,
    *,
    status: int,
    extra: Optional[Dict[str, Any]] = None,
) -> Any:
    """Error envelope.

    Args:
        code: Machine-readable code ('bad_request', 'index_error', 'not_found', ...)
        message: Text shown to the caller
        status: HTTP status code
        extra: Additional keys merged into the body (debug details)
    """
    payload: Dict[str, Any] = {"ok": False, "error": code, "message": message}
    if extra:
        payload.update(extra)
    return jsonify(payload), status


def _json(payload: Dict[str, Any], *, status: int = 200) -> Any:
    """Plain JSON body (no ``ok`` envelope) with an explicit status code."""
    return jsonify(payload), status


def _internal_error(code: str, exc: BaseException) -> Any:
    """500 response; the exception text and traceback only in debug mode."""
    extra = None
    if _API_DEBUG_ERRORS:
        extra = {"detail": str(exc), "traceback": traceback.format_exc()}
    return _err(code, "internal error", status=500, extra=extra)
