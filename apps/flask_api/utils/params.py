"""Request body parsing for the lookup endpoints."""

from typing import Any, Optional, Tuple

from flask import request

from contracts.errors import RequestValidationError


def _json_body() -> dict[str, Any]:
    """Return the JSON object sent with the request.

    Raises:
        RequestValidationError: if the body is not a JSON object.
    """
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return payload


def _require_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise RequestValidationError(f"'{key}' must be a non-empty string")
    return value


def _optional_text(payload: dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RequestValidationError(f"'{key}' must be a string")
    return value


def _lookup_request(*, with_path: bool) -> Tuple[str, Optional[str]]:
    """Parse ``{"value": str, "path"?: str}`` from the request body."""
    payload = _json_body()
    value = _require_text(payload, "value")
    path = _optional_text(payload, "path") if with_path else None
    return value, path
