"""Lookup endpoints Blueprint.

All routes take a JSON object body ``{"value": str}``; the name routes also
accept an optional ``"path"``.

- ``/api/v1/lookup/hash``: aggregation of the documents with that MD5 (32
  chars) or SHA256 (64 chars).
- ``/api/v1/lookup/name``, ``/api/v1/lookup/fullname``: aggregation plus
  ``KnownName`` / ``KnownPath``.
- ``/api/v1/known/name``, ``/api/v1/known/fullname``: ``KnownName`` /
  ``KnownPath`` only.
"""

import logging
from typing import Any

from flask import Blueprint, current_app

from apps.flask_api.utils import _err, _internal_error, _json, _lookup_request
from contracts.errors import IndexStorageError, RequestValidationError
from services.lookup import KNOWN_NAME, KNOWN_PATH, LookupService

logger = logging.getLogger(__name__)

SERVICE_EXTENSION = "vanilla_lookup"

lookup_bp = Blueprint("lookup", __name__, url_prefix="/api/v1")


def _service() -> LookupService:
    return current_app.extensions[SERVICE_EXTENSION]


@lookup_bp.errorhandler(RequestValidationError)
def _bad_request(exc: RequestValidationError) -> Any:
    return _err("bad_request", str(exc), status=400)


@lookup_bp.errorhandler(IndexStorageError)
def _index_error(exc: IndexStorageError) -> Any:
    logger.error("Index error: %s", exc)
    return _internal_error("index_error", exc)


@lookup_bp.post("/lookup/hash")
def lookup_hash() -> Any:
    value, _ = _lookup_request(with_path=False)
    return _json(_service().lookup_hash(value).to_dict())


@lookup_bp.post("/lookup/name")
def lookup_name() -> Any:
    value, path = _lookup_request(with_path=True)
    return _json(_service().lookup_name(value, path).to_dict())


@lookup_bp.post("/lookup/fullname")
def lookup_fullname() -> Any:
    value, _ = _lookup_request(with_path=False)
    return _json(_service().lookup_fullname(value).to_dict())


@lookup_bp.post("/known/name")
def known_name() -> Any:
    value, path = _lookup_request(with_path=True)
    result = _service().known_name(value, path)
    return _json({KNOWN_NAME: result.known_name, KNOWN_PATH: result.known_path})


@lookup_bp.post("/known/fullname")
def known_fullname() -> Any:
    value, _ = _lookup_request(with_path=False)
    result = _service().known_fullname(value)
    return _json({KNOWN_NAME: result.known_name, KNOWN_PATH: result.known_path})
