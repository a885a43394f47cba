"""Banner, health and version endpoints (GET, unversioned paths)."""

from typing import Any

from flask import Blueprint, current_app

from apps.flask_api.blueprints.lookup import SERVICE_EXTENSION
from apps.flask_api.utils import _json, _ok
from version import ENGINE_NAME, ENGINE_VERSION, INDEX_FORMAT_VERSION

health_bp = Blueprint("health", __name__)

# Set from the main app
_API_VERSION: str = "v1"
_API_PREFIX: str = "/api/v1"


def init_blueprint(api_version: str, api_prefix: str) -> None:
    """Record the API version and lookup prefix shown by ``/`` and ``/api/version``."""
    global _API_VERSION, _API_PREFIX
    _API_VERSION = api_version
    _API_PREFIX = api_prefix


@health_bp.route("/", methods=["GET"])
def index() -> Any:
    return f"{ENGINE_NAME} {ENGINE_VERSION}: POST {_API_PREFIX}/lookup/{{hash,name,fullname}}\n"


@health_bp.route("/health", methods=["GET"])
def health() -> Any:
    """Basic health check, with the number of documents the service sees."""
    service = current_app.extensions.get(SERVICE_EXTENSION)
    num_docs = service.reader.num_docs() if service is not None else None
    return _ok({"documents": num_docs})


@health_bp.route("/api/version", methods=["GET"])
def api_version() -> Any:
    """API version metadata and supported versions."""
    return _json(
        {
            "engine": ENGINE_NAME,
            "engine_version": ENGINE_VERSION,
            "index_format": INDEX_FORMAT_VERSION,
            "version": _API_VERSION,
            "prefix": _API_PREFIX,
            "supported_versions": [_API_VERSION],
        }
    )
