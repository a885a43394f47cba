"""Flask API utilities package.

- responses: Standardized HTTP response helpers
- params: Request body parsing for the lookup endpoints
"""

from apps.flask_api.utils.params import _json_body, _lookup_request, _optional_text, _require_text
from apps.flask_api.utils.responses import _err, _internal_error, _json, _ok

__all__ = [
    # responses
    "_ok",
    "_err",
    "_json",
    "_internal_error",
    # params
    "_json_body",
    "_lookup_request",
    "_optional_text",
    "_require_text",
]
