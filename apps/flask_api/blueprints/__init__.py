"""Flask API Blueprints package.

- health: Banner, health check and version endpoints
- lookup: Hash / name / full path lookups against the index
"""

from apps.flask_api.blueprints.health import health_bp
from apps.flask_api.blueprints.lookup import SERVICE_EXTENSION, lookup_bp

__all__ = [
    "SERVICE_EXTENSION",
    "health_bp",
    "lookup_bp",
]
