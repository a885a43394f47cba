"""Settings for the indexing tools and the lookup service.

Values come from a local ``.env`` file, overridden by the process environment,
overridden in turn by the command line flags of the tools. Each setting accepts
a nested name (``INDEX__LOCATION``) and a flat one (``VANILLA_INDEX_LOCATION``).
Constraint violations raise :class:`pydantic.ValidationError`; unknown mode,
commit policy and level names fall back to their defaults.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_MEMORY_BUDGET = 100_000_000
DEFAULT_CORPUS_URL = "https://github.com/AndrewRathbun/VanillaWindowsReference"

# Tool verbosity names, mapped onto stdlib levels by infra.logging_config.
LOG_LEVEL_NAMES = ("OFF", "ERROR", "WARN", "INFO", "DEBUG", "TRACE")
_LEVEL_ALIASES = {"WARNING": "WARN", "CRITICAL": "ERROR", "NONE": "OFF"}


def normalize_level_name(value: object, *, default: str = "INFO") -> str:
    """Return the canonical upper-case level name, or *default* if unknown."""
    text = str(value or "").strip().upper()
    text = _LEVEL_ALIASES.get(text, text)
    if text in LOG_LEVEL_NAMES:
        return text
    return default


def _parse_bool(value: object, *, default: bool) -> bool:
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


class IndexSettings(BaseModel):
    """Index location and ingestion tuning."""

    model_config = ConfigDict(frozen=True)

    source: str | None = Field(default=None, description="Corpus root folder")
    location: str | None = Field(default=None, description="Index folder")
    memory_budget: int = Field(default=DEFAULT_MEMORY_BUDGET, ge=1_000_000)
    workers: int = Field(default=4, ge=1, le=64)
    mode: str = Field(default="parallel")
    commit_policy: str | None = Field(default=None)
    query_limit: int = Field(default=1000, ge=1, le=100_000)

    @field_validator("source", "location", mode="before")
    @classmethod
    def _normalize_optional_path(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: object) -> str:
        text = str(value or "").strip().lower()
        if text in {"parallel", "sequential"}:
            return text
        return "parallel"

    @field_validator("commit_policy", mode="before")
    @classmethod
    def _normalize_commit_policy(cls, value: object) -> str | None:
        text = str(value or "").strip().lower().replace("-", "_")
        if text in {"per_unit", "final"}:
            return text
        return None


class APIConfig(BaseModel):
    """Flask service runtime configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)
    version: str = Field(default="v1")
    debug_errors: bool = Field(default=False)

    @field_validator("version")
    @classmethod
    def _normalize_version(cls, value: str) -> str:
        text = str(value or "").strip().lower()
        if re.match(r"^v\d+$", text):
            return text
        return "v1"

    @field_validator("debug_errors", mode="before")
    @classmethod
    def _normalize_debug_errors(cls, value: object) -> bool:
        return _parse_bool(value, default=False)


class LoggingSettings(BaseModel):
    """Repository-wide logging settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return normalize_level_name(value)

    @field_validator("json_logs", "override_root_handlers", mode="before")
    @classmethod
    def _normalize_flags(cls, value: object) -> bool:
        return _parse_bool(value, default=False)


class CorpusSettings(BaseModel):
    """Where the reference corpus is cloned from when no source is given."""

    model_config = ConfigDict(frozen=True)

    clone_url: str = Field(default=DEFAULT_CORPUS_URL)
    clone_depth: int | None = Field(default=1, ge=1)

    @field_validator("clone_url", mode="before")
    @classmethod
    def _normalize_url(cls, value: object) -> str:
        text = str(value or "").strip()
        return text or DEFAULT_CORPUS_URL


class Settings(BaseModel):
    """Top-level settings model."""

    model_config = ConfigDict(frozen=True)

    index: IndexSettings = Field(default_factory=IndexSettings)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    corpus: CorpusSettings = Field(default_factory=CorpusSettings)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from ``.env`` values overridden by *env* (``os.environ`` by default)."""
        merged = {**_read_dotenv(Path(env_file)), **(os.environ if env is None else env)}
        return cls.model_validate(_payload_from_env(merged))


# section -> field -> accepted env names, most specific first
_ENV_KEYS: dict[str, dict[str, tuple[str, ...]]] = {
    "index": {
        "source": ("INDEX__SOURCE", "VANILLA_SOURCE"),
        "location": ("INDEX__LOCATION", "VANILLA_INDEX_LOCATION"),
        "memory_budget": ("INDEX__MEMORY_BUDGET", "VANILLA_OVERALL_MEMORY"),
        "workers": ("INDEX__WORKERS", "VANILLA_WORKERS"),
        "mode": ("INDEX__MODE", "VANILLA_INDEX_MODE"),
        "commit_policy": ("INDEX__COMMIT_POLICY", "VANILLA_COMMIT_POLICY"),
        "query_limit": ("INDEX__QUERY_LIMIT", "VANILLA_QUERY_LIMIT"),
    },
    "api": {
        "host": ("API__HOST", "API_HOST", "HOST"),
        "port": ("API__PORT", "API_PORT", "PORT"),
        "version": ("API__VERSION", "API_VERSION"),
        "debug_errors": ("API__DEBUG_ERRORS", "API_DEBUG_ERRORS"),
    },
    "logging": {
        "level": ("LOGGING__LEVEL", "VANILLA_LOG_LEVEL"),
        "json_logs": ("LOGGING__JSON_LOGS", "VANILLA_LOG_JSON"),
        "override_root_handlers": ("LOGGING__OVERRIDE_ROOT_HANDLERS", "VANILLA_LOG_OVERRIDE"),
    },
    "corpus": {
        "clone_url": ("CORPUS__CLONE_URL", "VANILLA_CORPUS_URL"),
        "clone_depth": ("CORPUS__CLONE_DEPTH", "VANILLA_CORPUS_CLONE_DEPTH"),
    },
}


def _read_dotenv(path: Path) -> dict[str, str]:
    """``KEY=value`` lines of *path*; comments, blanks and malformed lines are ignored."""
    if not path.is_file():
        return {}
    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or key.startswith("#"):
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        values[key] = value
    return values


def _payload_from_env(env: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """Nested model payload holding only the settings that are actually set."""
    payload: dict[str, dict[str, str]] = {}
    for section, fields in _ENV_KEYS.items():
        found: dict[str, str] = {}
        for field, names in fields.items():
            value = next((v for v in (str(env.get(n, "")).strip() for n in names) if v), None)
            if value is not None:
                found[field] = value
        payload[section] = found
    return payload


_settings_lock = Lock()
_settings: Settings | None = None


def get_settings(*, reload: bool = False) -> Settings:
    """Process-wide settings, built on first use or when *reload* is set."""
    global _settings
    with _settings_lock:
        if reload or _settings is None:
            _settings = Settings.from_env()
        return _settings


def clear_settings_cache() -> None:
    global _settings
    with _settings_lock:
        _settings = None


__all__ = [
    "APIConfig",
    "CorpusSettings",
    "DEFAULT_CORPUS_URL",
    "DEFAULT_MEMORY_BUDGET",
    "IndexSettings",
    "LOG_LEVEL_NAMES",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "normalize_level_name",
    "ValidationError",
]
