from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'mongodb' (default) or 'memory'
    - MONGODB_URI: MongoDB connection string. Without it the API serves transient mock data
    - MONGODB_DB: database name. Default 'taskmanager'
    - MONGODB_COLLECTION: collection holding task documents. Default 'tasks'
    - STORE_TIMEOUT_MS: bound for server selection, connect and socket operations. Default 5000
    - RECONNECT_BACKOFF_SECONDS: delay before the first reconnect attempt. Default 1.0
    - RECONNECT_BACKOFF_MAX_SECONDS: upper bound for the reconnect delay. Default 60
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - TASKS_BASE_PATH: path of the task resource. Default '/api/tasks'
    - OWNER_STRATEGY: 'fixed' (default) or 'bearer'
    - DEFAULT_OWNER: owner used by the 'fixed' strategy. Default 'default-user'
    - LOG_LEVEL: console log level. Default 'INFO'
    """

    persistence_backend: str
    mongodb_uri: Optional[str]
    mongodb_db: str
    mongodb_collection: str
    store_timeout_ms: int
    reconnect_backoff_seconds: float
    reconnect_backoff_max_seconds: float
    cors_allow_origins: List[str]
    tasks_base_path: str
    owner_strategy: str
    default_owner: str
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _normalize_path(path: str) -> str:
    p = "/" + path.strip().strip("/")
    return p if p != "/" else "/api/tasks"


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "mongodb").strip().lower()
    if backend not in {"mongodb", "memory"}:
        # Unsupported values use the real store
        backend = "mongodb"

    uri = os.getenv("MONGODB_URI")
    uri = uri.strip() if uri and uri.strip() else None

    strategy = _get_env("OWNER_STRATEGY", "fixed").strip().lower()
    if strategy not in {"fixed", "bearer"}:
        strategy = "fixed"

    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"

    return Settings(
        persistence_backend=backend,
        mongodb_uri=uri,
        mongodb_db=_get_env("MONGODB_DB", "taskmanager").strip(),
        mongodb_collection=_get_env("MONGODB_COLLECTION", "tasks").strip(),
        store_timeout_ms=_parse_int(_get_env("STORE_TIMEOUT_MS", "5000"), 5000),
        reconnect_backoff_seconds=_parse_float(_get_env("RECONNECT_BACKOFF_SECONDS", "1.0"), 1.0),
        reconnect_backoff_max_seconds=_parse_float(_get_env("RECONNECT_BACKOFF_MAX_SECONDS", "60"), 60.0),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        tasks_base_path=_normalize_path(_get_env("TASKS_BASE_PATH", "/api/tasks")),
        owner_strategy=strategy,
        default_owner=_get_env("DEFAULT_OWNER", "default-user").strip(),
        log_level=log_level,
    )
