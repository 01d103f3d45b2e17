"""
Runtime configuration (env driven).

Defaults:
- STORE_KIND: json (memory|json|sql)
- DATABASE_URL: sqlite:///./data/app.db
- STORAGE_ROOT: ./data/storage
"""
from __future__ import annotations

import os
from pathlib import Path

DEFAULT_APP_VERSION = "0.1.0"
DEFAULT_STORE_KIND = "json"
DEFAULT_DATABASE_URL = "sqlite:///./data/app.db"
DEFAULT_STORAGE_ROOT = "./data/storage"
DEFAULT_NOTIFY_TTL_SECONDS = 5.0

STORE_KINDS = ("memory", "json", "sql")


def repo_root() -> Path:
    # apps/api/modelforge/core/config.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_repo_path(raw: str) -> Path:
    """Relative paths in DATABASE_URL / STORAGE_ROOT are anchored at the repo root, not the cwd."""
    p = Path(raw)
    return p if p.is_absolute() else (repo_root() / p).resolve()


def _flag(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() not in ("0", "false", "no", "")


def get_app_version() -> str:
    return os.getenv("APP_VERSION", DEFAULT_APP_VERSION)


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_store_kind() -> str:
    kind = os.getenv("STORE_KIND", DEFAULT_STORE_KIND).strip().lower()
    if kind not in STORE_KINDS:
        raise ValueError(f"Unsupported STORE_KIND={kind!r}, expected one of {', '.join(STORE_KINDS)}")
    return kind


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_storage_root_raw() -> str:
    return os.getenv("STORAGE_ROOT", DEFAULT_STORAGE_ROOT)


def get_notify_ttl_seconds() -> float:
    raw = os.getenv("NOTIFY_TTL_SECONDS")
    if raw is None:
        return DEFAULT_NOTIFY_TTL_SECONDS
    try:
        v = float(raw)
    except ValueError:
        return DEFAULT_NOTIFY_TTL_SECONDS
    return max(v, 0.0)


def seed_on_startup() -> bool:
    return _flag("SEED_ON_STARTUP", False)


def export_import_enabled() -> bool:
    # rollback switch for the CSV routes
    return _flag("EXPORT_IMPORT_ENABLED", True)
