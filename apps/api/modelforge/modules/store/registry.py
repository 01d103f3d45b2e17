from __future__ import annotations

from typing import Optional

from modelforge.core.config import get_store_kind

from .base import EntityStore
from .json_store import JsonFileStore
from .memory_store import MemoryStore
from .sql_store import SqlStore


def get_store(kind: Optional[str] = None) -> EntityStore:
    """
    Registry entry point, routed by STORE_KIND:
      memory -> MemoryStore (nothing persisted)
      json   -> JsonFileStore under STORAGE_ROOT
      sql    -> SqlStore on DATABASE_URL (tables bootstrapped if migrations have not run)
    """
    kind = kind or get_store_kind()
    if kind == "memory":
        return MemoryStore()
    if kind == "json":
        return JsonFileStore()
    if kind == "sql":
        return SqlStore(create_schema=True)
    raise ValueError(f"unknown store kind: {kind!r}")
