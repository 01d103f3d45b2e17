"""
Engine for SqlStore and the Alembic env (DATABASE_URL, default sqlite:///./data/app.db).

A relative sqlite path is anchored at the repo root so the API and `alembic upgrade`
resolve the same file whatever the cwd. /health reports the engine as the "db" part.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from modelforge.core.config import get_database_url, resolve_repo_path

SQLITE_PREFIX = "sqlite:///"


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith(SQLITE_PREFIX):
        return None
    p = database_url[len(SQLITE_PREFIX):]
    # windows drive (C:/ or C:\) counts as absolute
    if len(p) >= 3 and p[1] == ":" and p[2] in "/\\":
        return Path(p)
    return resolve_repo_path(p)


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is not None:
        return _engine

    url = get_database_url()
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        # FastAPI serves sync routes from a threadpool
        connect_args["check_same_thread"] = False
    sp = resolve_sqlite_path(url)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
        url = SQLITE_PREFIX + sp.as_posix()

    _engine = create_engine(url, connect_args=connect_args)
    return _engine


def db_health(engine: Optional[Engine] = None) -> Dict[str, Any]:
    url = get_database_url()
    sp = resolve_sqlite_path(url)
    info: Dict[str, Any] = {
        "kind": "sqlite" if url.startswith("sqlite") else "unknown",
        "path": sp.as_posix() if sp is not None else url,
    }
    try:
        with (engine or get_engine()).connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        return {"status": "error", **info, "error": str(e)}
    return {"status": "ok", **info}
