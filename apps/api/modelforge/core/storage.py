"""
Directory that JsonFileStore writes its collection blobs into (STORAGE_ROOT, default ./data/storage).
/health reports it as the "storage" part; the probe write catches read-only or missing mounts
before the first save does.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from modelforge.core.config import get_storage_root_raw, resolve_repo_path


def get_storage_root() -> Path:
    return resolve_repo_path(get_storage_root_raw())


def ensure_storage_root(root: Optional[Path] = None) -> Path:
    root = root or get_storage_root()
    root.mkdir(parents=True, exist_ok=True)
    return root


def storage_health(root: Optional[Path] = None) -> Dict[str, Any]:
    target = root or get_storage_root()
    info: Dict[str, Any] = {"kind": "local_fs", "root": target.as_posix()}
    try:
        ensure_storage_root(target)
        probe = target / ".probe_write"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink(missing_ok=True)
    except OSError as e:
        return {"status": "error", **info, "error": str(e)}
    return {"status": "ok", **info}
