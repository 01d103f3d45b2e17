"""
Key-value JSON store: one JSON document per collection under STORAGE_ROOT.

Layout:
- <root>/game-systems.json, armies.json, models.json, paints.json, painting-sessions.json
- <root>/settings.json
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from modelforge.core.errors import StoreError
from modelforge.core.storage import ensure_storage_root, get_storage_root, storage_health

from .base import COLLECTION_KEYS, SETTINGS_KEY, CollectionStore, EntityKind


class JsonFileStore(CollectionStore):
    name = "json"

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = ensure_storage_root(root or get_storage_root())

    def _path(self, key: str) -> Path:
        return self.root / key

    def _load(self, key: str, default: Any) -> Any:
        p = self._path(key)
        if not p.exists():
            return default
        try:
            return json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StoreError(f"corrupt blob {key}: {e}") from e
        except OSError as e:
            raise StoreError(f"read failed {key}: {e}") from e

    def _dump(self, key: str, data: Any) -> None:
        p = self._path(key)
        tmp = p.with_suffix(p.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, p)
        except OSError as e:
            raise StoreError(f"write failed {key}: {e}") from e

    def _read(self, kind: EntityKind) -> List[Dict[str, Any]]:
        rows = self._load(COLLECTION_KEYS[kind], [])
        if not isinstance(rows, list):
            raise StoreError(f"blob {COLLECTION_KEYS[kind]} is not a list")
        return rows

    def _write(self, kind: EntityKind, rows: List[Dict[str, Any]]) -> None:
        self._dump(COLLECTION_KEYS[kind], rows)

    def _read_settings(self) -> Dict[str, Any]:
        data = self._load(SETTINGS_KEY, {})
        return data if isinstance(data, dict) else {}

    def _write_settings(self, settings: Dict[str, Any]) -> None:
        self._dump(SETTINGS_KEY, settings)

    def _wipe(self) -> None:
        for key in list(COLLECTION_KEYS.values()) + [SETTINGS_KEY]:
            try:
                self._path(key).unlink(missing_ok=True)
            except OSError as e:
                raise StoreError(f"remove failed {key}: {e}") from e

    def health(self) -> Dict[str, Any]:
        return storage_health(self.root)
