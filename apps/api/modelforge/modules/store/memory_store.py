from __future__ import annotations

import copy
from typing import Any, Dict, List

from .base import CollectionStore, EntityKind


class MemoryStore(CollectionStore):
    """
    Process-local store (mock API stand-in):
    - collections are deep-copied in and out so callers never share rows with the store
    - nothing survives a restart
    """
    name = "memory"

    def __init__(self) -> None:
        self._collections: Dict[EntityKind, List[Dict[str, Any]]] = {k: [] for k in EntityKind}
        self._settings: Dict[str, Any] = {}

    def _read(self, kind: EntityKind) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._collections[kind])

    def _write(self, kind: EntityKind, rows: List[Dict[str, Any]]) -> None:
        self._collections[kind] = copy.deepcopy(rows)

    def _read_settings(self) -> Dict[str, Any]:
        return dict(self._settings)

    def _write_settings(self, settings: Dict[str, Any]) -> None:
        self._settings = dict(settings)

    def _wipe(self) -> None:
        self._collections = {k: [] for k in EntityKind}
        self._settings = {}
