from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Set

from modelforge.core.errors import NotFoundError
from modelforge.core.ids import new_ulid
from modelforge.core.observability import now_iso


class EntityKind(str, Enum):
    GAME_SYSTEMS = "game_systems"
    ARMIES = "armies"
    MODELS = "models"
    PAINTS = "paints"
    PAINTING_SESSIONS = "painting_sessions"


# whole-collection blob keys (one JSON document per collection)
COLLECTION_KEYS: Dict[EntityKind, str] = {
    EntityKind.GAME_SYSTEMS: "game-systems.json",
    EntityKind.ARMIES: "armies.json",
    EntityKind.MODELS: "models.json",
    EntityKind.PAINTS: "paints.json",
    EntityKind.PAINTING_SESSIONS: "painting-sessions.json",
}
SETTINGS_KEY = "settings.json"

DEFAULT_SETTINGS: Dict[str, Any] = {"min_stock_threshold": 2}

# fields a patch may never overwrite
_IMMUTABLE_FIELDS = ("id", "created_at")


class EntityStore(Protocol):
    """
    Persistence port for the orchestrator.

    - every call is a full round trip; no partial-update or transaction semantics across calls
    - update raises NotFoundError for unknown ids
    - delete is idempotent and performs the game system / army cascades itself
    """
    name: str

    async def list(self, kind: EntityKind) -> List[Dict[str, Any]]:
        ...

    async def add(self, kind: EntityKind, fields: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    async def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        ...

    async def bulk_add(self, kind: EntityKind, items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        ...

    async def get_settings(self) -> Dict[str, Any]:
        ...

    async def save_settings(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    async def clear_all(self) -> None:
        ...

    def health(self) -> Dict[str, Any]:
        ...


def stamp_new(kind: EntityKind, fields: Mapping[str, Any]) -> Dict[str, Any]:
    data = {k: copy.deepcopy(v) for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
    data["id"] = new_ulid()
    if kind is EntityKind.MODELS:
        now = now_iso()
        data["created_at"] = now
        data["last_updated"] = now
    return data


def apply_patch(kind: EntityKind, current: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(current)
    for k, v in patch.items():
        if k in _IMMUTABLE_FIELDS:
            continue
        merged[k] = copy.deepcopy(v)
    if kind is EntityKind.MODELS:
        merged["last_updated"] = now_iso()
    return merged


def cascade_delete(
    collections: Dict[EntityKind, List[Dict[str, Any]]],
    kind: EntityKind,
    entity_id: str,
) -> Dict[EntityKind, List[Dict[str, Any]]]:
    """
    Return the collections that changed after deleting (kind, entity_id).

    game system: drop its armies, then models on the system or on any dropped army;
    sessions lose the system reference.
    army: pull the id from every model's army_ids; models survive.
    """
    changed: Dict[EntityKind, List[Dict[str, Any]]] = {}
    rows = collections[kind]
    changed[kind] = [r for r in rows if r.get("id") != entity_id]

    if kind is EntityKind.GAME_SYSTEMS:
        armies = collections[EntityKind.ARMIES]
        dropped: Set[str] = {a["id"] for a in armies if a.get("game_system_id") == entity_id}
        changed[EntityKind.ARMIES] = [a for a in armies if a["id"] not in dropped]
        changed[EntityKind.MODELS] = [
            m
            for m in collections[EntityKind.MODELS]
            if m.get("game_system_id") != entity_id and not dropped.intersection(m.get("army_ids") or [])
        ]
        sessions: List[Dict[str, Any]] = []
        for s in collections[EntityKind.PAINTING_SESSIONS]:
            if s.get("game_system_id") == entity_id:
                s = {**s, "game_system_id": None}
            sessions.append(s)
        changed[EntityKind.PAINTING_SESSIONS] = sessions

    elif kind is EntityKind.ARMIES:
        models: List[Dict[str, Any]] = []
        for m in collections[EntityKind.MODELS]:
            army_ids = m.get("army_ids") or []
            if entity_id in army_ids:
                m = {**m, "army_ids": [a for a in army_ids if a != entity_id]}
            models.append(m)
        changed[EntityKind.MODELS] = models

    return changed


class CollectionStore:
    """
    Shared read-modify-write logic for stores that persist each collection as one blob.
    Subclasses provide _read/_write/_read_settings/_write_settings/_wipe.

    No method awaits between its read and its write, so each call is atomic on the event loop.
    File I/O runs on the loop thread and blocks it until the call returns.
    """
    name = "collection"

    def _read(self, kind: EntityKind) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, kind: EntityKind, rows: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def _read_settings(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _write_settings(self, settings: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _wipe(self) -> None:
        raise NotImplementedError

    def health(self) -> Dict[str, Any]:
        return {"status": "ok", "kind": self.name}

    async def list(self, kind: EntityKind) -> List[Dict[str, Any]]:
        return self._read(kind)

    async def add(self, kind: EntityKind, fields: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._read(kind)
        row = stamp_new(kind, fields)
        rows.append(row)
        self._write(kind, rows)
        return copy.deepcopy(row)

    async def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._read(kind)
        for i, row in enumerate(rows):
            if row.get("id") == entity_id:
                rows[i] = apply_patch(kind, row, patch)
                self._write(kind, rows)
                return copy.deepcopy(rows[i])
        raise NotFoundError(kind.value, entity_id)

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        collections = {k: self._read(k) for k in EntityKind}
        for k, rows in cascade_delete(collections, kind, entity_id).items():
            if rows != collections[k]:
                self._write(k, rows)

    async def bulk_add(self, kind: EntityKind, items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        rows = self._read(kind)
        added = [stamp_new(kind, it) for it in items]
        rows.extend(added)
        self._write(kind, rows)
        return copy.deepcopy(added)

    async def get_settings(self) -> Dict[str, Any]:
        return {**DEFAULT_SETTINGS, **self._read_settings()}

    async def save_settings(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        merged = {**DEFAULT_SETTINGS, **self._read_settings(), **dict(settings)}
        self._write_settings(merged)
        return merged

    async def clear_all(self) -> None:
        self._wipe()
