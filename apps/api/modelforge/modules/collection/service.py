"""
Data orchestrator: the single writer over AppState.

Every mutation
- awaits the store first (pessimistic-then-apply, no rollback needed)
- on success replaces the affected collections and pushes one success notification
- on failure logs a store.<op>.failed event, pushes one error notification, leaves state untouched

Store exceptions never propagate to callers: add/update/bulk return None and delete returns False.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel

from modelforge.core.errors import StoreError
from modelforge.core.observability import current_request_id, emit, now_iso
from modelforge.modules.store.base import DEFAULT_SETTINGS, EntityKind, EntityStore, cascade_delete

from .notifications import Notifier
from .queries import norm
from .schemas import (
    ArmyId,
    GameSystemId,
    ModelId,
    PaintId,
    PaintingSessionId,
    ArmyCreateIn,
    ArmyOut,
    ArmyPatchIn,
    GameSystemCreateIn,
    GameSystemOut,
    GameSystemPatchIn,
    ModelCreateIn,
    ModelOut,
    ModelPatchIn,
    PaintCreateIn,
    PaintingSessionCreateIn,
    PaintingSessionOut,
    PaintingSessionPatchIn,
    PaintOut,
    PaintPatchIn,
    patch_changes,
)
from .state import AppState, to_entities

Payload = Union[BaseModel, Mapping[str, Any]]

_LABELS: Dict[EntityKind, str] = {
    EntityKind.GAME_SYSTEMS: "Game system",
    EntityKind.ARMIES: "Army",
    EntityKind.MODELS: "Model",
    EntityKind.PAINTS: "Paint",
    EntityKind.PAINTING_SESSIONS: "Painting session",
}
_VERBS = {"add": "added", "update": "updated", "delete": "deleted"}
_SESSION_MESSAGES = {
    "add": ("Painting session scheduled!", "Failed to schedule session."),
    "update": ("Painting session updated!", "Failed to update session."),
    "delete": ("Painting session deleted!", "Failed to delete session."),
}


def _messages(op: str, kind: EntityKind) -> Tuple[str, str]:
    if kind is EntityKind.PAINTING_SESSIONS:
        return _SESSION_MESSAGES[op]
    label = _LABELS[kind]
    return f"{label} {_VERBS[op]} successfully!", f"Failed to {op} {label.lower()}."


class DanglingReferenceError(ValueError):
    pass


class BulkOperationError(StoreError):
    def __init__(self, op: str, failures: Sequence[BaseException], total: int) -> None:
        first = failures[0]
        super().__init__(f"{op}: {len(failures)} of {total} calls failed; first: {type(first).__name__}: {first}")
        self.failures = list(failures)
        self.total = total


def _coerce(schema: Type[BaseModel], payload: Payload) -> Any:
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    return schema.model_validate(payload)


class DataOrchestrator:
    def __init__(self, store: EntityStore, notifier: Optional[Notifier] = None) -> None:
        self.store = store
        self.notifier = notifier or Notifier()
        self.state = AppState()
        self.last_error_summary: Optional[Dict[str, Any]] = None

    # -------------------------
    # notifications / failures
    # -------------------------
    def _ok(self, message: str, notify: bool) -> None:
        if notify:
            self.notifier.success(message)

    def _failed(self, op: str, kind: Optional[EntityKind], exc: BaseException, message: str, notify: bool) -> None:
        summary = {
            "op": op,
            "kind": kind.value if kind is not None else None,
            "type": type(exc).__name__,
            "message": str(exc),
            "ts": now_iso(),
        }
        self.last_error_summary = summary
        emit(
            "error",
            f"store.{op}.failed",
            str(exc),
            current_request_id(),
            __name__,
            kind=summary["kind"],
            error_type=summary["type"],
        )
        if notify:
            self.notifier.error(message)

    # -------------------------
    # look-ups
    # -------------------------
    def find(self, kind: EntityKind, entity_id: str) -> Optional[Any]:
        for r in self.state.rows(kind):
            if r.id == entity_id:
                return r
        return None

    def find_game_system(self, game_system_id: GameSystemId) -> Optional[GameSystemOut]:
        return self.find(EntityKind.GAME_SYSTEMS, game_system_id)

    def find_army(self, army_id: ArmyId) -> Optional[ArmyOut]:
        return self.find(EntityKind.ARMIES, army_id)

    def find_model(self, model_id: ModelId) -> Optional[ModelOut]:
        return self.find(EntityKind.MODELS, model_id)

    def find_paint(self, paint_id: PaintId) -> Optional[PaintOut]:
        return self.find(EntityKind.PAINTS, paint_id)

    def find_painting_session(self, session_id: PaintingSessionId) -> Optional[PaintingSessionOut]:
        return self.find(EntityKind.PAINTING_SESSIONS, session_id)

    def game_system_by_name(self, name: str) -> Optional[GameSystemOut]:
        key = norm(name)
        for gs in self.state.game_systems:
            if norm(gs.name) == key:
                return gs
        return None

    def armies_for_system(self, game_system_id: GameSystemId) -> List[ArmyOut]:
        return [a for a in self.state.armies if a.game_system_id == game_system_id]

    def army_by_name(self, game_system_id: GameSystemId, name: str) -> Optional[ArmyOut]:
        key = norm(name)
        for a in self.armies_for_system(game_system_id):
            if norm(a.name) == key:
                return a
        return None

    # -------------------------
    # referential checks (creation / re-pointing only)
    # -------------------------
    def _require_game_system(self, game_system_id: str) -> None:
        if self.find_game_system(game_system_id) is None:
            raise DanglingReferenceError(f"unknown game system: {game_system_id}")

    def _require_armies(self, army_ids: Iterable[str]) -> None:
        missing = [a for a in army_ids if self.find_army(a) is None]
        if missing:
            raise DanglingReferenceError(f"unknown armies: {', '.join(missing)}")

    def _check_army(self, data: ArmyCreateIn) -> None:
        self._require_game_system(data.game_system_id)

    def _check_army_patch(self, changes: Dict[str, Any]) -> None:
        if "game_system_id" in changes:
            self._require_game_system(changes["game_system_id"])

    def _check_model(self, data: ModelCreateIn) -> None:
        self._require_game_system(data.game_system_id)
        self._require_armies(data.army_ids)

    def _check_model_patch(self, changes: Dict[str, Any]) -> None:
        if "game_system_id" in changes:
            self._require_game_system(changes["game_system_id"])
        if "army_ids" in changes:
            self._require_armies(changes["army_ids"])

    # -------------------------
    # generic CRUD
    # -------------------------
    async def _add(
        self,
        kind: EntityKind,
        schema: Type[BaseModel],
        payload: Payload,
        notify: bool = True,
        check: Optional[Callable[[Any], None]] = None,
    ) -> Optional[Any]:
        ok_msg, fail_msg = _messages("add", kind)
        try:
            data = _coerce(schema, payload)
            if check is not None:
                check(data)
            row = await self.store.add(kind, data.model_dump())
            entity = to_entities(kind, [row])[0]
        except Exception as e:
            self._failed("add", kind, e, fail_msg, notify)
            return None
        self.state.replace(kind, [*self.state.rows(kind), entity])
        self._ok(ok_msg, notify)
        return entity

    async def _update(
        self,
        kind: EntityKind,
        schema: Type[BaseModel],
        entity_id: str,
        patch: Payload,
        notify: bool = True,
        check: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> Optional[Any]:
        ok_msg, fail_msg = _messages("update", kind)
        try:
            changes = patch_changes(_coerce(schema, patch))
            if check is not None:
                check(changes)
            row = await self.store.update(kind, entity_id, changes)
            entity = to_entities(kind, [row])[0]
        except Exception as e:
            self._failed("update", kind, e, fail_msg, notify)
            return None
        self.state.replace(kind, [entity if r.id == entity_id else r for r in self.state.rows(kind)])
        self._ok(ok_msg, notify)
        return entity

    async def _delete(self, kind: EntityKind, entity_id: str, notify: bool = True) -> bool:
        ok_msg, fail_msg = _messages("delete", kind)
        try:
            await self.store.delete(kind, entity_id)
        except Exception as e:
            self._failed("delete", kind, e, fail_msg, notify)
            return False
        self._apply_local_delete(kind, [entity_id])
        self._ok(ok_msg, notify)
        return True

    def _apply_local_delete(self, kind: EntityKind, entity_ids: Sequence[str]) -> None:
        # same cascade the collection stores apply, run against the in-session snapshot
        snapshot = self.state.snapshot()
        touched = set()
        for entity_id in entity_ids:
            changed = cascade_delete(snapshot, kind, entity_id)
            snapshot.update(changed)
            touched.update(changed.keys())
        for k in touched:
            self.state.replace(k, to_entities(k, snapshot[k]))

    # -------------------------
    # initial load
    # -------------------------
    async def load(self) -> bool:
        self.state.loading = True
        self.state.error = None
        try:
            kinds = list(EntityKind)
            results = await asyncio.gather(*(self.store.list(k) for k in kinds), self.store.get_settings())
            loaded = {k: to_entities(k, rows) for k, rows in zip(kinds, results[:-1])}
            settings = results[-1]
            for k, rows in loaded.items():
                self.state.replace(k, rows)
            self.state.min_stock_threshold = int(
                settings.get("min_stock_threshold", DEFAULT_SETTINGS["min_stock_threshold"])
            )
            emit("info", "store.load", "collections loaded", current_request_id(), __name__, store=self.store.name,
                 counts={k.value: len(v) for k, v in loaded.items()})
            return True
        except Exception as e:
            self.state.error = "Failed to load data. Please try refreshing the page."
            self._failed("load", None, e, "Failed to load data.", True)
            return False
        finally:
            self.state.loading = False

    # -------------------------
    # game systems
    # -------------------------
    async def add_game_system(self, payload: Payload, notify: bool = True) -> Optional[GameSystemOut]:
        return await self._add(EntityKind.GAME_SYSTEMS, GameSystemCreateIn, payload, notify)

    async def update_game_system(self, game_system_id: str, patch: Payload, notify: bool = True) -> Optional[GameSystemOut]:
        return await self._update(EntityKind.GAME_SYSTEMS, GameSystemPatchIn, game_system_id, patch, notify)

    async def delete_game_system(self, game_system_id: str, notify: bool = True) -> bool:
        """Deletes the system, its armies, and every model on the system or on one of those armies."""
        return await self._delete(EntityKind.GAME_SYSTEMS, game_system_id, notify)

    # -------------------------
    # armies
    # -------------------------
    async def add_army(self, payload: Payload, notify: bool = True) -> Optional[ArmyOut]:
        return await self._add(EntityKind.ARMIES, ArmyCreateIn, payload, notify, check=self._check_army)

    async def update_army(self, army_id: str, patch: Payload, notify: bool = True) -> Optional[ArmyOut]:
        return await self._update(EntityKind.ARMIES, ArmyPatchIn, army_id, patch, notify, check=self._check_army_patch)

    async def delete_army(self, army_id: str, notify: bool = True) -> bool:
        """Deletes the army and pulls its id from every model; the models themselves stay."""
        return await self._delete(EntityKind.ARMIES, army_id, notify)

    # -------------------------
    # models
    # -------------------------
    async def add_model(self, payload: Payload, notify: bool = True) -> Optional[ModelOut]:
        return await self._add(EntityKind.MODELS, ModelCreateIn, payload, notify, check=self._check_model)

    async def update_model(self, model_id: str, patch: Payload, notify: bool = True) -> Optional[ModelOut]:
        return await self._update(EntityKind.MODELS, ModelPatchIn, model_id, patch, notify, check=self._check_model_patch)

    async def delete_model(self, model_id: str, notify: bool = True) -> bool:
        return await self._delete(EntityKind.MODELS, model_id, notify)

    async def bulk_add_models(self, items: Sequence[Payload], notify: bool = True) -> Optional[List[ModelOut]]:
        try:
            data = [_coerce(ModelCreateIn, it) for it in items]
            for d in data:
                self._check_model(d)
            rows = await self.store.bulk_add(EntityKind.MODELS, [d.model_dump() for d in data])
            added = to_entities(EntityKind.MODELS, rows)
        except Exception as e:
            self._failed("bulk_add", EntityKind.MODELS, e, "An error occurred during bulk import.", notify)
            return None
        self.state.replace(EntityKind.MODELS, [*self.state.models, *added])
        self._ok(f"{len(added)} models added successfully!", notify)
        return added

    async def bulk_update_models(self, ids: Sequence[str], patch: Payload, notify: bool = True) -> Optional[List[ModelOut]]:
        """
        One store update per id, issued concurrently. All-or-nothing for local state:
        if any call fails nothing is merged (calls that did succeed in the store surface on the next load()).
        """
        ids = list(dict.fromkeys(ids))
        try:
            changes = patch_changes(_coerce(ModelPatchIn, patch))
            self._check_model_patch(changes)
            results = await asyncio.gather(
                *(self.store.update(EntityKind.MODELS, i, changes) for i in ids),
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                raise BulkOperationError("bulk_update", failures, len(ids))
            updated = {m.id: m for m in to_entities(EntityKind.MODELS, list(results))}
        except Exception as e:
            self._failed("bulk_update", EntityKind.MODELS, e, "Failed to bulk update models.", notify)
            return None
        self.state.replace(EntityKind.MODELS, [updated.get(m.id, m) for m in self.state.models])
        self._ok(f"{len(ids)} models updated successfully!", notify)
        return list(updated.values())

    async def bulk_delete_models(self, ids: Sequence[str], notify: bool = True) -> bool:
        ids = list(dict.fromkeys(ids))
        try:
            results = await asyncio.gather(
                *(self.store.delete(EntityKind.MODELS, i) for i in ids),
                return_exceptions=True,
            )
            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                raise BulkOperationError("bulk_delete", failures, len(ids))
        except Exception as e:
            self._failed("bulk_delete", EntityKind.MODELS, e, "Failed to bulk delete models.", notify)
            return False
        dropped = set(ids)
        self.state.replace(EntityKind.MODELS, [m for m in self.state.models if m.id not in dropped])
        self._ok(f"{len(ids)} models deleted successfully!", notify)
        return True

    # -------------------------
    # paints
    # -------------------------
    async def add_paint(self, payload: Payload, notify: bool = True) -> Optional[PaintOut]:
        return await self._add(EntityKind.PAINTS, PaintCreateIn, payload, notify)

    async def update_paint(self, paint_id: str, patch: Payload, notify: bool = True) -> Optional[PaintOut]:
        return await self._update(EntityKind.PAINTS, PaintPatchIn, paint_id, patch, notify)

    async def delete_paint(self, paint_id: str, notify: bool = True) -> bool:
        return await self._delete(EntityKind.PAINTS, paint_id, notify)

    async def bulk_add_paints(self, items: Sequence[Payload], notify: bool = True) -> Optional[List[PaintOut]]:
        try:
            data = [_coerce(PaintCreateIn, it) for it in items]
            rows = await self.store.bulk_add(EntityKind.PAINTS, [d.model_dump() for d in data])
            added = to_entities(EntityKind.PAINTS, rows)
        except Exception as e:
            self._failed("bulk_add", EntityKind.PAINTS, e, "Failed to add paints.", notify)
            return None
        self.state.replace(EntityKind.PAINTS, [*self.state.paints, *added])
        self._ok(f"{len(added)} paints added successfully!", notify)
        return added

    # -------------------------
    # painting sessions
    # -------------------------
    async def add_painting_session(self, payload: Payload, notify: bool = True) -> Optional[PaintingSessionOut]:
        return await self._add(EntityKind.PAINTING_SESSIONS, PaintingSessionCreateIn, payload, notify)

    async def update_painting_session(
        self, session_id: str, patch: Payload, notify: bool = True
    ) -> Optional[PaintingSessionOut]:
        def check(changes: Dict[str, Any]) -> None:
            current = self.find_painting_session(session_id)
            if current is not None:
                # merged session must still satisfy end >= start
                PaintingSessionCreateIn.model_validate({**current.model_dump(), **changes})

        return await self._update(
            EntityKind.PAINTING_SESSIONS, PaintingSessionPatchIn, session_id, patch, notify, check=check
        )

    async def delete_painting_session(self, session_id: str, notify: bool = True) -> bool:
        return await self._delete(EntityKind.PAINTING_SESSIONS, session_id, notify)

    # -------------------------
    # settings / maintenance
    # -------------------------
    async def set_min_stock_threshold(self, value: int, notify: bool = True) -> Optional[int]:
        try:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"min_stock_threshold must be an integer >= 0, got {value!r}")
            saved = await self.store.save_settings({"min_stock_threshold": value})
            threshold = int(saved["min_stock_threshold"])
        except Exception as e:
            self._failed("save_settings", None, e, "Failed to save settings.", notify)
            return None
        self.state.min_stock_threshold = threshold
        self._ok("Settings saved successfully!", notify)
        return threshold

    async def clear_all_data(self, notify: bool = True) -> bool:
        try:
            await self.store.clear_all()
        except Exception as e:
            self._failed("clear_all", None, e, "Failed to clear all data.", notify)
            return False
        for k in EntityKind:
            self.state.replace(k, [])
        self.state.min_stock_threshold = DEFAULT_SETTINGS["min_stock_threshold"]
        emit("audit", "store.clear_all", "all collections and settings wiped", current_request_id(), __name__,
             store=self.store.name)
        self._ok("All data cleared successfully!", notify)
        return True
