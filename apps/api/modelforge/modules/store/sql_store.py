from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from sqlalchemy import delete as sa_delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from modelforge.core.db import db_health, get_engine
from modelforge.core.errors import NotFoundError, StoreError

from .base import DEFAULT_SETTINGS, EntityKind, apply_patch, stamp_new
from .models import ArmyRow, GameSystemRow, ModelRow, PaintingSessionRow, PaintRow, SettingRow

TABLES: Dict[EntityKind, Type[SQLModel]] = {
    EntityKind.GAME_SYSTEMS: GameSystemRow,
    EntityKind.ARMIES: ArmyRow,
    EntityKind.MODELS: ModelRow,
    EntityKind.PAINTS: PaintRow,
    EntityKind.PAINTING_SESSIONS: PaintingSessionRow,
}

# entity field -> (json column, default when empty)
_JSON_FIELDS: Dict[EntityKind, Dict[str, tuple]] = {
    EntityKind.GAME_SYSTEMS: {"color_scheme": ("color_scheme_json", None)},
    EntityKind.MODELS: {"army_ids": ("army_ids_json", []), "paint_recipe": ("paint_recipe_json", [])},
    EntityKind.PAINTING_SESSIONS: {"model_ids": ("model_ids_json", [])},
}


def _safe_json_loads(v: Any, default: Any) -> Any:
    if v is None or v == "":
        return default
    try:
        return json.loads(v)
    except (TypeError, ValueError):
        return default


def _row_to_dict(kind: EntityKind, row: SQLModel) -> Dict[str, Any]:
    d = row.model_dump()
    for field, (col, default) in _JSON_FIELDS.get(kind, {}).items():
        d[field] = _safe_json_loads(d.pop(col, None), default)
    return d


def _to_columns(kind: EntityKind, data: Mapping[str, Any]) -> Dict[str, Any]:
    table = TABLES[kind]
    json_fields = _JSON_FIELDS.get(kind, {})
    out: Dict[str, Any] = {}
    for k, v in data.items():
        if k in json_fields:
            out[json_fields[k][0]] = json.dumps(v, ensure_ascii=False) if v is not None else None
        elif k in table.model_fields:
            out[k] = v
    return out


class SqlStore:
    """
    Relational store (SQLModel tables on the shared SQLAlchemy engine).
    Each call runs in one session and commits once, so cascades are atomic per call.
    Sessions are synchronous and run on the event loop thread, so a call blocks the loop
    until it commits; no other mutation can interleave with it.
    """
    name = "sql"

    def __init__(self, engine: Optional[Engine] = None, create_schema: bool = False) -> None:
        self.engine = engine or get_engine()
        if create_schema:
            SQLModel.metadata.create_all(self.engine)

    def health(self) -> Dict[str, Any]:
        return db_health(self.engine)

    async def list(self, kind: EntityKind) -> List[Dict[str, Any]]:
        try:
            with Session(self.engine) as session:
                rows = session.exec(select(TABLES[kind])).all()
                return [_row_to_dict(kind, r) for r in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"list {kind.value} failed: {e}") from e

    async def add(self, kind: EntityKind, fields: Mapping[str, Any]) -> Dict[str, Any]:
        added = await self.bulk_add(kind, [fields])
        return added[0]

    async def bulk_add(self, kind: EntityKind, items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        table = TABLES[kind]
        try:
            with Session(self.engine) as session:
                rows = [table(**_to_columns(kind, stamp_new(kind, it))) for it in items]
                session.add_all(rows)
                session.commit()
                for r in rows:
                    session.refresh(r)
                return [_row_to_dict(kind, r) for r in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"add {kind.value} failed: {e}") from e

    async def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            with Session(self.engine) as session:
                row = session.get(TABLES[kind], entity_id)
                if row is None:
                    raise NotFoundError(kind.value, entity_id)
                merged = apply_patch(kind, _row_to_dict(kind, row), patch)
                for col, val in _to_columns(kind, merged).items():
                    setattr(row, col, val)
                session.add(row)
                session.commit()
                session.refresh(row)
                return _row_to_dict(kind, row)
        except SQLAlchemyError as e:
            raise StoreError(f"update {kind.value} failed: {e}") from e

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        try:
            with Session(self.engine) as session:
                if kind is EntityKind.GAME_SYSTEMS:
                    self._cascade_game_system(session, entity_id)
                elif kind is EntityKind.ARMIES:
                    self._pull_army(session, entity_id)
                row = session.get(TABLES[kind], entity_id)
                if row is not None:
                    session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"delete {kind.value} failed: {e}") from e

    def _cascade_game_system(self, session: Session, game_system_id: str) -> None:
        armies = session.exec(select(ArmyRow).where(ArmyRow.game_system_id == game_system_id)).all()
        dropped = {a.id for a in armies}
        for m in session.exec(select(ModelRow)).all():
            army_ids = _safe_json_loads(m.army_ids_json, [])
            if m.game_system_id == game_system_id or dropped.intersection(army_ids):
                session.delete(m)
        for a in armies:
            session.delete(a)
        sessions = session.exec(
            select(PaintingSessionRow).where(PaintingSessionRow.game_system_id == game_system_id)
        ).all()
        for s in sessions:
            s.game_system_id = None
            session.add(s)

    def _pull_army(self, session: Session, army_id: str) -> None:
        for m in session.exec(select(ModelRow)).all():
            army_ids = _safe_json_loads(m.army_ids_json, [])
            if army_id in army_ids:
                m.army_ids_json = json.dumps([a for a in army_ids if a != army_id])
                session.add(m)

    async def get_settings(self) -> Dict[str, Any]:
        try:
            with Session(self.engine) as session:
                rows = session.exec(select(SettingRow)).all()
                stored = {r.key: _safe_json_loads(r.value_json, None) for r in rows}
        except SQLAlchemyError as e:
            raise StoreError(f"settings read failed: {e}") from e
        return {**DEFAULT_SETTINGS, **{k: v for k, v in stored.items() if v is not None}}

    async def save_settings(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            with Session(self.engine) as session:
                for key, value in settings.items():
                    row = session.get(SettingRow, key)
                    if row is None:
                        row = SettingRow(key=key, value_json=json.dumps(value))
                    else:
                        row.value_json = json.dumps(value)
                    session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"settings write failed: {e}") from e
        return await self.get_settings()

    async def clear_all(self) -> None:
        try:
            with Session(self.engine) as session:
                for table in list(TABLES.values()) + [SettingRow]:
                    session.execute(sa_delete(table))
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"clear failed: {e}") from e
