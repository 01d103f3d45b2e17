from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from modelforge.modules.store.base import DEFAULT_SETTINGS, EntityKind

from .schemas import ArmyOut, GameSystemOut, ModelOut, PaintingSessionOut, PaintOut

OUT_SCHEMAS: Dict[EntityKind, Type[BaseModel]] = {
    EntityKind.GAME_SYSTEMS: GameSystemOut,
    EntityKind.ARMIES: ArmyOut,
    EntityKind.MODELS: ModelOut,
    EntityKind.PAINTS: PaintOut,
    EntityKind.PAINTING_SESSIONS: PaintingSessionOut,
}


@dataclass
class AppState:
    """
    In-session entity collections. Owned by exactly one DataOrchestrator;
    lists are replaced wholesale on every change, never mutated in place.
    """
    game_systems: List[GameSystemOut] = field(default_factory=list)
    armies: List[ArmyOut] = field(default_factory=list)
    models: List[ModelOut] = field(default_factory=list)
    paints: List[PaintOut] = field(default_factory=list)
    painting_sessions: List[PaintingSessionOut] = field(default_factory=list)
    min_stock_threshold: int = DEFAULT_SETTINGS["min_stock_threshold"]
    loading: bool = False
    error: Optional[str] = None

    def rows(self, kind: EntityKind) -> List[Any]:
        return getattr(self, kind.value)

    def replace(self, kind: EntityKind, rows: List[Any]) -> None:
        setattr(self, kind.value, list(rows))

    def snapshot(self) -> Dict[EntityKind, List[Dict[str, Any]]]:
        return {k: [r.model_dump() for r in self.rows(k)] for k in EntityKind}


def to_entities(kind: EntityKind, rows: List[Dict[str, Any]]) -> List[Any]:
    schema = OUT_SCHEMAS[kind]
    return [schema.model_validate(r) for r in rows]
