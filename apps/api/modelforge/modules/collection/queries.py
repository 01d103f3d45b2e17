from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .schemas import ArmyOut, ModelOut, PaintOut

PAINT_SORTS: Dict[str, Tuple[Callable[[PaintOut], object], bool]] = {
    "name-asc": (lambda p: p.name.lower(), False),
    "name-desc": (lambda p: p.name.lower(), True),
    "manufacturer-asc": (lambda p: p.manufacturer.lower(), False),
    "manufacturer-desc": (lambda p: p.manufacturer.lower(), True),
    "stock-asc": (lambda p: p.stock, False),
    "stock-desc": (lambda p: p.stock, True),
}


def norm(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def effective_army_filter(
    armies: Sequence[ArmyOut], game_system_id: Optional[str], army_id: Optional[str]
) -> Optional[str]:
    # an army outside the selected game system is dropped from the filter
    if not army_id or not game_system_id:
        return army_id
    for a in armies:
        if a.id == army_id and a.game_system_id == game_system_id:
            return army_id
    return None


def filter_models(
    models: Sequence[ModelOut],
    game_system_id: Optional[str] = None,
    army_id: Optional[str] = None,
    search: Optional[str] = None,
) -> List[ModelOut]:
    q = norm(search)
    return [
        m
        for m in models
        if (not game_system_id or m.game_system_id == game_system_id)
        and (not army_id or army_id in m.army_ids)
        and (not q or q in m.name.lower())
    ]


def filter_paints(
    paints: Sequence[PaintOut],
    search: Optional[str] = None,
    manufacturer: Optional[str] = None,
    paint_type: Optional[str] = None,
    sort: str = "name-asc",
) -> List[PaintOut]:
    q = norm(search)
    out = [
        p
        for p in paints
        if (not q or q in p.name.lower())
        and (not manufacturer or p.manufacturer == manufacturer)
        and (not paint_type or p.paint_type == paint_type)
    ]
    key, reverse = PAINT_SORTS.get(sort, PAINT_SORTS["name-asc"])
    return sorted(out, key=key, reverse=reverse)
