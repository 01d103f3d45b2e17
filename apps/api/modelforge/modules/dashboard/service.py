"""
Read-only projections over the orchestrator state: status breakdown, "ready" progress,
low-stock paints and calendar grouping.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

from modelforge.modules.collection.queries import effective_army_filter, filter_models
from modelforge.modules.collection.schemas import ModelOut, PaintingSessionOut, PaintOut, to_datetime
from modelforge.modules.collection.state import AppState

from .schemas import ArmyProgressOut, CalendarOut, DashboardOut, StatusCountOut, SystemProgressOut

# display order, most finished first
BREAKDOWN_ORDER: Tuple[str, ...] = ("Ready to Game", "Based", "Painted", "Primed", "Assembled", "Printed", "Purchased")
READY_STATUSES: Tuple[str, ...] = ("Ready to Game", "Based", "Painted")

_MONTH_RE = re.compile(r"\d{4}-(0[1-9]|1[0-2])")


def _pct(part: int, total: int) -> float:
    return (part / total) * 100 if total else 0.0


def _ready(models: Sequence[ModelOut]) -> int:
    return sum(1 for m in models if m.status in READY_STATUSES)


def status_breakdown(models: Sequence[ModelOut]) -> List[StatusCountOut]:
    counts: Dict[str, int] = {}
    for m in models:
        counts[m.status] = counts.get(m.status, 0) + 1
    total = len(models)
    return [
        StatusCountOut(status=s, count=counts[s], percentage=_pct(counts[s], total))
        for s in BREAKDOWN_ORDER
        if s in counts
    ]


def low_stock(paints: Sequence[PaintOut], threshold: int) -> List[PaintOut]:
    # sorted() is stable: equal stock keeps insertion order
    return sorted((p for p in paints if p.stock <= threshold), key=lambda p: p.stock)


def build_dashboard(state: AppState, game_system_id: Optional[str] = None, army_id: Optional[str] = None) -> DashboardOut:
    army_id = effective_army_filter(state.armies, game_system_id, army_id)
    models = filter_models(state.models, game_system_id=game_system_id, army_id=army_id)

    systems = [gs for gs in state.game_systems if not game_system_id or gs.id == game_system_id]
    system_progress: List[SystemProgressOut] = []
    for gs in systems:
        in_system = [m for m in models if m.game_system_id == gs.id]
        if not in_system:
            continue
        ready = _ready(in_system)
        system_progress.append(
            SystemProgressOut(
                game_system_id=gs.id,
                name=gs.name,
                total_models=len(in_system),
                ready_models=ready,
                percentage=_pct(ready, len(in_system)),
            )
        )

    if army_id:
        armies = [a for a in state.armies if a.id == army_id]
    elif game_system_id:
        armies = [a for a in state.armies if a.game_system_id == game_system_id]
    else:
        armies = list(state.armies)
    names = {gs.id: gs.name for gs in state.game_systems}
    army_progress: List[ArmyProgressOut] = []
    for a in armies:
        in_army = [m for m in models if a.id in m.army_ids]
        if not in_army:
            continue
        ready = _ready(in_army)
        army_progress.append(
            ArmyProgressOut(
                army_id=a.id,
                name=a.name,
                game_system_name=names.get(a.game_system_id, "Unknown"),
                total_models=len(in_army),
                ready_models=ready,
                percentage=_pct(ready, len(in_army)),
            )
        )

    return DashboardOut(
        game_system_id=game_system_id,
        army_id=army_id,
        total_models=len(models),
        status_breakdown=status_breakdown(models),
        game_system_progress=system_progress,
        army_progress=army_progress,
        min_stock_threshold=state.min_stock_threshold,
        low_stock_paints=low_stock(state.paints, state.min_stock_threshold),
    )


def group_sessions(sessions: Sequence[PaintingSessionOut], month: Optional[str] = None) -> CalendarOut:
    """Group sessions by the calendar date of their start (in the timestamp's own offset)."""
    if month is not None and not _MONTH_RE.fullmatch(month):
        raise ValueError(f"month must be YYYY-MM, got {month!r}")
    keyed = sorted(((to_datetime(s.start), s) for s in sessions), key=lambda t: t[0])
    days: Dict[str, List[PaintingSessionOut]] = {}
    for start, s in keyed:
        day = start.date().isoformat()
        if month and not day.startswith(month + "-"):
            continue
        days.setdefault(day, []).append(s)
    return CalendarOut(month=month, days=days)
