from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from modelforge.core.observability import err_envelope
from modelforge.modules.store.base import EntityKind

from .queries import PAINT_SORTS, effective_army_filter, filter_models, filter_paints
from .schemas import (
    ArmyCreateIn,
    ArmyOut,
    ArmyPatchIn,
    GameSystemCreateIn,
    GameSystemOut,
    GameSystemPatchIn,
    IdsIn,
    ModelCreateIn,
    ModelOut,
    ModelPatchIn,
    ModelsBulkCreateIn,
    ModelsBulkUpdateIn,
    NotificationOut,
    PAINT_TYPES,
    PaintCreateIn,
    PaintingSessionCreateIn,
    PaintingSessionOut,
    PaintingSessionPatchIn,
    PaintOut,
    PaintPatchIn,
    PaintsBulkCreateIn,
)
from .service import DataOrchestrator

router = APIRouter(tags=["collection"])


def _orch(request: Request) -> DataOrchestrator:
    return request.app.state.orchestrator


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _not_found(request: Request, kind: EntityKind, entity_id: str) -> JSONResponse:
    return err_envelope("not_found", f"{kind.value} not found", _rid(request), {"id": entity_id}, 404)


def _failed(request: Request, orch: DataOrchestrator) -> JSONResponse:
    # orchestrator swallowed the error; surface what it recorded
    return err_envelope("store_error", "store operation failed", _rid(request), orch.last_error_summary or {}, 500)


def _reference_error(request: Request, orch: DataOrchestrator) -> JSONResponse:
    summary = orch.last_error_summary or {}
    if summary.get("type") == "DanglingReferenceError":
        return err_envelope("invalid_reference", summary.get("message", ""), _rid(request), summary, 422)
    return _failed(request, orch)


# ---------- Game systems ----------

@router.get("/game-systems", response_model=List[GameSystemOut])
def api_list_game_systems(request: Request):
    return _orch(request).state.game_systems


@router.post("/game-systems", response_model=GameSystemOut, status_code=201)
async def api_create_game_system(body: GameSystemCreateIn, request: Request):
    orch = _orch(request)
    gs = await orch.add_game_system(body)
    return gs if gs is not None else _failed(request, orch)


@router.patch("/game-systems/{game_system_id}", response_model=GameSystemOut)
async def api_patch_game_system(game_system_id: str, body: GameSystemPatchIn, request: Request):
    orch = _orch(request)
    if orch.find_game_system(game_system_id) is None:
        return _not_found(request, EntityKind.GAME_SYSTEMS, game_system_id)
    gs = await orch.update_game_system(game_system_id, body)
    return gs if gs is not None else _failed(request, orch)


@router.delete("/game-systems/{game_system_id}", status_code=204)
async def api_delete_game_system(game_system_id: str, request: Request):
    orch = _orch(request)
    if orch.find_game_system(game_system_id) is None:
        return _not_found(request, EntityKind.GAME_SYSTEMS, game_system_id)
    if not await orch.delete_game_system(game_system_id):
        return _failed(request, orch)
    return None


# ---------- Armies ----------

@router.get("/armies", response_model=List[ArmyOut])
def api_list_armies(request: Request, game_system_id: Optional[str] = Query(None)):
    orch = _orch(request)
    if game_system_id:
        return orch.armies_for_system(game_system_id)
    return orch.state.armies


@router.post("/armies", response_model=ArmyOut, status_code=201)
async def api_create_army(body: ArmyCreateIn, request: Request):
    orch = _orch(request)
    army = await orch.add_army(body)
    return army if army is not None else _reference_error(request, orch)


@router.patch("/armies/{army_id}", response_model=ArmyOut)
async def api_patch_army(army_id: str, body: ArmyPatchIn, request: Request):
    orch = _orch(request)
    if orch.find_army(army_id) is None:
        return _not_found(request, EntityKind.ARMIES, army_id)
    army = await orch.update_army(army_id, body)
    return army if army is not None else _reference_error(request, orch)


@router.delete("/armies/{army_id}", status_code=204)
async def api_delete_army(army_id: str, request: Request):
    orch = _orch(request)
    if orch.find_army(army_id) is None:
        return _not_found(request, EntityKind.ARMIES, army_id)
    if not await orch.delete_army(army_id):
        return _failed(request, orch)
    return None


# ---------- Models ----------

@router.get("/models", response_model=List[ModelOut])
def api_list_models(
    request: Request,
    game_system_id: Optional[str] = Query(None),
    army_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    state = _orch(request).state
    army = effective_army_filter(state.armies, game_system_id, army_id)
    return filter_models(state.models, game_system_id=game_system_id, army_id=army, search=search)


@router.post("/models", response_model=ModelOut, status_code=201)
async def api_create_model(body: ModelCreateIn, request: Request):
    orch = _orch(request)
    m = await orch.add_model(body)
    return m if m is not None else _reference_error(request, orch)


@router.post("/models/bulk", response_model=List[ModelOut], status_code=201)
async def api_bulk_create_models(body: ModelsBulkCreateIn, request: Request):
    orch = _orch(request)
    added = await orch.bulk_add_models(body.items)
    return added if added is not None else _reference_error(request, orch)


@router.post("/models/bulk-update", response_model=List[ModelOut])
async def api_bulk_update_models(body: ModelsBulkUpdateIn, request: Request):
    orch = _orch(request)
    updated = await orch.bulk_update_models(body.ids, body.patch)
    return updated if updated is not None else _reference_error(request, orch)


@router.post("/models/bulk-delete")
async def api_bulk_delete_models(body: IdsIn, request: Request) -> Dict[str, Any]:
    orch = _orch(request)
    if not await orch.bulk_delete_models(body.ids):
        return _failed(request, orch)
    return {"deleted": len(set(body.ids))}


@router.get("/models/{model_id}", response_model=ModelOut)
def api_get_model(model_id: str, request: Request):
    m = _orch(request).find_model(model_id)
    return m if m is not None else _not_found(request, EntityKind.MODELS, model_id)


@router.patch("/models/{model_id}", response_model=ModelOut)
async def api_patch_model(model_id: str, body: ModelPatchIn, request: Request):
    orch = _orch(request)
    if orch.find_model(model_id) is None:
        return _not_found(request, EntityKind.MODELS, model_id)
    m = await orch.update_model(model_id, body)
    return m if m is not None else _reference_error(request, orch)


@router.delete("/models/{model_id}", status_code=204)
async def api_delete_model(model_id: str, request: Request):
    orch = _orch(request)
    if orch.find_model(model_id) is None:
        return _not_found(request, EntityKind.MODELS, model_id)
    if not await orch.delete_model(model_id):
        return _failed(request, orch)
    return None


# ---------- Paints ----------

@router.get("/paints", response_model=List[PaintOut])
def api_list_paints(
    request: Request,
    search: Optional[str] = Query(None),
    manufacturer: Optional[str] = Query(None),
    paint_type: Optional[str] = Query(None, description="|".join(PAINT_TYPES)),
    sort: str = Query("name-asc", description="|".join(PAINT_SORTS)),
):
    return filter_paints(
        _orch(request).state.paints, search=search, manufacturer=manufacturer, paint_type=paint_type, sort=sort
    )


@router.post("/paints", response_model=PaintOut, status_code=201)
async def api_create_paint(body: PaintCreateIn, request: Request):
    orch = _orch(request)
    p = await orch.add_paint(body)
    return p if p is not None else _failed(request, orch)


@router.post("/paints/bulk", response_model=List[PaintOut], status_code=201)
async def api_bulk_create_paints(body: PaintsBulkCreateIn, request: Request):
    orch = _orch(request)
    added = await orch.bulk_add_paints(body.items)
    return added if added is not None else _failed(request, orch)


@router.patch("/paints/{paint_id}", response_model=PaintOut)
async def api_patch_paint(paint_id: str, body: PaintPatchIn, request: Request):
    orch = _orch(request)
    if orch.find_paint(paint_id) is None:
        return _not_found(request, EntityKind.PAINTS, paint_id)
    p = await orch.update_paint(paint_id, body)
    return p if p is not None else _failed(request, orch)


@router.delete("/paints/{paint_id}", status_code=204)
async def api_delete_paint(paint_id: str, request: Request):
    orch = _orch(request)
    if orch.find_paint(paint_id) is None:
        return _not_found(request, EntityKind.PAINTS, paint_id)
    if not await orch.delete_paint(paint_id):
        return _failed(request, orch)
    return None


# ---------- Painting sessions ----------

@router.get("/painting-sessions", response_model=List[PaintingSessionOut])
def api_list_painting_sessions(request: Request):
    return _orch(request).state.painting_sessions


@router.post("/painting-sessions", response_model=PaintingSessionOut, status_code=201)
async def api_create_painting_session(body: PaintingSessionCreateIn, request: Request):
    orch = _orch(request)
    s = await orch.add_painting_session(body)
    return s if s is not None else _failed(request, orch)


@router.patch("/painting-sessions/{session_id}", response_model=PaintingSessionOut)
async def api_patch_painting_session(session_id: str, body: PaintingSessionPatchIn, request: Request):
    orch = _orch(request)
    if orch.find_painting_session(session_id) is None:
        return _not_found(request, EntityKind.PAINTING_SESSIONS, session_id)
    s = await orch.update_painting_session(session_id, body)
    return s if s is not None else _failed(request, orch)


@router.delete("/painting-sessions/{session_id}", status_code=204)
async def api_delete_painting_session(session_id: str, request: Request):
    orch = _orch(request)
    if orch.find_painting_session(session_id) is None:
        return _not_found(request, EntityKind.PAINTING_SESSIONS, session_id)
    if not await orch.delete_painting_session(session_id):
        return _failed(request, orch)
    return None


# ---------- Notifications ----------

@router.get("/notifications", response_model=List[NotificationOut])
def api_list_notifications(request: Request):
    return [
        NotificationOut(id=n.id, message=n.message, type=n.type, created_at=n.created_at)
        for n in _orch(request).notifier.active()
    ]
