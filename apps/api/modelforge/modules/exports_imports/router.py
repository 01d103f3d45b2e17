from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response

from modelforge.core.config import export_import_enabled
from modelforge.core.observability import err_envelope

from .schemas import DuplicatesSelectIn, ImportPlanOut, ImportRowOut, RowSelectIn
from . import service


router = APIRouter()


def _rid(request: Request) -> str:
    return (
        getattr(getattr(request, "state", None), "request_id", None)
        or request.headers.get("X-Request-Id")
        or "NA"
    )


def _err(request: Request, status: int, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return err_envelope(code, message, _rid(request), details or {}, status)


def _disabled(request: Request) -> Optional[JSONResponse]:
    if export_import_enabled():
        return None
    return _err(request, 503, "export_import_disabled", "EXPORT_IMPORT_ENABLED=0", {})


def _orch(request: Request):
    return request.app.state.orchestrator


def _plans(request: Request) -> service.ImportPlanRegistry:
    return request.app.state.import_plans


# ---------- Exports ----------

@router.get("/exports/models.csv", tags=["exports"])
def exports_models_csv(
    request: Request,
    game_system_id: Optional[str] = Query(None),
    army_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    off = _disabled(request)
    if off is not None:
        return off
    body = service.export_models_csv(_orch(request), game_system_id=game_system_id, army_id=army_id, search=search)
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="model_collection.csv"'},
    )


# ---------- Imports ----------

@router.post("/imports/models", response_model=ImportPlanOut, tags=["imports"])
async def imports_models_create(request: Request):
    off = _disabled(request)
    if off is not None:
        return off
    raw = await request.body()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return _err(request, 400, "bad_request", "CSV body must be UTF-8 text", {})
    try:
        plan = service.build_plan(_orch(request), text)
    except Exception as e:
        return _err(request, 400, "csv_parse_failed", f"CSV parsing failed: {e}", {"type": type(e).__name__})
    registry = _plans(request)
    registry.add(plan)
    if not plan.needs_review:
        plan = await service.commit(_orch(request), registry, plan.plan_id)
    return plan


@router.get("/imports/{plan_id}", response_model=ImportPlanOut, tags=["imports"])
def imports_get(plan_id: str, request: Request):
    off = _disabled(request)
    if off is not None:
        return off
    try:
        return _plans(request).get(plan_id)
    except service.PlanNotFoundError:
        return _err(request, 404, "import_not_found", "import plan not found", {"plan_id": plan_id})


@router.patch("/imports/{plan_id}/rows/{row_index}", response_model=ImportRowOut, tags=["imports"])
def imports_select_row(plan_id: str, row_index: int, body: RowSelectIn, request: Request):
    off = _disabled(request)
    if off is not None:
        return off
    try:
        plan = _plans(request).editable(plan_id)
        return service.select_row(plan, row_index, body.selected)
    except service.PlanNotFoundError:
        return _err(request, 404, "import_not_found", "import plan or row not found",
                    {"plan_id": plan_id, "row_index": row_index})
    except service.PlanStateError as e:
        return _err(request, 409, "import_conflict", str(e), {"plan_id": plan_id})


@router.post("/imports/{plan_id}/duplicates", response_model=ImportPlanOut, tags=["imports"])
def imports_select_duplicates(plan_id: str, body: DuplicatesSelectIn, request: Request):
    off = _disabled(request)
    if off is not None:
        return off
    try:
        plan = _plans(request).editable(plan_id)
    except service.PlanNotFoundError:
        return _err(request, 404, "import_not_found", "import plan not found", {"plan_id": plan_id})
    except service.PlanStateError as e:
        return _err(request, 409, "import_conflict", str(e), {"plan_id": plan_id})
    service.select_duplicates(plan, body.selected)
    return plan


@router.post("/imports/{plan_id}/commit", response_model=ImportPlanOut, tags=["imports"])
async def imports_commit(plan_id: str, request: Request):
    off = _disabled(request)
    if off is not None:
        return off
    try:
        return await service.commit(_orch(request), _plans(request), plan_id)
    except service.PlanNotFoundError:
        return _err(request, 404, "import_not_found", "import plan not found", {"plan_id": plan_id})
    except service.PlanStateError as e:
        return _err(request, 409, "import_conflict", str(e), {"plan_id": plan_id})


@router.delete("/imports/{plan_id}", response_model=ImportPlanOut, tags=["imports"])
def imports_cancel(plan_id: str, request: Request):
    off = _disabled(request)
    if off is not None:
        return off
    try:
        return _plans(request).cancel(plan_id)
    except service.PlanNotFoundError:
        return _err(request, 404, "import_not_found", "import plan not found", {"plan_id": plan_id})
    except service.PlanStateError as e:
        return _err(request, 409, "import_conflict", str(e), {"plan_id": plan_id})
