from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from modelforge.core.observability import err_envelope

from .schemas import CalendarOut, DashboardOut, LowStockOut
from .service import build_dashboard, group_sessions, low_stock

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardOut)
def api_dashboard(
    request: Request,
    game_system_id: Optional[str] = Query(None),
    army_id: Optional[str] = Query(None),
) -> DashboardOut:
    return build_dashboard(request.app.state.orchestrator.state, game_system_id=game_system_id, army_id=army_id)


@router.get("/dashboard/low-stock", response_model=LowStockOut)
def api_low_stock(request: Request) -> LowStockOut:
    state = request.app.state.orchestrator.state
    return LowStockOut(
        min_stock_threshold=state.min_stock_threshold,
        items=low_stock(state.paints, state.min_stock_threshold),
    )


@router.get("/calendar", response_model=CalendarOut)
def api_calendar(request: Request, month: Optional[str] = Query(None, description="YYYY-MM")):
    try:
        return group_sessions(request.app.state.orchestrator.state.painting_sessions, month=month)
    except ValueError as e:
        rid = getattr(request.state, "request_id", None)
        return err_envelope("bad_request", str(e), rid, {"month": month}, 400)
