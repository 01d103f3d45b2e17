from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from modelforge.core.observability import err_envelope

from .schemas import ClearAllIn, SettingsOut, SettingsPutIn

router = APIRouter(tags=["settings"])


def _rid(request: Request):
    return getattr(request.state, "request_id", None)


@router.get("/settings", response_model=SettingsOut)
def api_get_settings(request: Request) -> SettingsOut:
    return SettingsOut(min_stock_threshold=request.app.state.orchestrator.state.min_stock_threshold)


@router.put("/settings", response_model=SettingsOut)
async def api_put_settings(body: SettingsPutIn, request: Request):
    orch = request.app.state.orchestrator
    saved = await orch.set_min_stock_threshold(body.min_stock_threshold)
    if saved is None:
        return err_envelope("store_error", "failed to save settings", _rid(request), orch.last_error_summary or {}, 500)
    return SettingsOut(min_stock_threshold=saved)


@router.post("/settings/clear-all-data")
async def api_clear_all_data(body: ClearAllIn, request: Request) -> Dict[str, Any]:
    if not body.confirm:
        return err_envelope(
            "confirmation_required",
            "clearing all data is irreversible; send {\"confirm\": true}",
            _rid(request),
            {},
            400,
        )
    orch = request.app.state.orchestrator
    if not await orch.clear_all_data():
        return err_envelope("store_error", "failed to clear data", _rid(request), orch.last_error_summary or {}, 500)
    return {"cleared": True}
