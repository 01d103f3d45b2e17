from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from modelforge.core.config import get_app_version, seed_on_startup
from modelforge.core.observability import bind_request_id, emit, err_envelope, reset_request_id
from modelforge.modules.collection.notifications import Notifier
from modelforge.modules.collection.router import router as collection_router
from modelforge.modules.collection.seed import seed_if_empty
from modelforge.modules.collection.service import DataOrchestrator
from modelforge.modules.dashboard.router import router as dashboard_router
from modelforge.modules.exports_imports.router import router as exports_imports_router
from modelforge.modules.exports_imports.service import ImportPlanRegistry
from modelforge.modules.settings.router import router as settings_router
from modelforge.modules.store.base import EntityStore
from modelforge.modules.store.registry import get_store


def _health_parts(store: EntityStore) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    unused = {"status": "unused", "kind": store.name}
    h = store.health()
    if store.name == "sql":
        return h, unused
    if store.name == "json":
        return unused, h
    return unused, unused


def create_app(store: Optional[EntityStore] = None, notifier: Optional[Notifier] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        s = store if store is not None else get_store()
        orch = DataOrchestrator(s, notifier)
        app.state.orchestrator = orch
        app.state.import_plans = ImportPlanRegistry()
        emit("info", "app.startup", f"store={s.name}", None, __name__)
        await orch.load()
        if seed_on_startup() and orch.state.error is None:
            await seed_if_empty(orch)
        yield
        emit("info", "app.shutdown", "bye", None, __name__)

    app = FastAPI(title="ModelForge API", version=get_app_version(), lifespan=lifespan)

    # Contract locks:
    # - /health keys: status, version, db, storage, last_error_summary
    # - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
    # - Error envelope keys: error, message, request_id, details

    @app.middleware("http")
    async def _request_id_mw(request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
        request.state.request_id = rid
        token = bind_request_id(rid)
        emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
        try:
            resp = await call_next(request)
        except Exception as e:
            emit("error", "http.request.exception", str(e), rid, __name__)
            raise
        finally:
            reset_request_id(token)
        resp.headers["X-Request-Id"] = rid
        emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp,'status_code',None)}", rid, __name__)
        return resp

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        rid = getattr(request.state, "request_id", None)
        return err_envelope("http_error", str(exc.detail), rid, {"status_code": exc.status_code}, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        rid = getattr(request.state, "request_id", None)
        return err_envelope("validation_error", "request validation failed", rid, exc.errors(), 422)

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None)
        return err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)

    @app.get("/health")
    def health(request: Request) -> Dict[str, Any]:
        orch: DataOrchestrator = request.app.state.orchestrator
        db, storage = _health_parts(orch.store)
        ok = all(p.get("status") in ("ok", "unused") for p in (db, storage)) and orch.state.error is None
        return {
            "status": "ok" if ok else "degraded",
            "version": get_app_version(),
            "db": db,
            "storage": storage,
            "last_error_summary": orch.last_error_summary,
        }

    app.include_router(collection_router)
    app.include_router(settings_router)
    app.include_router(dashboard_router)
    app.include_router(exports_imports_router)
    return app


app = create_app()
