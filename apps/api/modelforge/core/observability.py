"""
Structured event lines + error envelope.

Contract locks:
- event line keys: ts, level, message, request_id, event, module
- error envelope keys: error, message, request_id, details
"""
from __future__ import annotations

import datetime
import json
import logging
from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from modelforge.core.config import get_log_level

_log = logging.getLogger("modelforge")
if not _log.handlers:
    logging.basicConfig(level=get_log_level())

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "audit": logging.INFO,
}


_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def bind_request_id(rid: Optional[str]) -> Token:
    return _request_id.set(rid)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def current_request_id() -> Optional[str]:
    return _request_id.get()


def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def emit(level: str, event: str, message: str, request_id: Optional[str], module: str, **extra: Any) -> None:
    payload: Dict[str, Any] = {
        "ts": now_iso(),
        "level": level.lower(),
        "message": message,
        "request_id": request_id,
        "event": event,
        "module": module,
    }
    payload.update(extra)
    # stdout line is the capturable audit trail; logger mirrors it for handlers
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)
    _log.log(_LEVELS.get(level.lower(), logging.INFO), "%s %s", event, message)


def err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int) -> JSONResponse:
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": jsonable_encoder(details),
        },
        headers=headers,
    )
