"""
Request correlation middleware.

Each request gets an id (the client's `X-Request-ID`, or a fresh uuid4 hex)
that is echoed in the response headers and stored in `request_id_var`, so every
log line emitted while the request is handled carries it.
"""
from __future__ import annotations

import logging
import time
from typing import Any
from uuid import uuid4

from aiohttp import web

from .shared import get_logger, log_structured, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _get_request_id(request: web.Request) -> str:
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    return rid[:128] or uuid4().hex


def _emit_request_log(request: web.Request, status: int | None, duration_ms: float, error: str | None) -> None:
    fields: dict[str, Any] = {
        "method": request.method,
        "path": request.path,
        "status": status,
        "duration_ms": round(duration_ms, 2),
    }
    if error:
        fields["error"] = error
    if status is not None and status >= 500:
        level = logging.ERROR
    elif status is not None and status >= 400:
        level = logging.WARNING
    else:
        level = logging.DEBUG
    if logger.isEnabledFor(level):
        log_structured(logger, level, "Request handled", **fields)


@web.middleware
async def request_context_middleware(request: web.Request, handler):
    """Add request-id correlation and request logging."""
    rid = _get_request_id(request)
    request["mvault_request_id"] = rid
    token = request_id_var.set(rid)
    start = time.perf_counter()
    status: int | None = None
    error: str | None = None
    try:
        response = await handler(request)
        status = int(getattr(response, "status", 200) or 200)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
    except web.HTTPException as exc:
        status = exc.status
        exc.headers[REQUEST_ID_HEADER] = rid
        raise
    except Exception as exc:
        status = 500
        error = f"{exc.__class__.__name__}: {exc}"
        raise
    finally:
        _emit_request_log(request, status, (time.perf_counter() - start) * 1000.0, error)
        request_id_var.reset(token)
