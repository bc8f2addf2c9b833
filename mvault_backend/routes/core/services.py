"""
Service lookup for route handlers.

The DI container built by `mvault_backend.deps.build_services` is stored on the
aiohttp application; handlers fetch it per request.
"""
from typing import Any

from aiohttp import web
from mvault_backend.shared import ErrorCode, Result

APP_KEY_SERVICES: web.AppKey[dict] = web.AppKey("mvault_services", dict)


def _require_services(request: web.Request) -> tuple[dict[str, Any] | None, Result | None]:
    svc = request.app.get(APP_KEY_SERVICES)
    if not svc:
        return None, Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "Services are not initialized")
    return svc, None
