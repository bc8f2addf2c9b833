"""
Route registration and application factory.
"""

from __future__ import annotations

from aiohttp import web

from mvault_backend.deps import build_services, dispose_services
from mvault_backend.observability import request_context_middleware
from mvault_backend.shared import get_logger

from .core import APP_KEY_SERVICES
from .handlers import register_file_routes, register_media_routes, register_upload_routes

logger = get_logger(__name__)

_APP_KEY_OWNS_SERVICES: web.AppKey[bool] = web.AppKey("mvault_owns_services", bool)


def build_route_table() -> web.RouteTableDef:
    routes = web.RouteTableDef()
    register_upload_routes(routes)
    register_file_routes(routes)
    register_media_routes(routes)
    return routes


async def _startup_services(app: web.Application) -> None:
    if app.get(APP_KEY_SERVICES):
        return
    res = await build_services()
    if not res.ok:
        raise RuntimeError(f"Failed to initialize services: {res.error}")
    app[APP_KEY_SERVICES] = res.data
    app[_APP_KEY_OWNS_SERVICES] = True


async def _cleanup_services(app: web.Application) -> None:
    if not app.get(_APP_KEY_OWNS_SERVICES):
        return
    svc = app.get(APP_KEY_SERVICES)
    if svc:
        await dispose_services(svc)
        logger.info("Services disposed")


def create_app(services: dict | None = None) -> web.Application:
    """
    Build the aiohttp application.

    With `services` the caller owns their lifecycle (tests). Without, services
    are built from config on startup and disposed on cleanup.
    """
    app = web.Application(middlewares=[request_context_middleware])
    if services is not None:
        app[APP_KEY_SERVICES] = services
        app[_APP_KEY_OWNS_SERVICES] = False
    app.on_startup.append(_startup_services)
    app.on_cleanup.append(_cleanup_services)
    app.add_routes(build_route_table())
    return app
