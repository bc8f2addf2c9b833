"""
Library file serving: GET /api/file/{path}.

Plain requests stream the file. `?thumb` returns the cached WEBP thumbnail,
rendering it on a cache miss. The cache file name comes from
`mvault_shared.thumb_cache`, the same derivation the ingestion populator uses,
so thumbnails written at scan time are served as hits here.
"""
import asyncio
from pathlib import Path

from aiohttp import web
from mvault_shared.thumb_cache import render_thumbnail, thumb_cache_path

from mvault_backend.shared import classify_file, get_logger

from ..core import _guess_content_type_for_file, _is_within_root, _require_services, _safe_rel_path

logger = get_logger(__name__)

_IMMUTABLE_CACHE = "public, max-age=31536000, immutable"


def _file_response(path: Path, content_type: str, cache_state: str | None = None) -> web.FileResponse:
    response = web.FileResponse(path=str(path))
    response.headers["Content-Type"] = content_type
    response.headers["Cache-Control"] = _IMMUTABLE_CACHE
    response.headers["X-Content-Type-Options"] = "nosniff"
    if cache_state:
        response.headers["X-Cache"] = cache_state
    return response


async def _serve_thumbnail(svc: dict, source: Path) -> web.StreamResponse:
    if classify_file(source.name) != "image":
        return web.Response(status=400, text="Not an image")

    cache_dir = Path(svc["cache_dir"])
    dest = thumb_cache_path(cache_dir, source)
    if await asyncio.to_thread(dest.is_file):
        return _file_response(dest, "image/webp", cache_state="HIT")

    thumbnails = svc["thumbnails"]
    try:
        await asyncio.to_thread(
            render_thumbnail, source, dest, height=thumbnails.height, quality=thumbnails.quality
        )
    except Exception as exc:
        logger.error("Thumbnail processing failed for %s: %s", source, exc)
        return web.Response(status=500, text="Internal Server Error")
    return _file_response(dest, "image/webp", cache_state="MISS")


def register_file_routes(routes: web.RouteTableDef) -> None:
    """Register the /api/file/{path} route handler."""

    @routes.get("/api/file/{path:.*}")
    async def serve_library_file(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result is not None:
            return web.Response(status=503, text=error_result.error or "Service unavailable")

        library_root = Path(svc["library_root"])
        rel = _safe_rel_path(request.match_info.get("path", ""))
        if rel is None:
            return web.Response(status=403, text="Forbidden")
        candidate = library_root / rel
        if not _is_within_root(candidate, library_root):
            return web.Response(status=403, text="Forbidden")

        if not await asyncio.to_thread(candidate.is_file):
            return web.Response(status=404, text="Not Found")

        if "thumb" in request.query:
            return await _serve_thumbnail(svc, candidate)
        return _file_response(candidate, _guess_content_type_for_file(candidate))
