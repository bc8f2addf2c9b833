"""
Media record endpoints.

    GET   /api/media            list records (optional ?kind=, ?limit=, ?offset=)
    GET   /api/media/{id}       record + parsed manifest
    PATCH /api/media/{id}       JSON {source_url?, description?}
"""
from aiohttp import web

from mvault_backend.shared import ErrorCode, MediaKind, Result, get_logger
from mvault_backend.utils import safe_int

from ..core import _json_response, _read_json, _require_services

logger = get_logger(__name__)


def register_media_routes(routes: web.RouteTableDef) -> None:
    """Register the /api/media route handlers."""

    @routes.get("/api/media")
    async def list_media(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result is not None:
            return _json_response(error_result)

        kind = None
        raw_kind = (request.query.get("kind") or "").strip().upper()
        if raw_kind:
            try:
                kind = MediaKind(raw_kind)
            except ValueError:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, f"Unknown kind: {raw_kind}"))

        limit = safe_int(request.query.get("limit"), 100)
        offset = safe_int(request.query.get("offset"), 0)
        res = await svc["registrar"].list_records(kind=kind, limit=limit, offset=offset)
        if not res.ok:
            return _json_response(res)
        records = [r.to_dict() for r in res.data]
        return _json_response(Result.Ok(records, count=len(records), **res.meta))

    @routes.get("/api/media/{record_id}")
    async def get_media(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result is not None:
            return _json_response(error_result)

        res = await svc["registrar"].get(request.match_info["record_id"])
        if not res.ok:
            return _json_response(res)
        record = res.data
        payload = record.to_dict()
        manifest = record.parsed_manifest()
        if manifest.ok:
            payload["manifest"] = manifest.data.to_dict()
        else:
            logger.warning("Stored manifest for %s is unreadable: %s", record.id, manifest.error)
            payload["manifest"] = None
        return _json_response(Result.Ok(payload))

    @routes.patch("/api/media/{record_id}")
    async def patch_media(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result is not None:
            return _json_response(error_result)

        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        data = body.data or {}

        updates = {}
        for key in ("source_url", "description"):
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, f"{key} must be a string"))
            updates[key] = value
        if not updates:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Nothing to update"))

        res = await svc["registrar"].patch(request.match_info["record_id"], **updates)
        if not res.ok:
            return _json_response(res)
        return _json_response(Result.Ok(res.data.to_dict()))
