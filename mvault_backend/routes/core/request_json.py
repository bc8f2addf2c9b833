"""
JSON request parsing with a size limit.

Never raises to handlers; every failure comes back as a Result.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from aiohttp import web

from mvault_backend.shared import ErrorCode, Result

DEFAULT_MAX_JSON_BYTES = 1024 * 1024
REQUEST_STREAM_CHUNK_BYTES = 64 * 1024


async def _read_json(request: web.Request, *, max_bytes: Optional[int] = None) -> Result[dict]:
    """
    Read and decode a JSON object body.

    Returns:
        Result.Ok(dict) or Result.Err(INVALID_INPUT | INVALID_JSON, ...)
    """
    limit = int(max_bytes) if max_bytes is not None else DEFAULT_MAX_JSON_BYTES
    if request.content_length is not None and request.content_length > limit:
        return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large ({request.content_length} > {limit})")

    buf = bytearray()
    async for chunk in request.content.iter_chunked(REQUEST_STREAM_CHUNK_BYTES):
        buf.extend(chunk)
        if len(buf) > limit:
            return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large (> {limit})")
    return _decode_json_dict(bytes(buf))


def _decode_json_dict(body: bytes | str) -> Result[dict]:
    try:
        text = body.decode("utf-8") if isinstance(body, bytes) else body
    except UnicodeDecodeError as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Invalid UTF-8 JSON body: {exc}")
    try:
        parsed: Any = json.loads(text) if text.strip() else {}
    except ValueError as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Invalid JSON body: {exc}")
    if not isinstance(parsed, dict):
        return Result.Err(ErrorCode.INVALID_JSON, "JSON body must be an object")
    return Result.Ok(parsed)
