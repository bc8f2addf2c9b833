"""
Archive upload: POST /api/upload.

Multipart fields:
    type          MANGA | AUDIO
    title         display title (required)
    file          ZIP archive (required)
    source_url    optional, stored on the record after the scan
    description   optional, stored on the record after the scan
    track_titles  optional JSON object {relative track path: title}, AUDIO only

The archive is spooled to a temp file, extracted into a freshly allocated
library folder and handed to the matching orchestrator.
"""
import asyncio
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from aiohttp import web

from mvault_backend.config import MAX_UPLOAD_BYTES
from mvault_backend.features.library.archive import UnsafeArchiveError, allocate_target, extract_zip
from mvault_backend.shared import ErrorCode, MediaKind, Result, get_logger, log_success, sanitize_error_message
from mvault_backend.utils import to_posix

from ..core import _decode_json_dict, _json_response, _require_services, safe_error_message

logger = get_logger(__name__)

_UPLOAD_READ_CHUNK_BYTES = 1024 * 1024
_TEXT_FIELDS = frozenset({"type", "title", "source_url", "description", "track_titles"})
_UPLOADABLE_KINDS = (MediaKind.MANGA, MediaKind.AUDIO)


@dataclass
class _UploadForm:
    fields: dict[str, str] = field(default_factory=dict)
    archive_path: Optional[Path] = None

    def text(self, name: str) -> str:
        return (self.fields.get(name) or "").strip()


def _cleanup_temp_upload_file(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove temp upload %s: %s", path, exc)


async def _spool_file_field(part: Any, tmp_dir: Path, max_bytes: int) -> Result[Path]:
    """Stream a multipart file part into a temp .zip under `tmp_dir`, enforcing `max_bytes`."""
    await asyncio.to_thread(tmp_dir.mkdir, parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(tmp_dir), prefix=".upload_", suffix=".zip")
    tmp_path = Path(tmp_name)
    total = 0
    try:
        with os.fdopen(fd, "wb") as handle:
            while True:
                chunk = await part.read_chunk(size=_UPLOAD_READ_CHUNK_BYTES)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    break
                handle.write(chunk)
    except Exception as exc:
        _cleanup_temp_upload_file(tmp_path)
        return Result.Err(ErrorCode.UPLOAD_FAILED, sanitize_error_message(exc, "Upload failed", {"uploads": tmp_dir}))
    if total > max_bytes:
        _cleanup_temp_upload_file(tmp_path)
        return Result.Err(ErrorCode.FILE_TOO_LARGE, f"Upload exceeds {max_bytes // (1024 * 1024)} MB")
    return Result.Ok(tmp_path)


async def _read_upload_form(request: web.Request, tmp_dir: Path, max_bytes: int) -> Result[_UploadForm]:
    try:
        reader = await request.multipart()
    except Exception as exc:
        return Result.Err(ErrorCode.INVALID_INPUT, sanitize_error_message(exc, "Expected multipart/form-data"))

    form = _UploadForm()
    try:
        while True:
            part = await reader.next()
            if part is None:
                break
            name = str(getattr(part, "name", "") or "")
            if name == "file" and form.archive_path is None:
                spooled = await _spool_file_field(part, tmp_dir, max_bytes)
                if not spooled.ok:
                    return Result.Err(spooled.code, spooled.error or "Upload failed")
                form.archive_path = spooled.data
            elif name in _TEXT_FIELDS:
                form.fields[name] = await part.text()
    except Exception as exc:
        _cleanup_temp_upload_file(form.archive_path)
        return Result.Err(ErrorCode.UPLOAD_FAILED, sanitize_error_message(exc, "Upload failed", {"uploads": tmp_dir}))
    return Result.Ok(form)


def _parse_kind(raw: str) -> Optional[MediaKind]:
    try:
        kind = MediaKind(raw.strip().upper())
    except ValueError:
        return None
    return kind if kind in _UPLOADABLE_KINDS else None


def _parse_track_titles(raw: str) -> Result[dict[str, str]]:
    if not raw:
        return Result.Ok({})
    decoded = _decode_json_dict(raw)
    if not decoded.ok:
        return Result.Err(ErrorCode.INVALID_INPUT, f"track_titles: {decoded.error}")
    return Result.Ok({str(k): str(v) for k, v in (decoded.data or {}).items() if v is not None})


def _error_roots(svc: dict) -> dict[str, Any]:
    return {"library": svc["library_root"], "uploads": svc["upload_tmp_dir"]}


async def _extract_into_library(svc: dict, form: _UploadForm, kind: MediaKind, title: str) -> Result[Any]:
    try:
        target = await asyncio.to_thread(allocate_target, svc["library_root"], kind, title)
    except OSError as exc:
        logger.error("Cannot create upload folder for %s: %s", title, exc)
        return Result.Err(ErrorCode.UPLOAD_FAILED, safe_error_message(exc, "Cannot create library folder"))

    try:
        await asyncio.to_thread(extract_zip, form.archive_path, target.directory)
    except (zipfile.BadZipFile, UnsafeArchiveError, OSError) as exc:
        logger.error("Extraction failed for %s: %s", target.directory, exc)
        await asyncio.to_thread(shutil.rmtree, target.directory, True)
        code = ErrorCode.EXTRACT_FAILED if isinstance(exc, OSError) else ErrorCode.INVALID_INPUT
        return Result.Err(code, sanitize_error_message(exc, "Invalid archive", _error_roots(svc)))
    return Result.Ok(target)


def register_upload_routes(routes: web.RouteTableDef) -> None:
    """Register the /api/upload route handler."""

    @routes.post("/api/upload")
    async def upload_archive(request: web.Request):
        """
        Ingest a ZIP archive as a MANGA or AUDIO record.

        Returns the new record id, the final display title and the library
        relative folder. Scanner failures are reported as
        "Scanner failed: <reason>".
        """
        svc, error_result = _require_services(request)
        if error_result is not None:
            return _json_response(error_result)

        max_bytes = int(svc.get("max_upload_bytes") or MAX_UPLOAD_BYTES)
        if request.content_length is not None and request.content_length > max_bytes:
            return _json_response(Result.Err(ErrorCode.FILE_TOO_LARGE, f"Upload exceeds {max_bytes // (1024 * 1024)} MB"))

        form_res = await _read_upload_form(request, Path(svc["upload_tmp_dir"]), max_bytes)
        if not form_res.ok:
            return _json_response(form_res)
        form = form_res.data

        try:
            kind = _parse_kind(form.text("type"))
            title = form.text("title")
            if kind is None:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "type must be MANGA or AUDIO"))
            if not title:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Missing title"))
            if form.archive_path is None:
                return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Missing file"))
            overrides = _parse_track_titles(form.text("track_titles"))
            if not overrides.ok:
                return _json_response(overrides)

            extracted = await _extract_into_library(svc, form, kind, title)
            if not extracted.ok:
                return _json_response(extracted)
        finally:
            await asyncio.to_thread(_cleanup_temp_upload_file, form.archive_path)

        target = extracted.data
        ingest = svc["ingest"]
        if kind is MediaKind.MANGA:
            scan = await ingest.scan_manga_folder(target.directory, target.title)
        else:
            scan = await ingest.scan_audio_folder(target.directory, target.title, overrides.data)
        if not scan.ok:
            logger.error("Scanner failed for %s: %s", target.directory, scan.error)
            return _json_response(Result.Err(ErrorCode.SCAN_FAILED, f"Scanner failed: {scan.error}", cause=scan.code))

        record_id = str(scan.data)
        meta: dict[str, Any] = {}
        source_url = form.text("source_url")
        description = form.text("description")
        if source_url or description:
            patched = await svc["registrar"].patch(
                record_id,
                source_url=source_url or None,
                description=description or None,
            )
            if not patched.ok:
                logger.warning("Record %s saved but extra fields were not: %s", record_id, patched.error)
                meta["warning"] = "source_url/description were not saved"

        log_success(logger, "Upload ingested: %s (%s)", target.title, kind.value)
        return _json_response(
            Result.Ok(
                {
                    "id": record_id,
                    "title": target.title,
                    "kind": kind.value,
                    "folder": to_posix(os.path.relpath(target.directory, svc["library_root"])),
                },
                **meta,
            )
        )
