"""
Path helpers for the file-serving routes.

URL paths are resolved lexically against the library root: ".." segments and
absolute paths are refused before the filesystem is touched.
"""
from __future__ import annotations

import mimetypes
import os
from pathlib import Path, PurePosixPath

_KNOWN_CONTENT_TYPES = {
    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".avif": "image/avif",
    # Audio
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".wav": "audio/wav",
    ".aiff": "audio/aiff",
    ".aif": "audio/aiff",
    ".wma": "audio/x-ms-wma",
}


def _safe_rel_path(value: str) -> Path | None:
    """Relative path from a URL segment, or None when it is empty or escapes."""
    raw = str(value or "").replace("\\", "/").strip()
    if not raw or "\x00" in raw:
        return None
    rel = PurePosixPath(raw)
    if rel.is_absolute() or ".." in rel.parts:
        return None
    if rel.parts and rel.parts[0].endswith(":"):
        return None
    parts = [p for p in rel.parts if p not in ("", ".")]
    if not parts:
        return None
    return Path(*parts)


def _is_within_root(candidate: Path, root: Path) -> bool:
    root_str = os.path.normcase(os.path.normpath(str(root)))
    cand_str = os.path.normcase(os.path.normpath(str(candidate)))
    try:
        return os.path.commonpath([root_str, cand_str]) == root_str
    except ValueError:
        return False


def _guess_content_type_for_file(path: Path) -> str:
    """
    Best-effort content-type for media serving.

    `mimetypes` tables differ between platforms for webp/avif/flac, so the
    formats the library ingests are mapped explicitly.
    """
    ext = str(path.suffix or "").lower()
    if ext in _KNOWN_CONTENT_TYPES:
        return _KNOWN_CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or "application/octet-stream"
