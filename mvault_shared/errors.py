"""
Client-safe error text.

Upload and extraction failures often carry absolute paths (the temp zip, the
target folder under the library). Known roots are rewritten to a short label
such as `[library]`, so the client still sees which file failed; any other
absolute path is replaced with `[path]`.
"""
from __future__ import annotations

import os
import re
from typing import Any, Mapping, Optional

_MAX_DETAIL_CHARS = 200
_DRIVE_PATH_RE = re.compile(r"[A-Za-z]:[\\/][^\s'\"]+")
_POSIX_PATH_RE = re.compile(r"(?<![\w:/.\]])/(?!/)[^\s'\"]+")


def _replace_roots(text: str, roots: Mapping[str, Any]) -> str:
    # Longest root first so "/lib/uploads" wins over "/lib".
    pairs = sorted(
        ((os.path.abspath(os.fspath(path)), label) for label, path in roots.items() if path),
        key=lambda pair: len(pair[0]),
        reverse=True,
    )
    for root, label in pairs:
        text = text.replace(root, f"[{label}]")
    return text


def sanitize_error_message(exc: Any, fallback: str, roots: Optional[Mapping[str, Any]] = None) -> str:
    """
    Build `"<fallback>: <detail>"` for API responses.

    `roots` maps a label to a directory; occurrences of that directory in the
    message become `[label]`. Remaining absolute paths are masked.
    """
    fallback = fallback or "An error occurred"
    raw = "" if exc is None else str(exc)
    if not raw:
        return fallback

    detail = _replace_roots(raw, roots or {})
    detail = _DRIVE_PATH_RE.sub("[path]", detail)
    detail = _POSIX_PATH_RE.sub("[path]", detail)
    detail = " ".join(detail.split())
    return f"{fallback}: {detail[:_MAX_DETAIL_CHARS]}" if detail else fallback
