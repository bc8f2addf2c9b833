"""Backend-facing alias for shared utilities.

Backend modules import from here (`from ..shared import Result, get_logger`)
so the shared package can be reorganized without touching every caller.
"""

from __future__ import annotations

import mvault_shared as _root_shared
from mvault_shared.types import EXTENSIONS

Result = _root_shared.Result
ErrorCode = _root_shared.ErrorCode
MediaKind = _root_shared.MediaKind
FileKind = _root_shared.FileKind
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
request_id_var = _root_shared.request_id_var
classify_file = _root_shared.classify_file
sanitize_error_message = _root_shared.sanitize_error_message
timer = _root_shared.timer
ms = _root_shared.ms

__all__ = [
    "Result",
    "ErrorCode",
    "MediaKind",
    "FileKind",
    "EXTENSIONS",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "classify_file",
    "sanitize_error_message",
    "timer",
    "ms",
]
