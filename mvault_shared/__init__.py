"""Shared utilities for Media Vault."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success, request_id_var
from .result import Result
from .thumb_cache import render_thumbnail, thumb_cache_filename, thumb_cache_key, thumb_cache_path
from .time import ms, timer
from .types import EXTENSIONS, ErrorCode, FileKind, MediaKind, classify_file

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
    "ms",
    "timer",
    "FileKind",
    "MediaKind",
    "ErrorCode",
    "EXTENSIONS",
    "classify_file",
    "thumb_cache_key",
    "thumb_cache_filename",
    "thumb_cache_path",
    "render_thumbnail",
]
