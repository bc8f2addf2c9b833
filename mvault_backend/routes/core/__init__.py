"""
Core utilities for route handlers.
"""
from .paths import _guess_content_type_for_file, _is_within_root, _safe_rel_path
from .request_json import _decode_json_dict, _read_json
from .response import _json_response, safe_error_message
from .services import APP_KEY_SERVICES, _require_services

__all__ = [
    "_json_response",
    "safe_error_message",
    "_safe_rel_path",
    "_is_within_root",
    "_guess_content_type_for_file",
    "_read_json",
    "_decode_json_dict",
    "APP_KEY_SERVICES",
    "_require_services",
]
