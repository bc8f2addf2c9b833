"""
Shared types, enums, and constants.
"""
import os
from enum import Enum
from typing import Final, Literal

# File type classifications
FileKind = Literal["image", "audio", "unknown"]


class MediaKind(str, Enum):
    """Kind of a library media record."""

    MANGA = "MANGA"
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    LINK = "LINK"


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"
    NOT_FOUND = "NOT_FOUND"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Server / infrastructure
    DB_ERROR = "DB_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Operation errors
    UPLOAD_FAILED = "UPLOAD_FAILED"
    EXTRACT_FAILED = "EXTRACT_FAILED"
    SCAN_FAILED = "SCAN_FAILED"
    UPDATE_FAILED = "UPDATE_FAILED"

    # Parsing
    PARSE_ERROR = "PARSE_ERROR"

# File extensions by type
EXTENSIONS: Final[dict[FileKind, frozenset[str]]] = {
    "image": frozenset({".jpg", ".jpeg", ".png", ".webp", ".avif", ".gif"}),
    "audio": frozenset({".mp3", ".flac", ".ogg", ".opus", ".m4a", ".aac", ".wav", ".aiff", ".aif", ".wma"}),
    "unknown": frozenset(),
}

def classify_file(filename: str) -> FileKind:
    """
    Classify file by extension.

    Args:
        filename: File name or path

    Returns:
        File kind (image, audio, unknown)
    """
    ext = os.path.splitext(filename)[1].lower()

    for kind, exts in EXTENSIONS.items():
        if ext in exts:
            return kind

    return "unknown"
