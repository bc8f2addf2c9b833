"""
Configuration for Media Vault.

Every setting is read from the environment once at import time. Invalid
numbers fall back to the default (or are clamped) with a warning instead of
failing startup.
"""
import logging
import os
from pathlib import Path

from .utils import env_bool

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _abs_path(path: str | os.PathLike[str]) -> Path:
    """Absolute, normalized path without following symlinks."""
    return Path(os.path.abspath(os.path.expanduser(path)))


def _resolve_dir(default: Path, *names: str) -> Path:
    env_path = _env_raw(*names)
    if env_path:
        try:
            return _abs_path(env_path)
        except (OSError, ValueError):
            logger.warning("Failed to resolve %s=%s, using %s", names[0], env_path, default)
    return _abs_path(default)


# Storage layout
DATA_DIR_PATH = _resolve_dir(Path.cwd(), "MVAULT_DATA_DIR")
# Ingestion derives public URLs from the last "/library/" segment of a
# folder path, so the library root directory must literally be named "library".
LIBRARY_ROOT_PATH = _resolve_dir(DATA_DIR_PATH / "library", "MVAULT_LIBRARY_ROOT")
LIBRARY_ROOT = str(LIBRARY_ROOT_PATH)
UPLOAD_TMP_DIR_PATH = LIBRARY_ROOT_PATH / "uploads"
THUMB_CACHE_DIR_PATH = _resolve_dir(DATA_DIR_PATH / ".cache" / "thumbnails", "MVAULT_THUMB_CACHE_DIR")
THUMB_CACHE_DIR = str(THUMB_CACHE_DIR_PATH)

# SQLite index configuration
INDEX_DIR_PATH = DATA_DIR_PATH / ".mvault"
INDEX_DB = _env_raw("MVAULT_INDEX_DB", default=str(INDEX_DIR_PATH / "library.db")) or str(INDEX_DIR_PATH / "library.db")

# Thumbnails
THUMB_HEIGHT = _env_int(300, "MVAULT_THUMB_HEIGHT", min_value=16, max_value=4096)
THUMB_QUALITY = _env_int(75, "MVAULT_THUMB_QUALITY", min_value=1, max_value=100)
THUMB_BATCH_SIZE = _env_int(5, "MVAULT_THUMB_BATCH_SIZE", min_value=1, max_value=64)

# Metadata extraction
EXTRACT_CONCURRENCY = _env_int(8, "MVAULT_EXTRACT_CONCURRENCY", min_value=1, max_value=64)

# Database tuning
DB_TIMEOUT = _env_float(30.0, "MVAULT_DB_TIMEOUT", min_value=1.0, max_value=300.0)

# Uploads
MAX_UPLOAD_BYTES = _env_int(2048, "MVAULT_MAX_UPLOAD_MB", min_value=1, max_value=1024 * 1024) * 1024 * 1024

# HTTP server
SERVER_HOST = _env_raw("MVAULT_HOST", default="127.0.0.1") or "127.0.0.1"
SERVER_PORT = _env_int(8188, "MVAULT_PORT", min_value=1, max_value=65535)
DEBUG = env_bool("MVAULT_DEBUG", False)


def initialize_directories(
    library_root: str | os.PathLike[str] | None = None,
    cache_dir: str | os.PathLike[str] | None = None,
    index_db: str | os.PathLike[str] | None = None,
) -> dict[str, Path]:
    """
    Create the library root, upload staging, thumbnail cache and index directories.

    Arguments override the configured locations (tests point them at tmp dirs).

    Returns:
        The resolved paths keyed "library_root", "upload_tmp_dir", "cache_dir", "index_db".
    """
    library = _abs_path(library_root) if library_root is not None else LIBRARY_ROOT_PATH
    paths = {
        "library_root": library,
        "upload_tmp_dir": library / UPLOAD_TMP_DIR_PATH.name,
        "cache_dir": _abs_path(cache_dir) if cache_dir is not None else THUMB_CACHE_DIR_PATH,
        "index_db": Path(index_db) if index_db is not None else Path(INDEX_DB),
    }
    for key, path in paths.items():
        target = path.parent if key == "index_db" else path
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create directory %s: %s", target, exc)
            raise
    return paths
