"""
Dependency injection - builds services.
Simple, debug-friendly DI without framework magic.
"""
from __future__ import annotations

import os

from .adapters.db.schema import init_schema
from .adapters.db.sqlite import Sqlite
from .config import DB_TIMEOUT, MAX_UPLOAD_BYTES, THUMB_BATCH_SIZE, THUMB_HEIGHT, THUMB_QUALITY, initialize_directories
from .features.library import ArchiveRegistrar, LibraryIngestService, ThumbnailCachePopulator
from .shared import ErrorCode, Result, get_logger, log_success

logger = get_logger(__name__)


def _init_db_or_error(db_path: str) -> Result[Sqlite]:
    logger.info("Initializing database: %s", db_path)
    try:
        return Result.Ok(Sqlite(db_path, timeout=DB_TIMEOUT))
    except Exception as exc:
        logger.error("Failed to initialize database: %s", exc)
        return Result.Err(ErrorCode.DB_ERROR, f"Failed to initialize database: {exc}")


async def build_services(
    db_path: str | None = None,
    *,
    library_root: str | os.PathLike[str] | None = None,
    cache_dir: str | os.PathLike[str] | None = None,
) -> Result[dict]:
    """
    Build all services (DI container).

    Args:
        db_path: Path to SQLite database (default: from config.INDEX_DB)
        library_root: Library directory (default: config.LIBRARY_ROOT_PATH)
        cache_dir: Thumbnail cache directory (default: config.THUMB_CACHE_DIR_PATH)

    Returns:
        Result[dict] of service instances
    """
    logger.info("Building services...")
    try:
        paths = initialize_directories(library_root, cache_dir, db_path)
    except OSError as exc:
        logger.error("Failed to initialize directories: %s", exc)
        return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, f"Failed to initialize directories: {exc}")

    db_res = _init_db_or_error(str(paths["index_db"]))
    if not db_res.ok:
        return Result.Err(db_res.code or ErrorCode.DB_ERROR, db_res.error or "Failed to initialize database")
    db = db_res.data

    schema_res = await init_schema(db)
    if not schema_res.ok:
        logger.error("Schema initialization failed: %s", schema_res.error)
        await db.aclose()
        return Result.Err(schema_res.code or ErrorCode.DB_ERROR, f"Failed to initialize database: {schema_res.error}")

    registrar = ArchiveRegistrar(db)
    thumbnails = ThumbnailCachePopulator(
        paths["cache_dir"],
        batch_size=THUMB_BATCH_SIZE,
        height=THUMB_HEIGHT,
        quality=THUMB_QUALITY,
    )
    services = {
        "db": db,
        "registrar": registrar,
        "thumbnails": thumbnails,
        "ingest": LibraryIngestService(registrar, thumbnails),
        "library_root": paths["library_root"],
        "upload_tmp_dir": paths["upload_tmp_dir"],
        "cache_dir": paths["cache_dir"],
        "max_upload_bytes": MAX_UPLOAD_BYTES,
    }
    log_success(logger, "All services initialized")
    return Result.Ok(services)


async def dispose_services(services: dict) -> None:
    """Wait for background thumbnail work, then close the database."""
    thumbnails = services.get("thumbnails")
    if thumbnails is not None:
        await thumbnails.wait_idle()
    db = services.get("db")
    if db is not None:
        await db.aclose()
        logger.debug("Database connection closed")
