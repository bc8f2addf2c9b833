"""
Database schema.
"""
from ...shared import Result, get_logger

logger = get_logger(__name__)

CURRENT_SCHEMA_VERSION = 1
# Schema version history:
# 1: media_items (one row per ingested folder, manifest stored as JSON text)

SCHEMA_V1 = """
-- Metadata table for schema versioning
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- One row per distinct ingested folder; folder_path is the upsert key.
CREATE TABLE IF NOT EXISTS media_items (
    id TEXT PRIMARY KEY,
    folder_path TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    kind TEXT NOT NULL,  -- MANGA, AUDIO, VIDEO, IMAGE, LINK
    manifest TEXT NOT NULL DEFAULT '{}',  -- JSON document, shape depends on kind
    item_count INTEGER NOT NULL DEFAULT 0,
    total_size INTEGER NOT NULL DEFAULT 0,  -- bytes
    cover_url TEXT,
    source_url TEXT,
    description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_media_items_kind ON media_items(kind, updated_at);
"""


async def init_schema(db) -> Result[bool]:
    """Create tables if missing and stamp the schema version."""
    res = await db.aexecutescript(SCHEMA_V1)
    if not res.ok:
        logger.error("Schema creation failed: %s", res.error)
        return res
    stamp = await db.aexecute(
        "INSERT INTO metadata (key, value) VALUES ('schema_version', ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (str(CURRENT_SCHEMA_VERSION),),
    )
    if not stamp.ok:
        return Result.Err(stamp.code, stamp.error or "Failed to stamp schema version")
    return Result.Ok(True)


async def get_schema_version(db) -> int:
    res = await db.aquery("SELECT value FROM metadata WHERE key = 'schema_version'")
    if not res.ok or not res.data:
        return 0
    try:
        return int(res.data[0]["value"])
    except (KeyError, TypeError, ValueError):
        return 0
