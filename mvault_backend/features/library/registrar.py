"""
Archive registrar: persists one media record per ingested folder.

`register()` is a single `INSERT ... ON CONFLICT(folder_path) DO UPDATE`
statement, so re-scanning a folder updates the same row (same id, same
created_at) and never creates a duplicate. Two scans of the same folder racing
each other are not serialized here; the last upsert wins.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ...adapters.db.sqlite import Sqlite
from ...shared import ErrorCode, MediaKind, Result, get_logger
from .manifest import Manifest, parse_manifest, serialize_manifest

logger = get_logger(__name__)

# Largest value SQLite binds as INTEGER
_SQLITE_MAX_INT = 2**63 - 1

_RECORD_COLUMNS = (
    "id, folder_path, title, kind, manifest, item_count, total_size, "
    "cover_url, source_url, description, created_at, updated_at"
)


@dataclass(frozen=True)
class MediaRecord:
    id: str
    folder_path: str
    title: str
    kind: MediaKind
    manifest: str
    item_count: int
    total_size: int
    cover_url: Optional[str]
    source_url: Optional[str]
    description: Optional[str]
    created_at: str
    updated_at: str

    def parsed_manifest(self) -> Result[Manifest]:
        return parse_manifest(self.kind, self.manifest)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "folder_path": self.folder_path,
            "title": self.title,
            "kind": self.kind.value,
            "item_count": self.item_count,
            "total_size": self.total_size,
            "cover_url": self.cover_url,
            "source_url": self.source_url,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _row_to_record(row: Dict[str, Any]) -> MediaRecord:
    return MediaRecord(
        id=str(row["id"]),
        folder_path=str(row["folder_path"]),
        title=str(row["title"]),
        kind=MediaKind(row["kind"]),
        manifest=str(row["manifest"] or "{}"),
        item_count=int(row["item_count"] or 0),
        total_size=int(row["total_size"] or 0),
        cover_url=row.get("cover_url"),
        source_url=row.get("source_url"),
        description=row.get("description"),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


class _MonotonicClock:
    """UTC ISO timestamps that strictly increase within this process."""

    def __init__(self) -> None:
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            current = datetime.now(timezone.utc)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current.isoformat(timespec="microseconds")


class ArchiveRegistrar:
    def __init__(self, db: Sqlite):
        self.db = db
        self._clock = _MonotonicClock()

    async def register(
        self,
        folder_path: str,
        kind: MediaKind,
        title: str,
        manifest: Manifest,
        item_count: int,
        total_size: int,
        cover_url: Optional[str],
    ) -> Result[str]:
        """
        Create or fully overwrite the record for `folder_path`.

        Returns:
            Result with the record id (existing id on re-scan). A DB failure is
            returned as DB_ERROR and nothing is written.
        """
        now = self._clock.next()
        res = await self.db.aexecute(
            """
            INSERT INTO media_items (
                id, folder_path, title, kind, manifest, item_count, total_size,
                cover_url, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(folder_path) DO UPDATE SET
                title = excluded.title,
                kind = excluded.kind,
                manifest = excluded.manifest,
                item_count = excluded.item_count,
                total_size = excluded.total_size,
                cover_url = excluded.cover_url,
                updated_at = excluded.updated_at
            """,
            (
                uuid.uuid4().hex,
                str(folder_path),
                str(title),
                MediaKind(kind).value,
                serialize_manifest(manifest),
                int(item_count),
                int(total_size),
                cover_url,
                now,
                now,
            ),
        )
        if not res.ok:
            logger.error("Failed to register %s: %s", folder_path, res.error)
            return Result.Err(res.code or ErrorCode.DB_ERROR, res.error or "Failed to register media record")

        rows = await self.db.aquery("SELECT id FROM media_items WHERE folder_path = ? LIMIT 1", (str(folder_path),))
        if not rows.ok:
            return Result.Err(rows.code or ErrorCode.DB_ERROR, rows.error or "Failed to read back media record")
        if not rows.data:
            return Result.Err(ErrorCode.DB_ERROR, f"Upsert produced no row for {folder_path}")
        return Result.Ok(str(rows.data[0]["id"]))

    async def _fetch_one(self, where: str, params: tuple, missing: str) -> Result[MediaRecord]:
        res = await self.db.aquery(f"SELECT {_RECORD_COLUMNS} FROM media_items WHERE {where} LIMIT 1", params)
        if not res.ok:
            return Result.Err(res.code or ErrorCode.DB_ERROR, res.error or "Query failed")
        if not res.data:
            return Result.Err(ErrorCode.NOT_FOUND, missing)
        return Result.Ok(_row_to_record(res.data[0]))

    async def get(self, record_id: str) -> Result[MediaRecord]:
        return await self._fetch_one("id = ?", (str(record_id),), f"Media record not found: {record_id}")

    async def get_by_path(self, folder_path: str) -> Result[MediaRecord]:
        return await self._fetch_one("folder_path = ?", (str(folder_path),), "No media record for this folder")

    async def list_records(self, kind: Optional[MediaKind] = None, limit: int = 100, offset: int = 0) -> Result[List[MediaRecord]]:
        limit = max(1, min(1000, int(limit)))
        offset = max(0, min(_SQLITE_MAX_INT, int(offset)))
        if kind is None:
            res = await self.db.aquery(
                f"SELECT {_RECORD_COLUMNS} FROM media_items ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
        else:
            res = await self.db.aquery(
                f"SELECT {_RECORD_COLUMNS} FROM media_items WHERE kind = ? ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (MediaKind(kind).value, limit, offset),
            )
        if not res.ok:
            return Result.Err(res.code or ErrorCode.DB_ERROR, res.error or "Query failed")
        return Result.Ok([_row_to_record(row) for row in res.data or []], limit=limit, offset=offset)

    async def patch(
        self,
        record_id: str,
        *,
        source_url: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Result[MediaRecord]:
        """Set source_url and/or description; fields left as None are untouched."""
        fields: list[str] = []
        params: list[Any] = []
        if source_url is not None:
            fields.append("source_url = ?")
            params.append(str(source_url))
        if description is not None:
            fields.append("description = ?")
            params.append(str(description))
        if not fields:
            return await self.get(record_id)

        fields.append("updated_at = ?")
        params.append(self._clock.next())
        params.append(str(record_id))
        res = await self.db.aexecute(f"UPDATE media_items SET {', '.join(fields)} WHERE id = ?", tuple(params))
        if not res.ok:
            return Result.Err(res.code or ErrorCode.UPDATE_FAILED, res.error or "Update failed")
        if not res.data:
            return Result.Err(ErrorCode.NOT_FOUND, f"Media record not found: {record_id}")
        return await self.get(record_id)

    async def delete(self, record_id: str) -> Result[bool]:
        """Remove the record only; files on disk are left alone."""
        res = await self.db.aexecute("DELETE FROM media_items WHERE id = ?", (str(record_id),))
        if not res.ok:
            return Result.Err(res.code or ErrorCode.DB_ERROR, res.error or "Delete failed")
        if not res.data:
            return Result.Err(ErrorCode.NOT_FOUND, f"Media record not found: {record_id}")
        return Result.Ok(True)
