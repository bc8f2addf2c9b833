"""
SQLite database connection manager (aiosqlite-backed).

Critical guarantee:
- The adapter never raises to callers for SQL failures; it returns `Result(...)`.
  Callers decide whether a DB error is fatal (ingestion treats it as fatal).
"""

from __future__ import annotations

import asyncio
import random
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from ...config import DB_TIMEOUT
from ...shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)

SQLITE_BUSY_TIMEOUT_MS = max(1000, int(float(DB_TIMEOUT) * 1000))
# Negative cache_size is in KiB. -16000 ~= 16 MiB cache.
SQLITE_CACHE_SIZE_KIB = -16000


def _is_locked_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "database is locked" in msg or "database table is locked" in msg or "busy" in msg


class Sqlite:
    """
    Single-connection aiosqlite manager.

    The connection is opened lazily on first use. Writes are serialized with an
    asyncio lock; "database is locked" errors are retried with jittered backoff.
    """

    def __init__(self, db_path: str, timeout: float = 30.0):
        self.db_path = Path(db_path)
        self._timeout = float(timeout)
        self._conn: Optional[aiosqlite.Connection] = None
        self._open_lock: Optional[asyncio.Lock] = None
        self._write_lock: Optional[asyncio.Lock] = None
        self._lock_retry_attempts = 6
        self._lock_retry_base_seconds = 0.05
        self._lock_retry_max_seconds = 0.75

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    async def _apply_connection_pragmas(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute(f"PRAGMA cache_size={SQLITE_CACHE_SIZE_KIB}")
        await conn.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
        await conn.execute("PRAGMA foreign_keys=ON")

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        if self._open_lock is None:
            self._open_lock = asyncio.Lock()
        async with self._open_lock:
            if self._conn is None:
                # Autocommit mode: every statement is its own transaction.
                conn = await aiosqlite.connect(str(self.db_path), timeout=self._timeout, isolation_level=None)
                conn.row_factory = sqlite3.Row
                await self._apply_connection_pragmas(conn)
                self._conn = conn
                logger.debug("Database opened: %s", self.db_path)
        return self._conn

    async def _sleep_backoff(self, attempt: int) -> None:
        delay = min(self._lock_retry_max_seconds, self._lock_retry_base_seconds * (2 ** attempt))
        await asyncio.sleep(delay * (0.5 + random.random() / 2))

    @staticmethod
    def _is_write_sql(query: str) -> bool:
        q = str(query or "").lstrip()
        if not q:
            return False
        head = q.split(None, 1)[0].upper()
        return head not in ("SELECT", "PRAGMA", "WITH", "EXPLAIN")

    @staticmethod
    def _rows_to_dicts(rows: Any) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return [dict(r) for r in rows]

    async def _execute_with_retry(self, query: str, params: Optional[tuple], fetch: bool) -> Result[Any]:
        conn = await self._connection()
        for attempt in range(self._lock_retry_attempts + 1):
            try:
                async with conn.execute(query, params or ()) as cursor:
                    if fetch:
                        rows = await cursor.fetchall()
                        return Result.Ok(self._rows_to_dicts(rows))
                    rowcount = cursor.rowcount
                    return Result.Ok(rowcount if rowcount is not None else 0)
            except sqlite3.OperationalError as exc:
                if _is_locked_error(exc) and attempt < self._lock_retry_attempts:
                    await self._sleep_backoff(attempt)
                    continue
                raise
        return Result.Err(ErrorCode.DB_ERROR, "Query failed after retries")

    async def aexecute(self, query: str, params: Optional[tuple] = None, fetch: bool = False) -> Result[Any]:
        """Execute one SQL statement. Writes return the affected row count."""
        try:
            if self._is_write_sql(query):
                if self._write_lock is None:
                    self._write_lock = asyncio.Lock()
                async with self._write_lock:
                    return await self._execute_with_retry(query, params, fetch)
            return await self._execute_with_retry(query, params, fetch)
        except sqlite3.IntegrityError as exc:
            logger.warning("Integrity error: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, f"Integrity error: {exc}")
        except sqlite3.OperationalError as exc:
            logger.error("Operational error: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, f"Operational error: {exc}")
        except sqlite3.DatabaseError as exc:
            logger.error("Database error: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, str(exc))
        except (OSError, ValueError, OverflowError) as exc:
            logger.error("Unexpected database error: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, str(exc))

    async def aquery(self, sql: str, params: Optional[tuple] = None) -> Result[List[Dict[str, Any]]]:
        """Execute a SELECT query and return rows as dicts."""
        return await self.aexecute(sql, params, fetch=True)

    async def aexecutescript(self, script: str) -> Result[bool]:
        try:
            conn = await self._connection()
            if self._write_lock is None:
                self._write_lock = asyncio.Lock()
            async with self._write_lock:
                await conn.executescript(script)
            return Result.Ok(True)
        except sqlite3.Error as exc:
            logger.error("Script execution failed: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, str(exc))

    async def aclose(self) -> None:
        """Close the connection (idempotent)."""
        conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()
