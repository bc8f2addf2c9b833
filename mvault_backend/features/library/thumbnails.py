"""
Background thumbnail cache population.

After a folder is registered, every visual entry gets a small WEBP preview in
the shared flat cache directory. File names come from
`mvault_shared.thumb_cache`, the same derivation the `/api/file/...?thumb`
route uses, so either side can fill the cache for the other.

Best effort throughout: a failed thumbnail is logged and counted, and the
route regenerates it on demand later.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from mvault_shared.thumb_cache import render_thumbnail, thumb_cache_path

from ...config import THUMB_BATCH_SIZE, THUMB_CACHE_DIR_PATH, THUMB_HEIGHT, THUMB_QUALITY
from ...shared import get_logger, log_success
from .manifest import PageEntry

logger = get_logger(__name__)


class ThumbnailCachePopulator:
    def __init__(
        self,
        cache_dir: str | os.PathLike[str] = THUMB_CACHE_DIR_PATH,
        *,
        batch_size: int = THUMB_BATCH_SIZE,
        height: int = THUMB_HEIGHT,
        quality: int = THUMB_QUALITY,
    ):
        self.cache_dir = Path(cache_dir)
        self.batch_size = max(1, int(batch_size))
        self.height = int(height)
        self.quality = int(quality)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    async def _render_one(self, folder: Path, entry: PageEntry) -> str:
        source = folder / entry.relative_file
        dest = thumb_cache_path(self.cache_dir, source)
        try:
            if await asyncio.to_thread(dest.exists):
                return "skipped"
            await asyncio.to_thread(
                render_thumbnail, source, dest, height=self.height, quality=self.quality
            )
            return "generated"
        except Exception as exc:
            logger.warning("Failed to generate thumbnail for %s: %s", source, exc)
            return "failed"

    async def populate(self, record_id: str, folder_path: str, entries: Sequence[PageEntry]) -> Dict[str, int]:
        """
        Render missing thumbnails for `entries`, `batch_size` files at a time.

        Never raises for per-file problems. Returns counters
        {"generated", "skipped", "failed"}.
        """
        stats = {"generated": 0, "skipped": 0, "failed": 0}
        folder = Path(folder_path)
        await asyncio.to_thread(self.cache_dir.mkdir, parents=True, exist_ok=True)

        items = list(entries)
        for start in range(0, len(items), self.batch_size):
            batch = items[start:start + self.batch_size]
            outcomes = await asyncio.gather(*(self._render_one(folder, entry) for entry in batch))
            for outcome in outcomes:
                stats[outcome] += 1

        log_success(
            logger,
            "Thumbnails for %s: %d generated, %d cached, %d failed",
            record_id, stats["generated"], stats["skipped"], stats["failed"],
        )
        return stats

    async def _run_detached(self, record_id: str, folder_path: str, entries: Sequence[PageEntry]) -> Optional[Dict[str, Any]]:
        try:
            return await self.populate(record_id, folder_path, entries)
        except asyncio.CancelledError:
            logger.info("Thumbnail generation cancelled for %s", record_id)
            raise
        except Exception as exc:
            logger.error("Thumbnail generation failed for %s: %s", record_id, exc, exc_info=True)
            return None

    def schedule(self, record_id: str, folder_path: str, entries: Sequence[PageEntry]) -> asyncio.Task:
        """
        Start `populate` in the background and return immediately.

        The task keeps a strong reference here until it finishes; its errors are
        logged, never propagated to whoever triggered the scan.
        """
        task = asyncio.create_task(
            self._run_detached(record_id, folder_path, tuple(entries)),
            name=f"mvault-thumbs-{record_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every scheduled population task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
