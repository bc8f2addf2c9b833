"""
Ingestion orchestrators for extracted archives.

    scan_manga_folder: images only           -> MANGA record, thumbnails for pages
    scan_audio_folder: audio tracks + images -> AUDIO record, thumbnails for images

Both walk the folder, extract metadata, build the manifest, upsert the record
and return its id as soon as the upsert has completed. Thumbnail generation is
then scheduled in the background and may still be running when the caller
gets the id.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Mapping, Optional

from ...shared import ErrorCode, MediaKind, Result, get_logger, log_success, timer
from .fs_walker import AUDIO_EXTENSIONS, IMAGE_EXTENSIONS, extension_predicate, has_extension, walk
from .manifest import ManifestBuild, build_audio_manifest, build_manga_manifest
from .metadata import extract_audio, extract_images
from .natural_sort import natural_sorted
from .registrar import ArchiveRegistrar
from .thumbnails import ThumbnailCachePopulator

logger = get_logger(__name__)


def _resolve_folder(folder: str | os.PathLike[str]) -> Result[Path]:
    # Lexical only: symlinks under the library must keep their "/library/" path.
    try:
        path = Path(os.path.abspath(os.path.expanduser(folder)))
    except (OSError, ValueError) as exc:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid folder path: {exc}")
    if not path.is_dir():
        return Result.Err(ErrorCode.INVALID_INPUT, f"Folder does not exist: {path}")
    return Result.Ok(path)


class LibraryIngestService:
    def __init__(self, registrar: ArchiveRegistrar, thumbnails: ThumbnailCachePopulator):
        self.registrar = registrar
        self.thumbnails = thumbnails

    async def _register(self, folder: Path, kind: MediaKind, title: str, build: ManifestBuild) -> Result[str]:
        res = await self.registrar.register(
            str(folder),
            kind,
            title,
            build.manifest,
            build.item_count,
            build.total_size,
            build.cover_url,
        )
        if not res.ok:
            return res
        record_id = str(res.data)
        if build.visual_entries:
            self.thumbnails.schedule(record_id, str(folder), build.visual_entries)
        return res

    async def scan_manga_folder(self, folder: str | os.PathLike[str], title: Optional[str] = None) -> Result[str]:
        """
        Register a folder of page images as a MANGA record.

        Returns:
            Result with the record id. NOT_FOUND when the folder holds no
            images (nothing is written), DB_ERROR when the upsert fails.
        """
        folder_res = _resolve_folder(folder)
        if not folder_res.ok:
            return Result.Err(folder_res.code, folder_res.error or "Invalid folder")
        root = folder_res.unwrap()
        logger.info("Scanning manga folder: %s", root)

        with timer(f"manga scan {root.name}", logger):
            files = await asyncio.to_thread(walk, root, extension_predicate(IMAGE_EXTENSIONS))
            if not files:
                logger.error("No images found in %s", root)
                return Result.Err(ErrorCode.NOT_FOUND, "No images found in this folder!")

            pages = await extract_images(root, natural_sorted(files))
            build = build_manga_manifest(str(root), pages)
            final_title = (title or "").strip() or root.name
            res = await self._register(root, MediaKind.MANGA, final_title, build)

        if res.ok:
            log_success(logger, "Registered %s (%d pages) as %s", final_title, build.item_count, res.data)
        return res

    async def scan_audio_folder(
        self,
        folder: str | os.PathLike[str],
        title: Optional[str] = None,
        track_title_overrides: Optional[Mapping[str, str]] = None,
    ) -> Result[str]:
        """
        Register a folder of audio tracks (plus artwork) as an AUDIO record.

        A folder with artwork but no tracks is accepted; a folder with neither
        returns NOT_FOUND. `track_title_overrides` maps forward-slash relative
        track paths to display titles and beats embedded tags.
        """
        folder_res = _resolve_folder(folder)
        if not folder_res.ok:
            return Result.Err(folder_res.code, folder_res.error or "Invalid folder")
        root = folder_res.unwrap()
        logger.info("Scanning audio folder: %s", root)

        with timer(f"audio scan {root.name}", logger):
            files = await asyncio.to_thread(walk, root, extension_predicate(AUDIO_EXTENSIONS, IMAGE_EXTENSIONS))
            track_files = natural_sorted(f for f in files if has_extension(f, AUDIO_EXTENSIONS))
            image_files = natural_sorted(f for f in files if has_extension(f, IMAGE_EXTENSIONS))
            if not track_files and not image_files:
                logger.error("No audio tracks or images found in %s", root)
                return Result.Err(ErrorCode.NOT_FOUND, "No audio tracks or images found in this folder!")
            if not track_files:
                logger.warning("No audio tracks in %s, registering artwork only", root)

            tracks = await extract_audio(root, track_files)
            images = await extract_images(root, image_files)
            build = build_audio_manifest(str(root), tracks, images, track_title_overrides)
            final_title = (title or "").strip() or root.name
            res = await self._register(root, MediaKind.AUDIO, final_title, build)

        if res.ok:
            log_success(
                logger,
                "Registered %s (%d tracks, %d images) as %s",
                final_title, len(track_files), build.item_count, res.data,
            )
        return res
