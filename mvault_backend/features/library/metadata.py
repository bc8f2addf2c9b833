"""
Per-file structural metadata for archive folders.

- Images: pixel width/height (Pillow). Undecodable files report 0x0.
- Audio: embedded title tag (mutagen), falling back to the file stem.

Nothing in here raises for a bad file: every input path yields one record,
possibly degraded, and the problem is logged as a warning.
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Sequence

import mutagen
from PIL import Image

from ...config import EXTRACT_CONCURRENCY
from ...shared import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImageInfo:
    relative_file: str
    width: int
    height: int
    size_bytes: int


@dataclass(frozen=True)
class AudioInfo:
    relative_file: str
    size_bytes: int
    title: str


def file_stem(relative_file: str) -> str:
    return PurePosixPath(relative_file).stem


def file_size(path: str | os.PathLike[str]) -> int:
    try:
        return int(os.stat(path).st_size)
    except OSError as exc:
        logger.warning("Cannot stat %s, assuming size 0: %s", path, exc)
        return 0


def read_image_dimensions(path: str | os.PathLike[str]) -> tuple[int, int]:
    """Return (width, height), or (0, 0) when the file cannot be decoded."""
    try:
        with Image.open(path) as img:
            width, height = img.size
        return int(width or 0), int(height or 0)
    except Exception as exc:
        logger.warning("Failed to read image size for %s, assuming 0x0: %s", path, exc)
        return 0, 0


# Native frame names for containers without an easy-tag mapping:
# ID3 in WAV/AIFF chunks, ASF/WMA, MP4 atoms.
_RAW_TITLE_KEYS = ("TIT2", "Title", "\xa9nam")


def _tag_text(value: Any) -> str:
    if hasattr(value, "text"):
        value = value.text[0] if isinstance(value.text, list) and value.text else value.text
    elif hasattr(value, "value"):
        value = value.value
    return str(value or "").strip()


def _read_tag_title(path: str | os.PathLike[str], keys: tuple[str, ...], easy: bool) -> str:
    try:
        audio = mutagen.File(str(path), easy=easy)
    except Exception as exc:
        logger.warning("Failed to read tags for %s, using file name: %s", path, exc)
        return ""
    if audio is None or not audio.tags:
        return ""
    for key in keys:
        try:
            values = audio.tags.get(key)
        except Exception as exc:
            logger.warning("Unreadable %s tag in %s: %s", key, path, exc)
            continue
        if values is None:
            continue
        for value in values if isinstance(values, list) else [values]:
            title = _tag_text(value)
            if title:
                return title
    return ""


def read_audio_title(path: str | os.PathLike[str]) -> str:
    """Return the first non-blank embedded title tag, else the file stem."""
    title = _read_tag_title(path, ("title",), easy=True)
    if not title:
        title = _read_tag_title(path, _RAW_TITLE_KEYS, easy=False)
    return title or Path(path).stem


def _image_info(root: Path, relative_file: str) -> ImageInfo:
    full = root / relative_file
    width, height = read_image_dimensions(full)
    return ImageInfo(relative_file=relative_file, width=width, height=height, size_bytes=file_size(full))


def _audio_info(root: Path, relative_file: str) -> AudioInfo:
    full = root / relative_file
    return AudioInfo(relative_file=relative_file, size_bytes=file_size(full), title=read_audio_title(full))


async def extract_images(
    root: str | os.PathLike[str],
    relative_files: Sequence[str],
    *,
    concurrency: int = EXTRACT_CONCURRENCY,
) -> list[ImageInfo]:
    """
    Read dimensions for every image, at most `concurrency` files open at once.

    The returned list is in the same order as `relative_files`.
    """
    root_path = Path(root)
    sem = asyncio.Semaphore(max(1, int(concurrency)))

    async def _one(rel: str) -> ImageInfo:
        async with sem:
            return await asyncio.to_thread(_image_info, root_path, rel)

    return list(await asyncio.gather(*(_one(rel) for rel in relative_files)))


async def extract_audio(root: str | os.PathLike[str], relative_files: Sequence[str]) -> list[AudioInfo]:
    """Read tag titles one file at a time, in input order."""
    root_path = Path(root)
    out: list[AudioInfo] = []
    for rel in relative_files:
        out.append(await asyncio.to_thread(_audio_info, root_path, rel))
    return out
