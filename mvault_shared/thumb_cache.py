"""
Content-addressed thumbnail cache.

Both the ingestion pipeline and the on-demand `/api/file/...?thumb` route
read and write this cache without talking to each other. They agree only
through the derivation below, so every caller must go through these helpers:

    key      = md5(str(absolute_source_path).encode("utf-8")).hexdigest()
    filename = f"{key}_thumb.webp"
    location = <cache_dir>/<filename>   (flat, never partitioned)

The input is the absolute path string exactly as handed in, not the file
contents, and it is not normalized further. Callers make the path absolute
lexically first; following symlinks here would split one file into two keys.
"""
from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Final

from PIL import Image, ImageOps

THUMB_HASH_ALGORITHM: Final[str] = "md5"
THUMB_SUFFIX: Final[str] = "_thumb.webp"
THUMB_FORMAT: Final[str] = "WEBP"
DEFAULT_THUMB_HEIGHT: Final[int] = 300
DEFAULT_THUMB_QUALITY: Final[int] = 75


def thumb_cache_key(source_path: str | os.PathLike[str]) -> str:
    """Hex digest identifying the thumbnail of `source_path`."""
    return hashlib.new(THUMB_HASH_ALGORITHM, str(source_path).encode("utf-8")).hexdigest()


def thumb_cache_filename(source_path: str | os.PathLike[str]) -> str:
    return f"{thumb_cache_key(source_path)}{THUMB_SUFFIX}"


def thumb_cache_path(cache_dir: str | os.PathLike[str], source_path: str | os.PathLike[str]) -> Path:
    return Path(cache_dir) / thumb_cache_filename(source_path)


def _target_size(width: int, height: int, target_height: int) -> tuple[int, int]:
    if height <= target_height or height <= 0:
        return width, height
    scale = target_height / float(height)
    return max(1, round(width * scale)), target_height


def render_thumbnail(
    source: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    *,
    height: int = DEFAULT_THUMB_HEIGHT,
    quality: int = DEFAULT_THUMB_QUALITY,
) -> Path:
    """
    Decode `source`, shrink it to `height` (aspect preserved, never enlarged)
    and write it to `dest` as lossy WEBP.

    The file is written to a temporary sibling and moved into place with
    `os.replace`, so readers never observe a partial thumbnail and concurrent
    writers of the same key simply replace each other.

    Raises:
        OSError / PIL.UnidentifiedImageError when the source cannot be decoded
        or the destination cannot be written.
    """
    dest_path = Path(dest)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        size = _target_size(img.width, img.height, int(height))
        if size != (img.width, img.height):
            img = img.resize(size, Image.Resampling.LANCZOS)

        fd, tmp_name = tempfile.mkstemp(dir=str(dest_path.parent), prefix=".thumb_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                img.save(handle, format=THUMB_FORMAT, quality=int(quality))
            os.replace(tmp_name, dest_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    return dest_path
