"""
Archive upload helpers: target directory allocation and safe ZIP extraction.

Uploaded archives land in `<library>/<category>/<sanitized title>`. When that
directory already exists the upload gets `_<ms timestamp>` appended to the
directory and ` (<ms timestamp>)` to the display title, so the scanner always
works on a fresh, uniquely named folder.
"""
from __future__ import annotations

import os
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from ...shared import MediaKind, get_logger, ms

logger = get_logger(__name__)

_UNSAFE_TITLE_CHARS = re.compile(r"[^A-Za-z0-9.\-_]")
_CATEGORY_DIRS: dict[MediaKind, str] = {
    MediaKind.MANGA: "manga",
    MediaKind.AUDIO: "audio",
}


class UnsafeArchiveError(ValueError):
    """Raised when a ZIP member would be written outside the target folder."""


@dataclass(frozen=True)
class UploadTarget:
    directory: Path
    title: str


def sanitize_title(title: str) -> str:
    safe = _UNSAFE_TITLE_CHARS.sub("_", str(title or "").strip()).strip(".")
    return safe or "untitled"


def category_dir(kind: MediaKind) -> str:
    try:
        return _CATEGORY_DIRS[MediaKind(kind)]
    except KeyError:
        raise ValueError(f"Archives of kind {kind} are not supported") from None


def allocate_target(library_root: str | os.PathLike[str], kind: MediaKind, title: str) -> UploadTarget:
    """
    Create the extraction directory for an upload.

    Raises:
        OSError when the directory cannot be created for another reason than
        already existing.
    """
    parent = Path(library_root) / category_dir(kind)
    parent.mkdir(parents=True, exist_ok=True)
    safe = sanitize_title(title)
    target = parent / safe
    try:
        target.mkdir()
        return UploadTarget(directory=target, title=title)
    except FileExistsError:
        stamp = ms()
        logger.info("Folder %s exists, creating a unique one instead", target.name)
        unique = parent / f"{safe}_{stamp}"
        unique.mkdir(parents=True, exist_ok=True)
        return UploadTarget(directory=unique, title=f"{title} ({stamp})")


def _member_destination(dest: Path, name: str) -> Path:
    member = PurePosixPath(name.replace("\\", "/"))
    if member.is_absolute() or ".." in member.parts or (member.parts and member.parts[0].endswith(":")):
        raise UnsafeArchiveError(f"Refusing unsafe archive entry: {name}")
    target = (dest / Path(*member.parts)).resolve()
    if target != dest and dest not in target.parents:
        raise UnsafeArchiveError(f"Refusing unsafe archive entry: {name}")
    return target


def extract_zip(archive: str | os.PathLike[str], dest: str | os.PathLike[str]) -> int:
    """
    Extract every member of `archive` into `dest`.

    All member names are validated before anything is written.

    Returns:
        Number of files extracted.

    Raises:
        zipfile.BadZipFile for corrupt archives, UnsafeArchiveError for path
        traversal attempts.
    """
    dest_path = Path(dest).resolve()
    dest_path.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(archive) as zf:
        members = [m for m in zf.infolist() if m.filename]
        plan = [(m, _member_destination(dest_path, m.filename)) for m in members]
        for info, target in plan:
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as out:
                while True:
                    chunk = src.read(1024 * 1024)
                    if not chunk:
                        break
                    out.write(chunk)
            count += 1
    logger.info("Extracted %d files into %s", count, dest_path)
    return count
