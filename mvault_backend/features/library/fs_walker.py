"""
Recursive file walker for archive folders.

Walks every subdirectory of a root (no depth limit) and returns root-relative,
forward-slash paths of files accepted by a predicate. Directories are followed
even when they are symlinks; a symlink loop will therefore recurse until the OS
refuses the path (ELOOP / name too long), at which point that subtree is
skipped like any other unreadable directory.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable

from ...shared import EXTENSIONS, get_logger

logger = get_logger(__name__)

Predicate = Callable[[str], bool]

IMAGE_EXTENSIONS: frozenset[str] = EXTENSIONS["image"]
AUDIO_EXTENSIONS: frozenset[str] = EXTENSIONS["audio"]


def extension_predicate(*extension_sets: Iterable[str]) -> Predicate:
    """Build a case-insensitive file-name predicate from one or more extension sets."""
    allowed = frozenset(str(ext).lower() for exts in extension_sets for ext in exts)

    def _matches(name: str) -> bool:
        return os.path.splitext(name)[1].lower() in allowed

    return _matches


def has_extension(name: str, extensions: Iterable[str]) -> bool:
    return os.path.splitext(name)[1].lower() in extensions


def walk(root: str | os.PathLike[str], predicate: Predicate) -> list[str]:
    """
    List files under `root` matching `predicate`.

    Returns:
        Root-relative paths joined with "/", in no particular order.
        A directory that cannot be read is logged and skipped; results from
        the other subtrees are still returned.
    """
    root_path = Path(root)
    results: list[str] = []
    # Iterative scandir: (absolute dir, relative prefix)
    stack: list[tuple[str, str]] = [(str(root_path), "")]
    while stack:
        current, prefix = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", current, exc)
            continue

        for entry in entries:
            rel = f"{prefix}{entry.name}"
            try:
                if entry.is_dir(follow_symlinks=True):
                    stack.append((entry.path, f"{rel}/"))
                    continue
                if not entry.is_file(follow_symlinks=True):
                    continue
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", entry.path, exc)
                continue
            if predicate(entry.name):
                results.append(rel)
    return results
