"""
Manifest documents stored on media records, and the builder that produces them.

A manifest is one JSON blob with two possible shapes, selected by the record's
kind:

    MANGA  {"pages": [PageEntry...]}
    AUDIO  {"tracks": [TrackEntry...], "images": [PageEntry...]}

Serialization is canonical (sorted keys, compact separators) so scanning an
unchanged folder twice yields byte-identical text.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Mapping, Optional, Sequence, Union

from ...shared import ErrorCode, MediaKind, Result, get_logger
from ...utils import to_posix
from .metadata import AudioInfo, ImageInfo
from .natural_sort import natural_key

logger = get_logger(__name__)

LIBRARY_SEGMENT = "/library/"
FILE_URL_PREFIX = "/api/file"
# Checked keyword by keyword, in this order.
COVER_KEYWORDS: tuple[str, ...] = ("cover", "front", "folder", "main")


@dataclass(frozen=True)
class PageEntry:
    relative_file: str
    width: int
    height: int
    size_bytes: int
    ordinal_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.relative_file,
            "w": self.width,
            "h": self.height,
            "size": self.size_bytes,
            "index": self.ordinal_index,
        }


@dataclass(frozen=True)
class TrackEntry:
    relative_file: str
    size_bytes: int
    ordinal_index: int
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.relative_file,
            "size": self.size_bytes,
            "index": self.ordinal_index,
            "title": self.title,
        }


@dataclass(frozen=True)
class MangaManifest:
    pages: tuple[PageEntry, ...]

    kind = MediaKind.MANGA

    def to_dict(self) -> dict[str, Any]:
        return {"pages": [p.to_dict() for p in self.pages]}

    @property
    def visual_entries(self) -> tuple[PageEntry, ...]:
        return self.pages


@dataclass(frozen=True)
class AudioManifest:
    tracks: tuple[TrackEntry, ...]
    images: tuple[PageEntry, ...]

    kind = MediaKind.AUDIO

    def to_dict(self) -> dict[str, Any]:
        return {
            "tracks": [t.to_dict() for t in self.tracks],
            "images": [i.to_dict() for i in self.images],
        }

    @property
    def visual_entries(self) -> tuple[PageEntry, ...]:
        return self.images


Manifest = Union[MangaManifest, AudioManifest]


@dataclass(frozen=True)
class ManifestBuild:
    """Everything the registrar and the thumbnail populator need from one scan."""

    manifest: Manifest
    item_count: int
    total_size: int
    cover_file: Optional[str]
    cover_url: Optional[str]

    @property
    def visual_entries(self) -> tuple[PageEntry, ...]:
        return self.manifest.visual_entries


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def serialize_manifest(manifest: Manifest) -> str:
    return json.dumps(manifest.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _require_int(entry: Mapping[str, Any], key: str) -> int:
    value = entry.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer")
    return value


def _require_str(entry: Mapping[str, Any], key: str) -> str:
    value = entry.get(key)
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _require_list(doc: Mapping[str, Any], key: str) -> list[Any]:
    value = doc.get(key)
    if not isinstance(value, list):
        raise ValueError(f"manifest is missing the '{key}' array")
    return value


def _parse_page(raw: Any) -> PageEntry:
    if not isinstance(raw, dict):
        raise ValueError("page entry must be an object")
    return PageEntry(
        relative_file=_require_str(raw, "file"),
        width=_require_int(raw, "w"),
        height=_require_int(raw, "h"),
        size_bytes=_require_int(raw, "size"),
        ordinal_index=_require_int(raw, "index"),
    )


def _parse_track(raw: Any) -> TrackEntry:
    if not isinstance(raw, dict):
        raise ValueError("track entry must be an object")
    return TrackEntry(
        relative_file=_require_str(raw, "file"),
        size_bytes=_require_int(raw, "size"),
        ordinal_index=_require_int(raw, "index"),
        title=_require_str(raw, "title"),
    )


def parse_manifest(kind: MediaKind | str, raw: str) -> Result[Manifest]:
    """Decode and validate a stored manifest against the shape its kind requires."""
    try:
        media_kind = MediaKind(kind)
    except ValueError:
        return Result.Err(ErrorCode.PARSE_ERROR, f"Unknown media kind: {kind!r}")

    try:
        doc = json.loads(raw)
    except (TypeError, ValueError) as exc:
        return Result.Err(ErrorCode.PARSE_ERROR, f"Manifest is not valid JSON: {exc}")
    if not isinstance(doc, dict):
        return Result.Err(ErrorCode.PARSE_ERROR, "Manifest must be a JSON object")

    try:
        if media_kind is MediaKind.MANGA:
            return Result.Ok(MangaManifest(pages=tuple(_parse_page(p) for p in _require_list(doc, "pages"))))
        if media_kind is MediaKind.AUDIO:
            return Result.Ok(
                AudioManifest(
                    tracks=tuple(_parse_track(t) for t in _require_list(doc, "tracks")),
                    images=tuple(_parse_page(p) for p in _require_list(doc, "images")),
                )
            )
    except ValueError as exc:
        return Result.Err(ErrorCode.PARSE_ERROR, f"Invalid {media_kind.value} manifest: {exc}")
    return Result.Err(ErrorCode.PARSE_ERROR, f"{media_kind.value} records carry no manifest")


# ---------------------------------------------------------------------------
# Cover selection / URL projection
# ---------------------------------------------------------------------------

def library_relative_root(folder_path: str) -> Optional[str]:
    """
    Part of `folder_path` after its last "/library/" segment (case-insensitive),
    or None when the folder is not under a directory named "library".
    """
    normalized = to_posix(folder_path)
    idx = normalized.lower().rfind(LIBRARY_SEGMENT)
    if idx == -1:
        return None
    return normalized[idx + len(LIBRARY_SEGMENT):].rstrip("/")


def project_file_url(folder_path: str, relative_file: str) -> Optional[str]:
    """Public `/api/file/...` URL of a file inside an ingested folder."""
    root = library_relative_root(folder_path)
    if root is None:
        logger.warning("Could not find '%s' in path, skipping URL generation: %s", LIBRARY_SEGMENT, to_posix(folder_path))
        return None
    rel = to_posix(relative_file).lstrip("/")
    if root:
        return f"{FILE_URL_PREFIX}/{root}/{rel}"
    return f"{FILE_URL_PREFIX}/{rel}"


def select_audio_cover(images: Sequence[PageEntry]) -> Optional[PageEntry]:
    """
    Pick the album cover: the first image whose file name contains "cover",
    then "front", "folder", "main" (case-insensitive); otherwise the first
    image; None when there are no images.
    """
    if not images:
        return None
    names = [PurePosixPath(img.relative_file).name.lower() for img in images]
    for keyword in COVER_KEYWORDS:
        for img, name in zip(images, names):
            if keyword in name:
                return img
    return images[0]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _page_entries(images: Sequence[ImageInfo]) -> tuple[PageEntry, ...]:
    ordered = sorted(images, key=lambda info: natural_key(to_posix(info.relative_file)))
    return tuple(
        PageEntry(
            relative_file=to_posix(info.relative_file),
            width=int(info.width),
            height=int(info.height),
            size_bytes=int(info.size_bytes),
            ordinal_index=index,
        )
        for index, info in enumerate(ordered)
    )


def _normalize_overrides(overrides: Optional[Mapping[str, str]]) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        title = str(value).strip()
        if title:
            out[to_posix(str(key)).lstrip("/")] = title
    return out


def build_manga_manifest(folder_path: str, images: Sequence[ImageInfo]) -> ManifestBuild:
    pages = _page_entries(images)
    cover = pages[0] if pages else None
    return ManifestBuild(
        manifest=MangaManifest(pages=pages),
        item_count=len(pages),
        total_size=sum(p.size_bytes for p in pages),
        cover_file=cover.relative_file if cover else None,
        cover_url=project_file_url(folder_path, cover.relative_file) if cover else None,
    )


def build_audio_manifest(
    folder_path: str,
    tracks: Sequence[AudioInfo],
    images: Sequence[ImageInfo],
    title_overrides: Optional[Mapping[str, str]] = None,
) -> ManifestBuild:
    """
    Track titles resolve as: caller override (keyed by the forward-slash
    relative path) > embedded tag > file stem. The tag/stem fallback is
    already folded into `AudioInfo.title` by the extractor.

    `item_count` is the number of images, not tracks: listing pages show it
    as the "pages" badge for every kind.
    """
    overrides = _normalize_overrides(title_overrides)
    ordered_tracks = sorted(tracks, key=lambda info: natural_key(to_posix(info.relative_file)))
    track_entries = []
    for index, info in enumerate(ordered_tracks):
        rel = to_posix(info.relative_file)
        track_entries.append(
            TrackEntry(
                relative_file=rel,
                size_bytes=int(info.size_bytes),
                ordinal_index=index,
                title=overrides.get(rel) or info.title,
            )
        )
    image_entries = _page_entries(images)
    cover = select_audio_cover(image_entries)
    total = sum(t.size_bytes for t in track_entries) + sum(i.size_bytes for i in image_entries)
    return ManifestBuild(
        manifest=AudioManifest(tracks=tuple(track_entries), images=image_entries),
        item_count=len(image_entries),
        total_size=total,
        cover_file=cover.relative_file if cover else None,
        cover_url=project_file_url(folder_path, cover.relative_file) if cover else None,
    )
