"""Archive ingestion: walk, extract, build manifest, register, thumbnail."""
from .manifest import (
    AudioManifest,
    MangaManifest,
    Manifest,
    ManifestBuild,
    PageEntry,
    TrackEntry,
    parse_manifest,
    serialize_manifest,
)
from .registrar import ArchiveRegistrar, MediaRecord
from .service import LibraryIngestService
from .thumbnails import ThumbnailCachePopulator

__all__ = [
    "ArchiveRegistrar",
    "AudioManifest",
    "LibraryIngestService",
    "MangaManifest",
    "Manifest",
    "ManifestBuild",
    "MediaRecord",
    "PageEntry",
    "ThumbnailCachePopulator",
    "TrackEntry",
    "parse_manifest",
    "serialize_manifest",
]
