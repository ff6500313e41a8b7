"""
Library module for genre-tagger.

Finds the files that need a genre tag:
    - models: AlbumManifest, TrackEntry and the TrackId / ArtistId aliases
    - collector: Album discovery and manifest parsing

Usage:
    from genre_tagger.library import collect_track_entries

    result = collect_track_entries(config.library.base_path)
"""

from genre_tagger.library.collector import (
    CollectionResult,
    collect_track_entries,
    iter_album_directories,
    parse_manifest_line,
    read_manifest,
)
from genre_tagger.library.models import (
    AlbumManifest,
    ArtistId,
    ManifestLine,
    TrackEntry,
    TrackId,
    normalize_track_id,
)

__all__ = [
    "AlbumManifest",
    "ArtistId",
    "CollectionResult",
    "ManifestLine",
    "TrackEntry",
    "TrackId",
    "collect_track_entries",
    "iter_album_directories",
    "normalize_track_id",
    "parse_manifest_line",
    "read_manifest",
]
