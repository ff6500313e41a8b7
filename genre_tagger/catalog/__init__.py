"""
Catalog module for genre-tagger.

Turns track IDs into artists and artist IDs into genre lists:
    - client: Authenticated async Spotify track and artist lookup
    - resolver: Concurrent, jittered, retrying resolution of all tracks and artists
    - models: TrackArtists, GenreResult and the read-only GenreResolution
"""

from genre_tagger.catalog.client import TRACK_BATCH_SIZE, CatalogClient
from genre_tagger.catalog.models import (
    GENRE_DELIMITER,
    GenreResolution,
    GenreResult,
    TrackArtists,
    merge_genres,
)
from genre_tagger.catalog.resolver import (
    ResolvePolicy,
    calculate_backoff,
    resolve_all,
    resolve_track_artists,
)

__all__ = [
    "CatalogClient",
    "GENRE_DELIMITER",
    "GenreResolution",
    "GenreResult",
    "ResolvePolicy",
    "TRACK_BATCH_SIZE",
    "TrackArtists",
    "calculate_backoff",
    "merge_genres",
    "resolve_all",
    "resolve_track_artists",
]
