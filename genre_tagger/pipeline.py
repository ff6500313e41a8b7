"""
End-to-end enrichment run.

Stages, each finishing before the next starts:
    1. Collect: read every album manifest (genre_tagger.library)
    2. Resolve: look up the artists of each distinct track, then the
       genres of each distinct artist, once each (genre_tagger.catalog)
    3. Write: tag every file in a thread pool (genre_tagger.tagging)

Per-album and per-file failures stay inside their stage and are counted in
the RunSummary. Only an authentication failure crosses a stage boundary:
it aborts resolution, and nothing is written.

Usage:
    from genre_tagger.core import load_config
    from genre_tagger.pipeline import run_enrichment

    summary = run_enrichment(load_config())
"""

import asyncio
from typing import Mapping

from genre_tagger.catalog.client import CatalogClient
from genre_tagger.catalog.models import GenreResolution, TrackArtists
from genre_tagger.catalog.resolver import (
    GenreSource,
    ResolvePolicy,
    resolve_all,
    resolve_track_artists,
)
from genre_tagger.core.config import Config
from genre_tagger.core.logger import get_logger
from genre_tagger.core.progress import ResolveProgressBar
from genre_tagger.library.collector import INPUT_EXTENSION, collect_track_entries
from genre_tagger.library.models import ArtistId, TrackEntry, TrackId
from genre_tagger.tagging.writer import RunSummary, TagWriter

logger = get_logger(__name__)


def create_client(config: Config) -> CatalogClient:
    """Build and authenticate the catalog client for this run."""
    client = CatalogClient(
        client_id=config.spotify.client_id,
        client_secret=config.spotify.client_secret,
        timeout=config.resolver.timeout,
        max_requests_per_second=config.resolver.max_requests_per_second,
    )
    client.authenticate()
    return client


def assign_artists(
    entries: list[TrackEntry],
    track_artists: Mapping[TrackId, TrackArtists]
) -> tuple[list[TrackEntry], list[ArtistId]]:
    """
    Attach each entry's artists from the track lookup.

    Returns:
        The entries with artist_ids (or lookup_error) filled in, and the
        distinct artist IDs among them in first-seen order.
    """
    assigned: list[TrackEntry] = []
    artist_ids: dict[ArtistId, None] = {}

    for entry in entries:
        lookup = track_artists.get(entry.track_id)
        if lookup is None:
            assigned.append(entry.with_artists((), lookup_error="track not looked up"))
        elif lookup.failed:
            assigned.append(entry.with_artists((), lookup_error=lookup.error))
        else:
            assigned.append(entry.with_artists(lookup.artist_ids))
            artist_ids.update(dict.fromkeys(lookup.artist_ids))

    return assigned, list(artist_ids)


async def _resolve(
    client: CatalogClient | GenreSource,
    entries: list[TrackEntry],
    track_ids: list[TrackId],
    policy: ResolvePolicy
) -> tuple[list[TrackEntry], GenreResolution]:
    track_artists = await resolve_track_artists(client, track_ids, policy)
    entries, artist_ids = assign_artists(entries, track_artists)
    if not artist_ids:
        return entries, GenreResolution()

    with ResolveProgressBar(total=len(artist_ids)) as progress:
        resolution = await resolve_all(client, artist_ids, policy, progress)
    return entries, resolution


async def _resolve_with_session(
    client: CatalogClient | GenreSource,
    entries: list[TrackEntry],
    track_ids: list[TrackId],
    policy: ResolvePolicy
) -> tuple[list[TrackEntry], GenreResolution]:
    if isinstance(client, CatalogClient):
        async with client:
            return await _resolve(client, entries, track_ids, policy)
    return await _resolve(client, entries, track_ids, policy)


def resolve_genres(
    client: CatalogClient | GenreSource,
    entries: list[TrackEntry],
    track_ids: list[TrackId],
    policy: ResolvePolicy
) -> tuple[list[TrackEntry], GenreResolution]:
    """
    Run both resolver stages to completion on a fresh event loop.

    Returns:
        The entries with their artists attached, and the genres of every
        distinct artist among them.

    Raises:
        CatalogAuthError: If the token is rejected during resolution.
    """
    if not track_ids:
        return entries, GenreResolution()
    return asyncio.run(_resolve_with_session(client, entries, track_ids, policy))


def run_enrichment(
    config: Config,
    client: CatalogClient | GenreSource | None = None,
    *,
    dry_run: bool = False,
    writer: TagWriter | None = None
) -> RunSummary:
    """
    Collect, resolve and write genre tags for the whole library.

    Args:
        config: Validated configuration.
        client: Genre source to use. If None, a CatalogClient is created
                and authenticated from config.spotify.
        dry_run: Resolve genres and report what would be written, without
                 running ffmpeg or touching any file.
        writer: TagWriter to use. If None, one is built from config.write.

    Returns:
        RunSummary with per-file counts and the albums excluded for bad
        manifests.

    Raises:
        CatalogAuthError: Authentication failed; no file has been written.
    """
    library = config.library
    logger.info(f"Scanning library: {library.base_path}")

    collection = collect_track_entries(
        library.base_path,
        manifest_filename=library.manifest_filename,
        depth=library.depth,
        input_extension=INPUT_EXTENSION,
    )

    if collection.entries:
        if client is None:
            client = create_client(config)
        entries, resolution = resolve_genres(
            client,
            collection.entries,
            collection.track_ids,
            ResolvePolicy.from_config(config.resolver)
        )
    else:
        entries, resolution = [], GenreResolution()

    writer = writer or TagWriter(config.write)
    summary = writer.write_all(entries, resolution, dry_run=dry_run)
    summary.failed_albums.extend(collection.failed_albums)

    return summary
