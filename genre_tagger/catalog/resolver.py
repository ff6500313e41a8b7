"""
Genre Resolver for genre-tagger.

Resolves the library's tracks to artists, then every distinct artist ID
to a GenreResult exactly once, while staying under Spotify's
(undocumented) rate limit.

Stages:
    1. resolve_track_artists(): the distinct track IDs in batches of
       TRACK_BATCH_SIZE, one task per batch
    2. resolve_all(): one task per distinct artist ID

Scheduling:
    Before its first request each task sleeps a random delay drawn
    uniformly from [0, N * jitter_ms_per_identifier) milliseconds, N being
    the number of tasks in the stage, so request start times are spread out
    instead of arriving as one burst. More tasks means a wider window.

Retry Strategy:
    - CatalogNotFoundError: resolved immediately (zero genres, or no
      artists for the tracks of the batch)
    - CatalogRateLimitError / CatalogTransportError: exponential backoff
      with jitter for that task only (never a global pause), at most
      max_retries retries, then the task's items are recorded as failed
    - CatalogAuthError: every outstanding task is cancelled and the error
      propagates, since no lookup can succeed without a valid token

The tasks share no mutable state; each returns its own results and they
are gathered at a single join point into read-only mappings.

Usage:
    async with client:
        track_artists = await resolve_track_artists(client, track_ids, policy)
        resolution = await resolve_all(client, artist_ids, policy)
"""

import asyncio
import random
from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Awaitable, Callable, Hashable, Iterable, Mapping, Protocol, Sequence, TypeVar

from genre_tagger.catalog.client import TRACK_BATCH_SIZE
from genre_tagger.catalog.models import GenreResolution, GenreResult, TrackArtists
from genre_tagger.core.config import ResolverConfig
from genre_tagger.core.exceptions import (
    CatalogAuthError,
    CatalogNotFoundError,
    CatalogRateLimitError,
    CatalogTransportError,
)
from genre_tagger.core.logger import get_logger
from genre_tagger.core.progress import ResolveProgressBar
from genre_tagger.library.models import ArtistId, TrackId

logger = get_logger(__name__)


JITTER_FACTOR = 0.3  # randomness factor for backoff

K = TypeVar("K", bound=Hashable)
R = TypeVar("R")


class GenreSource(Protocol):
    """Anything that can look up tracks and artists (CatalogClient in production)."""

    async def lookup_track_artists(self, track_ids: Sequence[TrackId]) -> dict[TrackId, list[ArtistId]]:
        ...

    async def resolve_genres(self, artist_id: ArtistId) -> list[str]:
        ...


@dataclass(frozen=True)
class ResolvePolicy:
    """
    Scheduling and retry parameters for one resolution run.

    Attributes:
        max_retries: Retries per task after a retryable error.
        base_delay: First backoff delay in seconds.
        max_delay: Cap on a single computed backoff delay in seconds.
        jitter_ms_per_identifier: Start-delay window per task.
    """
    max_retries: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_ms_per_identifier: int = 10

    @classmethod
    def from_config(cls, config: ResolverConfig) -> "ResolvePolicy":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            jitter_ms_per_identifier=config.jitter_ms_per_identifier,
        )


def start_delay(total_identifiers: int, policy: ResolvePolicy) -> float:
    """
    Pick a task's initial delay in seconds.

    The window grows linearly with the number of identifiers.
    """
    window_ms = total_identifiers * policy.jitter_ms_per_identifier
    if window_ms <= 0:
        return 0.0
    return random.uniform(0, window_ms) / 1000


def calculate_backoff(
    attempt: int,
    policy: ResolvePolicy,
    retry_after: float | None = None
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current retry number (0-indexed).
        policy: Supplies base_delay and max_delay.
        retry_after: Server-requested wait; the result is never shorter.

    Returns:
        Delay in seconds.
    """
    delay = min(policy.base_delay * (2 ** attempt), policy.max_delay)
    jitter = delay * JITTER_FACTOR * (2 * random.random() - 1)
    delay = max(0.0, delay + jitter)

    if retry_after is not None:
        delay = max(delay, retry_after)
    return delay


def batch_track_ids(track_ids: Iterable[TrackId], size: int = TRACK_BATCH_SIZE) -> list[tuple[TrackId, ...]]:
    """Split distinct track IDs into request-sized batches, keeping order."""
    unique_ids = list(dict.fromkeys(track_ids))
    return [tuple(unique_ids[i:i + size]) for i in range(0, len(unique_ids), size)]


async def _request_with_retries(
    request: Callable[[], Awaitable[R]],
    label: str,
    policy: ResolvePolicy
) -> R:
    """
    Await request() until it returns, retrying rate-limit and transport errors.

    Raises:
        CatalogRateLimitError, CatalogTransportError: The last error once
            policy.max_retries retries are used up; details["attempts"]
            holds the number of requests made.
        CatalogNotFoundError, CatalogAuthError: Immediately.
    """
    attempt = 0
    while True:
        try:
            return await request()
        except (CatalogRateLimitError, CatalogTransportError) as e:
            if attempt >= policy.max_retries:
                e.details["attempts"] = attempt + 1
                raise

            retry_after = e.retry_after if isinstance(e, CatalogRateLimitError) else None
            delay = calculate_backoff(attempt, policy, retry_after)
            attempt += 1
            logger.debug(
                f"{label}: {e.message}, retry {attempt}/{policy.max_retries} "
                f"in {delay:.2f}s"
            )
            await asyncio.sleep(delay)


def _give_up_reason(error: CatalogRateLimitError | CatalogTransportError) -> str:
    return f"{error.message} (gave up after {error.details.get('attempts', 1)} attempts)"


async def resolve_artist(
    source: GenreSource,
    artist_id: ArtistId,
    total_identifiers: int,
    policy: ResolvePolicy
) -> GenreResult:
    """
    Resolve a single artist to a terminal GenreResult.

    Raises:
        CatalogAuthError: Propagated untouched; the caller aborts the stage.
    """
    await asyncio.sleep(start_delay(total_identifiers, policy))

    try:
        genres = await _request_with_retries(
            partial(source.resolve_genres, artist_id),
            f"Artist {artist_id}",
            policy
        )
    except CatalogNotFoundError:
        logger.debug(f"Artist {artist_id} not in catalog, no genres")
        return GenreResult.resolved(artist_id, [])
    except (CatalogRateLimitError, CatalogTransportError) as e:
        reason = _give_up_reason(e)
        logger.warning(f"Genre lookup failed for artist {artist_id}: {reason}")
        return GenreResult.failure(artist_id, reason)

    return GenreResult.resolved(artist_id, genres)


async def resolve_track_batch(
    source: GenreSource,
    batch: tuple[TrackId, ...],
    total_batches: int,
    policy: ResolvePolicy
) -> list[TrackArtists]:
    """
    Resolve one batch of tracks to their artists.

    Raises:
        CatalogAuthError: Propagated untouched; the caller aborts the stage.
    """
    await asyncio.sleep(start_delay(total_batches, policy))

    try:
        artists_by_track = await _request_with_retries(
            partial(source.lookup_track_artists, list(batch)),
            f"Tracks {batch[0]}..({len(batch)})",
            policy
        )
    except CatalogNotFoundError as e:
        logger.warning(f"Catalog rejected a batch of {len(batch)} tracks: {e.message}")
        return [TrackArtists.resolved(track_id, []) for track_id in batch]
    except (CatalogRateLimitError, CatalogTransportError) as e:
        reason = _give_up_reason(e)
        logger.warning(f"Artist lookup failed for {len(batch)} tracks: {reason}")
        return [TrackArtists.failure(track_id, reason) for track_id in batch]

    return [
        TrackArtists.resolved(track_id, artists_by_track.get(track_id, []))
        for track_id in batch
    ]


async def _join_all(
    jobs: Mapping[K, Awaitable[R]],
    on_unexpected: Callable[[K, Exception], R],
    on_done: Callable[[R], None] | None = None
) -> dict[K, R]:
    """
    Run every job as a task and wait until all of them are terminal.

    An unexpected exception in one job is turned into that job's result by
    on_unexpected. CatalogAuthError cancels every outstanding task and
    propagates.
    """
    tasks = {
        asyncio.create_task(job, name=f"resolve-{key}"): key
        for key, job in jobs.items()
    }
    results: dict[K, R] = {}
    pending = set(tasks)

    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                key = tasks[task]
                try:
                    result = task.result()
                except CatalogAuthError:
                    logger.critical(
                        f"Authentication failed while resolving {key}; "
                        f"cancelling {len(pending)} outstanding lookups"
                    )
                    raise
                except Exception as e:
                    logger.error(f"Unexpected error resolving {key}: {e}", exc_info=True)
                    result = on_unexpected(key, e)

                results[key] = result
                if on_done is not None:
                    on_done(result)
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    return results


async def resolve_track_artists(
    source: GenreSource,
    track_ids: Iterable[TrackId],
    policy: ResolvePolicy | None = None
) -> Mapping[TrackId, TrackArtists]:
    """
    Resolve every distinct track to the artists credited on it.

    Args:
        source: Catalog to query, already authenticated and open.
        track_ids: Track IDs to resolve; repeats are dropped.
        policy: Scheduling and retry parameters.

    Returns:
        Read-only mapping with one terminal TrackArtists per distinct
        track, in input order.

    Raises:
        CatalogAuthError: After cancelling all outstanding lookups.
    """
    policy = policy or ResolvePolicy()
    batches = batch_track_ids(track_ids)
    if not batches:
        return MappingProxyType({})

    total_tracks = sum(len(batch) for batch in batches)
    logger.info(f"Looking up artists for {total_tracks} tracks in {len(batches)} requests")

    results = await _join_all(
        {batch: resolve_track_batch(source, batch, len(batches), policy) for batch in batches},
        on_unexpected=lambda batch, e: [
            TrackArtists.failure(track_id, f"unexpected error: {e}") for track_id in batch
        ],
    )

    lookup = {item.track_id: item for batch in batches for item in results[batch]}
    failed = sum(1 for item in lookup.values() if item.failed)
    unknown = sum(1 for item in lookup.values() if not item.failed and not item.artist_ids)
    logger.info(f"Resolved {total_tracks} tracks: {unknown} unknown, {failed} failed")
    return MappingProxyType(lookup)


async def resolve_all(
    source: GenreSource,
    artist_ids: Iterable[ArtistId],
    policy: ResolvePolicy | None = None,
    progress: ResolveProgressBar | None = None
) -> GenreResolution:
    """
    Resolve every distinct artist concurrently and join on all of them.

    Args:
        source: Catalog to query, already authenticated and open.
        artist_ids: Artist IDs to resolve. Expected to be deduplicated;
                    repeats are dropped here too.
        policy: Scheduling and retry parameters.
        progress: Optional progress bar, updated as artists finish.

    Returns:
        GenreResolution with one terminal GenreResult per distinct artist,
        in input order.

    Raises:
        CatalogAuthError: After cancelling all outstanding lookups.
    """
    policy = policy or ResolvePolicy()
    unique_ids = list(dict.fromkeys(artist_ids))
    if not unique_ids:
        return GenreResolution()

    total = len(unique_ids)
    logger.info(f"Resolving genres for {total} artists")

    def report(result: GenreResult) -> None:
        if progress is not None:
            progress.update(failed=result.failed, empty=not result.genres)

    results = await _join_all(
        {artist_id: resolve_artist(source, artist_id, total, policy) for artist_id in unique_ids},
        on_unexpected=lambda artist_id, e: GenreResult.failure(artist_id, f"unexpected error: {e}"),
        on_done=report,
    )

    resolution = GenreResolution(results[artist_id] for artist_id in unique_ids)
    logger.info(
        f"Resolved {total} artists: {resolution.empty_count} without genres, "
        f"{resolution.failed_count} failed"
    )
    return resolution
