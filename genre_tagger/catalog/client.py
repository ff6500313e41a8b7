"""
Spotify catalog client for genre-tagger.

A thin authenticated wrapper around two Spotify Web API endpoints:
    - GET /v1/tracks?ids=...   track IDs to the artists credited on them,
                               up to TRACK_BATCH_SIZE tracks per request
    - GET /v1/artists/{id}     an artist's genre list

Failures raise one of the CatalogError subclasses so the resolver can
decide what to do.

Authentication:
    The client-credentials handshake is done once per run by
    authenticate(), using spotipy's SpotifyClientCredentials. The token is
    then reused for every lookup. Client credentials are enough: tracks and
    artist genres are public data.

Concurrency:
    Lookups are coroutines sharing one aiohttp.ClientSession, so many of
    them can be in flight at once on a single event loop. An
    asyncio-throttle Throttler caps the request rate across all of them.

Error Mapping:
    HTTP 200            -> parsed payload
    HTTP 400, 404       -> CatalogNotFoundError (zero genres / no artists)
    HTTP 401, 403       -> CatalogAuthError (fatal)
    HTTP 429            -> CatalogRateLimitError (retry_after from header)
    HTTP 5xx / other    -> CatalogTransportError
    aiohttp / timeout   -> CatalogTransportError

Usage:
    client = CatalogClient(client_id, client_secret)
    client.authenticate()

    async with client:
        artists = await client.lookup_track_artists(["0DiWol3AO6WpXZgp0goxAV"])
        genres = await client.resolve_genres("4tZwfgrHOc3mvqYlEYSvVi")
"""

import asyncio
import json
from typing import Any, Mapping, Sequence

import aiohttp
from asyncio_throttle import Throttler
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from genre_tagger.core.exceptions import (
    CatalogAuthError,
    CatalogError,
    CatalogNotFoundError,
    CatalogRateLimitError,
    CatalogTransportError,
)
from genre_tagger.core.logger import get_logger
from genre_tagger.library.models import ArtistId, TrackId

logger = get_logger(__name__)


API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_TIMEOUT = 15.0
DEFAULT_REQUESTS_PER_SECOND = 20

# Spotify's limit for GET /v1/tracks
TRACK_BATCH_SIZE = 50


class CatalogClient:
    """
    Authenticated, async Spotify track and artist lookup.

    Attributes:
        _credentials: spotipy client-credentials manager used for the handshake.
        _token: Access token, set by authenticate().
        _session: aiohttp session, open between __aenter__ and __aexit__.
        _throttler: Request rate cap, created with the session.

    Example:
        client = CatalogClient(config.spotify.client_id, config.spotify.client_secret)
        client.authenticate()
        async with client:
            await client.resolve_genres(artist_id)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND,
        base_url: str = API_BASE_URL
    ) -> None:
        self._credentials = SpotifyClientCredentials(
            client_id=client_id,
            client_secret=client_secret
        )
        self._timeout = timeout
        self._max_requests_per_second = max_requests_per_second
        self._base_url = base_url.rstrip("/")
        self._token: str | None = None
        self._session: aiohttp.ClientSession | None = None
        self._throttler: Throttler | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def authenticate(self) -> None:
        """
        Acquire the access token for this run.

        Raises:
            CatalogAuthError: If Spotify rejects the credentials or the
                              token endpoint cannot be reached.
        """
        try:
            token = self._credentials.get_access_token(as_dict=False)
        except SpotifyOauthError as e:
            raise CatalogAuthError(
                f"Spotify authentication failed: {e}",
                details={"original_error": str(e)}
            ) from e
        except Exception as e:
            raise CatalogAuthError(
                f"Failed to obtain Spotify access token: {e}",
                details={"original_error": str(e)}
            ) from e

        if not token:
            raise CatalogAuthError("Spotify returned an empty access token")

        self._token = token
        logger.debug("Spotify access token acquired")

    async def __aenter__(self) -> "CatalogClient":
        if self._token is None:
            raise CatalogAuthError("CatalogClient used before authenticate() was called")
        self._session = aiohttp.ClientSession(
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        )
        self._throttler = Throttler(rate_limit=self._max_requests_per_second, period=1.0)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._throttler = None

    async def lookup_track_artists(self, track_ids: Sequence[TrackId]) -> dict[TrackId, list[ArtistId]]:
        """
        Look up the artists credited on a batch of tracks.

        Args:
            track_ids: At most TRACK_BATCH_SIZE bare Spotify track IDs.

        Returns:
            Every requested ID mapped to its artist IDs in catalog order.
            Tracks the catalog does not know map to an empty list.

        Raises:
            ValueError: If more than TRACK_BATCH_SIZE IDs are passed.
            CatalogNotFoundError: The catalog rejected the batch (invalid id).
            CatalogRateLimitError: Throttled; retry after backoff.
            CatalogTransportError: Network or protocol failure.
            CatalogAuthError: Token rejected.
        """
        if len(track_ids) > TRACK_BATCH_SIZE:
            raise ValueError(f"At most {TRACK_BATCH_SIZE} track ids per request, got {len(track_ids)}")

        label = ",".join(track_ids)
        payload = await self._get_json(
            f"{self._base_url}/tracks",
            resource="track",
            resource_id=label,
            params={"ids": label}
        )
        return parse_track_artists(track_ids, payload)

    async def resolve_genres(self, artist_id: ArtistId) -> list[str]:
        """
        Look up an artist's genres.

        Args:
            artist_id: Bare Spotify artist ID.

        Returns:
            Genres in the order the catalog lists them (possibly empty).

        Raises:
            CatalogNotFoundError: Artist unknown to the catalog.
            CatalogRateLimitError: Throttled; retry after backoff.
            CatalogTransportError: Network or protocol failure.
            CatalogAuthError: Token rejected.
        """
        payload = await self._get_json(
            f"{self._base_url}/artists/{artist_id}",
            resource="artist",
            resource_id=artist_id
        )
        return parse_genres(payload)

    async def _get_json(
        self,
        url: str,
        resource: str,
        resource_id: str,
        params: Mapping[str, str] | None = None
    ) -> Any:
        if self._session is None or self._throttler is None:
            raise CatalogTransportError(
                "CatalogClient session is not open; use 'async with client'",
                details={f"{resource}_id": resource_id}
            )

        try:
            async with self._throttler:
                async with self._session.get(url, params=params) as response:
                    body = await response.text()
                    check_response(response.status, response.headers, resource_id, body, resource)
                    return _decode_json(body, resource_id, resource)
        except CatalogError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CatalogTransportError(
                f"Request for {resource} {resource_id} failed: {e or type(e).__name__}",
                details={f"{resource}_id": resource_id, "original_error": repr(e)}
            ) from e


def check_response(
    status: int,
    headers: Mapping[str, str],
    resource_id: str,
    body: str = "",
    resource: str = "artist"
) -> None:
    """
    Map an HTTP status to the matching CatalogError, or return on success.

    Raises:
        CatalogNotFoundError, CatalogAuthError, CatalogRateLimitError,
        CatalogTransportError: See module docstring for the mapping.
    """
    if 200 <= status < 300:
        return

    details = {f"{resource}_id": resource_id, "http_status": status, "body": body[:200]}

    if status in (400, 404):
        raise CatalogNotFoundError(f"{resource.capitalize()} not found: {resource_id}", details=details)
    if status in (401, 403):
        raise CatalogAuthError(
            f"Spotify rejected the access token (HTTP {status})",
            details=details
        )
    if status == 429:
        retry_after = parse_retry_after(headers.get("Retry-After"))
        details["retry_after"] = retry_after
        raise CatalogRateLimitError(
            f"Rate limited while fetching {resource}: {resource_id}",
            details=details,
            retry_after=retry_after
        )
    raise CatalogTransportError(
        f"Unexpected HTTP {status} while fetching {resource}: {resource_id}",
        details=details
    )


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds; None if absent or unusable."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def parse_genres(payload: Any) -> list[str]:
    """Extract the genre list from an artist object."""
    if not isinstance(payload, dict):
        return []
    genres = payload.get("genres") or []
    return [genre for genre in genres if isinstance(genre, str) and genre.strip()]


def parse_track_artists(track_ids: Sequence[TrackId], payload: Any) -> dict[TrackId, list[ArtistId]]:
    """
    Map each requested track ID to its artist IDs.

    The catalog returns tracks in request order, with null for unknown
    IDs. Results are matched by position because a relinked track comes
    back under a different ID.
    """
    tracks = payload.get("tracks") if isinstance(payload, dict) else None
    if not isinstance(tracks, list):
        tracks = []

    result: dict[TrackId, list[ArtistId]] = {}
    for position, track_id in enumerate(track_ids):
        track = tracks[position] if position < len(tracks) else None
        artists = track.get("artists") if isinstance(track, dict) else None
        result[track_id] = [
            artist["id"] for artist in artists or []
            if isinstance(artist, dict) and isinstance(artist.get("id"), str) and artist["id"]
        ]
    return result


def _decode_json(body: str, resource_id: str, resource: str = "artist") -> Any:
    try:
        return json.loads(body)
    except ValueError as e:
        raise CatalogTransportError(
            f"Invalid JSON in response for {resource} {resource_id}",
            details={f"{resource}_id": resource_id, "body": body[:200]}
        ) from e
