"""
Track lookups and genre resolution results.

A GenreResolution is built once by the resolver and then shared,
read-only, by every writer thread. It wraps a MappingProxyType so no
writer can mutate it, which is what lets the writers read it without
taking a lock.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from genre_tagger.library.models import ArtistId, TrackId


GENRE_DELIMITER = ","


@dataclass(frozen=True)
class GenreResult:
    """
    Terminal state of one artist's lookup.

    Attributes:
        artist_id: The artist looked up.
        genres: Genres in catalog order, duplicates removed. Empty when
                the catalog reports none or does not know the artist.
        error: Failure reason when resolution gave up, else None.
    """
    artist_id: ArtistId
    genres: tuple[str, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def tag_value(self) -> str:
        """The genre tag value: genres joined with a single comma."""
        return GENRE_DELIMITER.join(self.genres)

    @classmethod
    def resolved(cls, artist_id: ArtistId, genres: Iterable[str]) -> "GenreResult":
        unique: list[str] = []
        for genre in genres:
            genre = genre.strip()
            if genre and genre not in unique:
                unique.append(genre)
        return cls(artist_id=artist_id, genres=tuple(unique))

    @classmethod
    def failure(cls, artist_id: ArtistId, reason: str) -> "GenreResult":
        return cls(artist_id=artist_id, error=reason)


def merge_genres(results: Iterable[GenreResult]) -> tuple[str, ...]:
    """
    Union of several artists' genres.

    Genres keep the order of the results, then catalog order within each
    result; a genre already seen is dropped.
    """
    merged: list[str] = []
    for result in results:
        for genre in result.genres:
            if genre not in merged:
                merged.append(genre)
    return tuple(merged)


@dataclass(frozen=True)
class TrackArtists:
    """
    Terminal state of one track's artist lookup.

    Attributes:
        track_id: The track looked up.
        artist_ids: Every artist credited on the track, in catalog order.
                    Empty when the catalog does not know the track.
        error: Failure reason when the lookup gave up, else None.
    """
    track_id: TrackId
    artist_ids: tuple[ArtistId, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def resolved(cls, track_id: TrackId, artist_ids: Iterable[ArtistId]) -> "TrackArtists":
        return cls(track_id=track_id, artist_ids=tuple(dict.fromkeys(artist_ids)))

    @classmethod
    def failure(cls, track_id: TrackId, reason: str) -> "TrackArtists":
        return cls(track_id=track_id, error=reason)


class GenreResolution(Mapping[ArtistId, GenreResult]):
    """
    Read-only mapping from artist ID to its GenreResult.

    Example:
        resolution = GenreResolution([GenreResult.resolved("x", ["rock", "pop"])])
        resolution["x"].tag_value   # "rock,pop"
    """

    def __init__(self, results: Iterable[GenreResult] = ()) -> None:
        self._results = MappingProxyType({result.artist_id: result for result in results})

    def __getitem__(self, artist_id: ArtistId) -> GenreResult:
        return self._results[artist_id]

    def __iter__(self) -> Iterator[ArtistId]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        return f"GenreResolution({len(self)} artists, {self.failed_count} failed)"

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self._results.values() if result.failed)

    @property
    def empty_count(self) -> int:
        return sum(
            1 for result in self._results.values()
            if not result.failed and not result.genres
        )
