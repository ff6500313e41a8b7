"""
Data models for the local music library.

These immutable dataclasses carry what the Identifier Collector finds on
disk to the later stages. They are frozen so a TrackEntry handed to a
writer thread can never change underneath it.

Usage:
    from genre_tagger.library.models import AlbumManifest, TrackEntry

    manifest = AlbumManifest(directory=album_dir, lines=(ManifestLine("trk"),))
    entries = manifest.track_entries(input_extension="ogg")
"""

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable


# Opaque keys in the Spotify track and artist namespaces
TrackId = str
ArtistId = str

_TRACK_URI_RE = re.compile(r"^spotify:track:([A-Za-z0-9]+)$")
_TRACK_URL_RE = re.compile(r"^https?://open\.spotify\.com/(?:intl-[a-z]+/)?track/([A-Za-z0-9]+)")


def normalize_track_id(raw: str) -> TrackId:
    """
    Reduce a track reference to the bare Spotify ID.

    Accepts a bare ID, a spotify:track: URI, or an open.spotify.com URL.

    Example:
        normalize_track_id("spotify:track:0DiWol3AO6WpXZgp0goxAV")
        # Returns: "0DiWol3AO6WpXZgp0goxAV"
    """
    value = raw.strip()
    for pattern in (_TRACK_URI_RE, _TRACK_URL_RE):
        match = pattern.match(value)
        if match:
            return match.group(1)
    return value


@dataclass(frozen=True)
class ManifestLine:
    """
    One line of an album manifest.

    Attributes:
        track_id: Spotify track ID (first field).
        filename: On-disk file name written by the downloader (fifth
                  field), or None when the line carries only the ID.
    """
    track_id: TrackId
    filename: str | None = None


@dataclass(frozen=True)
class AlbumManifest:
    """
    An album directory paired with its manifest lines, in file order.

    Created by reading the manifest; immutable once loaded.

    Attributes:
        directory: Album directory containing the manifest and audio files.
        lines: Manifest lines in the order they appear in the file.
    """
    directory: Path
    lines: tuple[ManifestLine, ...]

    @property
    def name(self) -> str:
        """Album directory name, used to attribute failures."""
        return self.directory.name

    def track_entries(self, input_extension: str) -> list["TrackEntry"]:
        """
        Pair each manifest line with its expected on-disk file.

        Exactly one TrackEntry per line. The file is the line's filename
        inside the album directory (an absolute filename is used as is),
        or <track id>.<input_extension> when the line has none. The file
        is not required to exist here; a missing file fails that entry at
        write time.
        """
        return [
            TrackEntry(
                path=self.directory / (line.filename or f"{line.track_id}.{input_extension}"),
                track_id=line.track_id,
                album=self.name,
            )
            for line in self.lines
        ]


@dataclass(frozen=True)
class TrackEntry:
    """
    A file that needs its genre tag written.

    Entries leave the collector with no artists; the pipeline fills them
    in from the catalog's track lookup with with_artists().

    Attributes:
        path: Expected location of the input audio file.
        track_id: Spotify track ID from the manifest.
        album: Album directory name, for logging and reports.
        artist_ids: Every artist credited on the track, in catalog order.
        lookup_error: Why the track's artists could not be looked up.
    """
    path: Path
    track_id: TrackId
    album: str
    artist_ids: tuple[ArtistId, ...] = ()
    lookup_error: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.album}/{self.path.name}"

    def with_artists(self, artist_ids: Iterable[ArtistId], lookup_error: str | None = None) -> "TrackEntry":
        return replace(self, artist_ids=tuple(artist_ids), lookup_error=lookup_error)
