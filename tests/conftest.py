"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pytest

from genre_tagger.core.config import (
    Config,
    LibraryConfig,
    OutputConfig,
    ResolverConfig,
    SpotifyConfig,
    WriteConfig,
)
from genre_tagger.core.exceptions import CatalogNotFoundError


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def catalog_tracks():
    """Track id to artist ids, filled by make_album and read by fake_catalog"""
    return {}


def manifest_line(track_id, filename, artist_name="Artist", title="Title"):
    """A .song_ids line as the downloader writes it"""
    return f"{track_id}\t2024-01-01 10:00:00\t{artist_name}\t{title}\t{filename}"


def track_filename(track_id):
    return f"Song {track_id}.ogg"


@pytest.fixture
def make_album(temp_dir, catalog_tracks):
    """
    Factory creating an album directory with a .song_ids manifest.

    tracks is a list of (track_id, artists) pairs, artists being one
    artist id or a tuple of them; they are registered for fake_catalog.
    Each line is a full downloader record naming "Song <track_id>.ogg",
    or just the track id (file <track_id>.ogg) when bare is True. The
    audio files are created unless create_files is False.
    """
    def _make_album(name, tracks, create_files=True, manifest_name=".song_ids", bare=False):
        album_dir = temp_dir / name
        album_dir.mkdir(parents=True, exist_ok=True)
        lines = []
        for track_id, artists in tracks:
            catalog_tracks[track_id] = (artists,) if isinstance(artists, str) else tuple(artists)
            filename = f"{track_id}.ogg" if bare else track_filename(track_id)
            lines.append(track_id if bare else manifest_line(track_id, filename))
            if create_files:
                (album_dir / filename).write_bytes(b"OggS source audio")
        (album_dir / manifest_name).write_text("\n".join(lines) + "\n", encoding="utf-8")
        return album_dir
    return _make_album


@pytest.fixture
def test_config(temp_dir):
    """Config pointing at temp_dir with zero delays"""
    return Config(
        spotify=SpotifyConfig(client_id="test_id", client_secret="test_secret"),
        library=LibraryConfig(base_path=temp_dir),
        resolver=ResolverConfig(
            max_retries=2,
            base_delay=0.0,
            max_delay=0.0,
            jitter_ms_per_identifier=0,
        ),
        write=WriteConfig(workers=2),
        output=OutputConfig(log_directory=temp_dir / ".logs"),
    )


class FakeCatalog:
    """
    In-memory track and genre source.

    tracks maps track id to its artist ids, or to an exception instance
    raised for any batch containing that track; unknown tracks have no
    artists. responses maps artist id to either a genre list or a list of
    outcomes consumed one per call; an outcome is a genre list or an
    exception instance to raise. Unknown artists raise CatalogNotFoundError.
    """

    def __init__(self, responses=None, tracks=None):
        self.responses = responses or {}
        self.tracks = tracks if tracks is not None else {}
        self.calls = []
        self.track_calls = []

    async def lookup_track_artists(self, track_ids):
        self.track_calls.append(list(track_ids))
        for track_id in track_ids:
            if isinstance(self.tracks.get(track_id), BaseException):
                raise self.tracks[track_id]
        return {track_id: list(self.tracks.get(track_id, ())) for track_id in track_ids}

    async def resolve_genres(self, artist_id):
        self.calls.append(artist_id)
        if artist_id not in self.responses:
            raise CatalogNotFoundError(f"Artist not found: {artist_id}")

        response = self.responses[artist_id]
        if isinstance(response, BaseException):
            raise response
        if response and not isinstance(response[0], str):
            outcome = response.pop(0) if len(response) > 1 else response[0]
            if isinstance(outcome, BaseException):
                raise outcome
            return list(outcome)
        return list(response)


@pytest.fixture
def fake_catalog(catalog_tracks):
    """Factory for FakeCatalog instances, knowing the tracks of make_album"""
    def _fake_catalog(responses=None, tracks=None):
        return FakeCatalog(responses, catalog_tracks if tracks is None else tracks)
    return _fake_catalog


class FakeTranscoder:
    """Copies source to destination, or raises the configured error."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def transcode(self, source, destination):
        self.calls.append((source, destination))
        if self.error is not None:
            raise self.error
        Path(destination).write_bytes(Path(source).read_bytes())


class FakeTagger:
    """Appends the genre to the file so tests can read it back."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def write_genre(self, file_path, genre):
        self.calls.append((file_path, genre))
        if self.error is not None:
            raise self.error
        with open(file_path, "ab") as f:
            f.write(f"|genre={genre}".encode("utf-8"))


@pytest.fixture
def fake_transcoder():
    return FakeTranscoder


@pytest.fixture
def fake_tagger():
    return FakeTagger
