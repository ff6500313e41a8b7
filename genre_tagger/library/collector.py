"""
Identifier Collector for genre-tagger.

Walks the library base path, reads every album's identifier manifest and
produces the TrackEntries that need a genre tag, together with the
deduplicated track IDs whose artists the catalog has to look up.

Manifest Format:
    UTF-8 text, one track per non-empty line. A line is either a bare
    track ID, or the tab-separated record the downloader writes:

        <track id>\t<timestamp>\t<artist name>\t<title>\t<filename>

    Only the first field (track ID) and the fifth (file name) are used.
    Without a file name the audio file is <track id>.ogg in the album
    directory. The track ID may also be a spotify:track: URI or an
    open.spotify.com track URL.

Failure Policy:
    - Album without a manifest: skipped silently (nothing to enrich)
    - Unreadable or malformed manifest: the album is logged, reported and
      excluded, every other album is still collected
    - Nothing here aborts the run

Usage:
    from genre_tagger.library.collector import collect_track_entries

    result = collect_track_entries(base_path, manifest_filename=".song_ids")
    print(f"{len(result.entries)} files, {len(result.track_ids)} tracks")
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from genre_tagger.core.exceptions import ManifestError
from genre_tagger.core.logger import get_logger, log_tag_failure
from genre_tagger.library.models import (
    AlbumManifest,
    ManifestLine,
    TrackEntry,
    TrackId,
    normalize_track_id,
)

logger = get_logger(__name__)


DEFAULT_MANIFEST_FILENAME = ".song_ids"
INPUT_EXTENSION = "ogg"
TRACK_ID_FIELD = 0
FILENAME_FIELD = 4


@dataclass
class CollectionResult:
    """
    Everything the collector found.

    Attributes:
        entries: All TrackEntries across all albums, album by album in
                 directory order and manifest order within an album.
        track_ids: Distinct track IDs among the entries, in first-seen order.
        albums: Number of albums whose manifest was loaded.
        failed_albums: Album directories excluded because of a bad manifest.
    """
    entries: list[TrackEntry] = field(default_factory=list)
    track_ids: list[TrackId] = field(default_factory=list)
    albums: int = 0
    failed_albums: list[Path] = field(default_factory=list)


def iter_album_directories(base_path: Path, depth: int = 1) -> Iterator[Path]:
    """
    Yield album directories found `depth` levels below base_path.

    Hidden directories are ignored at every level. Directories are visited
    in name order so runs are reproducible.

    Args:
        base_path: Library root.
        depth: 1 for base/Album, 2 for base/Artist/Album, and so on.
    """
    level = [base_path]
    for _ in range(depth):
        next_level: list[Path] = []
        for directory in level:
            try:
                children = sorted(directory.iterdir())
            except OSError as e:
                logger.warning(f"Cannot list directory {directory}: {e}")
                continue
            next_level.extend(
                child for child in children
                if child.is_dir() and not child.name.startswith(".")
            )
        level = next_level
    yield from level


def parse_manifest_line(line: str) -> ManifestLine | None:
    """
    Parse one manifest line; None for a blank line.

    Raises:
        ValueError: If the line has no track ID.
    """
    if not line.strip():
        return None

    fields = [part.strip() for part in line.split("\t")]
    track_id = normalize_track_id(fields[TRACK_ID_FIELD])
    if not track_id:
        raise ValueError("no track id")

    filename = fields[FILENAME_FIELD] if len(fields) > FILENAME_FIELD else ""
    return ManifestLine(track_id=track_id, filename=filename or None)


def read_manifest(album_dir: Path, manifest_filename: str = DEFAULT_MANIFEST_FILENAME) -> AlbumManifest | None:
    """
    Load an album's identifier manifest.

    Args:
        album_dir: Album directory.
        manifest_filename: Name of the manifest file inside album_dir.

    Returns:
        The AlbumManifest, or None if the directory has no manifest.

    Raises:
        ManifestError: If the manifest cannot be read, is not UTF-8, or a
                       line has no track id.
    """
    manifest_path = album_dir / manifest_filename
    if not manifest_path.is_file():
        return None

    try:
        content = manifest_path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestError(
            "manifest is not valid UTF-8",
            details={"file_path": str(manifest_path), "original_error": str(e)}
        ) from e
    except OSError as e:
        raise ManifestError(
            f"cannot read manifest: {e}",
            details={"file_path": str(manifest_path), "original_error": str(e)}
        ) from e

    lines: list[ManifestLine] = []
    for number, raw_line in enumerate(content.splitlines(), start=1):
        try:
            line = parse_manifest_line(raw_line)
        except ValueError as e:
            raise ManifestError(
                f"line {number} has {e}",
                details={"file_path": str(manifest_path), "line": number}
            ) from e
        if line is not None:
            lines.append(line)

    return AlbumManifest(directory=album_dir, lines=tuple(lines))


def collect_track_entries(
    base_path: Path,
    manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
    depth: int = 1,
    input_extension: str = INPUT_EXTENSION
) -> CollectionResult:
    """
    Build the list of files to tag and the set of tracks to look up.

    Args:
        base_path: Library root.
        manifest_filename: Per-album manifest file name.
        depth: Album directory depth below base_path.
        input_extension: Extension of the input audio files, without dot.

    Returns:
        CollectionResult with entries, deduplicated track ids and the
        albums that had to be excluded.
    """
    result = CollectionResult()
    seen_tracks: set[TrackId] = set()

    for album_dir in iter_album_directories(base_path, depth):
        try:
            manifest = read_manifest(album_dir, manifest_filename)
        except ManifestError as e:
            result.failed_albums.append(album_dir)
            log_tag_failure(
                logger,
                album=album_dir.name,
                file_path=album_dir / manifest_filename,
                reason=e.message,
            )
            continue

        if manifest is None:
            logger.debug(f"No {manifest_filename} in {album_dir}, skipping")
            continue

        result.albums += 1
        entries = manifest.track_entries(input_extension)
        result.entries.extend(entries)

        for entry in entries:
            if entry.track_id not in seen_tracks:
                seen_tracks.add(entry.track_id)
                result.track_ids.append(entry.track_id)

        logger.debug(f"{manifest.name}: {len(entries)} tracks")

    logger.info(
        f"Collected {len(result.entries)} tracks from {result.albums} albums "
        f"({len(result.track_ids)} distinct track ids)"
    )
    if result.failed_albums:
        logger.warning(f"{len(result.failed_albums)} albums excluded because of bad manifests")

    return result
