"""
Tag Writer for genre-tagger.

Writes the resolved genres into the audio files, several files at a time.

For each TrackEntry:
    1. Merge the genres of every artist on the track; no genres, or any
       artist whose lookup failed, means the file is skipped
    2. Remux the source through ffmpeg into a hidden staging file in the
       same directory
    3. Set the genre tag on the staging file
    4. Move the staging file into place with os.replace

The staging file lives next to its destination so the final move is a
same-filesystem rename, and a half-written file is never visible under
the final name. Any failure removes the staging file and leaves the source
untouched.

Thread Safety:
    write_entry() touches only its own entry's files and reads the shared
    GenreResolution, which is immutable. The summary is aggregated on the
    calling thread as futures complete.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping

from genre_tagger.catalog.models import GENRE_DELIMITER, GenreResult, merge_genres
from genre_tagger.core.config import OUTPUT_POLICY_ALONGSIDE, WriteConfig
from genre_tagger.core.exceptions import GenreTaggerError
from genre_tagger.core.logger import get_logger, log_tag_failure
from genre_tagger.core.progress import TaggingProgressBar
from genre_tagger.library.models import ArtistId, TrackEntry
from genre_tagger.tagging.metadata import GenreTagger
from genre_tagger.tagging.transcoder import OUTPUT_EXTENSION, Transcoder

logger = get_logger(__name__)


STAGING_SUFFIX = "genre-tmp"
ALONGSIDE_SUFFIX = "genre"


class WriteStatus(Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteOutcome:
    """
    Result of processing one TrackEntry.

    Attributes:
        entry: The entry processed.
        status: SUCCEEDED, SKIPPED or FAILED.
        reason: Why it was skipped or failed; None on success.
        output_path: Where the tagged file ended up, on success.
    """
    entry: TrackEntry
    status: WriteStatus
    reason: str | None = None
    output_path: Path | None = None


@dataclass
class RunSummary:
    """
    Statistics from an enrichment run.

    Attributes:
        succeeded: Files tagged and moved into place.
        skipped: Files with no genres to write.
        failed: Files whose write failed.
        outcomes: Per-file outcomes, in completion order.
        failed_albums: Album directories excluded because of a bad manifest.
    """
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: list[WriteOutcome] = field(default_factory=list)
    failed_albums: list[Path] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.failed

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total == 0:
            return 0.0
        return (self.succeeded / self.total) * 100

    def record(self, outcome: WriteOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status is WriteStatus.SUCCEEDED:
            self.succeeded += 1
        elif outcome.status is WriteStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


def staging_path(source: Path, output_extension: str = OUTPUT_EXTENSION) -> Path:
    """Hidden per-file staging path: <album>/.<stem>.genre-tmp.<ext>"""
    return source.with_name(f".{source.stem}.{STAGING_SUFFIX}.{output_extension}")


def destination_path(source: Path, output_policy: str, output_extension: str = OUTPUT_EXTENSION) -> Path:
    """Final location of the tagged file under the given output policy."""
    if output_policy == OUTPUT_POLICY_ALONGSIDE:
        return source.with_name(f"{source.stem}.{ALONGSIDE_SUFFIX}.{output_extension}")
    return source.with_name(f"{source.stem}.{output_extension}")


class TagWriter:
    """
    Writes genre tags with a bounded thread pool.

    Attributes:
        _config: WriteConfig with pool size and output policy.
        _transcoder: ffmpeg remux step.
        _tagger: mutagen genre tag step.
    """

    def __init__(
        self,
        config: WriteConfig,
        transcoder: Transcoder | None = None,
        tagger: GenreTagger | None = None
    ) -> None:
        self._config = config
        self._transcoder = transcoder or Transcoder(ffmpeg_binary=config.ffmpeg_binary)
        self._tagger = tagger or GenreTagger()

    def write_all(
        self,
        entries: list[TrackEntry],
        resolution: Mapping[ArtistId, GenreResult],
        dry_run: bool = False
    ) -> RunSummary:
        """
        Process every entry, isolating failures per file.

        Args:
            entries: Files to tag.
            resolution: Read-only artist ID to GenreResult mapping.
            dry_run: Report what would be written without touching files.

        Returns:
            RunSummary with one outcome per entry.
        """
        summary = RunSummary()

        if not entries:
            logger.info("No files to tag")
            return summary

        if dry_run:
            for entry in entries:
                summary.record(self._plan_entry(entry, resolution))
            logger.info(
                f"Dry run: {summary.succeeded} files would be tagged, "
                f"{summary.skipped} skipped"
            )
            return summary

        workers = self._config.workers
        logger.info(f"Tagging {len(entries)} files with {workers} workers")

        with TaggingProgressBar(total=len(entries)) as progress:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                future_to_entry = {
                    executor.submit(self.write_entry, entry, resolution): entry
                    for entry in entries
                }

                for future in as_completed(future_to_entry):
                    entry = future_to_entry[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        logger.debug(f"Unexpected error tagging {entry.display_name}", exc_info=True)
                        outcome = WriteOutcome(entry, WriteStatus.FAILED, reason=f"unexpected error: {e}")
                        log_tag_failure(logger, entry.album, entry.path, outcome.reason)

                    summary.record(outcome)
                    progress.update(
                        success=outcome.status is WriteStatus.SUCCEEDED,
                        skipped=outcome.status is WriteStatus.SKIPPED
                    )

        logger.info(
            f"Tagging complete: {summary.succeeded}/{summary.total} tagged, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    def write_entry(
        self,
        entry: TrackEntry,
        resolution: Mapping[ArtistId, GenreResult]
    ) -> WriteOutcome:
        """
        Tag a single file.

        Never raises for per-file problems; they come back as a FAILED
        outcome and are written to the failure report.
        """
        genre, skip_reason = track_genre(entry, resolution)
        if skip_reason is not None:
            logger.debug(f"Skipping {entry.display_name}: {skip_reason}")
            return WriteOutcome(entry, WriteStatus.SKIPPED, reason=skip_reason)

        if not entry.path.is_file():
            return self._fail(entry, "file not found")

        staged = staging_path(entry.path)
        destination = destination_path(entry.path, self._config.output_policy)

        try:
            self._transcoder.transcode(entry.path, staged)
            self._tagger.write_genre(staged, genre)
            os.replace(staged, destination)
        except GenreTaggerError as e:
            _remove_quietly(staged)
            return self._fail(entry, e.message)
        except OSError as e:
            _remove_quietly(staged)
            return self._fail(entry, f"cannot move file into place: {e}")
        except Exception:
            _remove_quietly(staged)
            raise

        logger.debug(f"Tagged {entry.display_name} with genre '{genre}'")
        return WriteOutcome(entry, WriteStatus.SUCCEEDED, output_path=destination)

    def _plan_entry(
        self,
        entry: TrackEntry,
        resolution: Mapping[ArtistId, GenreResult]
    ) -> WriteOutcome:
        genre, skip_reason = track_genre(entry, resolution)
        if skip_reason is not None:
            return WriteOutcome(entry, WriteStatus.SKIPPED, reason=skip_reason)

        if not entry.path.is_file():
            return self._fail(entry, "file not found")

        destination = destination_path(entry.path, self._config.output_policy)
        logger.info(
            f"[dry run] {entry.display_name} -> {destination.name}: "
            f"genre '{genre}'"
        )
        return WriteOutcome(entry, WriteStatus.SUCCEEDED, output_path=destination)

    def _fail(self, entry: TrackEntry, reason: str) -> WriteOutcome:
        log_tag_failure(logger, entry.album, entry.path, reason)
        return WriteOutcome(entry, WriteStatus.FAILED, reason=reason)


def track_genre(
    entry: TrackEntry,
    resolution: Mapping[ArtistId, GenreResult]
) -> tuple[str | None, str | None]:
    """
    Build the genre tag value for an entry from all of its artists.

    Returns:
        (tag value, None) when there is something to write, otherwise
        (None, skip reason). A track is skipped when its artists could not
        be looked up, when any of its artists failed to resolve, or when
        the artists have no genres between them.
    """
    if entry.lookup_error is not None:
        return None, f"artist lookup failed: {entry.lookup_error}"
    if not entry.artist_ids:
        return None, "no artists"

    results: list[GenreResult] = []
    for artist_id in entry.artist_ids:
        result = resolution.get(artist_id)
        if result is None:
            return None, f"artist {artist_id} not resolved"
        if result.failed:
            return None, f"genre lookup failed for artist {artist_id}: {result.error}"
        results.append(result)

    genres = merge_genres(results)
    if not genres:
        return None, "no genres"
    return GENRE_DELIMITER.join(genres), None


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
