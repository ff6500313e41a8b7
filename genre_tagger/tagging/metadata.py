"""
Genre tag writing with mutagen.

Only the genre field is touched. Any previous genre is replaced, never
merged. Vorbis comment files (Ogg Vorbis, Ogg Opus, FLAC) use the `genre`
comment; MP4 files use the `\\xa9gen` atom.

Usage:
    from genre_tagger.tagging.metadata import GenreTagger

    GenreTagger().write_genre(Path("track.ogg"), "rock,indie rock")
"""

from pathlib import Path

import mutagen
from mutagen.mp4 import MP4

from genre_tagger.core.exceptions import MetadataError
from genre_tagger.core.logger import get_logger

logger = get_logger(__name__)


# See: https://mutagen.readthedocs.io/en/latest/api/mp4.html
MP4_GENRE_KEY = "\xa9gen"
VORBIS_GENRE_KEY = "genre"


class GenreTagger:
    """Sets the genre tag on an audio file in place."""

    def write_genre(self, file_path: Path, genre: str) -> None:
        """
        Replace the file's genre tag with `genre`.

        Args:
            file_path: Audio file to update.
            genre: Full tag value (genres already joined).

        Raises:
            MetadataError: If the file is not a recognized audio format or
                           mutagen cannot read or save it.
        """
        audio = self._open_file(file_path)

        if audio.tags is None:
            audio.add_tags()

        key = MP4_GENRE_KEY if isinstance(audio, MP4) else VORBIS_GENRE_KEY
        audio.tags[key] = [genre]

        try:
            audio.save()
        except (mutagen.MutagenError, OSError) as e:
            raise MetadataError(
                f"Failed to save tags: {e}",
                details={"file_path": str(file_path)}
            ) from e

        logger.debug(f"Set genre on {file_path.name}: {genre}")

    def read_genre(self, file_path: Path) -> list[str]:
        """Return the file's current genre values (empty if none)."""
        audio = self._open_file(file_path)
        if audio.tags is None:
            return []
        key = MP4_GENRE_KEY if isinstance(audio, MP4) else VORBIS_GENRE_KEY
        return list(audio.tags.get(key, []))

    def _open_file(self, file_path: Path) -> mutagen.FileType:
        try:
            audio = mutagen.File(str(file_path))
        except (mutagen.MutagenError, OSError) as e:
            raise MetadataError(
                f"Cannot open audio file: {e}",
                details={"file_path": str(file_path)}
            ) from e

        if audio is None:
            raise MetadataError(
                "Unrecognized audio format",
                details={"file_path": str(file_path)}
            )
        return audio
