"""
Tagging module for genre-tagger.

Writes resolved genres into the audio files:
    - transcoder: ffmpeg remux into a staging file
    - metadata: mutagen genre tag
    - writer: Thread pool, atomic move and the RunSummary
"""

from genre_tagger.tagging.metadata import GenreTagger
from genre_tagger.tagging.transcoder import Transcoder
from genre_tagger.tagging.writer import (
    RunSummary,
    TagWriter,
    WriteOutcome,
    WriteStatus,
    destination_path,
    staging_path,
)

__all__ = [
    "GenreTagger",
    "RunSummary",
    "TagWriter",
    "Transcoder",
    "WriteOutcome",
    "WriteStatus",
    "destination_path",
    "staging_path",
]
