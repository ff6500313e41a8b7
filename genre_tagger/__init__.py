"""
genre-tagger: Write Spotify artist genres into a local music library.

Architecture:
    A run is three stages, each finishing before the next starts:

    COLLECT (library/): Find the files to tag
        - Walk album directories under the base path
        - Read each album's .song_ids manifest
        - Pair every track ID with its audio file

    RESOLVE (catalog/): Look up artists and genres on Spotify
        - Track IDs to artists, 50 tracks per request
        - One genre request per distinct artist, started with random jitter
        - Per-artist exponential backoff on rate limits and network errors
        - Authentication failure aborts the run before anything is written

    WRITE (tagging/): Tag the files
        - Remux through ffmpeg into a staging file
        - Set the genre tag with mutagen
        - Atomically move the result into place

Dependencies:
    - spotipy: Spotify client-credentials authentication
    - aiohttp: Concurrent track and artist lookups
    - asyncio-throttle: Request rate cap
    - ffmpeg-python: ffmpeg command construction
    - mutagen: Audio metadata manipulation
    - click / rich-click: CLI framework and colors
    - rich: Progress bars
    - tqdm: Log output that plays well with progress bars
    - pyyaml: Configuration file parsing
    - python-dotenv: .env file support
"""

__version__ = "0.1.0"
__author__ = "genre-tagger"
__license__ = "MIT"

from genre_tagger.core import (
    Config,
    ConfigError,
    GenreTaggerError,
    get_logger,
    load_config,
    setup_logging,
)
from genre_tagger.pipeline import run_enrichment
from genre_tagger.tagging import RunSummary

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "ConfigError",
    "GenreTaggerError",
    "setup_logging",
    "get_logger",
    # Pipeline
    "run_enrichment",
    "RunSummary",
]
