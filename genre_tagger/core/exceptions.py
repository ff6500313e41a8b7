"""
Exception classes for genre-tagger.

This module defines all custom exceptions used throughout the application.
Each exception distinguishes a failure mode so callers can decide whether
it is fatal to the run, retryable, or isolated to a single album or file.

Exception Hierarchy:
    GenreTaggerError (base)
        ConfigError - Configuration file / environment issues (fatal)
        ManifestError - Unreadable or malformed album manifest (per-album)
        CatalogError - Spotify catalog lookups
            CatalogNotFoundError - Artist or track batch unknown to the catalog
            CatalogRateLimitError - HTTP 429, retry after backoff
            CatalogTransportError - Network / protocol failure, retryable
            CatalogAuthError - Token rejected (fatal)
        TranscodeError - ffmpeg remux failed (per-file)
        MetadataError - Genre tag could not be written (per-file)
"""


class GenreTaggerError(Exception):
    """
    Base exception for all genre-tagger errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all genre-tagger errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., artist id, path).

    Example:
        try:
            # some operation
        except GenreTaggerError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'artist_id' or 'track_id': Spotify ID(s) involved in the error
                     - 'file_path': Audio file or manifest involved
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(GenreTaggerError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Spotify credentials missing from both config.yaml and environment
        - Library base path missing or not a directory
        - Invalid field values (e.g., zero workers, unknown output policy)
    """
    pass


class ManifestError(GenreTaggerError):
    """
    Raised when an album's identifier manifest cannot be used.

    This is a NON-CRITICAL error: the album is excluded from the run
    and every other album is still processed.

    Common causes:
        - Manifest is not valid UTF-8
        - A line is missing the artist identifier column
        - Permission denied when reading the manifest
    """
    pass


class CatalogError(GenreTaggerError):
    """
    Base class for failures talking to the Spotify catalog.

    Subclasses tell the resolver what to do next:
    treat as zero genres, back off and retry, or abort the run.
    """
    pass


class CatalogNotFoundError(CatalogError):
    """
    Raised when the catalog does not know the artist or rejects a track
    batch (HTTP 404 / 400).

    The resolver treats this as "zero genres" or "no artists", not as a failure.
    """
    pass


class CatalogRateLimitError(CatalogError):
    """
    Raised when the catalog throttles a request (HTTP 429).

    Attributes:
        retry_after: Seconds the server asked us to wait, or None
                     if no Retry-After header was sent.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        retry_after: float | None = None
    ) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after


class CatalogTransportError(CatalogError):
    """
    Raised on network or protocol failures (timeouts, 5xx, bad JSON).

    Retryable a bounded number of times, then demoted to a per-artist failure.
    """
    pass


class CatalogAuthError(CatalogError):
    """
    Raised when the access token is rejected or cannot be obtained.

    This is a CRITICAL error: no further lookup can succeed, so the
    resolver cancels all outstanding lookups and the run stops before
    any file is written.
    """
    pass


class TranscodeError(GenreTaggerError):
    """
    Raised when the ffmpeg remux of a single file fails.

    This is a NON-CRITICAL error - the file is recorded as failed
    and the other files keep processing.

    Example:
        raise TranscodeError(
            "ffmpeg exited with status 1",
            details={'file_path': '/music/Album/track.ogg', 'stderr': '...'}
        )
    """
    pass


class MetadataError(GenreTaggerError):
    """
    Raised when the genre tag cannot be written into a staged file.

    This is a NON-CRITICAL error - the staged file is discarded and
    the source file is left untouched.
    """
    pass
