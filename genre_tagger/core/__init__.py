"""
Core module for genre-tagger.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - progress: Rich progress bars for the resolve and tag stages

Usage:
    from genre_tagger.core import (
        Config, load_config,
        setup_logging, get_logger,
        GenreTaggerError, ConfigError, CatalogAuthError
    )
"""

from genre_tagger.core.config import (
    Config,
    LibraryConfig,
    OutputConfig,
    ResolverConfig,
    SpotifyConfig,
    WriteConfig,
    load_config,
)
from genre_tagger.core.exceptions import (
    CatalogAuthError,
    CatalogError,
    CatalogNotFoundError,
    CatalogRateLimitError,
    CatalogTransportError,
    ConfigError,
    GenreTaggerError,
    ManifestError,
    MetadataError,
    TranscodeError,
)
from genre_tagger.core.logger import (
    get_logger,
    log_tag_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "LibraryConfig",
    "ResolverConfig",
    "WriteConfig",
    "OutputConfig",
    "load_config",
    # Exceptions
    "GenreTaggerError",
    "ConfigError",
    "ManifestError",
    "CatalogError",
    "CatalogNotFoundError",
    "CatalogRateLimitError",
    "CatalogTransportError",
    "CatalogAuthError",
    "TranscodeError",
    "MetadataError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_tag_failure",
    "shutdown_logging",
]
