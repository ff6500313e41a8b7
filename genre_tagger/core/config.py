"""
Configuration management for genre-tagger.

This module handles loading, validating, and providing access to the
application configuration. Values come from three places, later ones
winning:

    1. config.yaml (optional when the environment is complete)
    2. Environment variables, including a .env file loaded with python-dotenv
    3. Command-line overrides applied by the CLI (see with_overrides())

Environment Variables:
    SPOTIFY_CLIENT_ID       -> spotify.client_id
    SPOTIFY_CLIENT_SECRET   -> spotify.client_secret
    BASE_PATH               -> library.base_path

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"

    library:
      base_path: "~/Music/Zotify Music"
      depth: 2                      # Artist/Album layout
      manifest_filename: ".song_ids"

    resolver:
      max_retries: 4
      base_delay: 1.0
      max_delay: 30.0
      jitter_ms_per_identifier: 10
      max_requests_per_second: 20
      timeout: 15

    write:
      workers: 4
      output_policy: "replace"      # or "alongside"
      ffmpeg_binary: "ffmpeg"

    output:
      log_directory: "./logs"
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from genre_tagger.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

ENV_CLIENT_ID = "SPOTIFY_CLIENT_ID"
ENV_CLIENT_SECRET = "SPOTIFY_CLIENT_SECRET"
ENV_BASE_PATH = "BASE_PATH"

OUTPUT_POLICY_REPLACE = "replace"
OUTPUT_POLICY_ALONGSIDE = "alongside"
OUTPUT_POLICIES = (OUTPUT_POLICY_REPLACE, OUTPUT_POLICY_ALONGSIDE)


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
    """
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class LibraryConfig:
    """
    Where the audio library lives and how albums are discovered.

    Attributes:
        base_path: Root of the music library (expanded, absolute).
        depth: How many directory levels below base_path the album
               directories sit. 1 = base/Album, 2 = base/Artist/Album.
        manifest_filename: Name of the per-album identifier manifest.
    """
    base_path: Path
    depth: int = 1
    manifest_filename: str = ".song_ids"


@dataclass(frozen=True)
class ResolverConfig:
    """
    Genre resolution scheduling and retry settings.

    Attributes:
        max_retries: Retries per artist after a rate-limit or transport error.
        base_delay: First backoff delay in seconds.
        max_delay: Upper bound for a single backoff delay in seconds.
        jitter_ms_per_identifier: Width of the start-delay window per
                                  distinct artist, in milliseconds.
        max_requests_per_second: Hard cap on catalog requests per second.
        timeout: Per-request timeout in seconds.
    """
    max_retries: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_ms_per_identifier: int = 10
    max_requests_per_second: int = 20
    timeout: float = 15.0


@dataclass(frozen=True)
class WriteConfig:
    """
    Tag writing behavior.

    Attributes:
        workers: Size of the writer thread pool. Sized for storage I/O
                 parallelism, not CPU count.
        output_policy: "replace" overwrites the source file,
                       "alongside" writes <stem>.genre.<ext> next to it.
        ffmpeg_binary: Name or path of the ffmpeg executable.
    """
    workers: int = 4
    output_policy: str = "replace"
    ffmpeg_binary: str = "ffmpeg"


@dataclass(frozen=True)
class OutputConfig:
    """
    Attributes:
        log_directory: Directory for log files and the failure report.
    """
    log_directory: Path


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Library: {config.library.base_path}")
        print(f"Using {config.write.workers} writer threads")
    """
    spotify: SpotifyConfig
    library: LibraryConfig
    resolver: ResolverConfig
    write: WriteConfig
    output: OutputConfig

    def with_overrides(
        self,
        base_path: Path | None = None,
        depth: int | None = None,
        workers: int | None = None,
        output_policy: str | None = None
    ) -> "Config":
        """
        Return a copy with command-line overrides applied.

        Raises:
            ConfigError: If an override value is invalid.
        """
        library = self.library
        write = self.write

        if base_path is not None:
            library = replace(library, base_path=_validate_base_path(str(base_path)))
        if depth is not None:
            library = replace(library, depth=_positive_int(depth, "library.depth"))
        if workers is not None:
            write = replace(write, workers=_positive_int(workers, "write.workers"))
        if output_policy is not None:
            write = replace(write, output_policy=_validate_policy(output_policy))

        return replace(self, library=library, write=write)


def load_config(config_path: Path | None = None, base_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.
                     An explicit path that does not exist is an error; the
                     default one is simply skipped.
        base_path: Optional library base path taking precedence over the
                   file and the environment (the --base-path option).

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file has invalid YAML syntax, is missing
                     required fields (after environment fallback), or
                     contains invalid values.
    """
    load_dotenv()

    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)
    elif explicit:
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    _apply_environment(raw_config)
    if base_path is not None:
        library_section = raw_config.get("library")
        if not isinstance(library_section, dict):
            library_section = {}
            raw_config["library"] = library_section
        library_section["base_path"] = str(base_path)

    for section in ("spotify", "library", "resolver", "write", "output"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify") or {}),
        library=_parse_library_config(raw_config.get("library") or {}),
        resolver=_parse_resolver_config(raw_config.get("resolver") or {}),
        write=_parse_write_config(raw_config.get("write") or {}),
        output=_parse_output_config(raw_config.get("output") or {}),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )
    return raw_config


def _apply_environment(raw_config: dict[str, Any]) -> None:
    """Overlay environment variables onto the raw config dictionary."""
    mapping = {
        ENV_CLIENT_ID: ("spotify", "client_id"),
        ENV_CLIENT_SECRET: ("spotify", "client_secret"),
        ENV_BASE_PATH: ("library", "base_path"),
    }
    for env_name, (section, key) in mapping.items():
        value = os.environ.get(env_name)
        if value:
            target = raw_config.get(section)
            if not isinstance(target, dict):
                target = {}
                raw_config[section] = target
            target[key] = value


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    client_id = spotify_section.get("client_id", "")
    client_secret = spotify_section.get("client_secret", "")

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            f"'spotify.client_id' must be a non-empty string (or set {ENV_CLIENT_ID})",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            f"'spotify.client_secret' must be a non-empty string (or set {ENV_CLIENT_SECRET})",
            details={"field": "spotify.client_secret"}
        )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip()
    )


def _parse_library_config(library_section: dict[str, Any]) -> LibraryConfig:
    base_path = library_section.get("base_path", "")
    if not isinstance(base_path, str) or not base_path.strip():
        raise ConfigError(
            f"'library.base_path' must be a non-empty string (or set {ENV_BASE_PATH})",
            details={"field": "library.base_path"}
        )

    depth = _positive_int(library_section.get("depth", 1), "library.depth")

    manifest_filename = library_section.get("manifest_filename", ".song_ids")
    if not isinstance(manifest_filename, str) or not manifest_filename.strip():
        raise ConfigError(
            "'library.manifest_filename' must be a non-empty string",
            details={"field": "library.manifest_filename"}
        )

    return LibraryConfig(
        base_path=_validate_base_path(base_path),
        depth=depth,
        manifest_filename=manifest_filename.strip()
    )


def _parse_resolver_config(resolver_section: dict[str, Any]) -> ResolverConfig:
    defaults = ResolverConfig()

    max_retries = resolver_section.get("max_retries", defaults.max_retries)
    if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
        raise ConfigError(
            "'resolver.max_retries' must be a non-negative integer",
            details={"field": "resolver.max_retries", "value": max_retries}
        )

    base_delay = _non_negative_number(
        resolver_section.get("base_delay", defaults.base_delay), "resolver.base_delay"
    )
    max_delay = _non_negative_number(
        resolver_section.get("max_delay", defaults.max_delay), "resolver.max_delay"
    )
    if max_delay < base_delay:
        raise ConfigError(
            "'resolver.max_delay' must not be smaller than 'resolver.base_delay'",
            details={"field": "resolver.max_delay", "value": max_delay}
        )

    jitter = resolver_section.get("jitter_ms_per_identifier", defaults.jitter_ms_per_identifier)
    if not isinstance(jitter, int) or isinstance(jitter, bool) or jitter < 0:
        raise ConfigError(
            "'resolver.jitter_ms_per_identifier' must be a non-negative integer",
            details={"field": "resolver.jitter_ms_per_identifier", "value": jitter}
        )

    return ResolverConfig(
        max_retries=max_retries,
        base_delay=float(base_delay),
        max_delay=float(max_delay),
        jitter_ms_per_identifier=jitter,
        max_requests_per_second=_positive_int(
            resolver_section.get("max_requests_per_second", defaults.max_requests_per_second),
            "resolver.max_requests_per_second"
        ),
        timeout=float(_non_negative_number(
            resolver_section.get("timeout", defaults.timeout), "resolver.timeout"
        )),
    )


def _parse_write_config(write_section: dict[str, Any]) -> WriteConfig:
    defaults = WriteConfig()

    ffmpeg_binary = write_section.get("ffmpeg_binary", defaults.ffmpeg_binary)
    if not isinstance(ffmpeg_binary, str) or not ffmpeg_binary.strip():
        raise ConfigError(
            "'write.ffmpeg_binary' must be a non-empty string",
            details={"field": "write.ffmpeg_binary"}
        )

    return WriteConfig(
        workers=_positive_int(write_section.get("workers", defaults.workers), "write.workers"),
        output_policy=_validate_policy(write_section.get("output_policy", defaults.output_policy)),
        ffmpeg_binary=ffmpeg_binary.strip(),
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    log_directory = output_section.get("log_directory")
    if log_directory is None:
        return OutputConfig(log_directory=Path.cwd() / "logs")

    if not isinstance(log_directory, str) or not log_directory.strip():
        raise ConfigError(
            "'output.log_directory' must be a non-empty string",
            details={"field": "output.log_directory"}
        )
    return OutputConfig(log_directory=Path(log_directory.strip()).expanduser().resolve())


def _validate_base_path(raw: str) -> Path:
    # Expand ~ and make absolute
    path = Path(raw.strip()).expanduser().resolve()
    if not path.is_dir():
        raise ConfigError(
            f"Library base path is not a directory: {path}",
            details={"field": "library.base_path", "path": str(path)}
        )
    return path


def _validate_policy(value: Any) -> str:
    if value not in OUTPUT_POLICIES:
        raise ConfigError(
            f"'write.output_policy' must be one of {', '.join(OUTPUT_POLICIES)}",
            details={"field": "write.output_policy", "value": value}
        )
    return value


def _positive_int(value: Any, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ConfigError(
            f"'{field}' must be a positive integer",
            details={"field": field, "value": value}
        )
    return value


def _non_negative_number(value: Any, field: str) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
        raise ConfigError(
            f"'{field}' must be a non-negative number",
            details={"field": field, "value": value}
        )
    return value
