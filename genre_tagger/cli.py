"""
Command-line interface for genre-tagger.

This module implements the CLI using Click, with rich-click for the
output colors.

Usage:
    # Tag the library configured in config.yaml / .env
    genre-tagger

    # Artist/Album layout, 8 writer threads
    genre-tagger --base-path ~/Music/Zotify\\ Music --depth 2 --workers 8

    # Keep the originals, write <stem>.genre.ogg next to them
    genre-tagger --output-policy alongside

    # Resolve genres and show what would be written
    genre-tagger --dry-run

Configuration:
    Settings come from config.yaml in the current directory (optional),
    then environment variables (SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET,
    BASE_PATH, also read from a .env file), then the options below.

Exit Codes:
    0    Run completed (individual files may still have failed)
    1    Configuration error or unexpected error
    3    Spotify authentication failed
    4    Other fatal error
    130  Interrupted
"""

import sys
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "genre-tagger": [
        {
            "name": "Library",
            "options": ["--config", "--base-path", "--depth"],
        },
        {
            "name": "Writing",
            "options": ["--workers", "--output-policy", "--dry-run"],
        },
        {
            "name": "Info",
            "options": ["--verbose", "--version", "--help"],
        },
    ],
}

from genre_tagger import __version__
from genre_tagger.core import (
    CatalogAuthError,
    Config,
    ConfigError,
    GenreTaggerError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from genre_tagger.core.config import OUTPUT_POLICIES
from genre_tagger.pipeline import run_enrichment
from genre_tagger.tagging import RunSummary

logger = get_logger(__name__)


@click.command(name="genre-tagger")
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml if present)"
)
@click.option(
    "--base-path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<dir>",
    help="Library root, overrides BASE_PATH"
)
@click.option(
    "--depth",
    type=click.IntRange(min=1),
    default=None,
    help="Album directory depth below the base path (2 for Artist/Album)"
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Number of parallel tag writers"
)
@click.option(
    "--output-policy",
    type=click.Choice(OUTPUT_POLICIES),
    default=None,
    help="Replace the source file, or write <stem>.genre.ogg alongside it"
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Resolve genres and report, without writing any file"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug output on the console"
)
@click.version_option(__version__, "--version", prog_name="genre-tagger")
def cli(
    config_path: Optional[Path],
    base_path: Optional[Path],
    depth: Optional[int],
    workers: Optional[int],
    output_policy: Optional[str],
    dry_run: bool,
    verbose: bool
) -> None:
    """
    genre-tagger: Write Spotify artist genres into your music library.

    Reads the [bold].song_ids[/bold] manifest of every album, looks up the
    artists of each track and their genres on Spotify, and writes them into
    the files' genre tag.
    """
    try:
        config = load_config(config_path, base_path=base_path)
        config = config.with_overrides(
            depth=depth,
            workers=workers,
            output_policy=output_policy
        )

        setup_logging(config.output.log_directory, verbose=verbose)
        logger.info(f"genre-tagger {__version__} starting")

        summary = run_enrichment(config, dry_run=dry_run)
        _print_summary(summary, config, dry_run)

        logger.info("genre-tagger completed")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except CatalogAuthError as e:
        click.echo(f"Spotify authentication failed: {e.message}", err=True)
        click.echo("Check SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET (or config.yaml)", err=True)
        logger.error(f"Authentication error: {e.message}", exc_info=True)
        sys.exit(3)

    except GenreTaggerError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _print_summary(summary: RunSummary, config: Config, dry_run: bool) -> None:
    """Log the end-of-run statistics."""
    title = "DRY RUN SUMMARY" if dry_run else "RUN SUMMARY"
    tagged_label = "Would tag:" if dry_run else "Tagged:"

    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)
    logger.info(f"{tagged_label:<19}{summary.succeeded}")
    logger.info(f"{'Skipped:':<19}{summary.skipped}")
    logger.info(f"{'Failed:':<19}{summary.failed}")
    if summary.failed_albums:
        logger.info(f"{'Failed albums:':<19}{len(summary.failed_albums)}")
        for album in summary.failed_albums:
            logger.info(f"  - {album.name}")
    if summary.total:
        logger.info(f"{'Success rate:':<19}{summary.success_rate:.1f}%")
    if summary.failed or summary.failed_albums:
        logger.info(f"Failure report in {config.output.log_directory}")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `genre-tagger` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
