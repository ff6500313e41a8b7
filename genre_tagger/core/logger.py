"""
Logging configuration for genre-tagger.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - tag_failures.log: Every album or file that could not be tagged,
      with the reason, so no failure goes unattributed

Log File Locations:
    All log files are created in the log directory from the configuration
    (output.log_directory), one set per run with a timestamp suffix.

Usage:
    from genre_tagger.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Resolving genres")
    log_tag_failure(logger, album="Album", file_path=path, reason="ffmpeg failed")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (created in log directory)
LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
TAG_FAILURES_FILENAME = "tag_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Progress bars redraw in place with carriage returns. Writing log lines
    through tqdm.write() keeps them above any active bar.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class TagFailureReportHandler(logging.Handler):
    """
    Handler that captures per-album and per-file failures for the report file.

    This handler listens for log records that carry tag failure information
    and writes them to tag_failures.log in a simple, human-readable format:

        Album Name/track_id.ogg
        ffmpeg exited with status 1

        Other Album/.song_ids
        manifest is not valid UTF-8

    The handler looks for specific extra fields in log records:
        - 'tag_failed_album': Album directory name
        - 'tag_failed_file': File (audio or manifest) that failed
        - 'tag_failed_reason': Why it failed

    Only records containing these fields are written to the report.
    Use log_tag_failure() to produce such records.

    Attributes:
        report_path: Path to the tag_failures.log file.
        report_file: Open file handle (opened by open()).
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after handler is created.
        File is opened in write mode (overwrites existing content).
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "tag_failed_file"):
            return

        if self.report_file is None:
            return

        try:
            album = getattr(record, "tag_failed_album", "Unknown")
            file_name = Path(getattr(record, "tag_failed_file", "")).name
            reason = getattr(record, "tag_failed_reason", "")

            self.report_file.write(f"{album}/{file_name}\n")
            self.report_file.write(f"{reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created.
        verbose: If True, the console also shows DEBUG messages.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Configure root logger level to DEBUG
        3. Console handler (TqdmLoggingHandler), INFO or DEBUG
        4. log_full_{timestamp}.log, DEBUG
        5. log_errors_{timestamp}.log, ERROR+ via ErrorOnlyFilter
        6. tag_failures_{timestamp}.log, records from log_tag_failure()

    Thread Safety:
        Call it once from the main thread before starting any worker threads.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_log_path = log_dir / f"{LOG_FULL_FILENAME}_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = log_dir / f"{LOG_ERRORS_FILENAME}_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_path = log_dir / f"{TAG_FAILURES_FILENAME}_{timestamp}.log"
    failures_handler = TagFailureReportHandler(failures_path)
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # Third-party request logging is noisy at DEBUG
    for noisy in ("urllib3", "asyncio", "spotipy"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().
    """
    return logging.getLogger(name)


def log_tag_failure(
    logger: logging.Logger,
    album: str,
    file_path: Path | str,
    reason: str,
    level: int = logging.ERROR
) -> None:
    """
    Log an album or file that could not be tagged.

    Attaches the extra fields TagFailureReportHandler picks up, so the
    failure lands both in the regular logs and in tag_failures.log.

    Args:
        logger: The logger to use for the message.
        album: Album directory name the failure belongs to.
        file_path: Audio file (or manifest) that failed.
        reason: Description of why it failed.
        level: Log level, ERROR by default.

    Example:
        log_tag_failure(
            logger,
            album="Discovery",
            file_path=Path("/music/Discovery/0DiWol3AO6WpXZgp0goxAV.ogg"),
            reason="ffmpeg exited with status 1"
        )
    """
    logger.log(
        level,
        f"{album}/{Path(file_path).name}: {reason}",
        extra={
            "tag_failed_album": album,
            "tag_failed_file": str(file_path),
            "tag_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes all handlers, then removes them from the root logger.
    Typically called in a finally block.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except Exception:
            pass
        root_logger.removeHandler(handler)
