"""Test logging setup and the failure report"""

import logging
from pathlib import Path

import pytest

from genre_tagger.core.logger import (
    ErrorOnlyFilter,
    get_logger,
    log_tag_failure,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def log_dir(temp_dir):
    directory = temp_dir / "logs"
    setup_logging(directory)
    yield directory
    shutdown_logging()


def read_log(log_dir: Path, prefix: str) -> str:
    (path,) = log_dir.glob(f"{prefix}_*.log")
    return path.read_text(encoding="utf-8")


class TestLogging:
    """Test setup_logging() outputs"""

    def test_files_created(self, log_dir):
        names = sorted(path.name.split("_2")[0] for path in log_dir.iterdir())
        assert names == ["log_errors", "log_full", "tag_failures"]

    def test_levels_routed(self, log_dir):
        logger = get_logger("genre_tagger.test")
        logger.debug("debug detail")
        logger.error("something broke")
        shutdown_logging()

        full = read_log(log_dir, "log_full")
        errors = read_log(log_dir, "log_errors")
        assert "debug detail" in full and "something broke" in full
        assert "debug detail" not in errors
        assert "something broke" in errors

    def test_tag_failure_report(self, log_dir):
        logger = get_logger("genre_tagger.test")
        log_tag_failure(logger, "Discovery", Path("/music/Discovery/t1.ogg"), "ffmpeg exited with status 1")
        logger.error("plain error")
        shutdown_logging()

        report = read_log(log_dir, "tag_failures")
        assert report == "Discovery/t1.ogg\nffmpeg exited with status 1\n\n"


class TestErrorOnlyFilter:
    """Test ErrorOnlyFilter"""

    @pytest.mark.parametrize("level,allowed", [
        (logging.INFO, False),
        (logging.WARNING, False),
        (logging.ERROR, True),
        (logging.CRITICAL, True),
    ])
    def test_filter(self, level, allowed):
        record = logging.LogRecord("x", level, __file__, 1, "msg", None, None)
        assert ErrorOnlyFilter().filter(record) is allowed
