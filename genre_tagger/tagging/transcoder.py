"""
ffmpeg remux step for genre-tagger.

Every file is passed through ffmpeg before it is tagged, with a fixed set
of arguments: Ogg container out, audio streams only, audio copied without
re-encoding, source metadata carried over. The command line is built with
ffmpeg-python and run as a subprocess with a timeout.
"""

import subprocess
from pathlib import Path

import ffmpeg

from genre_tagger.core.exceptions import TranscodeError
from genre_tagger.core.logger import get_logger

logger = get_logger(__name__)


OUTPUT_FORMAT = "ogg"
OUTPUT_EXTENSION = "ogg"
AUDIO_CODEC = "copy"
TRANSCODE_TIMEOUT = 300  # seconds


class Transcoder:
    """
    Runs the ffmpeg remux for one file at a time.

    Stateless apart from the binary name, so one instance is shared by all
    writer threads.
    """

    def __init__(self, ffmpeg_binary: str = "ffmpeg", timeout: float = TRANSCODE_TIMEOUT) -> None:
        self._binary = ffmpeg_binary
        self._timeout = timeout

    def build_command(self, source: Path, destination: Path) -> list[str]:
        stream = (
            ffmpeg
            .input(str(source))
            .output(
                str(destination),
                format=OUTPUT_FORMAT,
                acodec=AUDIO_CODEC,
                map="0:a",
                map_metadata=0,
            )
            .overwrite_output()
            .global_args("-hide_banner", "-loglevel", "error")
        )
        return stream.compile(cmd=self._binary)

    def transcode(self, source: Path, destination: Path) -> None:
        """
        Remux source into destination.

        Raises:
            TranscodeError: If ffmpeg is missing, times out, or exits non-zero.
        """
        cmd = self.build_command(source, destination)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout
            )
        except FileNotFoundError as e:
            raise TranscodeError(
                f"ffmpeg not found: {self._binary}",
                details={"file_path": str(source)}
            ) from e
        except subprocess.TimeoutExpired as e:
            raise TranscodeError(
                f"ffmpeg timed out after {self._timeout:g}s",
                details={"file_path": str(source)}
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            last_line = stderr.splitlines()[-1] if stderr else "no output"
            raise TranscodeError(
                f"ffmpeg exited with status {result.returncode}: {last_line}",
                details={"file_path": str(source), "stderr": stderr[-1000:]}
            )
