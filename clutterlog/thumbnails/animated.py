"""
AnimatedThumbnailGenerator - looping animated thumbnails via an external transcoder.
"""
import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol

from .. import config
from ..exceptions import ExternalToolMissingError, TranscodeFailedError

STDERR_TAIL_CHARS = 500


@dataclass(frozen=True)
class TranscodeParams:
    size: int
    loop_duration: float


class Transcoder(Protocol):
    """Anything that can turn a source clip into an animated thumbnail on disk."""

    def invoke(self, source: Path, dest: Path, params: TranscodeParams) -> None:
        ...


class FfmpegTranscoder:
    """
    Runs ffmpeg to produce a center-cropped, infinitely looping animated WebP.

    The input is looped (-stream_loop -1) and the output trimmed (-t), so
    sources shorter than the loop duration repeat instead of freezing.
    """

    def __init__(self, binary: str = config.FFMPEG_BIN, timeout: float = config.FFMPEG_TIMEOUT_SEC):
        self.binary = binary
        self.timeout = timeout

    def build_command(self, source: Path, dest: Path, params: TranscodeParams) -> List[str]:
        side = "min(iw\\,ih)"
        video_filter = (
            f"crop={side}:{side}:(iw-{side})/2:(ih-{side})/2,"
            f"scale={params.size}:{params.size}:flags=lanczos,setsar=1"
        )
        return [
            self.binary,
            "-hide_banner",
            "-loglevel", "error",
            "-stream_loop", "-1",
            "-i", str(source),
            "-t", f"{params.loop_duration:g}",
            "-vf", video_filter,
            "-an",
            "-map_metadata", "-1",
            "-c:v", "libwebp_anim",
            "-loop", "0",
            "-y",
            str(dest),
        ]

    def invoke(self, source: Path, dest: Path, params: TranscodeParams) -> None:
        cmd = self.build_command(source, dest, params)
        logging.debug(f"Running: {' '.join(cmd)}")

        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise ExternalToolMissingError(
                source.name, f"'{self.binary}' is not installed or not on PATH"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise TranscodeFailedError(
                source.name, f"{self.binary} timed out after {self.timeout:g}s"
            ) from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()[-STDERR_TAIL_CHARS:]
            raise TranscodeFailedError(
                source.name, f"{self.binary} exited with {proc.returncode}: {stderr}"
            )
        if not dest.exists():
            raise TranscodeFailedError(source.name, f"{self.binary} produced no output")


class AnimatedThumbnailGenerator:
    """
    Animated thumbnails for videos and animated images.

    Concurrent transcoder invocations are capped separately from the build's
    worker pool so a large folder does not spawn one process per thread.
    """

    def __init__(self,
                 transcoder: Transcoder = None,
                 size: int = config.THUMB_SIZE,
                 loop_duration: float = config.LOOP_DURATION_SEC,
                 max_concurrent: int = config.MAX_CONCURRENT_TRANSCODES):
        self.transcoder = transcoder or FfmpegTranscoder()
        self.params = TranscodeParams(size=size, loop_duration=loop_duration)
        self._slots = threading.BoundedSemaphore(max(1, max_concurrent))

    @property
    def size(self) -> int:
        return self.params.size

    @property
    def loop_duration(self) -> float:
        return self.params.loop_duration

    def generate(self, source: Path, dest: Path) -> None:
        """
        Raises:
            ExternalToolMissingError: the transcoder is not installed.
            TranscodeFailedError: the transcoder failed for this file.
        """
        with self._slots:
            self.transcoder.invoke(source, dest, self.params)
        logging.debug(f"Animated thumbnail written: {dest.name}")
