from __future__ import annotations

import subprocess
from pathlib import Path

from services.media.config import MediaConfig


class FrameExtractionError(RuntimeError):
    """Raised when ffmpeg fails to extract a cover frame."""


class FFmpegFrameExtractor:
    def __init__(self, *, binary: str = "ffmpeg", log_level: str = "error") -> None:
        self._binary = binary
        self._log_level = log_level

    def extract(
        self,
        *,
        source: str,
        destination: Path,
        timestamp_seconds: float = 1.0,
        size: str = "320x240",
    ) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self._binary,
            "-y",
            "-hide_banner",
            "-loglevel",
            self._log_level,
            "-ss",
            f"{timestamp_seconds:g}",
            "-i",
            source,
            "-frames:v",
            "1",
            "-s",
            size,
            destination.as_posix(),
        ]
        result = subprocess.run(cmd, capture_output=True)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="ignore")
            raise FrameExtractionError(
                f"ffmpeg frame extraction failed for {destination.name}: "
                f"{stderr.strip() or 'unknown error'}"
            )
        if not destination.exists():
            raise FrameExtractionError(
                f"ffmpeg produced no frame at {timestamp_seconds:g}s"
            )
        return destination


def create_frame_extractor(config: MediaConfig) -> FFmpegFrameExtractor:
    return FFmpegFrameExtractor(binary=config.ffmpeg_binary)
