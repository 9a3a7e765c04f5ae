"""ffmpeg-backed audio extractor."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
from pathlib import Path

from app.adapters.transcoder.base import AudioExtractor, TranscodeError

logger = logging.getLogger(__name__)

_DEFAULT_BINARY = "ffmpeg"


def _platform_binary_name() -> str:
    return "ffmpeg.exe" if sys.platform == "win32" else _DEFAULT_BINARY


def _executable_dir() -> Path:
    # Frozen builds ship ffmpeg next to the executable rather than in the working directory.
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path.cwd()


def resolve_ffmpeg_path(explicit: str | None = None) -> str:
    """Pick the first existing ffmpeg candidate, falling back to the bare command name."""
    candidates = [
        explicit,
        str(_executable_dir() / _platform_binary_name()),
        shutil.which(_DEFAULT_BINARY),
    ]
    for candidate in candidates:
        if candidate and os.path.exists(candidate):
            return candidate
    return _DEFAULT_BINARY


def build_ffmpeg_args(input_path: Path, output_path: Path) -> list[str]:
    return [
        "-i",
        str(input_path),
        "-vn",
        "-ac",
        "1",
        "-ar",
        "44100",
        "-b:a",
        "128k",
        "-map_metadata",
        "-1",
        "-y",
        str(output_path),
    ]


class FfmpegAudioExtractor(AudioExtractor):
    """Runs ffmpeg as an asyncio subprocess to produce a 44.1 kHz mono MP3."""

    def __init__(self, ffmpeg_path: str) -> None:
        self._ffmpeg_path = ffmpeg_path

    async def extract_mono_audio(self, input_path: Path, output_path: Path) -> Path:
        args = build_ffmpeg_args(input_path, output_path)
        logger.info("ffmpeg.started binary=%s args=%s", self._ffmpeg_path, args)

        try:
            process = await asyncio.create_subprocess_exec(
                self._ffmpeg_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscodeError(
                f"ffmpeg could not be started: {exc}",
                stderr=str(exc),
                exit_code=None,
            ) from exc

        _, stderr = await process.communicate()
        stderr_text = (stderr or b"").decode("utf-8", errors="replace")

        if process.returncode == 0 and Path(output_path).exists():
            logger.info("ffmpeg.completed output=%s", output_path)
            return Path(output_path)

        raise TranscodeError(
            f"ffmpeg exited with code {process.returncode}",
            stderr=stderr_text,
            exit_code=process.returncode,
        )


__all__ = ["FfmpegAudioExtractor", "build_ffmpeg_args", "resolve_ffmpeg_path"]
