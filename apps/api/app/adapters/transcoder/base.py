"""Audio extraction interfaces."""

from abc import ABC, abstractmethod
from pathlib import Path


class TranscodeError(Exception):
    """Raised when the transcoder exits non-zero or produces no output file."""

    def __init__(self, message: str, *, stderr: str = "", exit_code: int | None = None) -> None:
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(message)


class AudioExtractor(ABC):
    """Turns an uploaded video into the mono MP3 submitted to Speech7."""

    @abstractmethod
    async def extract_mono_audio(self, input_path: Path, output_path: Path) -> Path:
        """Write the extracted audio to ``output_path`` and return it."""


__all__ = ["AudioExtractor", "TranscodeError"]
