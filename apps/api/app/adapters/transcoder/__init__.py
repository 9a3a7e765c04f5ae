"""Audio extraction adapters."""

from .base import AudioExtractor, TranscodeError
from .ffmpeg import FfmpegAudioExtractor, resolve_ffmpeg_path

__all__ = [
    "AudioExtractor",
    "TranscodeError",
    "FfmpegAudioExtractor",
    "resolve_ffmpeg_path",
]
