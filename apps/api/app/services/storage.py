"""Temporary upload and audio file handling."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from app.errors import ApiError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")
_CHUNK_SIZE = 1024 * 1024


def sanitize_filename(name: str | None) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name or "") or "upload"


def ensure_directories(*directories: Path) -> None:
    """Create storage directories up front; failures abort startup."""
    for directory in directories:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.error(
                "storage.mkdir_failed dir=%s hint=set TMP_DIR/UPLOAD_DIR/AUDIO_DIR to a writable path",
                directory,
            )
            raise


def discard(path: Path | None) -> None:
    """Best-effort delete; errors are logged and swallowed."""
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("storage.discard_failed path=%s error=%s", path, exc)


@contextmanager
def scoped_file(path: Path) -> Iterator[Path]:
    """Tie a temporary file to a block; it is deleted however the block exits."""
    try:
        yield path
    finally:
        discard(path)


def audio_path_for(video_path: Path, audio_dir: Path) -> Path:
    return audio_dir / f"{video_path.stem}.mp3"


async def save_upload(upload: UploadFile, directory: Path, *, max_bytes: int) -> Path:
    """Copy an uploaded file to ``directory`` under a timestamped, sanitized name."""
    target = directory / f"{int(time.time() * 1000)}_{uuid4().hex[:8]}_{sanitize_filename(upload.filename)}"
    written = 0
    try:
        out = await run_in_threadpool(open, target, "wb")
        try:
            while chunk := await upload.read(_CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise ApiError(
                        status_code=413,
                        code="UPLOAD_TOO_LARGE",
                        message="Uploaded file exceeds the configured size limit",
                        details={"max_bytes": max_bytes},
                    )
                await run_in_threadpool(out.write, chunk)
        finally:
            await run_in_threadpool(out.close)
    except BaseException:
        discard(target)
        raise
    finally:
        await upload.close()

    logger.info("storage.upload_saved path=%s bytes=%s", target, written)
    return target


__all__ = [
    "audio_path_for",
    "discard",
    "ensure_directories",
    "sanitize_filename",
    "save_upload",
    "scoped_file",
]
