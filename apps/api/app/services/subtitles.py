"""Subtitle pipeline service layer."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

import httpx

from app.adapters.speech7 import RemoteServiceError, Speech7Client
from app.adapters.transcoder import AudioExtractor, TranscodeError
from app.core.config import Settings
from app.core.logging_safety import mask_api_key
from app.domain.job_fields import extract_download_url, extract_status_url, extract_token, is_completed, remote_status
from app.domain.urls import default_download_url, default_status_url, resolve_url
from app.errors import ApiError
from app.schemas.subtitle import (
    SubmitSubtitleResponse,
    SubtitleJobState,
    SubtitlePendingResponse,
    SubtitleStatusResponse,
)
from app.services.storage import audio_path_for, sanitize_filename, scoped_file

logger = logging.getLogger(__name__)


@dataclass
class SubtitleFile:
    """An open Speech7 download; draining :meth:`iter_bytes` closes ``response``."""

    token: str
    response: httpx.Response

    @property
    def filename(self) -> str:
        return f"{sanitize_filename(self.token)}.srt"

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Relay the body, releasing the pooled connection even if the remote drops mid-stream."""
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.response.aclose()


def _remote_error(message: str, exc: RemoteServiceError) -> ApiError:
    return ApiError(
        status_code=exc.status_code or 500,
        code="REMOTE_SERVICE_ERROR",
        message=message,
        details={
            "status": exc.status_code,
            "response": exc.payload if exc.payload is not None else str(exc),
        },
    )


class SubtitleService:
    def __init__(self, *, settings: Settings, client: Speech7Client, extractor: AudioExtractor) -> None:
        self._settings = settings
        self._client = client
        self._extractor = extractor

    def _absolute(self, path_or_url: str | None) -> str | None:
        return resolve_url(path_or_url, self._settings.resolution_base)

    def _job_urls(self, token: str | None, body: Any) -> tuple[str | None, str | None]:
        if not token:
            return None, None
        status_base = self._settings.status_base
        status_url = self._absolute(extract_status_url(body) or default_status_url(status_base, token))
        download_url = self._absolute(
            extract_download_url(body)
            or default_download_url(status_base, token, self._settings.speech7_download_suffix)
        )
        return status_url, download_url

    async def submit(self, *, video_path: Path, original_filename: str, api_key: str) -> SubmitSubtitleResponse:
        """Transcode an uploaded video and create a Speech7 job for its audio.

        Both the uploaded video and the extracted audio are deleted before this
        returns, whatever the outcome.
        """
        audio_path = audio_path_for(video_path, self._settings.audio_dir)
        with scoped_file(video_path), scoped_file(audio_path):
            logger.info(
                "subtitle.stage state=%s video=%s",
                SubtitleJobState.TRANSCODING.value,
                video_path.name,
            )
            try:
                await self._extractor.extract_mono_audio(video_path, audio_path)
            except TranscodeError as exc:
                logger.error(
                    "subtitle.stage state=%s reason=transcode_failed video=%s exit_code=%s stderr=%s",
                    SubtitleJobState.FAILED.value,
                    video_path.name,
                    exc.exit_code,
                    exc.stderr[-2000:],
                )
                raise ApiError(
                    status_code=500,
                    code="TRANSCODE_FAILED",
                    message="ffmpeg failed",
                    details={"stderr": exc.stderr or str(exc), "exit_code": exc.exit_code},
                ) from exc

            try:
                body = await self._client.create_job(audio_path, original_filename, api_key)
            except RemoteServiceError as exc:
                logger.error(
                    "subtitle.stage state=%s reason=submit_failed url=%s status=%s api_key=%s",
                    SubtitleJobState.FAILED.value,
                    self._settings.speech7_jobs_url,
                    exc.status_code,
                    mask_api_key(api_key),
                )
                raise _remote_error("speech7 failed", exc) from exc

        token = extract_token(body)
        status_url, download_url = self._job_urls(token, body)
        logger.info(
            "subtitle.stage state=%s token=%s",
            SubtitleJobState.SUBMITTED.value,
            token,
        )
        return SubmitSubtitleResponse(
            token=token,
            status_url=status_url,
            download_url=download_url,
            speech7=body,
        )

    async def get_status(self, *, token: str, api_key: str, status_url: str | None = None) -> SubtitleStatusResponse:
        try:
            body = await self._client.get_status(token, api_key, status_url)
        except RemoteServiceError as exc:
            logger.error(
                "subtitle.status_failed token=%s status_url=%s status=%s",
                token,
                status_url,
                exc.status_code,
            )
            raise _remote_error("speech7 status failed", exc) from exc

        logger.info(
            "subtitle.stage state=%s token=%s remote_status=%s",
            SubtitleJobState.PROCESSING.value,
            token,
            remote_status(body),
        )
        return SubtitleStatusResponse(token=token, speech7=body)

    async def open_file(
        self,
        *,
        token: str,
        api_key: str,
        download_url: str | None = None,
        status_url: str | None = None,
    ) -> SubtitleFile | SubtitlePendingResponse:
        """Return the open subtitle download, or a pending result while Speech7 is still working."""
        try:
            status_body = await self._client.get_status(token, api_key, status_url)
            resolved_download_url = self._absolute(
                download_url
                or extract_download_url(status_body)
                or default_download_url(self._settings.status_base, token, self._settings.speech7_download_suffix)
            )

            if not status_body or not is_completed(status_body) or not resolved_download_url:
                return SubtitlePendingResponse(
                    status=remote_status(status_body) or "processing",
                    speech7=status_body,
                )

            response = await self._client.download(token, api_key, resolved_download_url)
        except RemoteServiceError as exc:
            logger.error(
                "subtitle.download_failed token=%s download_url=%s status_url=%s status=%s",
                token,
                download_url,
                status_url,
                exc.status_code,
            )
            raise _remote_error("speech7 download failed", exc) from exc

        logger.info("subtitle.stage state=%s token=%s", SubtitleJobState.COMPLETED.value, token)
        return SubtitleFile(token=token, response=response)


__all__ = ["SubtitleFile", "SubtitleService"]
