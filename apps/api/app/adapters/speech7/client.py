"""Speech7 subtitle job client."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path, PurePath
from typing import Any

from fastapi.concurrency import run_in_threadpool
import httpx

from app.adapters.speech7.base import RemoteServiceError
from app.adapters.speech7.retry import DEFAULT_DELAY_MS, DEFAULT_RETRIES, with_retry
from app.core.config import Settings
from app.core.logging_safety import mask_api_key, redact_url
from app.domain.auth import AuthContext, build_auth_context
from app.domain.urls import default_download_url, default_status_url, resolve_url
from app.errors import validation_error

logger = logging.getLogger(__name__)

CREATE_JOB_TIMEOUT_SECONDS = 60 * 15
STATUS_TIMEOUT_SECONDS = 60 * 2
DOWNLOAD_TIMEOUT_SECONDS = 60 * 5
MAX_REDIRECTS = 5


def build_http_client(
    *,
    max_connections: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the keep-alive connection pool shared by every Speech7 call.

    Redirects are followed, so signed CDN download links and moved status
    endpoints resolve to their final response.
    """
    limits = httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections)
    return httpx.AsyncClient(
        limits=limits,
        transport=transport,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
    )


def decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def mp3_filename(original_filename: str | None) -> str:
    name = PurePath(original_filename or "").name or "audio"
    path = PurePath(name)
    return str(path.with_suffix(".mp3")) if path.suffix else f"{name}.mp3"


class Speech7Client:
    """Creates Speech7 subtitle jobs, polls their status and streams results.

    Every call runs through :func:`with_retry`, so only dropped connections are
    retried; HTTP error statuses surface as :class:`RemoteServiceError`
    carrying the remote status code and decoded body.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Settings,
        *,
        retries: int = DEFAULT_RETRIES,
        delay_ms: int = DEFAULT_DELAY_MS,
    ) -> None:
        self._http = http_client
        self._settings = settings
        self._retries = retries
        self._delay_ms = delay_ms

    def _auth(self, api_key: str | None) -> AuthContext:
        return build_auth_context(
            api_key or self._settings.speech7_api_key,
            header=self._settings.speech7_auth_header,
            prefix=self._settings.speech7_auth_prefix,
            query_param=self._settings.speech7_key_query_param,
        )

    def _log_url(self, url: str | None) -> str:
        return redact_url(url, self._settings.speech7_key_query_param)

    async def _call(self, attempt: Callable[[], Awaitable[httpx.Response]], *, url: str) -> httpx.Response:
        try:
            return await with_retry(attempt, retries=self._retries, delay_ms=self._delay_ms)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "speech7.http_error url=%s status=%s",
                self._log_url(url),
                exc.response.status_code,
            )
            raise RemoteServiceError(
                f"Speech7 responded with HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
                payload=decode_body(exc.response),
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "speech7.transport_failed url=%s error=%s",
                self._log_url(url),
                type(exc).__name__,
            )
            raise RemoteServiceError(f"Speech7 request failed: {type(exc).__name__}: {exc}") from exc

    async def _get(self, url: str, auth: AuthContext, *, timeout: float, stream: bool = False) -> httpx.Response:
        async def attempt() -> httpx.Response:
            request = self._http.build_request(
                "GET",
                url,
                headers=auth.headers,
                params=auth.params,
                timeout=timeout,
            )
            response = await self._http.send(request, stream=stream)
            if not response.is_success:
                if stream:
                    await response.aread()
                    await response.aclose()
                response.raise_for_status()
            return response

        return await self._call(attempt, url=url)

    async def create_job(self, audio_path: Path, original_filename: str, api_key: str | None) -> Any:
        """Upload extracted audio and return the raw Speech7 response body."""
        auth = self._auth(api_key)
        url = self._settings.speech7_jobs_url
        upload_name = mp3_filename(original_filename)
        audio_bytes = await run_in_threadpool(Path(audio_path).read_bytes)
        size = len(audio_bytes)
        language = self._settings.speech7_language
        data = {"language": language} if language else None

        logger.info(
            "speech7.create_job url=%s size=%s api_key=%s",
            self._log_url(url),
            size,
            mask_api_key(auth.api_key),
        )

        async def attempt() -> httpx.Response:
            # Rebuilt per attempt so a retried upload resends the whole file.
            request = self._http.build_request(
                "POST",
                url,
                headers=auth.headers,
                params=auth.params,
                files={self._settings.speech7_upload_field: (upload_name, audio_bytes, "audio/mpeg")},
                data=data,
                timeout=CREATE_JOB_TIMEOUT_SECONDS,
            )
            response = await self._http.send(request)
            response.raise_for_status()
            return response

        response = await self._call(attempt, url=url)
        return decode_body(response)

    async def get_status(self, token: str | None, api_key: str | None, status_url: str | None = None) -> Any:
        if not token:
            raise validation_error("token is required")
        auth = self._auth(api_key)
        url = resolve_url(
            status_url or default_status_url(self._settings.status_base, token),
            self._settings.resolution_base,
        )
        logger.info("speech7.get_status url=%s token=%s", self._log_url(url), token)

        response = await self._get(url, auth, timeout=STATUS_TIMEOUT_SECONDS)
        return decode_body(response)

    async def download(self, token: str | None, api_key: str | None, download_url: str | None = None) -> httpx.Response:
        """Open a streamed download; the caller must close the returned response."""
        if not token:
            raise validation_error("token is required")
        auth = self._auth(api_key)
        url = resolve_url(
            download_url
            or default_download_url(self._settings.status_base, token, self._settings.speech7_download_suffix),
            self._settings.resolution_base,
        )
        logger.info("speech7.download url=%s token=%s", self._log_url(url), token)

        return await self._get(url, auth, timeout=DOWNLOAD_TIMEOUT_SECONDS, stream=True)


__all__ = ["Speech7Client", "build_http_client", "decode_body", "mp3_filename"]
