"""Dependency wiring for routes."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

import httpx
from fastapi import Depends, Request

from app.adapters.speech7 import Speech7Client
from app.adapters.transcoder import AudioExtractor, FfmpegAudioExtractor
from app.core.config import Settings, get_settings
from app.core.logging_safety import mask_api_key
from app.domain.auth import resolve_api_key
from app.services.subtitles import SubtitleService

logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _request_body_fields(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(_FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    if content_type.startswith("application/json"):
        raw = await request.body()
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
    return {}


async def get_request_api_key(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Resolve the Speech7 key for this request; ``""`` means no key was supplied."""
    body = await _request_body_fields(request)
    api_key = resolve_api_key(
        request.headers,
        request.query_params,
        body,
        configured_header=settings.speech7_auth_header,
        default_key=settings.speech7_api_key,
    )
    logger.debug(
        "auth.resolved method=%s path=%s api_key=%s",
        request.method,
        request.url.path,
        mask_api_key(api_key),
    )
    return api_key


def get_http_client(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("HTTP client not initialized; application lifespan did not run.")
    return client


def get_speech7_client(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Speech7Client:
    return Speech7Client(http_client, settings)


def get_audio_extractor(settings: Annotated[Settings, Depends(get_settings)]) -> AudioExtractor:
    return FfmpegAudioExtractor(settings.ffmpeg_path)


def get_subtitle_service(
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[Speech7Client, Depends(get_speech7_client)],
    extractor: Annotated[AudioExtractor, Depends(get_audio_extractor)],
) -> SubtitleService:
    return SubtitleService(settings=settings, client=client, extractor=extractor)
