"""Subtitle routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from app.core.config import Settings, get_settings
from app.errors import validation_error
from app.routes.dependencies import get_request_api_key, get_subtitle_service
from app.schemas.error import (
    RemoteServiceFailedError,
    TranscodeFailedError,
    UploadTooLargeError,
    ValidationErrorResponse,
)
from app.schemas.subtitle import SubmitSubtitleResponse, SubtitlePendingResponse, SubtitleStatusResponse
from app.services.storage import save_upload
from app.services.subtitles import SubtitleService

router = APIRouter(tags=["Subtitles"])

SUBRIP_MEDIA_TYPE = "application/x-subrip; charset=utf-8"
_MISSING_KEY_MESSAGE = (
    "Provide Speech7 API key via x-api-key header, apiKey field/query, or set SPEECH7_API_KEY env."
)


def _require_token_and_key(token: str | None, api_key: str) -> str:
    if not token:
        raise validation_error("token is required")
    if not api_key:
        raise validation_error(_MISSING_KEY_MESSAGE)
    return token


@router.post(
    "/subtitle",
    response_model=SubmitSubtitleResponse,
    responses={
        400: {"model": ValidationErrorResponse},
        413: {"model": UploadTooLargeError},
        500: {"model": TranscodeFailedError | RemoteServiceFailedError},
    },
)
async def submit_subtitle(
    api_key: Annotated[str, Depends(get_request_api_key)],
    settings: Annotated[Settings, Depends(get_settings)],
    service: Annotated[SubtitleService, Depends(get_subtitle_service)],
    video: Annotated[UploadFile | None, File()] = None,
) -> SubmitSubtitleResponse:
    if video is None:
        raise validation_error("video file missing (field: video)")
    if not api_key:
        await video.close()
        raise validation_error(_MISSING_KEY_MESSAGE)

    video_path = await save_upload(video, settings.upload_dir, max_bytes=settings.max_upload_bytes)
    return await service.submit(
        video_path=video_path,
        original_filename=video.filename or video_path.name,
        api_key=api_key,
    )


@router.get(
    "/subtitle/{token}",
    response_model=SubtitleStatusResponse,
    responses={
        400: {"model": ValidationErrorResponse},
        500: {"model": RemoteServiceFailedError},
    },
)
async def get_subtitle_status(
    path_token: Annotated[str, Path(alias="token")],
    api_key: Annotated[str, Depends(get_request_api_key)],
    service: Annotated[SubtitleService, Depends(get_subtitle_service)],
    query_token: Annotated[str | None, Query(alias="token")] = None,
    status_url: Annotated[str | None, Query(alias="statusUrl")] = None,
) -> SubtitleStatusResponse:
    token = _require_token_and_key(query_token or path_token, api_key)
    return await service.get_status(token=token, api_key=api_key, status_url=status_url)


@router.get(
    "/subtitle/{token}/file",
    response_model=None,
    responses={
        200: {"content": {"application/x-subrip": {}}, "description": "Subtitle file"},
        202: {"model": SubtitlePendingResponse},
        400: {"model": ValidationErrorResponse},
        500: {"model": RemoteServiceFailedError},
    },
)
async def download_subtitle_file(
    path_token: Annotated[str, Path(alias="token")],
    api_key: Annotated[str, Depends(get_request_api_key)],
    service: Annotated[SubtitleService, Depends(get_subtitle_service)],
    download_url: Annotated[str | None, Query(alias="downloadUrl")] = None,
    status_url: Annotated[str | None, Query(alias="statusUrl")] = None,
) -> Response:
    token = _require_token_and_key(path_token, api_key)
    result = await service.open_file(
        token=token,
        api_key=api_key,
        download_url=download_url,
        status_url=status_url,
    )
    if isinstance(result, SubtitlePendingResponse):
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=result.model_dump(mode="json"))

    return StreamingResponse(
        result.iter_bytes(),
        media_type=SUBRIP_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )
