"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from app.adapters.speech7 import build_http_client
from app.core.config import get_settings
from app.errors import ApiError
from app.routes import health_router, subtitles_router
from app.schemas.error import ErrorResponse
from app.services.storage import ensure_directories

logger = logging.getLogger(__name__)

_OPENAPI_RESPONSE_CODES: dict[str, dict[str, set[str]]] = {
    "/health": {"get": {"200"}},
    "/subtitle": {"post": {"200", "400", "413", "500"}},
    "/subtitle/{token}": {"get": {"200", "400", "500"}},
    "/subtitle/{token}/file": {"get": {"200", "202", "400", "500"}},
}


def _apply_contract_response_codes(schema: dict) -> None:
    """Limit documented response codes to the endpoint contract."""
    for path, methods in _OPENAPI_RESPONSE_CODES.items():
        path_item = schema.get("paths", {}).get(path)
        if not path_item:
            continue

        for method, allowed_codes in methods.items():
            operation = path_item.get(method)
            if not operation:
                continue

            responses = operation.setdefault("responses", {})
            for status_code in list(responses.keys()):
                if status_code not in allowed_codes:
                    responses.pop(status_code, None)

            for status_code in sorted(allowed_codes):
                responses.setdefault(status_code, {"description": "See API contract"})


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    ensure_directories(settings.upload_dir, settings.audio_dir)
    app.state.http_client = build_http_client(max_connections=settings.http_max_connections)
    logger.info(
        "speech7.auth_configured header=%s prefix_set=%s key_query_param=%s has_default_key=%s",
        settings.speech7_auth_header,
        bool(settings.speech7_auth_prefix),
        settings.speech7_key_query_param or None,
        bool(settings.speech7_api_key),
    )
    logger.info(
        "speech7.endpoints jobs_url=%s status_base=%s ffmpeg=%s",
        settings.speech7_jobs_url,
        settings.status_base,
        settings.ffmpeg_path,
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()


def create_app() -> FastAPI:
    _configure_logging(get_settings().log_level)
    app = FastAPI(title="Speech7 Subtitle Gateway", version="1.0.0", lifespan=_lifespan)

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(
            "request.invalid method=%s path=%s errors=%s",
            request.method,
            request.url.path,
            len(exc.errors()),
        )
        payload = ErrorResponse(code="VALIDATION_ERROR", message="Invalid request parameters")
        return JSONResponse(status_code=400, content=payload.model_dump(exclude_none=True))

    app.include_router(health_router)
    app.include_router(subtitles_router)

    def custom_openapi() -> dict:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        _apply_contract_response_codes(schema)
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
