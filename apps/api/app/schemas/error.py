"""API error response schemas."""

from typing import Any
from typing import Literal

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Any = None


class ValidationErrorResponse(BaseModel):
    code: Literal["VALIDATION_ERROR"]
    message: str


class UploadTooLargeError(BaseModel):
    code: Literal["UPLOAD_TOO_LARGE"]
    message: str
    details: dict[str, Any] | None = None


class TranscodeErrorDetails(BaseModel):
    stderr: str
    exit_code: int | None = None


class TranscodeFailedError(BaseModel):
    code: Literal["TRANSCODE_FAILED"]
    message: str
    details: TranscodeErrorDetails


class RemoteServiceErrorDetails(BaseModel):
    status: int | None = None
    response: Any = None


class RemoteServiceFailedError(BaseModel):
    code: Literal["REMOTE_SERVICE_ERROR"]
    message: str
    details: RemoteServiceErrorDetails
