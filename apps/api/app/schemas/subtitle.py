"""Subtitle API schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SubtitleJobState(str, Enum):
    RECEIVED = "RECEIVED"
    TRANSCODING = "TRANSCODING"
    SUBMITTED = "SUBMITTED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SubmitSubtitleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "submitted"
    token: str | None = None
    status_url: str | None = Field(default=None, alias="statusUrl")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    speech7: Any = None


class SubtitleStatusResponse(BaseModel):
    token: str
    speech7: Any = None


class SubtitlePendingResponse(BaseModel):
    """Polling response returned while the remote job has not completed."""

    status: str = "processing"
    speech7: Any = None
