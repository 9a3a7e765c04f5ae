"""Health check schemas."""

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: bool = True
    time: datetime
