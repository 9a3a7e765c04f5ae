"""Application configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from urllib.parse import urljoin

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.adapters.transcoder.ffmpeg import resolve_ffmpeg_path

_DEFAULT_SPEECH7_BASE_URL = "https://app.speech7.com"
_DEFAULT_SPEECH7_JOBS_PATH = "/subtitle/jobs"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables and ``.env``."""

    port: int = 4000
    log_level: str = "info"

    tmp_dir: Path = Field(default_factory=lambda: Path.cwd() / "tmp")
    upload_dir: Path | None = None
    audio_dir: Path | None = None
    ffmpeg_path: str | None = None
    max_upload_bytes: int = 20 * 1024 * 1024 * 1024
    http_max_connections: int = 10

    speech7_base_url: str = _DEFAULT_SPEECH7_BASE_URL
    speech7_jobs_path: str = _DEFAULT_SPEECH7_JOBS_PATH
    speech7_jobs_url: str | None = None
    speech7_status_base_url: str | None = None
    speech7_download_suffix: str = "file"
    speech7_upload_field: str = "audio"
    speech7_api_key: str = ""
    speech7_language: str = "en"
    speech7_auth_header: str = "x-api-key"
    speech7_auth_prefix: str = ""
    speech7_key_query_param: str = ""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator(
        "speech7_base_url",
        "speech7_jobs_path",
        "speech7_jobs_url",
        "speech7_status_base_url",
        "speech7_api_key",
        "ffmpeg_path",
        mode="before",
    )
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def _derive_defaults(self) -> Settings:
        if not self.speech7_base_url:
            self.speech7_base_url = _DEFAULT_SPEECH7_BASE_URL
        if not self.speech7_jobs_path:
            self.speech7_jobs_path = _DEFAULT_SPEECH7_JOBS_PATH
        if not self.speech7_jobs_url:
            base = self.speech7_base_url if self.speech7_base_url.endswith("/") else f"{self.speech7_base_url}/"
            self.speech7_jobs_url = urljoin(base, self.speech7_jobs_path)
        if not self.speech7_status_base_url:
            self.speech7_status_base_url = self.speech7_jobs_url.rstrip("/")
        if self.upload_dir is None:
            self.upload_dir = self.tmp_dir / "uploads"
        if self.audio_dir is None:
            self.audio_dir = self.tmp_dir / "audio"
        self.ffmpeg_path = resolve_ffmpeg_path(self.ffmpeg_path or None)
        return self

    @property
    def status_base(self) -> str:
        """Status base without a trailing slash, used to derive job URLs."""
        return (self.speech7_status_base_url or self.speech7_jobs_url or self.speech7_base_url).rstrip("/")

    @property
    def resolution_base(self) -> str:
        """Base URL that relative paths returned by Speech7 are resolved against."""
        return self.speech7_status_base_url or self.speech7_jobs_url or self.speech7_base_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
