"""Ordered field reconciliation for Speech7 response bodies.

Speech7 does not name job identity or result URLs consistently, so each
concept is read from a prioritized list of candidate fields and the first
non-empty value wins.
"""

from collections.abc import Sequence
from typing import Any

TOKEN_FIELDS: tuple[str, ...] = ("token", "id", "jobId", "requestId", "uploadToken")
STATUS_URL_FIELDS: tuple[str, ...] = ("statusUrl",)
DOWNLOAD_URL_FIELDS: tuple[str, ...] = ("downloadUrl", "file", "subtitleUrl")
COMPLETED_STATUS = "completed"


def first_present(body: Any, fields: Sequence[str]) -> str | None:
    if not isinstance(body, dict):
        return None
    for name in fields:
        value = body.get(name)
        if value is None or value == "" or isinstance(value, (dict, list, bool)):
            continue
        return str(value)
    return None


def extract_token(body: Any) -> str | None:
    return first_present(body, TOKEN_FIELDS)


def extract_status_url(body: Any) -> str | None:
    return first_present(body, STATUS_URL_FIELDS)


def extract_download_url(body: Any) -> str | None:
    return first_present(body, DOWNLOAD_URL_FIELDS)


def remote_status(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    value = body.get("status")
    return value if isinstance(value, str) and value else None


def is_completed(body: Any) -> bool:
    return remote_status(body) == COMPLETED_STATUS
