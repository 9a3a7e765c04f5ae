"""Utilities for safe structured logging fields."""

from __future__ import annotations

import hashlib
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def mask_api_key(value: str | None) -> str:
    """Return a deterministic non-reversible fingerprint of an API key."""
    text = (value or "").strip()
    if not text:
        return "key-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"key-{digest}"


def redact_url(url: str | None, *secret_params: str) -> str:
    """Drop credential-carrying query parameters before a URL is logged."""
    if not url:
        return ""
    names = {name for name in secret_params if name}
    if not names:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key not in names]
    return urlunsplit(parts._replace(query=urlencode(query)))
